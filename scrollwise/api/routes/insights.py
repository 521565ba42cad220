"""
Insights API endpoints.
"""

from __future__ import annotations

from datetime import date as date_type
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from scrollwise.api.middleware.user_auth import AuthenticatedUser, get_current_user
from scrollwise.config import API_INSIGHT_LIMIT_DEFAULT, API_INSIGHT_LIMIT_MAX
from scrollwise.insights import InsightEngine, MetricsUnavailableError
from scrollwise.observability.logging import get_logger
from scrollwise.storage.models import CamelModel
from scrollwise.utils.error_sanitizer import sanitize_error_message

router = APIRouter(prefix="/api/insights", tags=["insights"])
logger = get_logger(__name__)


class GenerateInsightRequest(CamelModel):
    date: date_type | None = None
    regenerate: bool = False


@router.get("")
def list_insights(
    user: AuthenticatedUser = Depends(get_current_user),
    limit: int = Query(API_INSIGHT_LIMIT_DEFAULT, ge=1, le=API_INSIGHT_LIMIT_MAX),
) -> dict[str, Any]:
    """Most recent insights, one per (day, signature)."""
    try:
        insights = InsightEngine().get_latest(user.id, limit)
    except Exception as e:
        logger.error("Failed to list insights for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load insights") from None
    return {"insights": [insight.to_api() for insight in insights]}


@router.post("/generate", status_code=status.HTTP_201_CREATED)
def generate(
    request: GenerateInsightRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Generate (or refresh) the insight for a day, today by default.

    404 when the day has no metrics yet.
    """
    request = request or GenerateInsightRequest()
    metric_date = request.date.isoformat() if request.date else None
    try:
        insight = InsightEngine().generate_insight(user.id, metric_date, request.regenerate)
    except MetricsUnavailableError as e:
        raise HTTPException(status_code=404, detail=sanitize_error_message(str(e), 404)) from None
    except Exception as e:
        logger.error("Failed to generate insight for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to generate insight") from None
    return {"insight": insight.to_api()}
