"""
Tracking API endpoints: event ingestion and the dashboard read paths.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import Field

from scrollwise.api.middleware.user_auth import AuthenticatedUser, get_current_user
from scrollwise.config import API_BATCH_SIZE_MAX
from scrollwise.observability.logging import get_logger
from scrollwise.storage.models import CamelModel
from scrollwise.tracking import TrackingEventCreate, record_events
from scrollwise.tracking.service import get_streaks, get_summary, get_timeline

router = APIRouter(prefix="/api/tracking", tags=["tracking"])
logger = get_logger(__name__)


class RecordEventsRequest(CamelModel):
    events: list[TrackingEventCreate] = Field(min_length=1, max_length=API_BATCH_SIZE_MAX)


@router.post("/events", status_code=status.HTTP_201_CREATED)
def post_events(
    request: RecordEventsRequest,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Record a batch of events for the authenticated user.

    201 with {stored, acceptedKeys}; 200 with trackingPaused=true when the
    user's tracking is paused (nothing stored).
    """
    try:
        result = record_events(user.id, request.events)
    except Exception as e:
        logger.error("Failed to record events for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to record events") from None

    if result.tracking_paused:
        response.status_code = status.HTTP_200_OK
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/summary")
def summary(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    """Today's metric (refreshed when stale), the last 7 days and lifetime totals."""
    try:
        return get_summary(user.id)
    except Exception as e:
        logger.error("Failed to build summary for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load summary") from None


@router.get("/timeline")
def timeline(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    try:
        events = get_timeline(user.id)
    except Exception as e:
        logger.error("Failed to load timeline for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load timeline") from None
    return {"timeline": [event.to_api() for event in events]}


@router.get("/streaks")
def streaks(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, int]:
    try:
        return get_streaks(user.id)
    except Exception as e:
        logger.error("Failed to load streaks for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load streaks") from None
