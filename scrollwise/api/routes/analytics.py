"""
Analytics API endpoints: weekly browsing patterns and today's doom scrolls.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from scrollwise.api.middleware.user_auth import AuthenticatedUser, get_current_user
from scrollwise.observability.logging import get_logger
from scrollwise.tracking.service import get_dashboard_stats

router = APIRouter(prefix="/api/analytics", tags=["analytics"])
logger = get_logger(__name__)


@router.get("/dashboard")
def dashboard(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    """Most visited domains, activity heatmap, scroll speed and doom scrolls."""
    try:
        return get_dashboard_stats(user.id)
    except Exception as e:
        logger.error("Failed to load dashboard stats for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to load dashboard stats") from None
