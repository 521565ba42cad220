"""
User authentication for the Scrollwise API.

Sessions, OTP and OAuth live in the upstream auth gateway. The gateway
verifies the caller and forwards the user id in X-User-ID. When
SCROLLWISE_GATEWAY_SECRET is set, requests must also carry the same value in
X-Gateway-Secret, so the header cannot be forged by calling the service
directly.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from scrollwise.infrastructure.settings import get_env
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter

logger = get_logger(__name__)

USER_ID_MAX_LENGTH = 128


@dataclass
class AuthenticatedUser:
    """User identity as asserted by the auth gateway."""

    id: str

    def __str__(self) -> str:
        return f"User({self.id})"


def get_current_user(
    x_user_id: str | None = Header(None),
    x_gateway_secret: str | None = Header(None),
) -> AuthenticatedUser:
    """
    FastAPI dependency resolving the calling user.

    Usage:
        @router.get("/api/tracking/summary")
        def summary(user: AuthenticatedUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: Missing/blank user id or wrong gateway secret
    """
    expected_secret = get_env("SCROLLWISE_GATEWAY_SECRET")
    if expected_secret:
        # Timing-safe comparison
        if not x_gateway_secret or not secrets.compare_digest(x_gateway_secret, expected_secret):
            counter("auth.gateway_secret_rejected")
            logger.warning("Rejected request with missing or invalid gateway secret")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )

    user_id = (x_user_id or "").strip()
    if not user_id or len(user_id) > USER_ID_MAX_LENGTH:
        counter("auth.missing_user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return AuthenticatedUser(id=user_id)
