"""
User Repository - the slice of the users table the pipeline owns.

Accounts are issued by the upstream auth gateway. Ingestion only reads the
tracking_paused gate and writes the presence snapshot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from scrollwise.infrastructure.database import retry_on_db_lock
from scrollwise.observability.logging import get_logger
from scrollwise.storage import BaseRepository
from scrollwise.utils import clock

logger = get_logger(__name__)


class PresenceSnapshot(BaseModel):
    """Denormalized last-activity fields, refreshed by ingestion."""

    last_event_at: datetime | None = None
    last_event_type: str | None = None
    last_url: str | None = None
    last_domain: str | None = None
    last_duration_ms: int = 0
    last_scroll_distance: float = 0


class UserProfile(BaseModel):
    id: str
    email: str | None = None
    display_name: str | None = None
    tracking_paused: bool = False
    account_status: str = "pending"
    presence: PresenceSnapshot = Field(default_factory=PresenceSnapshot)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> UserProfile:
        return cls(
            id=row["id"],
            email=row.get("email"),
            display_name=row.get("display_name"),
            tracking_paused=bool(row.get("tracking_paused")),
            account_status=row.get("account_status") or "pending",
            presence=PresenceSnapshot(
                last_event_at=clock.parse_iso(row.get("presence_last_event_at")),
                last_event_type=row.get("presence_last_event_type"),
                last_url=row.get("presence_last_url"),
                last_domain=row.get("presence_last_domain"),
                last_duration_ms=row.get("presence_last_duration_ms") or 0,
                last_scroll_distance=row.get("presence_last_scroll_distance") or 0,
            ),
            created_at=clock.parse_iso(row.get("created_at")),
            updated_at=clock.parse_iso(row.get("updated_at")),
        )


class UserRepository(BaseRepository):
    def __init__(self) -> None:
        super().__init__("users")

    @retry_on_db_lock()
    def create(
        self,
        user_id: str,
        email: str | None = None,
        display_name: str | None = None,
        tracking_paused: bool = False,
    ) -> UserProfile:
        """
        Register a user. Existing rows are left untouched.

        Side Effects:
            - Inserts row into users table (INSERT OR IGNORE)
            - Commits transaction
        """
        now = clock.to_iso(clock.utc_now())
        self.execute(
            """
            INSERT OR IGNORE INTO users (
                id, email, display_name, tracking_paused, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, email, display_name, int(tracking_paused), now, now),
        )
        user = self.get(user_id)
        if user is None:
            raise RuntimeError(f"user {user_id} missing after insert")
        return user

    def get(self, user_id: str) -> UserProfile | None:
        row = self.query_one("SELECT * FROM users WHERE id = ?", (user_id,))
        if not row:
            return None
        return UserProfile.from_db_row(dict(row))

    @retry_on_db_lock()
    def set_tracking_paused(self, user_id: str, paused: bool) -> bool:
        """Returns True if the user exists."""
        rowcount = self.execute(
            "UPDATE users SET tracking_paused = ?, updated_at = ? WHERE id = ?",
            (int(paused), clock.to_iso(clock.utc_now()), user_id),
        )
        return rowcount > 0

    def update_presence(self, user_id: str, presence: PresenceSnapshot) -> bool:
        """
        Overwrite the presence snapshot and mark the account active.

        Side Effects:
            - Updates presence_* columns and account_status on users
            - Commits transaction
        """
        rowcount = self.execute(
            """
            UPDATE users SET
                presence_last_event_at = ?,
                presence_last_event_type = ?,
                presence_last_url = ?,
                presence_last_domain = ?,
                presence_last_duration_ms = ?,
                presence_last_scroll_distance = ?,
                account_status = 'active',
                updated_at = ?
            WHERE id = ?
            """,
            (
                clock.to_iso(presence.last_event_at) if presence.last_event_at else None,
                presence.last_event_type,
                presence.last_url,
                presence.last_domain,
                presence.last_duration_ms,
                presence.last_scroll_distance,
                clock.to_iso(clock.utc_now()),
                user_id,
            ),
        )
        return rowcount > 0
