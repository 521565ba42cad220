"""
Tracking domain models.

TrackingEvent is an immutable fact recorded from the browser extension.
DailyMetric is the per-(user, UTC day) rollup, always rebuilt from events.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import ConfigDict, Field, field_validator

from scrollwise.storage.models import CamelModel
from scrollwise.utils import clock


class EventType(str, Enum):
    """Kinds of interaction the extension reports."""

    SCROLL = "scroll"
    CLICK = "click"
    IDLE = "idle"
    FOCUS = "focus"
    BLUR = "blur"


class InteractionType(str, Enum):
    """Whether the user was engaging with the page or just consuming it."""

    PASSIVE = "passive"
    ACTIVE = "active"


class TrackingEventCreate(CamelModel):
    """One event descriptor from an ingestion batch."""

    type: EventType
    duration_ms: int | None = Field(default=None, ge=0)
    scroll_distance: float | None = Field(default=None, ge=0)
    # Pixels per second, averaged over the event
    scroll_speed: float | None = Field(default=None, ge=0)
    # Percentage of the page reached
    max_scroll_depth: float | None = Field(default=None, ge=0, le=100)
    # Missing means passive
    interaction_type: InteractionType | None = None
    url: str
    domain: str
    started_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = Field(default=None, min_length=1, max_length=256)

    @field_validator("url")
    @classmethod
    def url_is_absolute(cls, v: str) -> str:
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("url must be an absolute URL")
        return v

    @field_validator("started_at")
    @classmethod
    def started_at_utc(cls, v: datetime | None) -> datetime | None:
        return clock.to_utc(v) if v is not None else None


class TrackingEvent(TrackingEventCreate):
    """A persisted event. Never mutated after insert."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    created_at: datetime

    @staticmethod
    def _enum_value(value: Enum | str | None) -> str | None:
        return value.value if isinstance(value, Enum) else value

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self._enum_value(self.type),
            "duration_ms": self.duration_ms,
            "scroll_distance": self.scroll_distance,
            "scroll_speed": self.scroll_speed,
            "max_scroll_depth": self.max_scroll_depth,
            "interaction_type": self._enum_value(self.interaction_type),
            "url": self.url,
            "domain": self.domain,
            "metadata": json.dumps(self.metadata),
            "started_at": clock.to_iso(self.started_at) if self.started_at else None,
            "created_at": clock.to_iso(self.created_at),
            "idempotency_key": self.idempotency_key,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> TrackingEvent:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            type=EventType(row["type"]),
            duration_ms=row.get("duration_ms"),
            scroll_distance=row.get("scroll_distance"),
            scroll_speed=row.get("scroll_speed"),
            max_scroll_depth=row.get("max_scroll_depth"),
            interaction_type=row.get("interaction_type"),
            url=row["url"],
            domain=row["domain"],
            metadata=json.loads(row["metadata"]) if row.get("metadata") else {},
            started_at=clock.parse_iso(row.get("started_at")),
            created_at=clock.parse_iso(row["created_at"]),
            idempotency_key=row.get("idempotency_key"),
        )


class IngestResult(CamelModel):
    """Outcome of one ingestion call."""

    stored: int = 0
    accepted_keys: list[str] = Field(default_factory=list)
    tracking_paused: bool | None = None


# ---------------------------------------------------------------------------
# Daily rollup
# ---------------------------------------------------------------------------


class MetricTotals(CamelModel):
    scroll_distance: float = 0
    active_minutes: float = 0
    idle_minutes: float = 0
    click_count: int = 0


class DomainBreakdown(CamelModel):
    domain: str
    duration_ms: int
    scroll_distance: int = 0


class MetricBreakdown(CamelModel):
    domain: list[DomainBreakdown] = Field(default_factory=list)
    # Sparse: only hours ("0".."23") with activity
    hour: dict[str, int] = Field(default_factory=dict)


class DailyMetric(CamelModel):
    """One user's rollup for one UTC calendar day."""

    user_id: str
    date: str
    totals: MetricTotals = Field(default_factory=MetricTotals)
    breakdown: MetricBreakdown = Field(default_factory=MetricBreakdown)
    last_computed_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_stale(self, max_age_seconds: int, now: datetime | None = None) -> bool:
        now = now or clock.utc_now()
        return (now - clock.to_utc(self.last_computed_at)).total_seconds() > max_age_seconds

    def content(self) -> dict[str, Any]:
        """Totals and breakdown only; what recomputes must reproduce exactly."""
        return {
            "totals": self.totals.model_dump(),
            "breakdown": self.breakdown.model_dump(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> DailyMetric:
        return cls(
            user_id=row["user_id"],
            date=row["date"],
            totals=MetricTotals.model_validate_json(row["totals"]),
            breakdown=MetricBreakdown.model_validate_json(row["breakdown"]),
            last_computed_at=clock.parse_iso(row["last_computed_at"]),
            created_at=clock.parse_iso(row.get("created_at")),
            updated_at=clock.parse_iso(row.get("updated_at")),
        )
