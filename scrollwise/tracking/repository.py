"""
Tracking repositories - tracking_events and daily_metrics tables.

Follows the database patterns in scrollwise/infrastructure/database.py.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from scrollwise.infrastructure.database import db_transaction, retry_on_db_lock
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter
from scrollwise.storage import BaseRepository
from scrollwise.tracking.models import (
    DailyMetric,
    MetricBreakdown,
    MetricTotals,
    TrackingEvent,
    TrackingEventCreate,
)
from scrollwise.utils import clock

logger = get_logger(__name__)

_INSERT_EVENT = """
    INSERT {conflict} INTO tracking_events (
        id, user_id, type, duration_ms, scroll_distance, scroll_speed,
        max_scroll_depth, interaction_type, url, domain, metadata, started_at,
        created_at, idempotency_key
    ) VALUES (
        :id, :user_id, :type, :duration_ms, :scroll_distance, :scroll_speed,
        :max_scroll_depth, :interaction_type, :url, :domain, :metadata, :started_at,
        :created_at, :idempotency_key
    )
"""


@dataclass
class BulkInsertResult:
    """Outcome of a best-effort bulk insert."""

    inserted: list[TrackingEvent] = field(default_factory=list)
    # Keyed rows skipped because the (user, key) pair already existed
    ignored_keys: list[str] = field(default_factory=list)
    failed: int = 0


class TrackingEventRepository(BaseRepository):
    """Append-only store of tracking events."""

    def __init__(self) -> None:
        super().__init__("tracking_events")

    def find_existing_keys(self, user_id: str, keys: Iterable[str]) -> set[str]:
        """Which of the given idempotency keys this user has already stored."""
        keys = list(dict.fromkeys(keys))
        if not keys:
            return set()
        placeholders = ",".join("?" * len(keys))
        rows = self.query_all(
            f"""
            SELECT idempotency_key FROM tracking_events
            WHERE user_id = ? AND idempotency_key IN ({placeholders})
            """,
            (user_id, *keys),
        )
        return {row["idempotency_key"] for row in rows}

    def insert_many(
        self,
        user_id: str,
        events: Iterable[TrackingEventCreate],
        created_at: datetime | None = None,
    ) -> BulkInsertResult:
        """
        Insert events one row at a time inside a single transaction.

        A failing row is logged and counted; the remaining rows are still
        written. Keyed rows use INSERT OR IGNORE against the unique
        (user_id, idempotency_key) index, so a concurrent duplicate is
        reported in ignored_keys rather than stored twice.

        Side Effects:
            - Inserts rows into tracking_events
            - Commits transaction
        """
        created_at = created_at or clock.utc_now()
        result = BulkInsertResult()

        with db_transaction() as conn:
            for event in events:
                stored = TrackingEvent(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    created_at=created_at,
                    **event.model_dump(),
                )
                conflict = "OR IGNORE" if stored.idempotency_key else ""
                try:
                    cursor = conn.execute(_INSERT_EVENT.format(conflict=conflict), stored.to_db_dict())
                except sqlite3.Error as e:
                    result.failed += 1
                    counter("tracking.insert_failed")
                    logger.warning("Failed to insert tracking event for user %s: %s", user_id, e)
                    continue

                if cursor.rowcount == 0 and stored.idempotency_key:
                    result.ignored_keys.append(stored.idempotency_key)
                else:
                    result.inserted.append(stored)

        return result

    def list_between(self, user_id: str, start: str, end: str) -> list[TrackingEvent]:
        """Events whose created_at lies in [start, end] (storage-format strings)."""
        rows = self.query_all(
            """
            SELECT * FROM tracking_events
            WHERE user_id = ? AND created_at >= ? AND created_at <= ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (user_id, start, end),
        )
        return [TrackingEvent.from_db_row(dict(row)) for row in rows]

    def list_recent(self, user_id: str, since: datetime, limit: int) -> list[TrackingEvent]:
        rows = self.query_all(
            """
            SELECT * FROM tracking_events
            WHERE user_id = ? AND created_at >= ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (user_id, clock.to_iso(since), limit),
        )
        return [TrackingEvent.from_db_row(dict(row)) for row in rows]

    def totals_by_type(self, user_id: str) -> dict[str, dict[str, float]]:
        """Lifetime count, duration and scroll distance per event type."""
        rows = self.query_all(
            """
            SELECT type,
                   COUNT(*) AS count,
                   COALESCE(SUM(duration_ms), 0) AS duration_ms,
                   COALESCE(SUM(scroll_distance), 0) AS scroll_distance
            FROM tracking_events
            WHERE user_id = ?
            GROUP BY type
            """,
            (user_id,),
        )
        return {
            row["type"]: {
                "count": row["count"],
                "durationMs": row["duration_ms"],
                "scrollDistance": row["scroll_distance"],
            }
            for row in rows
        }

    def daily_rollups_since(self, user_id: str, since: datetime) -> list[dict[str, Any]]:
        """Per-day scroll, active minutes and clicks from raw events, oldest day first."""
        rows = self.query_all(
            """
            SELECT substr(created_at, 1, 10) AS date,
                   COALESCE(SUM(CASE WHEN scroll_distance > 0 THEN scroll_distance ELSE 0 END), 0)
                       AS scroll_distance,
                   COALESCE(SUM(CASE WHEN type != 'idle' AND duration_ms > 0
                                     THEN duration_ms / 60000.0 ELSE 0 END), 0)
                       AS active_minutes,
                   SUM(CASE WHEN type = 'click' THEN 1 ELSE 0 END) AS click_count
            FROM tracking_events
            WHERE user_id = ? AND created_at >= ?
            GROUP BY substr(created_at, 1, 10)
            ORDER BY date ASC
            """,
            (user_id, clock.to_iso(since)),
        )
        return [dict(row) for row in rows]

    # -- dashboard analytics (raw events, one window per query) --

    def most_visited_domains(
        self, user_id: str, since: datetime, limit: int
    ) -> list[dict[str, Any]]:
        """Domains by event count, with total duration; busiest first."""
        rows = self.query_all(
            """
            SELECT domain,
                   COUNT(*) AS visit_count,
                   COALESCE(SUM(duration_ms), 0) AS total_duration
            FROM tracking_events
            WHERE user_id = ? AND created_at >= ?
            GROUP BY domain
            ORDER BY visit_count DESC, total_duration DESC, domain ASC
            LIMIT ?
            """,
            (user_id, clock.to_iso(since), limit),
        )
        return [dict(row) for row in rows]

    def activity_heatmap(self, user_id: str, since: datetime) -> list[dict[str, Any]]:
        """
        Event counts per (day of week, UTC hour), sparse.

        day_of_week runs 1 (Sunday) to 7 (Saturday).
        """
        rows = self.query_all(
            """
            SELECT CAST(strftime('%w', substr(created_at, 1, 10)) AS INTEGER) + 1
                       AS day_of_week,
                   CAST(substr(created_at, 12, 2) AS INTEGER) AS hour,
                   COUNT(*) AS count
            FROM tracking_events
            WHERE user_id = ? AND created_at >= ?
            GROUP BY day_of_week, hour
            ORDER BY day_of_week ASC, hour ASC
            """,
            (user_id, clock.to_iso(since)),
        )
        return [dict(row) for row in rows]

    def scroll_speed_stats(self, user_id: str, since: datetime) -> dict[str, float]:
        """Average and peak scroll speed plus total distance over scroll events."""
        row = self.query_one(
            """
            SELECT COALESCE(AVG(scroll_speed), 0) AS avg_speed,
                   COALESCE(MAX(scroll_speed), 0) AS max_speed,
                   COALESCE(SUM(scroll_distance), 0) AS total_distance
            FROM tracking_events
            WHERE user_id = ? AND type = 'scroll' AND created_at >= ?
            """,
            (user_id, clock.to_iso(since)),
        )
        return dict(row) if row else {"avg_speed": 0, "max_speed": 0, "total_distance": 0}

    def passive_domain_durations(
        self, user_id: str, since: datetime, min_duration_ms: int, limit: int
    ) -> list[dict[str, Any]]:
        """
        Domains where non-active time since `since` exceeds min_duration_ms.

        Events without an interaction_type count as passive.
        """
        rows = self.query_all(
            """
            SELECT domain,
                   COALESCE(SUM(duration_ms), 0) AS duration_ms,
                   COUNT(*) AS visit_count
            FROM tracking_events
            WHERE user_id = ? AND created_at >= ?
              AND COALESCE(interaction_type, 'passive') != 'active'
            GROUP BY domain
            HAVING COALESCE(SUM(duration_ms), 0) > ?
            ORDER BY duration_ms DESC, domain ASC
            LIMIT ?
            """,
            (user_id, clock.to_iso(since), min_duration_ms, limit),
        )
        return [dict(row) for row in rows]

    def distinct_users_since(self, since: datetime) -> list[str]:
        rows = self.query_all(
            "SELECT DISTINCT user_id FROM tracking_events WHERE created_at >= ? ORDER BY user_id",
            (clock.to_iso(since),),
        )
        return [row["user_id"] for row in rows]


class DailyMetricRepository(BaseRepository):
    """One row per (user, day); written only by the aggregator."""

    def __init__(self) -> None:
        super().__init__("daily_metrics")

    def get(self, user_id: str, date: str) -> DailyMetric | None:
        row = self.query_one(
            "SELECT * FROM daily_metrics WHERE user_id = ? AND date = ?",
            (user_id, date),
        )
        if not row:
            return None
        return DailyMetric.from_db_row(dict(row))

    @retry_on_db_lock()
    def upsert(
        self,
        user_id: str,
        date: str,
        totals: MetricTotals,
        breakdown: MetricBreakdown,
        computed_at: datetime,
    ) -> None:
        """
        Replace the whole rollup for (user, date).

        Side Effects:
            - Inserts or overwrites one daily_metrics row
            - Commits transaction
        """
        now = clock.to_iso(computed_at)
        self.execute(
            """
            INSERT INTO daily_metrics (
                user_id, date, totals, breakdown, last_computed_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, date) DO UPDATE SET
                totals = excluded.totals,
                breakdown = excluded.breakdown,
                last_computed_at = excluded.last_computed_at,
                updated_at = excluded.updated_at
            """,
            (
                user_id,
                date,
                totals.model_dump_json(),
                breakdown.model_dump_json(),
                now,
                now,
                now,
            ),
        )

    def list_recent(self, user_id: str, limit: int) -> list[DailyMetric]:
        rows = self.query_all(
            "SELECT * FROM daily_metrics WHERE user_id = ? ORDER BY date DESC LIMIT ?",
            (user_id, limit),
        )
        return [DailyMetric.from_db_row(dict(row)) for row in rows]
