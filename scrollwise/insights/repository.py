"""
Insight Repository - CRUD operations for the insights table.

Rows for one (user, metric_date) are ordered by recency as
(updated_at DESC, created_at DESC, rowid DESC); the rowid breaks ties between
rows written within the same microsecond.
"""

from __future__ import annotations

import json
from datetime import datetime

from scrollwise.infrastructure.database import retry_on_db_lock
from scrollwise.insights.models import Insight
from scrollwise.observability.logging import get_logger
from scrollwise.storage import BaseRepository
from scrollwise.utils import clock

logger = get_logger(__name__)

RECENCY_ORDER = "ORDER BY updated_at DESC, created_at DESC, rowid DESC"


class InsightRepository(BaseRepository):
    def __init__(self) -> None:
        super().__init__("insights")

    def get_by_id(self, insight_id: str) -> Insight | None:
        row = self.query_one("SELECT * FROM insights WHERE id = ?", (insight_id,))
        return Insight.from_db_row(dict(row)) if row else None

    def get_by_signature(self, user_id: str, metric_date: str, signature: str) -> Insight | None:
        row = self.query_one(
            """
            SELECT * FROM insights
            WHERE user_id = ? AND metric_date = ? AND metric_signature = ?
            """,
            (user_id, metric_date, signature),
        )
        return Insight.from_db_row(dict(row)) if row else None

    def latest_for_day(self, user_id: str, metric_date: str) -> Insight | None:
        row = self.query_one(
            f"SELECT * FROM insights WHERE user_id = ? AND metric_date = ? {RECENCY_ORDER} LIMIT 1",
            (user_id, metric_date),
        )
        return Insight.from_db_row(dict(row)) if row else None

    def latest_created(self, user_id: str) -> Insight | None:
        """Most recently created insight across all days."""
        row = self.query_one(
            "SELECT * FROM insights WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (user_id,),
        )
        return Insight.from_db_row(dict(row)) if row else None

    def list_recent(self, user_id: str, limit: int) -> list[Insight]:
        rows = self.query_all(
            f"SELECT * FROM insights WHERE user_id = ? {RECENCY_ORDER} LIMIT ?",
            (user_id, limit),
        )
        return [Insight.from_db_row(dict(row)) for row in rows]

    def count_for_day(self, user_id: str, metric_date: str) -> int:
        row = self.query_one(
            "SELECT COUNT(*) AS n FROM insights WHERE user_id = ? AND metric_date = ?",
            (user_id, metric_date),
        )
        return row["n"] if row else 0

    @retry_on_db_lock()
    def update_content(
        self,
        insight_id: str,
        title: str,
        body: str,
        tags: list[str],
        signature: str,
        updated_at: datetime,
    ) -> bool:
        """
        Rewrite an insight in place (signature cache hit).

        Side Effects:
            - Updates one insights row
            - Commits transaction
        """
        rowcount = self.execute(
            """
            UPDATE insights
            SET title = ?, body = ?, tags = ?, metric_signature = ?, updated_at = ?
            WHERE id = ?
            """,
            (title, body, json.dumps(tags), signature, clock.to_iso(updated_at), insight_id),
        )
        return rowcount > 0

    @retry_on_db_lock()
    def upsert(self, insight: Insight) -> Insight:
        """
        Insert an insight, or refresh the row that already carries its signature.

        The unique (user_id, metric_date, metric_signature) index makes two
        concurrent generations of the same content land on one row.

        Side Effects:
            - Inserts or updates one insights row
            - Commits transaction
        """
        self.execute(
            """
            INSERT INTO insights (
                id, user_id, title, body, metric_date, tags, metric_signature,
                created_at, updated_at
            ) VALUES (
                :id, :user_id, :title, :body, :metric_date, :tags, :metric_signature,
                :created_at, :updated_at
            )
            ON CONFLICT(user_id, metric_date, metric_signature) DO UPDATE SET
                title = excluded.title,
                body = excluded.body,
                tags = excluded.tags,
                updated_at = excluded.updated_at
            """,
            insight.to_db_dict(),
        )
        if insight.metric_signature is None:
            return insight
        stored = self.get_by_signature(insight.user_id, insight.metric_date, insight.metric_signature)
        return stored or insight

    @retry_on_db_lock()
    def trim_day(self, user_id: str, metric_date: str, keep: int) -> int:
        """
        Delete all but the `keep` most recent insights for one day.

        Returns:
            Number of rows deleted
        """
        return self.execute(
            f"""
            DELETE FROM insights WHERE id IN (
                SELECT id FROM insights
                WHERE user_id = ? AND metric_date = ?
                {RECENCY_ORDER}
                LIMIT -1 OFFSET ?
            )
            """,
            (user_id, metric_date, keep),
        )
