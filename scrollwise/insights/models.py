"""Insight domain model."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import Field

from scrollwise.storage.models import CamelModel
from scrollwise.utils import clock


class Insight(CamelModel):
    """Generated narrative for one user's day, keyed by the metric signature it came from."""

    id: str
    user_id: str
    title: str
    body: str
    metric_date: str
    tags: list[str] = Field(default_factory=list)
    metric_signature: str | None = None
    created_at: datetime
    updated_at: datetime

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "body": self.body,
            "metric_date": self.metric_date,
            "tags": json.dumps(self.tags),
            "metric_signature": self.metric_signature,
            "created_at": clock.to_iso(self.created_at),
            "updated_at": clock.to_iso(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Insight:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            body=row["body"],
            metric_date=row["metric_date"],
            tags=json.loads(row["tags"]) if row.get("tags") else [],
            metric_signature=row.get("metric_signature"),
            created_at=clock.parse_iso(row["created_at"]),
            updated_at=clock.parse_iso(row["updated_at"]),
        )
