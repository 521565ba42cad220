"""
Pytest configuration for Scrollwise tests

Every test gets its own SQLite file (SCROLLWISE_DB_PATH) with the schema
applied, and a fresh set of in-memory telemetry counters.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from scrollwise.infrastructure.database import init_database, reset_pool
from scrollwise.observability.telemetry import reset_counters, reset_latencies
from scrollwise.tracking.models import TrackingEventCreate
from scrollwise.users.repository import UserRepository
from scrollwise.utils import clock

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Controllable replacement for clock.utc_now."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the pool at a throwaway database for the duration of one test."""
    monkeypatch.setenv("SCROLLWISE_DB_PATH", str(tmp_path / "scrollwise-test.db"))
    monkeypatch.delenv("SCROLLWISE_GATEWAY_SECRET", raising=False)
    reset_pool()
    init_database()
    reset_counters()
    reset_latencies()
    yield tmp_path / "scrollwise-test.db"
    reset_pool()


@pytest.fixture
def frozen_clock(monkeypatch) -> FrozenClock:
    frozen = FrozenClock(FIXED_NOW)
    monkeypatch.setattr(clock, "utc_now", frozen)
    return frozen


@pytest.fixture
def user_id() -> str:
    """A registered user with tracking enabled."""
    UserRepository().create("user-1", email="user-1@example.com")
    return "user-1"


def make_event(**overrides: Any) -> TrackingEventCreate:
    data: dict[str, Any] = {
        "type": "scroll",
        "duration_ms": 60000,
        "scroll_distance": 1000,
        "url": "https://example.com/article",
        "domain": "example.com",
    }
    data.update(overrides)
    return TrackingEventCreate(**data)


@pytest.fixture
def event_factory():
    return make_event
