"""
Tests for event ingestion.

Validates:
1. Keyed events are stored once; the key is accepted on every retry
2. The pause gate stores nothing and flags the result
3. Impacted days (today + started_at days) are recomputed
4. A failing row does not abort the rest of the batch
5. The presence snapshot follows the batch's last event
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from scrollwise.infrastructure.database import get_db_connection
from scrollwise.observability.telemetry import get_counter
from scrollwise.tracking import ingestion
from scrollwise.tracking.ingestion import record_events
from scrollwise.tracking.repository import DailyMetricRepository, TrackingEventRepository
from scrollwise.users.repository import UserRepository


def count_events(user_id: str) -> int:
    with get_db_connection() as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM tracking_events WHERE user_id = ?", (user_id,)
        ).fetchone()[0]


def test_keyed_event_is_stored_once(frozen_clock, user_id, event_factory):
    event = event_factory(idempotency_key="evt-1")

    first = record_events(user_id, [event])
    second = record_events(user_id, [event])

    assert first.stored == 1
    assert first.accepted_keys == ["evt-1"]
    assert second.accepted_keys == ["evt-1"]
    assert count_events(user_id) == 1


def test_duplicate_key_inside_one_batch_is_stored_once(frozen_clock, user_id, event_factory):
    result = record_events(
        user_id,
        [event_factory(idempotency_key="dup"), event_factory(idempotency_key="dup")],
    )

    assert result.accepted_keys == ["dup"]
    assert count_events(user_id) == 1


def test_unkeyed_events_are_always_inserted(frozen_clock, user_id, event_factory):
    record_events(user_id, [event_factory(), event_factory()])
    result = record_events(user_id, [event_factory()])

    assert result.stored == 1
    assert result.accepted_keys == []
    assert count_events(user_id) == 3


def test_mixed_batch_counts_unkeyed_plus_accepted_keys(frozen_clock, user_id, event_factory):
    record_events(user_id, [event_factory(idempotency_key="old")])

    result = record_events(
        user_id,
        [
            event_factory(idempotency_key="old"),
            event_factory(idempotency_key="new"),
            event_factory(),
        ],
    )

    assert sorted(result.accepted_keys) == ["new", "old"]
    assert result.stored == 3
    assert count_events(user_id) == 3


def test_paused_user_stores_nothing(frozen_clock, user_id, event_factory):
    UserRepository().set_tracking_paused(user_id, True)

    result = record_events(user_id, [event_factory(idempotency_key="k")])

    assert result.stored == 0
    assert result.accepted_keys == []
    assert result.tracking_paused is True
    assert count_events(user_id) == 0
    assert DailyMetricRepository().get(user_id, "2024-03-15") is None


def test_unknown_user_stores_nothing(frozen_clock, event_factory):
    result = record_events("nobody", [event_factory()])

    assert result.stored == 0
    assert result.tracking_paused is None
    assert count_events("nobody") == 0


def test_empty_batch_is_a_no_op(frozen_clock, user_id):
    result = record_events(user_id, [])

    assert result.stored == 0
    assert DailyMetricRepository().get(user_id, "2024-03-15") is None


def test_impacted_days_are_recomputed(frozen_clock, user_id, event_factory):
    record_events(
        user_id,
        [
            event_factory(duration_ms=120000),
            event_factory(started_at=datetime(2024, 3, 13, 22, 0, tzinfo=UTC)),
        ],
    )

    metrics = DailyMetricRepository()
    today = metrics.get(user_id, "2024-03-15")
    assert today is not None
    assert today.totals.active_minutes == 3
    # The window is on created_at, so the started_at day exists but is empty
    earlier = metrics.get(user_id, "2024-03-13")
    assert earlier is not None
    assert earlier.totals.active_minutes == 0
    assert metrics.get(user_id, "2024-03-14") is None


def test_failing_row_does_not_abort_batch(frozen_clock, user_id, event_factory):
    with get_db_connection() as conn:
        conn.execute(
            """
            CREATE TRIGGER reject_bad_domain BEFORE INSERT ON tracking_events
            WHEN NEW.domain = 'bad.example'
            BEGIN SELECT RAISE(ABORT, 'rejected'); END
            """
        )
        conn.commit()

    result = record_events(
        user_id,
        [event_factory(), event_factory(domain="bad.example"), event_factory()],
    )

    assert result.stored == 2
    assert count_events(user_id) == 2
    assert get_counter("tracking.insert_failed") == 1


def test_storage_failure_is_logged_not_raised(frozen_clock, user_id, event_factory, monkeypatch):
    def broken(self, uid, keys):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(TrackingEventRepository, "find_existing_keys", broken)

    result = record_events(user_id, [event_factory(idempotency_key="k")])

    assert result.stored == 0
    assert get_counter("tracking.partial_failure") == 1


def test_presence_snapshot_follows_last_event(frozen_clock, user_id, event_factory):
    started = datetime(2024, 3, 15, 11, 58, tzinfo=UTC)
    record_events(
        user_id,
        [
            event_factory(domain="first.com"),
            event_factory(
                type="click",
                url="https://last.example/page",
                domain="last.example",
                duration_ms=None,
                scroll_distance=None,
                started_at=started,
            ),
        ],
    )

    user = UserRepository().get(user_id)
    assert user.account_status == "active"
    assert user.presence.last_event_type == "click"
    assert user.presence.last_domain == "last.example"
    assert user.presence.last_url == "https://last.example/page"
    assert user.presence.last_event_at == started
    assert user.presence.last_duration_ms == 0
    assert user.presence.last_scroll_distance == 0


def test_presence_failure_is_swallowed(frozen_clock, user_id, event_factory, monkeypatch):
    def broken(self, uid, snapshot):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(UserRepository, "update_presence", broken)

    result = ingestion.record_events(user_id, [event_factory()])

    assert result.stored == 1
    assert get_counter("tracking.presence_update_failed") == 1


def test_key_inserted_concurrently_counts_as_accepted(frozen_clock, user_id, event_factory, monkeypatch):
    event = event_factory(idempotency_key="k1")
    record_events(user_id, [event])

    # Another request stored k1 after this one looked for existing keys
    monkeypatch.setattr(
        TrackingEventRepository, "find_existing_keys", lambda self, user_id, keys: set()
    )
    result = record_events(user_id, [event])

    assert result.stored == 1
    assert result.accepted_keys == ["k1"]
    assert count_events(user_id) == 1
