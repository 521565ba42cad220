"""
Event Ingestion Service.

record_events() is the only write path into tracking_events. It gates on the
user's pause flag, deduplicates keyed events, stores the batch best-effort,
recomputes every impacted day and refreshes the user's presence snapshot.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter, log_event
from scrollwise.tracking.aggregator import aggregate_daily_metrics
from scrollwise.tracking.models import IngestResult, TrackingEventCreate
from scrollwise.tracking.repository import TrackingEventRepository
from scrollwise.users.repository import PresenceSnapshot, UserRepository
from scrollwise.utils import clock

logger = get_logger(__name__)


def _impacted_days(events: Sequence[TrackingEventCreate], today: str) -> list[str]:
    days = {today}
    for event in events:
        if event.started_at is not None:
            days.add(clock.day_of(event.started_at))
    return sorted(days)


def _update_presence(user_id: str, latest: TrackingEventCreate) -> None:
    """Best-effort: presence is a convenience read, never worth failing ingestion."""
    snapshot = PresenceSnapshot(
        last_event_at=latest.started_at or clock.utc_now(),
        last_event_type=latest.type,
        last_url=latest.url,
        last_domain=latest.domain,
        last_duration_ms=latest.duration_ms or 0,
        last_scroll_distance=latest.scroll_distance or 0,
    )
    try:
        UserRepository().update_presence(user_id, snapshot)
    except sqlite3.Error as e:
        counter("tracking.presence_update_failed")
        logger.warning("Failed to update presence for user %s: %s", user_id, e)


def record_events(user_id: str, events: Sequence[TrackingEventCreate]) -> IngestResult:
    """
    Record a batch of tracking events for one user.

    Args:
        user_id: Authenticated user id
        events: Validated event descriptors, in client order

    Returns:
        IngestResult. stored counts unkeyed inserts plus every accepted key
        (already present or newly inserted); accepted_keys lists those keys.
        A paused user gets stored=0 and tracking_paused=True.

    Side Effects:
        - Inserts rows into tracking_events
        - Recomputes daily_metrics for today and each started_at day
        - Updates the user's presence snapshot when anything was stored
    """
    if not events:
        return IngestResult()

    user = UserRepository().get(user_id)
    if user is None:
        logger.info("Ignoring %d events for unknown user %s", len(events), user_id)
        return IngestResult()

    if user.tracking_paused:
        counter("tracking.paused_batches")
        return IngestResult(tracking_paused=True)

    keyed = [e for e in events if e.idempotency_key]
    unkeyed = [e for e in events if not e.idempotency_key]
    repo = TrackingEventRepository()

    accepted_keys: list[str] = []
    try:
        existing = repo.find_existing_keys(user_id, [e.idempotency_key for e in keyed])

        # A key repeated inside one batch is stored once
        pending: dict[str, TrackingEventCreate] = {}
        for event in keyed:
            if event.idempotency_key not in existing:
                pending.setdefault(event.idempotency_key, event)

        result = repo.insert_many(user_id, [*pending.values(), *unkeyed])

        # Keys another request stored between our check and insert still count
        accepted_keys = [
            *(k for k in dict.fromkeys(e.idempotency_key for e in keyed) if k in existing),
            *(e.idempotency_key for e in result.inserted if e.idempotency_key),
            *result.ignored_keys,
        ]
        unkeyed_stored = sum(1 for e in result.inserted if not e.idempotency_key)
    except sqlite3.Error as e:
        counter("tracking.partial_failure")
        logger.warning("Partial failure inserting events for user %s: %s", user_id, e)
        unkeyed_stored = 0

    stored = unkeyed_stored + len(accepted_keys)

    for day in _impacted_days(events, clock.today()):
        aggregate_daily_metrics(user_id, day)

    if stored > 0:
        _update_presence(user_id, events[-1])

    log_event(
        "tracking.ingested",
        user_id=user_id,
        submitted=len(events),
        stored=stored,
        accepted_keys=len(accepted_keys),
    )
    return IngestResult(stored=stored, accepted_keys=accepted_keys)
