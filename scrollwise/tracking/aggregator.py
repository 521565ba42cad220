"""
Daily Metrics Aggregator.

A day's DailyMetric is a pure reduction over that day's tracking events.
It is never patched incrementally: every trigger (ingestion, stale read,
sweep) recomputes the whole day from source events and overwrites the row,
so repeated or overlapping recomputes converge on the same totals.
"""

from __future__ import annotations

from collections.abc import Iterable

from scrollwise.config import DOMAIN_BREAKDOWN_LIMIT
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import time_block
from scrollwise.tracking.models import (
    DailyMetric,
    DomainBreakdown,
    EventType,
    MetricBreakdown,
    MetricTotals,
    TrackingEvent,
)
from scrollwise.tracking.repository import DailyMetricRepository, TrackingEventRepository
from scrollwise.utils import clock

logger = get_logger(__name__)

MS_PER_MINUTE = 60000


def _is_type(event: TrackingEvent, event_type: EventType) -> bool:
    return event.type == event_type.value


def compute_daily_rollup(events: Iterable[TrackingEvent]) -> tuple[MetricTotals, MetricBreakdown]:
    """
    Reduce one day's events into totals and breakdowns.

    Totals:
        scroll_distance  sum of positive scroll distances (pixels)
        active_minutes   duration of non-idle events with positive duration
        idle_minutes     duration of idle events
        click_count      number of click events

    Breakdowns:
        domain  grouped case-insensitively (first spelling seen is kept),
                groups with no duration and no scroll dropped, sorted by
                duration descending, capped at DOMAIN_BREAKDOWN_LIMIT
        hour    UTC hour of created_at -> summed duration, only hours that
                had events

    Side Effects:
        None (pure function)
    """
    scroll_distance = 0.0
    active_ms = 0
    idle_ms = 0
    click_count = 0
    domains: dict[str, dict] = {}
    hours: dict[int, int] = {}

    for event in events:
        duration = event.duration_ms or 0
        scroll = event.scroll_distance if event.scroll_distance and event.scroll_distance > 0 else 0

        scroll_distance += scroll
        if _is_type(event, EventType.IDLE):
            idle_ms += duration
        elif duration > 0:
            active_ms += duration
        if _is_type(event, EventType.CLICK):
            click_count += 1

        if event.domain:
            group = domains.setdefault(
                event.domain.lower(),
                {"domain": event.domain, "duration_ms": 0, "scroll_distance": 0.0},
            )
            group["duration_ms"] += duration
            group["scroll_distance"] += scroll

        hour = clock.to_utc(event.created_at).hour
        hours[hour] = hours.get(hour, 0) + duration

    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(
        (g for g in domains.values() if g["duration_ms"] > 0 or g["scroll_distance"] > 0),
        key=lambda g: g["duration_ms"],
        reverse=True,
    )[:DOMAIN_BREAKDOWN_LIMIT]

    totals = MetricTotals(
        scroll_distance=scroll_distance,
        active_minutes=active_ms / MS_PER_MINUTE,
        idle_minutes=idle_ms / MS_PER_MINUTE,
        click_count=click_count,
    )
    breakdown = MetricBreakdown(
        domain=[
            DomainBreakdown(
                domain=g["domain"],
                duration_ms=round(g["duration_ms"]),
                scroll_distance=round(g["scroll_distance"]),
            )
            for g in ranked
        ],
        hour={str(h): hours[h] for h in sorted(hours)},
    )
    return totals, breakdown


def aggregate_daily_metrics(user_id: str, date: str) -> DailyMetric:
    """
    Recompute and upsert the DailyMetric for (user_id, date).

    The window is the whole UTC day [00:00:00.000000, 23:59:59.999999] on
    the events' created_at.

    Raises:
        ValueError: If date is not YYYY-MM-DD
        sqlite3.Error: Storage failures propagate unchanged

    Side Effects:
        - Reads tracking_events
        - Inserts or overwrites one daily_metrics row
    """
    start, end = clock.day_bounds(date)
    events_repo = TrackingEventRepository()
    metrics_repo = DailyMetricRepository()

    with time_block("tracking.aggregate"):
        events = events_repo.list_between(user_id, start, end)
        totals, breakdown = compute_daily_rollup(events)
        metrics_repo.upsert(user_id, date, totals, breakdown, clock.utc_now())

    logger.debug("Aggregated %d events for user %s on %s", len(events), user_id, date)

    metric = metrics_repo.get(user_id, date)
    if metric is None:
        raise RuntimeError(f"daily metric for {user_id} on {date} missing after upsert")
    return metric
