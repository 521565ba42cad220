"""Tracking read paths: dashboard summary, analytics, 24h timeline and goal streaks.

Responses are plain dicts already shaped for the API (camelCase keys).
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any

from scrollwise.config import (
    DAILY_GOAL_MINUTES,
    DOOM_SCROLL_LIMIT,
    DOOM_SCROLL_MIN_MS,
    MOST_VISITED_LIMIT,
    STREAK_WINDOW_DAYS,
    SUMMARY_STALE_SECONDS,
    TIMELINE_LIMIT,
    TIMELINE_WINDOW_HOURS,
    WEEKLY_WINDOW_DAYS,
)
from scrollwise.observability.logging import get_logger
from scrollwise.tracking.aggregator import aggregate_daily_metrics
from scrollwise.tracking.models import DailyMetric, TrackingEvent
from scrollwise.tracking.repository import DailyMetricRepository, TrackingEventRepository
from scrollwise.utils import clock
from scrollwise.utils.scroll_conversion import pixels_to_centimeters, pixels_to_kilometers

logger = get_logger(__name__)


def _today_metric(user_id: str) -> DailyMetric:
    """Today's metric, recomputed when missing or older than the stale threshold."""
    today = clock.today()
    metric = DailyMetricRepository().get(user_id, today)
    if metric is None or metric.is_stale(SUMMARY_STALE_SECONDS, now=clock.utc_now()):
        logger.debug("Refreshing stale metric for user %s on %s", user_id, today)
        metric = aggregate_daily_metrics(user_id, today)
    return metric


def get_summary(user_id: str) -> dict[str, Any]:
    """
    Dashboard summary: today's metric, the last 7 days, lifetime per-type totals.

    Side Effects:
        - May recompute today's daily_metrics row (self-healing staleness)
    """
    events_repo = TrackingEventRepository()
    metric = _today_metric(user_id)

    today = metric.to_api()
    scroll = metric.totals.scroll_distance
    today["totals"]["scrollDistanceCm"] = pixels_to_centimeters(scroll)
    today["totals"]["scrollDistanceKm"] = pixels_to_kilometers(scroll)

    since = clock.utc_now() - timedelta(days=WEEKLY_WINDOW_DAYS)
    weekly = [
        {
            "date": row["date"],
            "scrollDistance": row["scroll_distance"],
            "scrollDistanceCm": pixels_to_centimeters(row["scroll_distance"]),
            "scrollDistanceKm": pixels_to_kilometers(row["scroll_distance"]),
            "activeMinutes": row["active_minutes"],
            "clickCount": row["click_count"],
        }
        for row in events_repo.daily_rollups_since(user_id, since)
    ]

    return {
        "today": today,
        "weekly": weekly,
        "totals": events_repo.totals_by_type(user_id),
    }


def _start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


def get_dashboard_stats(user_id: str) -> dict[str, Any]:
    """
    Analytics read straight from raw events.

    Windows are UTC: most-visited domains, the activity heatmap and scroll
    speed cover the 7 days before today's midnight through now; doom scrolls
    cover today only. A doom scroll is a domain with more than five minutes
    of non-active time.
    """
    repo = TrackingEventRepository()
    today_start = _start_of_day(clock.utc_now())
    week_start = today_start - timedelta(days=WEEKLY_WINDOW_DAYS)

    speed = repo.scroll_speed_stats(user_id, week_start)

    return {
        "mostVisited": [
            {
                "domain": row["domain"],
                "visitCount": row["visit_count"],
                "totalDuration": row["total_duration"],
            }
            for row in repo.most_visited_domains(user_id, week_start, MOST_VISITED_LIMIT)
        ],
        "activityHeatmap": [
            {"dayOfWeek": row["day_of_week"], "hour": row["hour"], "count": row["count"]}
            for row in repo.activity_heatmap(user_id, week_start)
        ],
        "scrollStats": {
            "avgSpeed": speed["avg_speed"],
            "maxSpeed": speed["max_speed"],
            "totalDistance": speed["total_distance"],
        },
        "doomScrolls": [
            {
                "domain": row["domain"],
                "durationMs": row["duration_ms"],
                "visitCount": row["visit_count"],
            }
            for row in repo.passive_domain_durations(
                user_id, today_start, DOOM_SCROLL_MIN_MS, DOOM_SCROLL_LIMIT
            )
        ],
    }


def get_timeline(user_id: str) -> list[TrackingEvent]:
    """Events from the last 24 hours, newest first."""
    since = clock.utc_now() - timedelta(hours=TIMELINE_WINDOW_HOURS)
    return TrackingEventRepository().list_recent(user_id, since, TIMELINE_LIMIT)


def get_streaks(user_id: str) -> dict[str, int]:
    """
    Goal streaks over the most recent 30 daily metrics.

    Days are walked newest first; "current" is the run still open when the
    walk ends, "best" the longest run seen.
    """
    current = 0
    best = 0
    for metric in DailyMetricRepository().list_recent(user_id, STREAK_WINDOW_DAYS):
        if metric.totals.active_minutes >= DAILY_GOAL_MINUTES:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return {"current": current, "best": best}
