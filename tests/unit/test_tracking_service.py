"""
Tests for the tracking read paths.

Validates:
1. Summary self-heals a missing or stale metric for today
2. Weekly rollup and lifetime per-type totals
3. Timeline window and ordering
4. Goal streaks walk metrics newest first
5. Dashboard analytics windows, ordering and doom-scroll threshold
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from scrollwise.tracking.aggregator import aggregate_daily_metrics
from scrollwise.tracking.models import MetricBreakdown, MetricTotals
from scrollwise.tracking.repository import DailyMetricRepository, TrackingEventRepository
from scrollwise.tracking.service import (
    get_dashboard_stats,
    get_streaks,
    get_summary,
    get_timeline,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)  # a Friday
WEEK_START = datetime(2024, 3, 8, 0, 0, tzinfo=UTC)


def test_summary_computes_missing_today_metric(frozen_clock, user_id, event_factory):
    TrackingEventRepository().insert_many(user_id, [event_factory(scroll_distance=96000)])

    summary = get_summary(user_id)

    today = summary["today"]
    assert today["date"] == "2024-03-15"
    assert today["totals"]["scrollDistance"] == 96000
    assert today["totals"]["scrollDistanceCm"] == pytest.approx(2540.0)
    assert today["totals"]["scrollDistanceKm"] == pytest.approx(0.0254)


def test_summary_keeps_fresh_metric(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    events.insert_many(user_id, [event_factory(duration_ms=60000)])
    aggregate_daily_metrics(user_id, "2024-03-15")

    frozen_clock.advance(seconds=60)
    events.insert_many(user_id, [event_factory(duration_ms=60000)])

    summary = get_summary(user_id)

    assert summary["today"]["totals"]["activeMinutes"] == 1


def test_summary_refreshes_stale_metric(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    events.insert_many(user_id, [event_factory(duration_ms=60000)])
    aggregate_daily_metrics(user_id, "2024-03-15")

    frozen_clock.advance(seconds=121)
    events.insert_many(user_id, [event_factory(duration_ms=60000)])

    summary = get_summary(user_id)

    assert summary["today"]["totals"]["activeMinutes"] == 2


def test_summary_weekly_and_lifetime_totals(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    now = frozen_clock.now
    events.insert_many(
        user_id, [event_factory(duration_ms=120000, scroll_distance=500)], created_at=now
    )
    events.insert_many(
        user_id,
        [event_factory(type="click", duration_ms=0, scroll_distance=None)],
        created_at=now - timedelta(days=2),
    )
    events.insert_many(
        user_id, [event_factory(duration_ms=60000)], created_at=now - timedelta(days=10)
    )

    summary = get_summary(user_id)

    weekly = summary["weekly"]
    assert [row["date"] for row in weekly] == ["2024-03-13", "2024-03-15"]
    assert weekly[0]["clickCount"] == 1
    assert weekly[1]["activeMinutes"] == 2
    assert weekly[1]["scrollDistance"] == 500
    assert "scrollDistanceKm" in weekly[1]

    totals = summary["totals"]
    assert totals["scroll"]["count"] == 2
    assert totals["scroll"]["durationMs"] == 180000
    assert totals["click"] == {"count": 1, "durationMs": 0, "scrollDistance": 0}


def test_timeline_is_last_24_hours_newest_first(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    now = frozen_clock.now
    events.insert_many(user_id, [event_factory(domain="old.com")], created_at=now - timedelta(hours=25))
    events.insert_many(user_id, [event_factory(domain="earlier.com")], created_at=now - timedelta(hours=3))
    events.insert_many(user_id, [event_factory(domain="latest.com")], created_at=now)

    timeline = get_timeline(user_id)

    assert [e.domain for e in timeline] == ["latest.com", "earlier.com"]


def _store_metric(user_id: str, date: str, active_minutes: float) -> None:
    DailyMetricRepository().upsert(
        user_id,
        date,
        MetricTotals(active_minutes=active_minutes),
        MetricBreakdown(),
        computed_at=datetime(2024, 3, 15, tzinfo=UTC),
    )


def test_streaks_walk_newest_first(user_id):
    # newest -> oldest: hit, hit, miss, hit, hit, hit
    for date, minutes in [
        ("2024-03-15", 130),
        ("2024-03-14", 120),
        ("2024-03-13", 30),
        ("2024-03-12", 200),
        ("2024-03-11", 150),
        ("2024-03-10", 125),
    ]:
        _store_metric(user_id, date, minutes)

    assert get_streaks(user_id) == {"current": 3, "best": 3}


def test_streaks_reset_on_oldest_miss(user_id):
    _store_metric(user_id, "2024-03-15", 180)
    _store_metric(user_id, "2024-03-14", 10)

    assert get_streaks(user_id) == {"current": 0, "best": 1}


def test_streaks_without_metrics(user_id):
    assert get_streaks(user_id) == {"current": 0, "best": 0}


def test_dashboard_stats_empty(frozen_clock, user_id):
    assert get_dashboard_stats(user_id) == {
        "mostVisited": [],
        "activityHeatmap": [],
        "scrollStats": {"avgSpeed": 0, "maxSpeed": 0, "totalDistance": 0},
        "doomScrolls": [],
    }


def test_dashboard_most_visited_and_heatmap_cover_the_week(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    news = [event_factory(domain="news.example.com") for _ in range(3)]
    events.insert_many(user_id, news, created_at=NOW)
    events.insert_many(
        user_id, [event_factory(domain="docs.example.com")], created_at=NOW - timedelta(days=2)
    )
    events.insert_many(user_id, [event_factory(domain="edge.example.com")], created_at=WEEK_START)
    old = [event_factory(domain="old.example.com") for _ in range(5)]
    events.insert_many(user_id, old, created_at=WEEK_START - timedelta(microseconds=1))

    stats = get_dashboard_stats(user_id)

    assert stats["mostVisited"] == [
        {"domain": "news.example.com", "visitCount": 3, "totalDuration": 180000},
        {"domain": "docs.example.com", "visitCount": 1, "totalDuration": 60000},
        {"domain": "edge.example.com", "visitCount": 1, "totalDuration": 60000},
    ]
    # Days run 1 (Sunday) to 7 (Saturday)
    assert stats["activityHeatmap"] == [
        {"dayOfWeek": 4, "hour": 12, "count": 1},
        {"dayOfWeek": 6, "hour": 0, "count": 1},
        {"dayOfWeek": 6, "hour": 12, "count": 3},
    ]


def test_dashboard_most_visited_is_capped(frozen_clock, user_id, event_factory):
    events = [event_factory(domain=f"site{i:02d}.example.com") for i in range(12)]
    TrackingEventRepository().insert_many(user_id, events, created_at=NOW)

    most_visited = get_dashboard_stats(user_id)["mostVisited"]

    assert len(most_visited) == 10
    assert most_visited[0]["domain"] == "site00.example.com"


def test_dashboard_scroll_stats_use_scroll_events_only(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    events.insert_many(
        user_id,
        [
            event_factory(scroll_speed=100),
            event_factory(scroll_speed=300),
            event_factory(),
            event_factory(type="click", scroll_speed=900, scroll_distance=0),
        ],
        created_at=NOW,
    )
    events.insert_many(
        user_id, [event_factory(scroll_speed=5000)], created_at=WEEK_START - timedelta(days=1)
    )

    scroll_stats = get_dashboard_stats(user_id)["scrollStats"]

    assert scroll_stats == {"avgSpeed": 200, "maxSpeed": 300, "totalDistance": 3000}


def test_dashboard_doom_scrolls_count_passive_time_today(frozen_clock, user_id, event_factory):
    events = TrackingEventRepository()
    events.insert_many(
        user_id,
        [
            event_factory(domain="video.example.com", duration_ms=200000, interaction_type="passive"),
            event_factory(domain="video.example.com", duration_ms=150000),
            event_factory(domain="video.example.com", duration_ms=400000, interaction_type="active"),
            # Exactly five minutes is not enough
            event_factory(domain="feed.example.com", duration_ms=300000),
            event_factory(domain="social.example.com", duration_ms=600000),
        ],
        created_at=NOW,
    )
    events.insert_many(
        user_id,
        [event_factory(domain="social.example.com", duration_ms=900000)],
        created_at=datetime(2024, 3, 14, 23, 59, tzinfo=UTC),
    )

    doom_scrolls = get_dashboard_stats(user_id)["doomScrolls"]

    assert doom_scrolls == [
        {"domain": "social.example.com", "durationMs": 600000, "visitCount": 1},
        {"domain": "video.example.com", "durationMs": 350000, "visitCount": 2},
    ]


def test_dashboard_doom_scrolls_keep_the_longest_five(frozen_clock, user_id, event_factory):
    events = [
        event_factory(domain=f"site{i}.example.com", duration_ms=400000 + i * 1000)
        for i in range(7)
    ]
    TrackingEventRepository().insert_many(user_id, events, created_at=NOW)

    doom_scrolls = get_dashboard_stats(user_id)["doomScrolls"]

    assert [d["domain"] for d in doom_scrolls] == [
        "site6.example.com",
        "site5.example.com",
        "site4.example.com",
        "site3.example.com",
        "site2.example.com",
    ]
