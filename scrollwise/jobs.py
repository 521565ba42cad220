"""
Periodic sweeps over recently active users.

Meant to be run from cron (or any scheduler) via the scrollwise-jobs CLI:

    scrollwise-jobs aggregate   # hourly: refresh today's metrics
    scrollwise-jobs insights    # every few minutes: keep insights current
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import timedelta

from scrollwise.config import (
    AGGREGATION_SWEEP_LOOKBACK_HOURS,
    INSIGHT_SWEEP_LOOKBACK_MINUTES,
    INSIGHT_SWEEP_MIN_AGE_SECONDS,
)
from scrollwise.infrastructure.database import init_database
from scrollwise.insights.engine import InsightEngine, MetricsUnavailableError
from scrollwise.insights.repository import InsightRepository
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import log_event
from scrollwise.tracking.aggregator import aggregate_daily_metrics
from scrollwise.tracking.repository import TrackingEventRepository
from scrollwise.utils import clock

logger = get_logger(__name__)


@dataclass
class SweepResult:
    processed: int = 0
    skipped: int = 0
    failed: int = 0


def run_aggregation_sweep() -> SweepResult:
    """Recompute today's metric for every user with events in the last 12 hours."""
    now = clock.utc_now()
    today = clock.day_of(now)
    since = now - timedelta(hours=AGGREGATION_SWEEP_LOOKBACK_HOURS)
    result = SweepResult()

    for user_id in TrackingEventRepository().distinct_users_since(since):
        try:
            aggregate_daily_metrics(user_id, today)
            result.processed += 1
        except Exception as e:
            result.failed += 1
            logger.error("Aggregation sweep failed for user %s: %s", user_id, e)

    log_event("jobs.aggregation_sweep", **vars(result))
    return result


def run_insight_sweep(engine: InsightEngine | None = None) -> SweepResult:
    """
    Generate today's insight for users active in the last 15 minutes.

    Users whose newest insight is under 2 minutes old are skipped, as are
    users with no metrics yet.
    """
    engine = engine or InsightEngine()
    insights = InsightRepository()
    now = clock.utc_now()
    today = clock.day_of(now)
    since = now - timedelta(minutes=INSIGHT_SWEEP_LOOKBACK_MINUTES)
    result = SweepResult()

    for user_id in TrackingEventRepository().distinct_users_since(since):
        latest = insights.latest_created(user_id)
        if latest and (now - latest.created_at).total_seconds() < INSIGHT_SWEEP_MIN_AGE_SECONDS:
            result.skipped += 1
            continue

        try:
            engine.generate_insight(user_id, today)
            result.processed += 1
        except MetricsUnavailableError:
            result.skipped += 1
        except Exception as e:
            result.failed += 1
            logger.warning("Failed to generate scheduled insight for user %s: %s", user_id, e)

    log_event("jobs.insight_sweep", **vars(result))
    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="scrollwise-jobs",
        description="Run one Scrollwise maintenance sweep",
    )
    parser.add_argument(
        "sweep",
        choices=["aggregate", "insights"],
        help="aggregate: refresh today's metrics; insights: refresh today's insights",
    )
    args = parser.parse_args(argv)

    init_database()
    result = run_aggregation_sweep() if args.sweep == "aggregate" else run_insight_sweep()
    logger.info(
        "%s sweep finished: processed=%d skipped=%d failed=%d",
        args.sweep,
        result.processed,
        result.skipped,
        result.failed,
    )
    return 1 if result.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
