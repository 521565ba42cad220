"""
Scrollwise tracking - event ingestion, daily aggregation and read paths.
"""

from scrollwise.tracking.aggregator import aggregate_daily_metrics, compute_daily_rollup
from scrollwise.tracking.ingestion import record_events
from scrollwise.tracking.models import (
    DailyMetric,
    DomainBreakdown,
    EventType,
    IngestResult,
    MetricBreakdown,
    MetricTotals,
    TrackingEvent,
    TrackingEventCreate,
)
from scrollwise.tracking.repository import DailyMetricRepository, TrackingEventRepository

__all__ = [
    # Models
    "DailyMetric",
    "DomainBreakdown",
    "EventType",
    "IngestResult",
    "MetricBreakdown",
    "MetricTotals",
    "TrackingEvent",
    "TrackingEventCreate",
    # Repositories
    "DailyMetricRepository",
    "TrackingEventRepository",
    # Pipeline
    "aggregate_daily_metrics",
    "compute_daily_rollup",
    "record_events",
]
