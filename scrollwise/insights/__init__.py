"""
Scrollwise insights - signature-cached narrative generation from daily metrics.
"""

from scrollwise.insights.context import InsightContext, build_insight_context, round_half_up
from scrollwise.insights.engine import (
    InsightEngine,
    MetricsUnavailableError,
    derive_tags,
    generate_insight,
    get_latest,
)
from scrollwise.insights.models import Insight
from scrollwise.insights.repository import InsightRepository
from scrollwise.insights.sanitizer import derive_title, sanitize_completion
from scrollwise.insights.signature import compute_metric_signature

__all__ = [
    "Insight",
    "InsightContext",
    "InsightEngine",
    "InsightRepository",
    "MetricsUnavailableError",
    "build_insight_context",
    "compute_metric_signature",
    "derive_tags",
    "derive_title",
    "generate_insight",
    "get_latest",
    "round_half_up",
    "sanitize_completion",
]
