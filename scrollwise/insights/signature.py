"""
Metric signature - content address of an InsightContext.

The hash covers only what an insight's wording depends on (date, totals, top
domains, peak hours, derived ratios). Ids, timestamps, coverage and flags are
left out, so recomputing an unchanged day yields the same signature.
"""

from __future__ import annotations

import hashlib
import json

from scrollwise.insights.context import InsightContext


def compute_metric_signature(context: InsightContext) -> str:
    """SHA-256 hex digest over canonical JSON of the signature-relevant fields."""
    significant = context.model_dump(
        mode="json",
        by_alias=True,
        include={"date", "totals", "top_domains", "peak_hours", "derived"},
    )
    canonical = json.dumps(significant, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
