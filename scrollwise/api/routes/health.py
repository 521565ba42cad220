"""Health check endpoints.

- /health - Service health including text-generation credential presence
- /health/db - Database connection pool health
- /debug/stats - In-process counters and latencies
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from scrollwise.config import APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Service status and version. Checks key presence only, no API call."""
    return {
        "status": "healthy",
        "service": "Scrollwise API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {"ready": bool(os.getenv("GROQ_API_KEY"))},
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    """
    Connection pool health. Reports degraded above 80% usage.
    """
    from scrollwise.infrastructure.database import get_pool_stats

    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }


@router.get("/debug/stats")
async def debug_stats() -> dict[str, Any]:
    """In-process counters and pipeline latencies. Contains no PII."""
    from scrollwise.infrastructure.database import get_pool_stats
    from scrollwise.observability.telemetry import get_counters, get_latency_stats

    return {
        "counters": get_counters(),
        "latency": {
            metric: get_latency_stats(metric)
            for metric in ("tracking.aggregate", "llm.completion")
        },
        "pool": get_pool_stats(),
    }
