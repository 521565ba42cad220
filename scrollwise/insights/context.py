"""
InsightContext - the day's metrics reduced to the figures an insight quotes.

Every figure is rounded half-up (x.5 rounds toward +infinity) so the same
stored metric always produces the same context, and therefore the same
signature.
"""

from __future__ import annotations

import math

from pydantic import Field

from scrollwise.config import DAILY_GOAL_MINUTES
from scrollwise.storage.models import CamelModel
from scrollwise.tracking.models import DailyMetric
from scrollwise.utils.scroll_conversion import pixels_to_centimeters, pixels_to_kilometers

TOP_DOMAIN_LIMIT = 5
PEAK_HOUR_LIMIT = 4

LOW_ACTIVITY_MINUTES = 10
EXTENDED_ACTIVITY_MINUTES = 180
HIGH_SCROLL_PIXELS = 90000
HIGH_CLICK_COUNT = 250


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like Math.round: halves go up, including for negatives (-2.5 -> -2)."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _whole(value: float) -> int:
    return int(round_half_up(value))


def _minutes(duration_ms: float | None) -> int:
    return _whole((duration_ms or 0) / 60000)


class ContextTotals(CamelModel):
    active_minutes: int
    idle_minutes: int
    scroll_distance: int
    scroll_distance_cm: float
    scroll_distance_km: float
    click_count: int
    active_goal_minutes: int = DAILY_GOAL_MINUTES


class TopDomain(CamelModel):
    domain: str
    active_minutes: int
    share_percent: int
    scroll_distance: int
    scroll_distance_cm: float
    scroll_distance_km: float


class PeakHour(CamelModel):
    hour: int
    active_minutes: int


class Coverage(CamelModel):
    domain_count: int
    hour_count: int


class ContextFlags(CamelModel):
    low_activity: bool
    extended_activity: bool
    high_scroll_distance: bool
    high_click_count: bool


class DerivedFigures(CamelModel):
    active_vs_goal_minutes: int
    scroll_per_active_minute: int | None = None
    scroll_per_active_minute_cm: float | None = None
    clicks_per_active_minute: float | None = None
    active_idle_ratio: float | None = None


class InsightContext(CamelModel):
    date: str
    totals: ContextTotals
    top_domains: list[TopDomain] = Field(default_factory=list)
    peak_hours: list[PeakHour] = Field(default_factory=list)
    coverage: Coverage
    flags: ContextFlags
    derived: DerivedFigures


def build_insight_context(metric: DailyMetric) -> InsightContext:
    """
    Derive the insight context from a stored DailyMetric.

    Side Effects:
        None (pure function)
    """
    active = _whole(metric.totals.active_minutes)
    idle = _whole(metric.totals.idle_minutes)
    scroll = _whole(metric.totals.scroll_distance)
    clicks = _whole(metric.totals.click_count)

    top_domains = []
    for entry in metric.breakdown.domain:
        if entry.duration_ms <= 0 and entry.scroll_distance <= 0:
            continue
        minutes = _minutes(entry.duration_ms)
        domain_scroll = _whole(entry.scroll_distance)
        top_domains.append(
            TopDomain(
                domain=entry.domain,
                active_minutes=minutes,
                share_percent=_whole(minutes / active * 100) if active > 0 else 0,
                scroll_distance=domain_scroll,
                scroll_distance_cm=pixels_to_centimeters(domain_scroll),
                scroll_distance_km=pixels_to_kilometers(domain_scroll),
            )
        )
        if len(top_domains) == TOP_DOMAIN_LIMIT:
            break

    hours = [
        PeakHour(hour=int(hour), active_minutes=_minutes(duration))
        for hour, duration in sorted(metric.breakdown.hour.items(), key=lambda item: int(item[0]))
    ]
    peak_hours = sorted(
        (h for h in hours if h.active_minutes > 0),
        key=lambda h: h.active_minutes,
        reverse=True,
    )[:PEAK_HOUR_LIMIT]

    if active > 0:
        scroll_per_minute = _whole(scroll / active)
        derived = DerivedFigures(
            active_vs_goal_minutes=active - DAILY_GOAL_MINUTES,
            scroll_per_active_minute=scroll_per_minute,
            scroll_per_active_minute_cm=pixels_to_centimeters(scroll_per_minute),
            clicks_per_active_minute=round_half_up(clicks / active, 1),
        )
    else:
        derived = DerivedFigures(active_vs_goal_minutes=active - DAILY_GOAL_MINUTES)

    if active + idle > 0:
        derived.active_idle_ratio = round_half_up(active / max(active + idle, 1) * 100, 1)

    return InsightContext(
        date=metric.date,
        totals=ContextTotals(
            active_minutes=active,
            idle_minutes=idle,
            scroll_distance=scroll,
            scroll_distance_cm=round_half_up(pixels_to_centimeters(scroll), 1),
            scroll_distance_km=round_half_up(pixels_to_kilometers(scroll), 4),
            click_count=clicks,
        ),
        top_domains=top_domains,
        peak_hours=peak_hours,
        coverage=Coverage(
            domain_count=len(metric.breakdown.domain),
            hour_count=len(metric.breakdown.hour),
        ),
        flags=ContextFlags(
            low_activity=active < LOW_ACTIVITY_MINUTES,
            extended_activity=active > EXTENDED_ACTIVITY_MINUTES,
            high_scroll_distance=scroll > HIGH_SCROLL_PIXELS,
            high_click_count=clicks > HIGH_CLICK_COUNT,
        ),
        derived=derived,
    )
