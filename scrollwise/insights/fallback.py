"""Deterministic insight body used when the text-generation service gives us nothing."""

from __future__ import annotations

from scrollwise.insights.context import InsightContext
from scrollwise.utils.scroll_conversion import (
    describe_scroll_distance,
    format_scroll_distance_with_both,
)


def _distance_line(context: InsightContext) -> str:
    scroll = context.totals.scroll_distance
    return (
        f"📏 You scrolled {scroll} pixels today ({format_scroll_distance_with_both(scroll)}), "
        f"roughly {describe_scroll_distance(scroll)} of page travel."
    )


def _click_line(context: InsightContext) -> str:
    clicks = context.totals.click_count
    rate = context.derived.clicks_per_active_minute
    if rate is None:
        return f"🖱️ {clicks} clicks logged so far, with no active minutes on the clock yet."
    return f"🖱️ {clicks} clicks at {rate} per active minute, a steady record of what you got done."


def _pacing_line(context: InsightContext) -> str:
    active = context.totals.active_minutes
    idle = context.totals.idle_minutes
    goal = context.totals.active_goal_minutes

    if context.flags.low_activity:
        return f"🌱 Just {active} active minutes so far, a gentle start with plenty of room to pace yourself."
    if context.flags.extended_activity:
        return (
            f"🧘 {active} active minutes is {active - goal} past your {goal}-minute goal; "
            f"a real break would balance the {idle} idle minutes you have taken."
        )
    if active >= goal:
        return f"🎯 {active} active minutes means today's {goal}-minute goal is done, with {idle} idle minutes of breathing room."
    return f"⏱️ {active} active minutes so far, {goal - active} to go before your {goal}-minute goal."


def build_fallback_insight(context: InsightContext) -> str:
    """Three bullet lines (distance, clicks, pacing) built only from the context."""
    return "\n".join(
        f"- {line}" for line in (_distance_line(context), _click_line(context), _pacing_line(context))
    )
