"""Prompt templates for insight generation."""

from __future__ import annotations

from scrollwise.insights.context import InsightContext
from scrollwise.llm.client import ChatMessage
from scrollwise.utils.scroll_conversion import (
    describe_scroll_distance,
    format_scroll_distance_with_both,
)

SYSTEM_PROMPT = """You are Scrollwise, a personable metrics coach. Craft exactly three sharply different analogies anchored in the provided data.
- One analogy must focus on movement or distance using the exact scroll conversions supplied.
- One must frame productivity or output (e.g. tasks completed, artifacts produced) using clicks or active minutes.
- One must highlight wellbeing or pacing (e.g. breaks, rhythm, focus) using active vs idle minutes or peak hours.
Use the top domains or peak hours when they add colour, and never repeat the same comparison category twice in a day. Quote the precise numbers you are given and do not invent new units. Keep the tone optimistic yet realistic, avoiding exaggerated feats (no flights of stairs unless the maths supports it).{regenerate_clause} Stay under 160 words. Format as three bullet points, each starting with a single emoji."""

REGENERATE_CLAUSE = (
    " Deliver three brand-new angles that do not reuse prior metaphors or sentence stems."
)

USER_PROMPT = """Metrics: Active minutes: {active}, Idle minutes: {idle}, Scroll distance: {scroll} pixels ({scroll_both}), Clicks: {clicks}.

Top domains: {domains}.

Peak hours: {hours}.

Scroll distance context: You scrolled the equivalent of {scroll_description} today."""


def build_prompt(context: InsightContext, regenerate: bool = False) -> list[ChatMessage]:
    """System + user messages asking for three analogies grounded in the context."""
    totals = context.totals
    domains = ", ".join(
        f"{d.domain} ({d.active_minutes} min, {d.scroll_distance} px / {d.scroll_distance_cm:.1f} cm)"
        for d in context.top_domains
    )
    hours = ", ".join(f"{h.hour}:00 ({h.active_minutes} min)" for h in context.peak_hours)

    return [
        {
            "role": "system",
            "content": SYSTEM_PROMPT.format(
                regenerate_clause=REGENERATE_CLAUSE if regenerate else ""
            ),
        },
        {
            "role": "user",
            "content": USER_PROMPT.format(
                active=totals.active_minutes,
                idle=totals.idle_minutes,
                scroll=totals.scroll_distance,
                scroll_both=format_scroll_distance_with_both(totals.scroll_distance),
                clicks=totals.click_count,
                domains=domains or "none yet",
                hours=hours or "none yet",
                scroll_description=describe_scroll_distance(totals.scroll_distance),
            ),
        },
    ]
