"""
Insight Generation Engine.

generate_insight() turns a stored DailyMetric into a short narrative:

1. Build the InsightContext and its metric signature.
2. If the newest insight for the day already carries that signature and no
   regeneration was requested, refresh it in place without calling the
   text-generation service.
3. Otherwise ask the service (up to INSIGHT_GENERATION_ATTEMPTS times),
   sanitize the answer and fall back to a local template when every attempt
   comes back empty or fails.
4. Write the insight (in place on a signature hit, new row otherwise) and trim
   the day to INSIGHT_RETENTION_PER_DAY rows.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence

from scrollwise.config import (
    API_INSIGHT_LIMIT_DEFAULT,
    INSIGHT_GENERATION_ATTEMPTS,
    INSIGHT_RETENTION_PER_DAY,
)
from scrollwise.insights.context import InsightContext, build_insight_context
from scrollwise.insights.fallback import build_fallback_insight
from scrollwise.insights.models import Insight
from scrollwise.insights.prompts import build_prompt
from scrollwise.insights.repository import InsightRepository
from scrollwise.insights.sanitizer import derive_title, sanitize_completion
from scrollwise.insights.signature import compute_metric_signature
from scrollwise.llm.client import ChatMessage, TextGenerationError, generate_completion
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter, log_event
from scrollwise.tracking.models import MetricTotals
from scrollwise.tracking.repository import DailyMetricRepository
from scrollwise.utils import clock

logger = get_logger(__name__)

CompletionFn = Callable[[Sequence[ChatMessage]], str]

MARATHON_ACTIVE_MINUTES = 240
# Pixels, unlike HIGH_SCROLL_PIXELS (90000) in context.py. Kept as shipped.
DEEP_DIVE_SCROLL_DISTANCE = 5000
LASER_FOCUS_IDLE_MINUTES = 30


class MetricsUnavailableError(LookupError):
    """No DailyMetric exists yet for the requested user and day."""

    def __init__(self, user_id: str, metric_date: str) -> None:
        super().__init__("No metrics available for insights yet")
        self.user_id = user_id
        self.metric_date = metric_date


def derive_tags(totals: MetricTotals) -> list[str]:
    """Threshold tags on the raw (unrounded) daily totals."""
    tags = []
    if totals.active_minutes > MARATHON_ACTIVE_MINUTES:
        tags.append("marathon")
    if totals.scroll_distance > DEEP_DIVE_SCROLL_DISTANCE:
        tags.append("deep-dive")
    if totals.idle_minutes < LASER_FOCUS_IDLE_MINUTES:
        tags.append("laser-focus")
    return tags


class InsightEngine:
    """
    Generates, caches and trims insights.

    Args:
        complete: Chat completion function; defaults to the shared
            text-generation client. Tests pass a stub.
        attempts: Completion calls before falling back to the template
        retention: Insights kept per (user, day)
    """

    def __init__(
        self,
        complete: CompletionFn | None = None,
        attempts: int = INSIGHT_GENERATION_ATTEMPTS,
        retention: int = INSIGHT_RETENTION_PER_DAY,
    ) -> None:
        self._complete = complete or generate_completion
        self.attempts = attempts
        self.retention = retention
        self.metrics = DailyMetricRepository()
        self.insights = InsightRepository()

    def generate_insight(
        self,
        user_id: str,
        metric_date: str | None = None,
        regenerate: bool = False,
    ) -> Insight:
        """
        Produce the insight for (user_id, metric_date), today by default.

        Raises:
            MetricsUnavailableError: No DailyMetric for that day

        Side Effects:
            - May call the text-generation service
            - Inserts or updates one insights row
            - Deletes insights beyond the retention count for that day
        """
        metric_date = metric_date or clock.today()
        metric = self.metrics.get(user_id, metric_date)
        if metric is None:
            raise MetricsUnavailableError(user_id, metric_date)

        context = build_insight_context(metric)
        signature = compute_metric_signature(context)
        tags = derive_tags(metric.totals)
        now = clock.utc_now()
        latest = self.insights.latest_for_day(user_id, metric_date)

        if latest and latest.metric_signature == signature and not regenerate:
            counter("insights.cache_hit")
            self.insights.update_content(latest.id, latest.title, latest.body, tags, signature, now)
            insight = latest.model_copy(update={"tags": tags, "updated_at": now})
            self._trim(user_id, metric_date)
            return insight

        body = self._compose_body(context, regenerate)
        title = derive_title(body)

        if latest and latest.metric_signature == signature:
            self.insights.update_content(latest.id, title, body, tags, signature, now)
            insight = latest.model_copy(
                update={"title": title, "body": body, "tags": tags, "updated_at": now}
            )
        else:
            insight = self.insights.upsert(
                Insight(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    title=title,
                    body=body,
                    metric_date=metric_date,
                    tags=tags,
                    metric_signature=signature,
                    created_at=now,
                    updated_at=now,
                )
            )

        self._trim(user_id, metric_date)
        log_event(
            "insights.generated",
            user_id=user_id,
            metric_date=metric_date,
            regenerate=regenerate,
            insight_id=insight.id,
        )
        return insight

    def get_latest(self, user_id: str, limit: int = API_INSIGHT_LIMIT_DEFAULT) -> list[Insight]:
        """
        Most recent insights across days, one per (metric_date, signature).

        Reads limit * 3 candidates so duplicates written before a trim still
        leave `limit` distinct results.
        """
        unique: list[Insight] = []
        seen: set[str] = set()
        for candidate in self.insights.list_recent(user_id, limit * 3):
            key = f"{candidate.metric_date}:{candidate.metric_signature or candidate.title}"
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
            if len(unique) >= limit:
                break
        return unique

    def _compose_body(self, context: InsightContext, regenerate: bool) -> str:
        messages = build_prompt(context, regenerate)
        for attempt in range(1, self.attempts + 1):
            try:
                raw = self._complete(messages)
            except TextGenerationError as e:
                counter("insights.completion_failed")
                logger.warning(
                    "Insight completion attempt %d/%d failed: %s", attempt, self.attempts, e
                )
                continue

            body = sanitize_completion(raw)
            if body:
                return body
            counter("insights.completion_empty")
            logger.info("Insight completion attempt %d/%d was empty", attempt, self.attempts)

        counter("insights.fallback")
        logger.warning("Falling back to template insight for %s", context.date)
        return build_fallback_insight(context)

    def _trim(self, user_id: str, metric_date: str) -> None:
        removed = self.insights.trim_day(user_id, metric_date, self.retention)
        if removed:
            counter("insights.trimmed", removed)
            logger.debug("Trimmed %d insights for user %s on %s", removed, user_id, metric_date)


def generate_insight(user_id: str, metric_date: str | None = None, regenerate: bool = False) -> Insight:
    return InsightEngine().generate_insight(user_id, metric_date, regenerate)


def get_latest(user_id: str, limit: int = API_INSIGHT_LIMIT_DEFAULT) -> list[Insight]:
    return InsightEngine().get_latest(user_id, limit)
