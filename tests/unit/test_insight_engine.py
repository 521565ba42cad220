"""
Tests for the insight engine.

Validates:
1. Missing metrics raise MetricsUnavailableError
2. Unchanged metrics reuse the stored insight without a completion call
3. Changed metrics produce a new insight; each day keeps at most 10
4. Empty or failing completions fall back to the template
5. Regenerate rewrites the cached insight in place
6. get_latest returns one insight per (day, signature), newest first
"""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from scrollwise.insights.engine import InsightEngine, MetricsUnavailableError
from scrollwise.insights.repository import InsightRepository
from scrollwise.llm.client import RetryableCompletionError, TextGenerationClient
from scrollwise.observability.telemetry import get_counter
from scrollwise.tracking.models import MetricBreakdown, MetricTotals
from scrollwise.tracking.repository import DailyMetricRepository

TODAY = "2024-03-15"


class StubCompletion:
    """Returns queued replies (repeating the last one) and counts calls."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = 0

    def __call__(self, messages):
        self.calls += 1
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


def store_metric(user_id: str, date: str = TODAY, active_minutes: float = 95, **totals) -> None:
    values = {"scroll_distance": 42000, "idle_minutes": 12, "click_count": 40}
    values.update(totals)
    DailyMetricRepository().upsert(
        user_id,
        date,
        MetricTotals(active_minutes=active_minutes, **values),
        MetricBreakdown(hour={"10": 5_700_000}),
        computed_at=datetime(2024, 3, 15, 11, 0, tzinfo=UTC),
    )


def test_missing_metric_raises(frozen_clock, user_id):
    engine = InsightEngine(complete=StubCompletion("- unused"))

    with pytest.raises(MetricsUnavailableError, match="No metrics available for insights yet"):
        engine.generate_insight(user_id)


def test_generates_and_stores_insight(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion("- 📏 You scrolled a marathon.\n- 🖱️ Busy clicks.\n- 🧘 Breathe.")
    engine = InsightEngine(complete=stub)

    insight = engine.generate_insight(user_id)

    assert stub.calls == 1
    assert insight.metric_date == TODAY
    assert insight.title == "- 📏 You scrolled a marathon."
    assert insight.body.count("\n") == 2
    assert insight.tags == ["deep-dive", "laser-focus"]
    assert len(insight.metric_signature) == 64
    assert InsightRepository().get_by_id(insight.id) is not None


def test_unchanged_metric_reuses_insight_without_completion(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion("- first take")
    engine = InsightEngine(complete=stub)

    first = engine.generate_insight(user_id)
    frozen_clock.advance(minutes=5)
    second = engine.generate_insight(user_id)

    assert stub.calls == 1
    assert second.id == first.id
    assert second.body == first.body
    assert second.updated_at > first.updated_at
    assert InsightRepository().get_by_id(first.id).updated_at == second.updated_at
    assert InsightRepository().count_for_day(user_id, TODAY) == 1
    assert get_counter("insights.cache_hit") == 1


def test_changed_metric_creates_new_insight(frozen_clock, user_id):
    store_metric(user_id, active_minutes=95)
    engine = InsightEngine(complete=StubCompletion("- morning", "- afternoon"))
    first = engine.generate_insight(user_id)

    frozen_clock.advance(hours=2)
    store_metric(user_id, active_minutes=130)
    second = engine.generate_insight(user_id)

    assert second.id != first.id
    assert second.metric_signature != first.metric_signature
    assert second.body == "- afternoon"
    assert InsightRepository().count_for_day(user_id, TODAY) == 2


def test_retention_keeps_ten_newest_per_day(frozen_clock, user_id):
    engine = InsightEngine(complete=StubCompletion("- note"))
    ids = []
    for minutes in range(1, 16):
        store_metric(user_id, active_minutes=minutes)
        frozen_clock.advance(seconds=30)
        ids.append(engine.generate_insight(user_id).id)

    repo = InsightRepository()
    assert repo.count_for_day(user_id, TODAY) == 10
    assert [i.id for i in repo.list_recent(user_id, 20)] == list(reversed(ids[-10:]))


def test_empty_completions_fall_back_to_template(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion("", "   \n")
    engine = InsightEngine(complete=stub)

    insight = engine.generate_insight(user_id)

    assert stub.calls == 3
    lines = insight.body.split("\n")
    assert len(lines) == 3
    assert all(line.startswith("- ") for line in lines)
    assert get_counter("insights.fallback") == 1


def test_failing_completions_fall_back_to_template(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion(RetryableCompletionError("HTTP 503", 503))
    engine = InsightEngine(complete=stub)

    insight = engine.generate_insight(user_id)

    assert stub.calls == 3
    assert "42000 pixels" in insight.body
    assert get_counter("insights.completion_failed") == 3


def test_empty_then_success_uses_later_attempt(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion("", "- second try")
    engine = InsightEngine(complete=stub)

    assert engine.generate_insight(user_id).body == "- second try"
    assert stub.calls == 2


def test_regenerate_rewrites_in_place(frozen_clock, user_id):
    store_metric(user_id)
    stub = StubCompletion("- original", "- fresh angle")
    engine = InsightEngine(complete=stub)

    first = engine.generate_insight(user_id)
    frozen_clock.advance(minutes=1)
    second = engine.generate_insight(user_id, regenerate=True)

    assert stub.calls == 2
    assert second.id == first.id
    assert second.body == "- fresh angle"
    assert InsightRepository().get_by_id(first.id).body == "- fresh angle"
    assert InsightRepository().count_for_day(user_id, TODAY) == 1


def test_generate_for_explicit_past_day(frozen_clock, user_id):
    store_metric(user_id, date="2024-03-10")
    engine = InsightEngine(complete=StubCompletion("- looking back"))

    assert engine.generate_insight(user_id, "2024-03-10").metric_date == "2024-03-10"
    with pytest.raises(MetricsUnavailableError):
        engine.generate_insight(user_id, "2024-03-11")


def test_get_latest_newest_first_across_days(frozen_clock, user_id):
    engine = InsightEngine(complete=StubCompletion("- note"))
    store_metric(user_id, date="2024-03-14")
    store_metric(user_id, date="2024-03-15")
    older = engine.generate_insight(user_id, "2024-03-14")
    frozen_clock.advance(minutes=1)
    newer = engine.generate_insight(user_id, "2024-03-15")

    latest = engine.get_latest(user_id, limit=10)

    assert [i.id for i in latest] == [newer.id, older.id]
    assert [i.id for i in engine.get_latest(user_id, limit=1)] == [newer.id]


def test_get_latest_dedupes_same_day_and_signature(frozen_clock, user_id):
    repo = InsightRepository()
    engine = InsightEngine(complete=StubCompletion("- note"))
    store_metric(user_id)
    kept = engine.generate_insight(user_id)

    # A legacy row without a signature but with the same title collapses on title
    for offset in (1, 2):
        frozen_clock.advance(seconds=offset)
        repo.upsert(
            kept.model_copy(
                update={
                    "id": f"legacy-{offset}",
                    "metric_signature": None,
                    "updated_at": frozen_clock.now,
                }
            )
        )

    latest = engine.get_latest(user_id, limit=10)

    assert [i.id for i in latest] == ["legacy-2", kept.id]


def test_undecodable_service_response_falls_back_to_template(frozen_clock, user_id):
    store_metric(user_id)

    def handler(request):
        return httpx.Response(
            200, headers={"content-encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip")
        )

    client = TextGenerationClient(
        api_key="test-key",
        base_url="https://llm.test/v1",
        jitter=0.0,
        transport=httpx.MockTransport(handler),
        sleep=lambda seconds: None,
    )
    engine = InsightEngine(complete=client.generate_completion, attempts=1)

    insight = engine.generate_insight(user_id)

    assert "42000 pixels" in insight.body
    assert len(insight.body.split("\n")) == 3
    assert get_counter("insights.fallback") == 1


def test_reverting_metric_reuses_row_with_that_signature(frozen_clock, user_id):
    stub = StubCompletion("- first", "- second", "- back again")
    engine = InsightEngine(complete=stub)

    store_metric(user_id, active_minutes=95)
    first = engine.generate_insight(user_id)
    frozen_clock.advance(minutes=1)
    store_metric(user_id, active_minutes=130)
    second = engine.generate_insight(user_id)
    frozen_clock.advance(minutes=1)
    store_metric(user_id, active_minutes=95)
    third = engine.generate_insight(user_id)

    repo = InsightRepository()
    assert stub.calls == 3
    assert third.id == first.id
    assert third.metric_signature == first.metric_signature
    assert third.body == "- back again"
    assert repo.count_for_day(user_id, TODAY) == 2
    assert repo.latest_for_day(user_id, TODAY).id == first.id
    assert second.id != first.id
