"""
Tests for the text-generation client.

Validates:
1. Successful completions return the message content
2. 408/429/5xx and timeouts are retried with exponential backoff
3. Other 4xx fail immediately without retry
4. Missing API key fails before any request is made
5. Empty or malformed responses raise EmptyCompletionError
"""

from __future__ import annotations

import httpx
import pytest

from scrollwise.llm.client import (
    EmptyCompletionError,
    RetryableCompletionError,
    TerminalCompletionError,
    TextGenerationClient,
)
from scrollwise.observability.telemetry import get_counter

MESSAGES = [
    {"role": "system", "content": "You are a coach."},
    {"role": "user", "content": "Summarize my day."},
]


def completion_body(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def make_client(handler, **kwargs):
    sleeps: list[float] = []
    client = TextGenerationClient(
        api_key="test-key",
        base_url="https://llm.test/v1",
        jitter=0.0,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        **kwargs,
    )
    return client, sleeps


def test_success_returns_content():
    handler = Recorder(httpx.Response(200, json=completion_body("- You scrolled a lot.")))
    client, sleeps = make_client(handler)

    assert client.generate_completion(MESSAGES) == "- You scrolled a lot."
    assert len(handler.requests) == 1
    assert sleeps == []
    assert get_counter("llm.success") == 1


def test_request_shape():
    handler = Recorder(httpx.Response(200, json=completion_body("ok")))
    client, _ = make_client(handler, model="test-model")

    client.generate_completion(MESSAGES)

    request = handler.requests[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = request.read()
    assert b'"model":"test-model"' in body.replace(b" ", b"")
    assert b"Summarize my day." in body


def test_rate_limit_then_success_is_retried():
    handler = Recorder(
        httpx.Response(429, json={"error": "slow down"}),
        httpx.Response(200, json=completion_body("done")),
    )
    client, sleeps = make_client(handler)

    assert client.generate_completion(MESSAGES) == "done"
    assert len(handler.requests) == 2
    assert sleeps == [1.0]
    assert get_counter("llm.retry") == 1
    assert get_counter("llm.status_429") == 1


def test_server_errors_exhaust_attempts_with_backoff():
    handler = Recorder(httpx.Response(500))
    client, sleeps = make_client(handler)

    with pytest.raises(RetryableCompletionError) as exc_info:
        client.generate_completion(MESSAGES)

    assert exc_info.value.status_code == 500
    assert len(handler.requests) == 4
    assert sleeps == [1.0, 2.0, 4.0]


def test_request_timeout_is_retried():
    handler = Recorder(
        httpx.ReadTimeout("timed out"),
        httpx.Response(408),
        httpx.Response(200, json=completion_body("late but fine")),
    )
    client, _ = make_client(handler)

    assert client.generate_completion(MESSAGES) == "late but fine"
    assert len(handler.requests) == 3
    assert get_counter("llm.timeout") == 1


def test_client_error_is_terminal():
    handler = Recorder(httpx.Response(400, json={"error": "bad request"}))
    client, sleeps = make_client(handler)

    with pytest.raises(TerminalCompletionError) as exc_info:
        client.generate_completion(MESSAGES)

    assert exc_info.value.status_code == 400
    assert len(handler.requests) == 1
    assert sleeps == []


def test_missing_api_key_makes_no_request(monkeypatch):
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    handler = Recorder(httpx.Response(200, json=completion_body("unused")))
    client = TextGenerationClient(api_key="", transport=httpx.MockTransport(handler))

    with pytest.raises(TerminalCompletionError):
        client.generate_completion(MESSAGES)

    assert handler.requests == []
    assert get_counter("llm.not_configured") == 1


@pytest.mark.parametrize(
    "body",
    [
        completion_body(""),
        completion_body("   \n"),
        completion_body(None),
        {"choices": []},
        {"unexpected": True},
    ],
)
def test_empty_or_malformed_response(body):
    handler = Recorder(httpx.Response(200, json=body))
    client, sleeps = make_client(handler)

    with pytest.raises(EmptyCompletionError):
        client.generate_completion(MESSAGES)

    assert len(handler.requests) == 1
    assert sleeps == []


def corrupt_gzip_response(request: httpx.Request) -> httpx.Response:
    # Fresh response per attempt; the body is only decoded when the client reads it
    return httpx.Response(
        200,
        headers={"content-encoding": "gzip"},
        stream=httpx.ByteStream(b"not-gzip"),
    )


def test_undecodable_body_is_retryable():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return corrupt_gzip_response(request)

    client, sleeps = make_client(handler)

    with pytest.raises(RetryableCompletionError):
        client.generate_completion(MESSAGES)

    assert len(seen) == 4
    assert sleeps == [1.0, 2.0, 4.0]
    assert get_counter("llm.request_error") == 4


def test_connection_error_is_retried():
    handler = Recorder(
        httpx.ConnectError("connection refused"),
        httpx.Response(200, json=completion_body("reconnected")),
    )
    client, _ = make_client(handler)

    assert client.generate_completion(MESSAGES) == "reconnected"
    assert get_counter("llm.request_error") == 1
