"""
Text-generation client for an OpenAI-compatible chat completions API.

Failures are classified before they leave this module:
  - RetryableCompletionError: 408, 429, 5xx, timeouts and any other httpx
    request error (connection, decoding, redirects).
    Retried here with exponential backoff and jitter.
  - TerminalCompletionError: any other 4xx, or no API key configured.
    Raised immediately.
  - EmptyCompletionError: the response carried no usable text. Not retried
    here; the insight engine decides whether to ask again.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from functools import lru_cache
from typing import Literal, TypedDict

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from scrollwise.config import (
    LLM_MAX_RETRIES,
    LLM_RETRY_BASE_DELAY,
    LLM_RETRY_JITTER,
    LLM_TIMEOUT_SECONDS,
)
from scrollwise.infrastructure.settings import (
    TEXTGEN_BASE_URL,
    TEXTGEN_MAX_TOKENS,
    TEXTGEN_MODEL,
    TEXTGEN_TEMPERATURE,
    get_env,
)
from scrollwise.observability.logging import get_logger
from scrollwise.observability.telemetry import counter, time_block

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429})


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class TextGenerationError(RuntimeError):
    """Base class for text-generation failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableCompletionError(TextGenerationError):
    """Transient failure (rate limit, timeout, server error)."""


class TerminalCompletionError(TextGenerationError):
    """Failure that retrying will not fix."""


class EmptyCompletionError(TextGenerationError):
    """The service answered but returned no usable text."""


def _is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


class TextGenerationClient:
    """
    Synchronous chat-completions client.

    Up to `max_attempts` attempts are made for retryable failures. N counts
    retries, not attempts: the delay before retry N (N = 1, 2, 3) is
    base_delay * 2^(N-1) plus up to `jitter` seconds, so 1s, 2s, 4s with
    the defaults.

    `timeout` is httpx's per-phase limit (connect, read, write, pool). A
    server that keeps trickling bytes can hold one attempt past `timeout`;
    the read limit only applies between chunks.

    `transport` and `sleep` exist for tests (httpx.MockTransport and a
    no-op sleep).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TEXTGEN_BASE_URL,
        model: str = TEXTGEN_MODEL,
        temperature: float = TEXTGEN_TEMPERATURE,
        max_tokens: int = TEXTGEN_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT_SECONDS,
        max_attempts: int = LLM_MAX_RETRIES,
        base_delay: float = LLM_RETRY_BASE_DELAY,
        jitter: float = LLM_RETRY_JITTER,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key if api_key is not None else get_env("GROQ_API_KEY")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self._sleep = sleep
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> TextGenerationClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def generate_completion(self, messages: Sequence[ChatMessage]) -> str:
        """
        Send a chat prompt and return the completion text.

        Raises:
            TerminalCompletionError: Missing API key or non-retryable 4xx
            RetryableCompletionError: Still failing after max_attempts
            EmptyCompletionError: Response had no text content

        Side Effects:
            - HTTP POST to {base_url}/chat/completions (one per attempt)
            - Increments llm.* telemetry counters
        """
        if not self.api_key:
            counter("llm.not_configured")
            raise TerminalCompletionError("GROQ_API_KEY is not configured")

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay) + wait_random(0, self.jitter),
            retry=retry_if_exception_type(RetryableCompletionError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        with time_block("llm.completion"):
            return retrying(self._request_once, list(messages))

    def _log_retry(self, retry_state: RetryCallState) -> None:
        counter("llm.retry")
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Text generation attempt %d/%d failed, retrying in %.2fs: %s",
            retry_state.attempt_number,
            self.max_attempts,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error,
        )

    def _request_once(self, messages: list[ChatMessage]) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = self._http.post("/chat/completions", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            counter("llm.timeout")
            raise RetryableCompletionError(f"Text generation timed out: {e}") from e
        except httpx.RequestError as e:
            # Connection failures, undecodable bodies, redirect loops
            counter("llm.request_error")
            raise RetryableCompletionError(f"Text generation request failed: {e}") from e

        status = response.status_code
        if _is_retryable_status(status):
            counter(f"llm.status_{status}")
            raise RetryableCompletionError(f"Text generation returned HTTP {status}", status)
        if status >= 400:
            counter(f"llm.status_{status}")
            raise TerminalCompletionError(f"Text generation rejected request: HTTP {status}", status)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            counter("llm.malformed_response")
            raise EmptyCompletionError("Text generation response had no message content") from e

        if not isinstance(content, str) or not content.strip():
            counter("llm.empty_response")
            raise EmptyCompletionError("Text generation returned empty content")

        counter("llm.success")
        return content


@lru_cache(maxsize=1)
def get_text_generation_client() -> TextGenerationClient:
    """Shared client instance (one HTTP connection pool per process)."""
    return TextGenerationClient()


def generate_completion(messages: Sequence[ChatMessage]) -> str:
    return get_text_generation_client().generate_completion(messages)
