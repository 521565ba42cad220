"""Scrollwise LLM - text-generation client with classified retry."""

from scrollwise.llm.client import (
    ChatMessage,
    EmptyCompletionError,
    RetryableCompletionError,
    TerminalCompletionError,
    TextGenerationClient,
    TextGenerationError,
    generate_completion,
    get_text_generation_client,
)

__all__ = [
    "ChatMessage",
    "EmptyCompletionError",
    "RetryableCompletionError",
    "TerminalCompletionError",
    "TextGenerationClient",
    "TextGenerationError",
    "generate_completion",
    "get_text_generation_client",
]
