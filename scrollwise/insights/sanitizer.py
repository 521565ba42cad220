"""Cleanup of raw completions before they are stored."""

from __future__ import annotations

import re

from scrollwise.config import INSIGHT_TITLE_MAX_CHARS

BULLET_LEADER = re.compile(r"^[-*•]\s*")
EXCESS_BLANK_LINES = re.compile(r"\n{3,}")

DEFAULT_TITLE = "Scroll update"


def sanitize_completion(text: str) -> str:
    """
    Normalize model output into a clean, duplicate-free body.

    - Trailing whitespace stripped from every line, leading whitespace from
      content lines
    - Lines repeated case-insensitively (ignoring a "-", "*" or "•" bullet)
      dropped, first occurrence kept
    - Runs of blank lines collapsed to one, no leading or trailing blanks

    Returns an empty string when nothing usable remains.
    """
    kept: list[str] = []
    seen: set[str] = set()

    for raw_line in text.split("\n"):
        line = raw_line.rstrip()
        stripped = line.strip()
        if not stripped:
            if kept and kept[-1] != "":
                kept.append("")
            continue

        normalized = BULLET_LEADER.sub("", stripped).lower()
        if normalized in seen:
            continue
        seen.add(normalized)
        kept.append(line.lstrip())

    return EXCESS_BLANK_LINES.sub("\n\n", "\n".join(kept)).strip()


def derive_title(body: str, max_chars: int = INSIGHT_TITLE_MAX_CHARS) -> str:
    """First non-empty line, truncated with '...' when longer than max_chars."""
    first_line = next((line for line in body.split("\n") if line.strip()), DEFAULT_TITLE)
    if len(first_line) > max_chars:
        return f"{first_line[: max_chars - 3]}..."
    return first_line
