"""
UTC clock helpers.

Every timestamp the pipeline writes goes through utc_now() and to_iso(), so
stored values share one format and compare correctly as strings. Tests
monkeypatch utc_now to pin "today".
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: datetime) -> str:
    """Fixed-width ISO-8601 string (microseconds, +00:00) for storage."""
    return to_utc(value).isoformat(timespec="microseconds")


def parse_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return to_utc(datetime.fromisoformat(value))


def day_of(value: datetime) -> str:
    """Calendar day (YYYY-MM-DD) of a timestamp, in UTC."""
    return to_utc(value).date().isoformat()


def today() -> str:
    return day_of(utc_now())


def day_bounds(day: str) -> tuple[str, str]:
    """Inclusive storage-format bounds of a UTC calendar day.

    Raises:
        ValueError: If day is not a YYYY-MM-DD string
    """
    parsed = date.fromisoformat(day)
    start = datetime.combine(parsed, time.min, tzinfo=UTC)
    end = datetime.combine(parsed, time.max, tzinfo=UTC)
    return to_iso(start), to_iso(end)
