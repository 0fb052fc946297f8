from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def window_start(days: int, now: datetime | None = None) -> datetime:
    return (now or utc_now()) - timedelta(days=days)


def local(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert to ``tz``, or to the system's local zone when ``tz`` is None."""
    return value.astimezone(tz)
