"""Shared utility functions for Jarvis Hooks.

Timestamps are persisted as ISO-8601 strings with a trailing ``Z`` (the
format the host's own state files use) and handled in memory as
timezone-aware UTC datetimes.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]
"""Injectable source of "now" (tests pass a fixed clock)."""


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from jarvis_hooks.core.utils import utc_now
        >>> utc_now().tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def to_aware_utc(dt: datetime) -> datetime:
    """Convert any datetime to timezone-aware UTC.

    - If naive: assumes UTC, adds tzinfo
    - If aware: converts to UTC

    Args:
        dt: A datetime object (naive or timezone-aware).

    Returns:
        A timezone-aware datetime object in UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return to_aware_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp, tolerating a trailing ``Z``.

    Returns:
        Aware UTC datetime, or ``None`` if *value* is not a parseable string.
    """
    if isinstance(value, datetime):
        return to_aware_utc(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        return to_aware_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def truncate(text: str, max_chars: int) -> str:
    """Collapse whitespace and cap *text* at *max_chars* (with an ellipsis)."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= max_chars:
        return collapsed
    return collapsed[: max(0, max_chars - 3)].rstrip() + "..."
