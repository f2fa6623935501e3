"""Utility functions for linkvault.

This module provides common helpers for timestamp handling, token
redaction and payload navigation.
"""

from datetime import UTC, date, datetime
from typing import Any

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

#: Timestamp layout used by the links server (``created_at`` column).
WIRE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a server timestamp into a naive UTC datetime with second precision.

    The server sends ``YYYY-MM-DD HH:MM:SS`` in UTC; ISO-8601 strings are
    accepted too. Offset-aware values are converted to UTC before the
    offset is dropped, so every parsed value shares one clock.

    Args:
        value: Timestamp string, datetime object, or None

    Returns:
        Naive datetime in UTC, or None if input is None

    Raises:
        ValueError: If the timestamp format is invalid

    Example:
        >>> parse_timestamp("2024-01-15 10:30:00")
        datetime.datetime(2024, 1, 15, 10, 30)
        >>> parse_timestamp("2024-01-15T10:30:00-03:00")
        datetime.datetime(2024, 1, 15, 13, 30)
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if not text:
            raise ValueError("Empty timestamp")
        try:
            dt = datetime.strptime(text, WIRE_TIMESTAMP_FORMAT)
        except ValueError:
            dt = dateutil_parser.isoparse(text)

    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)

    return dt.replace(microsecond=0)


def format_timestamp(dt: datetime | None) -> str | None:
    """Format a datetime in the server's ``YYYY-MM-DD HH:MM:SS`` layout.

    Example:
        >>> format_timestamp(datetime(2024, 1, 15, 10, 30))
        '2024-01-15 10:30:00'
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt.strftime(WIRE_TIMESTAMP_FORMAT)


def utc_now() -> datetime:
    """Get current UTC time as a naive datetime (second precision)."""
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


def utc_now_wire() -> str:
    """Get current UTC time in the server timestamp layout."""
    return utc_now().strftime(WIRE_TIMESTAMP_FORMAT)


def date_key(dt: datetime) -> date:
    """Calendar date bucket for a timestamp."""
    return dt.date()


def redact_token(token: str | None) -> str:
    """Redact sensitive tokens for safe logging.

    Args:
        token: Token string to redact

    Returns:
        Redacted token showing only first 8 and last 4 characters

    Example:
        >>> redact_token("abcdefghijklmnop")
        'abcdefgh...mnop'
        >>> redact_token("short")
        '***'
        >>> redact_token(None)
        'None'
    """
    if not token:
        return "None"
    return f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"


def safe_get(data: Any, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dictionary structure.

    Example:
        >>> safe_get({"error": {"message": "nope"}}, "error", "message")
        'nope'
        >>> safe_get({"a": 1}, "x", "y", default=0)
        0
    """
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
            if data is None:
                return default
        else:
            return default
    return data
