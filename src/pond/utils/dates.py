"""Timestamp utilities for the expiration column.

Expirations are stored as RFC 3339 text in UTC with a fixed microsecond
precision and a ``+00:00`` offset, so lexical order of the column equals
chronological order and ``expires < ?`` works as a plain string comparison.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime.

    Naive datetimes are taken to already be in UTC.
    """
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_rfc3339(dt: datetime) -> str:
    """Format a datetime as a fixed-width RFC 3339 UTC string.

    Args:
        dt: Datetime to format. Naive values are treated as UTC.

    Returns:
        String like ``2026-10-18T09:30:00.000000+00:00``.
    """
    return ensure_utc(dt).isoformat(timespec="microseconds")


def parse_rfc3339(text: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Accepts a ``Z`` suffix and more than six fractional digits (extra
    digits are truncated).

    Raises:
        ValueError: If the text is not a valid timestamp.
    """
    return ensure_utc(datetime.fromisoformat(text))
