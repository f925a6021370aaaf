"""Time and timezone utilities for upstream timestamps."""

import email.utils
from datetime import datetime, timezone, timedelta
from typing import Optional

from digestbot.core.logging import get_logger

logger = get_logger(__name__)

_FORMATS = [
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M:%S.%f',
    '%Y-%m-%d',
]


def utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to UTC.

    Naive values are taken to be UTC already (SQLite drops tzinfo on read).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an upstream timestamp into a UTC datetime.

    Handles the RFC 3339 strings returned by the YouTube Data API
    (``2024-02-05T10:00:00Z``), other ISO 8601 variants and RFC 2822.
    Returns None when the value cannot be parsed.
    """
    if not value:
        return None

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    for fmt in _FORMATS:
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    try:
        return ensure_utc(email.utils.parsedate_to_datetime(value.strip()))
    except (TypeError, ValueError):
        pass

    logger.warning(f"Could not parse timestamp: {value}")
    return None


def window_start(days: int, now: Optional[datetime] = None) -> datetime:
    """Start of a trailing window of ``days`` days ending at ``now``."""
    return (now or utc_now()) - timedelta(days=days)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """ISO 8601 string in UTC, or None."""
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None
