"""
UTC time helpers shared by events, the store and the JSONL log.
"""
from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso_format(dt: datetime) -> str:
    """Convert a datetime into an ISO 8601 string with timezone information."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def from_iso_format(iso_string: str) -> datetime:
    """Parse an ISO 8601 string into a timezone-aware datetime (defaults to UTC)."""
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
