"""
UTC helpers.

Timestamps are stored as UTC. Some backends (SQLite) hand them back naive,
so values read from the database go through ensure_utc before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return value as an aware UTC datetime. Naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_local(value: Optional[datetime]) -> str:
    """Human-readable timestamp for notification text."""
    value = ensure_utc(value)
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M UTC")
