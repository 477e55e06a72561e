"""
Shared schema helpers.
"""

from datetime import datetime
from typing import Optional

from app.utils.time_utils import ensure_utc


def require_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Reject naive datetimes and normalise aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must include a timezone offset")
    return ensure_utc(value)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored values may come back naive; they are UTC."""
    return ensure_utc(value) if isinstance(value, datetime) else value
