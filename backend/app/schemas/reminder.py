"""
Reminder scan schemas.
"""

from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime

from app.schemas.common import require_aware


class ReminderScanRequest(BaseModel):
    """Scan instant; accepted only when REMINDER_SCAN_CLOCK_OVERRIDE is set."""
    now: Optional[datetime] = None

    @field_validator("now")
    @classmethod
    def _aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return require_aware(v)


class ReminderScanResponse(BaseModel):
    start_reminders_sent: int
    expiry_reminders_sent: int
    critical_reminders_sent: int
    permits_closed: int
    failures: int
