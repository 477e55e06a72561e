"""
Reminder controller - runs an on-demand reminder scan.
"""

from datetime import datetime
from typing import Optional

from app.controllers.base_controller import BaseController
from app.core.config import settings
from app.core.exceptions import ForbiddenError
from app.db.session import get_sessionmaker
from app.services.alert_dispatcher import AlertDispatcher
from app.services.reminder_service import ReminderService
from app.schemas.reminder import ReminderScanResponse


class ReminderController(BaseController):
    """Controller for reminder scans."""

    def __init__(self, dispatcher: Optional[AlertDispatcher] = None):
        self.dispatcher = dispatcher

    async def run_scan(self, now: Optional[datetime] = None) -> ReminderScanResponse:
        """
        Scan at the server clock, or at now when REMINDER_SCAN_CLOCK_OVERRIDE is set.

        A supplied instant never closes permits.
        """
        if now is None:
            service = ReminderService(get_sessionmaker(), self.dispatcher)
        else:
            if not settings.REMINDER_SCAN_CLOCK_OVERRIDE:
                raise ForbiddenError(
                    "Scanning at a supplied instant is disabled",
                    details={"field": "now"},
                )
            service = ReminderService(get_sessionmaker(), self.dispatcher, auto_close=False)
        result = await service.run_reminder_scan(now)
        return ReminderScanResponse(**result.as_dict())
