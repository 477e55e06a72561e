"""
Reminder scheduler.
Background asyncio task that runs a reminder scan every
REMINDER_INTERVAL_SECONDS and purges old read notifications once a day.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.integrations.observability import record_background_failure
from app.db.session import get_sessionmaker
from app.services.alert_dispatcher import AlertDispatcher
from app.services.notification_service import NotificationService
from app.services.reminder_service import ReminderScanResult, ReminderService
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

PURGE_INTERVAL = timedelta(days=1)


class ReminderScheduler:
    """Periodic driver for ReminderService."""

    def __init__(
        self,
        dispatcher: Optional[AlertDispatcher] = None,
        interval_seconds: Optional[int] = None,
        session_maker_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_sessionmaker,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.dispatcher = dispatcher
        self.interval_seconds = interval_seconds or settings.REMINDER_INTERVAL_SECONDS
        self.session_maker_factory = session_maker_factory
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self.last_tick_at: Optional[datetime] = None
        self.last_result: Optional[ReminderScanResult] = None
        self.last_error: Optional[str] = None
        self.last_purge_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="reminder-scheduler")
        logger.info("Reminder scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped")

    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self.interval_seconds)

    async def tick(self) -> Optional[ReminderScanResult]:
        """Run one scan. Errors are logged; the loop keeps going."""
        now = self.clock()
        self.last_tick_at = now
        try:
            session_maker = self.session_maker_factory()
            result = await ReminderService(session_maker, self.dispatcher).run_reminder_scan(now)
            self.last_result = result
            self.last_error = None
            if self.last_purge_at is None or now - self.last_purge_at >= PURGE_INTERVAL:
                async with session_maker() as session:
                    await NotificationService(session).purge_read(settings.NOTIFICATION_RETENTION_DAYS)
                self.last_purge_at = now
            return result
        except Exception as e:
            self.last_error = str(e)
            record_background_failure("reminder_scheduler", e)
            return None

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": settings.REMINDER_SCHEDULER_ENABLED,
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_result": self.last_result.as_dict() if self.last_result else None,
            "last_error": self.last_error,
        }
