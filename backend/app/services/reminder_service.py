"""
Reminder service.

One scan looks for permits whose start or end is coming up and sends each
reminder type at most once per permit. It also closes Active permits whose
end_time has passed. Every permit is handled in its own session so a failure
on one permit does not stop the others; the next scan simply tries again.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.integrations.observability import record_background_failure
from app.db.repositories.permit_repository import PermitRepository
from app.db.session import get_sessionmaker
from app.models.notification import NotificationType
from app.models.permit import Permit, PermitStatus
from app.services.alert_dispatcher import AlertDispatcher
from app.services.notification_service import Delivery, NotificationService
from app.services.permit_service import PermitService
from app.utils.time_utils import ensure_utc, format_local, utc_now

logger = logging.getLogger(__name__)

START_REMINDER_STATUSES = (PermitStatus.APPROVED, PermitStatus.ACTIVE)
# Extension_Requested is display-only; the permit is still running
EXPIRY_REMINDER_STATUSES = (PermitStatus.ACTIVE, PermitStatus.EXTENSION_REQUESTED)
AUTO_CLOSE_STATUSES = (PermitStatus.ACTIVE,)


@dataclass
class ReminderScanResult:
    start_reminders_sent: int = 0
    expiry_reminders_sent: int = 0
    critical_reminders_sent: int = 0
    permits_closed: int = 0
    failures: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def _start_message(permit: Permit) -> str:
    return (
        f"Reminder: permit {permit.permit_serial} at {permit.work_location or 'the work site'} "
        f"starts at {format_local(permit.start_time)}."
    )


def _end_message(permit: Permit) -> str:
    return (
        f"Reminder: permit {permit.permit_serial} expires at {format_local(permit.end_time)}. "
        f"Request an extension or close the permit."
    )


def _critical_message(permit: Permit) -> str:
    return (
        f"Permit {permit.permit_serial} expires at {format_local(permit.end_time)}. "
        f"Make the work area safe now."
    )


MESSAGES: Dict[NotificationType, Callable[[Permit], str]] = {
    NotificationType.REMINDER_START: _start_message,
    NotificationType.REMINDER_END: _end_message,
    NotificationType.REMINDER_END_CRITICAL: _critical_message,
}


class ReminderService:
    """Runs reminder scans against the permit store."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        dispatcher: Optional[AlertDispatcher] = None,
        lead_minutes: Optional[int] = None,
        tolerance_minutes: Optional[int] = None,
        critical_lead_minutes: Optional[int] = None,
        auto_close: Optional[bool] = None,
    ):
        self.session_maker = session_maker
        self.dispatcher = dispatcher
        self.lead = timedelta(minutes=lead_minutes if lead_minutes is not None else settings.REMINDER_LEAD_MINUTES)
        self.tolerance = timedelta(
            minutes=tolerance_minutes if tolerance_minutes is not None else settings.REMINDER_TOLERANCE_MINUTES
        )
        self.critical_lead = timedelta(
            minutes=critical_lead_minutes if critical_lead_minutes is not None else settings.CRITICAL_EXPIRY_LEAD_MINUTES
        )
        self.auto_close = auto_close if auto_close is not None else settings.AUTO_CLOSE_EXPIRED_PERMITS

    async def run_reminder_scan(self, now: Optional[datetime] = None) -> ReminderScanResult:
        """
        Run one scan at the given instant.

        Windows are inclusive: a permit starting exactly lead minus tolerance
        or lead plus tolerance from now is due.
        """
        now = ensure_utc(now) if now else utc_now()
        result = ReminderScanResult()

        lead_from, lead_to = now + self.lead - self.tolerance, now + self.lead + self.tolerance
        crit_from, crit_to = now + self.critical_lead - self.tolerance, now + self.critical_lead + self.tolerance

        async with self.session_maker() as session:
            repo = PermitRepository(session)
            starting = await repo.list_ids_starting_between(lead_from, lead_to, START_REMINDER_STATUSES)
            ending = await repo.list_ids_ending_between(lead_from, lead_to, EXPIRY_REMINDER_STATUSES)
            critical = await repo.list_ids_ending_between(crit_from, crit_to, EXPIRY_REMINDER_STATUSES)
            expired = (
                await repo.list_ids_ended_before(now, AUTO_CLOSE_STATUSES)
                if self.auto_close else []
            )

        result.start_reminders_sent = await self._send_all(starting, NotificationType.REMINDER_START, result)
        result.expiry_reminders_sent = await self._send_all(ending, NotificationType.REMINDER_END, result)
        result.critical_reminders_sent = await self._send_all(critical, NotificationType.REMINDER_END_CRITICAL, result)
        result.permits_closed = await self._for_each(expired, lambda pid: self._expire(pid, now), result)

        if any(result.as_dict().values()):
            logger.info("Reminder scan finished", extra={"now": now.isoformat(), **result.as_dict()})
        return result

    async def _send_all(
        self,
        permit_ids: List[UUID],
        type: NotificationType,
        result: ReminderScanResult,
    ) -> int:
        return await self._for_each(permit_ids, lambda pid: self._send_reminder(pid, type), result)

    async def _for_each(
        self,
        permit_ids: List[UUID],
        action: Callable[[UUID], Awaitable[bool]],
        result: ReminderScanResult,
    ) -> int:
        done = 0
        for permit_id in permit_ids:
            try:
                if await action(permit_id):
                    done += 1
            except Exception as e:
                result.failures += 1
                record_background_failure("reminder_scan", e, permit_id=permit_id)
        return done

    async def _send_reminder(self, permit_id: UUID, type: NotificationType) -> bool:
        async with self.session_maker() as session:
            notifications = NotificationService(session, self.dispatcher)
            if await notifications.exists(permit_id, type):
                return False
            permit = await PermitRepository(session).get(permit_id)
            if not permit:
                return False
            notification = await notifications.create_once(
                permit.created_by_user_id,
                permit.id,
                type,
                MESSAGES[type](permit),
            )
            if not notification:
                return False
            logger.info(
                "Reminder sent",
                extra={"permit_id": str(permit.id), "permit_serial": permit.permit_serial, "type": type.value},
            )
            recipient = await notifications.user_repo.get(permit.created_by_user_id)
            serial = permit.permit_serial
        await notifications.deliver([Delivery(notification, recipient, serial)])
        return True

    async def _expire(self, permit_id: UUID, now: datetime) -> bool:
        async with self.session_maker() as session:
            return await PermitService(session, self.dispatcher).expire_permit(permit_id, now)


async def run_reminder_scan(
    now: Optional[datetime] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    dispatcher: Optional[AlertDispatcher] = None,
) -> Dict[str, int]:
    """Run one reminder scan with an explicit clock and store."""
    if session_maker is None:
        session_maker = get_sessionmaker()
    service = ReminderService(session_maker, dispatcher)
    return (await service.run_reminder_scan(now)).as_dict()
