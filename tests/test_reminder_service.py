"""
Reminder scan tests with an injected clock.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.db.repositories.notification_repository import NotificationRepository
from app.models.notification import NotificationType
from app.models.permit import ApproverRole, PermitStatus
from app.services.extension_service import ExtensionService
from app.services.notification_service import NotificationService
from app.services.permit_service import PermitService
from app.services.reminder_scheduler import ReminderScheduler
from app.services.reminder_service import ReminderService, run_reminder_scan

from conftest import create_active_permit, create_permit

NOW = datetime(2030, 6, 1, 8, 0, tzinfo=timezone.utc)


async def count(session_maker, permit_id, type):
    async with session_maker() as session:
        return len(await NotificationRepository(session).list_for_permit(permit_id, type))


@pytest.mark.asyncio
async def test_start_reminder_sent_once(session_maker, users, dispatcher):
    permit = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=30))
    assert permit.status == PermitStatus.ACTIVE
    service = ReminderService(session_maker, dispatcher)

    first = await service.run_reminder_scan(NOW)
    second = await service.run_reminder_scan(NOW + timedelta(minutes=1))
    outside = await service.run_reminder_scan(NOW + timedelta(minutes=31))

    assert first.start_reminders_sent == 1
    assert second.start_reminders_sent == 0
    assert outside.start_reminders_sent == 0
    assert await count(session_maker, permit.id, NotificationType.REMINDER_START) == 1
    assert dispatcher.sent == [(NotificationType.REMINDER_START, users.creator.id, permit.permit_serial)]


@pytest.mark.asyncio
async def test_same_instant_twice_sends_one_reminder(session_maker, users):
    permit = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=30))

    assert (await run_reminder_scan(NOW, session_maker))["start_reminders_sent"] == 1
    assert (await run_reminder_scan(NOW, session_maker))["start_reminders_sent"] == 0
    assert await count(session_maker, permit.id, NotificationType.REMINDER_START) == 1


@pytest.mark.asyncio
async def test_window_edges_are_inclusive(session_maker, users):
    early = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=29))
    late = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=31))
    outside = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=32))

    result = await ReminderService(session_maker).run_reminder_scan(NOW)

    assert result.start_reminders_sent == 2
    assert await count(session_maker, early.id, NotificationType.REMINDER_START) == 1
    assert await count(session_maker, late.id, NotificationType.REMINDER_START) == 1
    assert await count(session_maker, outside.id, NotificationType.REMINDER_START) == 0


@pytest.mark.asyncio
async def test_pending_permits_get_no_start_reminder(session_maker, users):
    permit = await create_permit(
        session_maker, users, roles=[ApproverRole.SAFETY_OFFICER], start_time=NOW + timedelta(minutes=30)
    )

    result = await ReminderService(session_maker).run_reminder_scan(NOW)

    assert result.start_reminders_sent == 0
    assert await count(session_maker, permit.id, NotificationType.REMINDER_START) == 0


@pytest.mark.asyncio
async def test_expiry_and_critical_reminders(session_maker, users):
    start = NOW - timedelta(hours=2)
    ending = await create_permit(session_maker, users, start_time=start, end_time=NOW + timedelta(minutes=30))
    critical = await create_permit(session_maker, users, start_time=start, end_time=NOW + timedelta(minutes=10))

    result = await ReminderService(session_maker).run_reminder_scan(NOW)
    again = await ReminderService(session_maker).run_reminder_scan(NOW)

    assert result.expiry_reminders_sent == 1
    assert result.critical_reminders_sent == 1
    assert again.expiry_reminders_sent == 0 and again.critical_reminders_sent == 0
    assert await count(session_maker, ending.id, NotificationType.REMINDER_END) == 1
    assert await count(session_maker, critical.id, NotificationType.REMINDER_END_CRITICAL) == 1


@pytest.mark.asyncio
async def test_expiry_reminder_covers_permits_awaiting_extension(session_maker, users):
    roles = [ApproverRole.SITE_LEADER]
    permit = await create_active_permit(
        session_maker, users, roles=roles,
        start_time=NOW - timedelta(hours=1), end_time=NOW + timedelta(minutes=30),
    )
    async with session_maker() as session:
        await ExtensionService(session).request_extension(
            permit.id, NOW + timedelta(hours=3), "More time", users.creator.id
        )

    result = await ReminderService(session_maker).run_reminder_scan(NOW)

    assert result.expiry_reminders_sent == 1


@pytest.mark.asyncio
async def test_expired_permits_are_closed(session_maker, users):
    permit = await create_permit(
        session_maker, users, start_time=NOW - timedelta(hours=4), end_time=NOW - timedelta(minutes=1)
    )

    kept_open = await ReminderService(session_maker, auto_close=False).run_reminder_scan(NOW)
    assert kept_open.permits_closed == 0

    result = await ReminderService(session_maker, auto_close=True).run_reminder_scan(NOW)

    assert result.permits_closed == 1
    async with session_maker() as session:
        stored = await PermitService(session).get_permit(permit.id)
    assert stored.status == PermitStatus.CLOSED
    assert await count(session_maker, permit.id, NotificationType.PERMIT_CLOSED) == 1


@pytest.mark.asyncio
async def test_one_failing_permit_does_not_stop_the_scan(session_maker, users, monkeypatch):
    bad = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=30))
    good = await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=30, seconds=20))

    original = ReminderService._send_reminder

    async def flaky(self, permit_id, type):
        if permit_id == bad.id:
            raise RuntimeError("storage unavailable")
        return await original(self, permit_id, type)

    monkeypatch.setattr(ReminderService, "_send_reminder", flaky)
    result = await ReminderService(session_maker).run_reminder_scan(NOW)

    assert result.start_reminders_sent == 1
    assert result.failures == 1
    assert await count(session_maker, good.id, NotificationType.REMINDER_START) == 1

    # next tick retries the failed permit
    monkeypatch.setattr(ReminderService, "_send_reminder", original)
    retry = await ReminderService(session_maker).run_reminder_scan(NOW + timedelta(minutes=1))
    assert retry.start_reminders_sent == 1
    assert retry.failures == 0
    assert await count(session_maker, bad.id, NotificationType.REMINDER_START) == 1


@pytest.mark.asyncio
async def test_storage_rejects_duplicate_reminder(session_maker, users):
    permit = await create_permit(session_maker, users)

    async with session_maker() as session:
        service = NotificationService(session)
        assert await service.create_once(users.creator.id, permit.id, NotificationType.REMINDER_END, "first")
        assert await service.create_once(users.creator.id, permit.id, NotificationType.REMINDER_END, "again") is None

    # a second writer that skips the existence check hits the unique constraint
    async with session_maker() as session:
        with pytest.raises(IntegrityError):
            await NotificationService(session).create(
                users.creator.id, permit.id, NotificationType.REMINDER_END, "raw"
            )
            await session.commit()


@pytest.mark.asyncio
async def test_scheduler_tick_records_result(session_maker, users):
    await create_permit(session_maker, users, start_time=NOW + timedelta(minutes=30))
    scheduler = ReminderScheduler(session_maker_factory=lambda: session_maker, clock=lambda: NOW)

    result = await scheduler.tick()

    assert result.start_reminders_sent == 1
    status = scheduler.status()
    assert status["running"] is False
    assert status["last_result"]["start_reminders_sent"] == 1
    assert status["last_error"] is None
