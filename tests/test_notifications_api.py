"""
Notification inbox and reminder scan endpoint tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.config import settings
from app.models.notification import NotificationType
from app.models.permit import ApproverRole
from app.services.notification_service import NotificationService
from app.services.reminder_service import run_reminder_scan

from conftest import as_user, create_active_permit, create_permit, decide, hours_from_now


@pytest.mark.asyncio
async def test_inbox_read_state(test_client, session_maker, users):
    first = await create_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])
    await decide(session_maker, first.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)
    await create_permit(session_maker, users, roles=[])

    response = await test_client.get("/api/v1/notifications", headers=as_user(users.creator))
    assert response.status_code == 200
    inbox = response.json()
    assert inbox["unread_count"] == 2
    assert {n["type"] for n in inbox["items"]} == {"APPROVED"}

    # someone else's notification is invisible
    response = await test_client.post(
        f"/api/v1/notifications/{inbox['items'][0]['id']}/read", headers=as_user(users.outsider)
    )
    assert response.status_code == 404

    response = await test_client.post(
        f"/api/v1/notifications/{inbox['items'][0]['id']}/read", headers=as_user(users.creator)
    )
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    response = await test_client.get(
        "/api/v1/notifications", params={"unread_only": True}, headers=as_user(users.creator)
    )
    assert response.json()["unread_count"] == 1
    assert len(response.json()["items"]) == 1

    response = await test_client.post("/api/v1/notifications/read-all", headers=as_user(users.creator))
    assert response.json() == {"updated": 1}

    # approver inbox holds the approval request
    response = await test_client.get("/api/v1/notifications", headers=as_user(users.safety_officer))
    assert [n["type"] for n in response.json()["items"]] == ["APPROVAL_REQUEST"]


@pytest.mark.asyncio
async def test_reminder_scan_endpoint_uses_server_clock(test_client, session_maker, users):
    await create_permit(session_maker, users, start_time=hours_from_now(3))

    response = await test_client.post("/api/v1/reminders/scan", headers=as_user(users.outsider))

    assert response.status_code == 200
    assert response.json() == {
        "start_reminders_sent": 0,
        "expiry_reminders_sent": 0,
        "critical_reminders_sent": 0,
        "permits_closed": 0,
        "failures": 0,
    }


@pytest.mark.asyncio
async def test_supplied_clock_cannot_close_permits(test_client, session_maker, users):
    permit = await create_active_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])

    response = await test_client.post(
        "/api/v1/reminders/scan",
        json={"now": "2099-01-01T00:00:00+00:00"},
        headers=as_user(users.outsider),
    )
    assert response.status_code == 403

    response = await test_client.get(f"/api/v1/permits/{permit.id}", headers=as_user(users.creator))
    assert response.json()["status"] == "Active"


@pytest.mark.asyncio
async def test_supplied_clock_cannot_consume_start_reminder(test_client, session_maker, users):
    now = datetime(2031, 3, 3, 6, 0, tzinfo=timezone.utc)
    permit = await create_permit(session_maker, users, start_time=now + timedelta(minutes=30))

    response = await test_client.post(
        "/api/v1/reminders/scan", json={"now": now.isoformat()}, headers=as_user(users.outsider)
    )
    assert response.status_code == 403

    result = await run_reminder_scan(now, session_maker)
    assert result["start_reminders_sent"] == 1
    async with session_maker() as session:
        assert await NotificationService(session).exists(permit.id, NotificationType.REMINDER_START)


@pytest.mark.asyncio
async def test_reminder_scan_endpoint_with_clock_override(test_client, session_maker, users, monkeypatch):
    monkeypatch.setattr(settings, "REMINDER_SCAN_CLOCK_OVERRIDE", True)
    now = datetime(2031, 3, 3, 6, 0, tzinfo=timezone.utc)
    await create_permit(session_maker, users, start_time=now + timedelta(minutes=30))

    response = await test_client.post(
        "/api/v1/reminders/scan", json={"now": now.isoformat()}, headers=as_user(users.creator)
    )

    assert response.status_code == 200
    assert response.json() == {
        "start_reminders_sent": 1,
        "expiry_reminders_sent": 0,
        "critical_reminders_sent": 0,
        "permits_closed": 0,
        "failures": 0,
    }

    response = await test_client.post(
        "/api/v1/reminders/scan", json={"now": now.isoformat()}, headers=as_user(users.creator)
    )
    assert response.json()["start_reminders_sent"] == 0


@pytest.mark.asyncio
async def test_clock_override_never_auto_closes(test_client, session_maker, users, monkeypatch):
    monkeypatch.setattr(settings, "REMINDER_SCAN_CLOCK_OVERRIDE", True)
    permit = await create_active_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])

    response = await test_client.post(
        "/api/v1/reminders/scan",
        json={"now": "2099-01-01T00:00:00+00:00"},
        headers=as_user(users.creator),
    )
    assert response.status_code == 200
    assert response.json()["permits_closed"] == 0

    response = await test_client.get(f"/api/v1/permits/{permit.id}", headers=as_user(users.creator))
    assert response.json()["status"] == "Active"
