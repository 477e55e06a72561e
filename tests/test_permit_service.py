"""
Permit lifecycle and approval tests against PermitService.
"""

import asyncio
from datetime import timedelta

import pytest

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.db.repositories.notification_repository import NotificationRepository
from app.db.repositories.permit_status_history_repository import PermitStatusHistoryRepository
from app.models.notification import NotificationType
from app.models.permit import ApprovalStatus, ApproverRole, PermitStatus
from app.schemas.permit import PermitCreate
from app.services.permit_service import PermitService

from conftest import create_active_permit, create_permit, decide, hours_from_now

ALL_ROLES = [ApproverRole.AREA_MANAGER, ApproverRole.SAFETY_OFFICER, ApproverRole.SITE_LEADER]


async def notifications_of(session_maker, permit_id, type=None):
    async with session_maker() as session:
        return await NotificationRepository(session).list_for_permit(permit_id, type)


async def reload(session_maker, permit_id):
    async with session_maker() as session:
        return await PermitService(session).get_permit(permit_id)


@pytest.mark.asyncio
async def test_submit_assigns_serial_and_requests_approvals(session_maker, users, dispatcher):
    first = await create_permit(session_maker, users, roles=ALL_ROLES, dispatcher=dispatcher)
    second = await create_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])

    assert first.permit_serial == "PTW-0001"
    assert second.permit_serial == "PTW-0002"
    assert first.status == PermitStatus.PENDING_APPROVAL
    assert first.area_manager_status == ApprovalStatus.PENDING
    assert second.area_manager_status is None

    requests = await notifications_of(session_maker, first.id, NotificationType.APPROVAL_REQUEST)
    assert {n.user_id for n in requests} == {
        users.area_manager.id, users.safety_officer.id, users.site_leader.id,
    }
    assert len(dispatcher.sent) == 3


@pytest.mark.asyncio
async def test_submit_rejects_end_before_start(session_maker, users):
    start = hours_from_now(2)
    with pytest.raises(ValidationError):
        await create_permit(session_maker, users, start_time=start, end_time=start)


@pytest.mark.asyncio
async def test_submit_requires_active_approvers(session_maker, users):
    data = PermitCreate(
        permit_type="Hot Work",
        work_location="Yard",
        work_description="Cutting",
        start_time=hours_from_now(1),
        end_time=hours_from_now(3),
        safety_officer_id=users.inactive.id,
    )
    async with session_maker() as session:
        with pytest.raises(ValidationError) as exc:
            await PermitService(session).submit_permit(data, users.creator.id)
    assert exc.value.details == {"roles": ["safety_officer"]}


@pytest.mark.asyncio
async def test_permit_without_approvers_is_active_immediately(session_maker, users):
    permit = await create_permit(session_maker, users, roles=[])

    assert permit.status == PermitStatus.ACTIVE
    approved = await notifications_of(session_maker, permit.id, NotificationType.APPROVED)
    assert [n.user_id for n in approved] == [users.creator.id]


@pytest.mark.asyncio
async def test_single_assigned_approver_activates_permit(session_maker, users, dispatcher):
    permit = await create_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])

    status = await decide(
        session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer, dispatcher=dispatcher
    )

    assert status == PermitStatus.ACTIVE
    stored = await reload(session_maker, permit.id)
    assert stored.safety_officer_status == ApprovalStatus.APPROVED
    assert stored.safety_officer_signature == "signed"
    assert stored.approved_at is not None and stored.activated_at is not None

    approved = await notifications_of(session_maker, permit.id, NotificationType.APPROVED)
    assert len(approved) == 1
    assert approved[0].user_id == users.creator.id
    assert "Sky Safety (Safety Officer)" in approved[0].message
    assert dispatcher.sent == [(NotificationType.APPROVED, users.creator.id, permit.permit_serial)]


@pytest.mark.asyncio
async def test_rejection_wins_even_with_pending_roles(session_maker, users):
    permit = await create_permit(session_maker, users, roles=ALL_ROLES)

    assert await decide(session_maker, permit.id, ApproverRole.AREA_MANAGER, users.area_manager) == PermitStatus.PENDING_APPROVAL
    status = await decide(
        session_maker,
        permit.id,
        ApproverRole.SAFETY_OFFICER,
        users.safety_officer,
        decision=ApprovalStatus.REJECTED,
        signature=None,
        reason="insufficient PPE",
    )

    assert status == PermitStatus.REJECTED
    stored = await reload(session_maker, permit.id)
    assert stored.rejection_reason == "insufficient PPE"
    assert stored.rejected_by_role == "safety_officer"
    assert stored.site_leader_status == ApprovalStatus.PENDING

    rejected = await notifications_of(session_maker, permit.id, NotificationType.REJECTED)
    assert len(rejected) == 1
    assert rejected[0].user_id == users.creator.id
    assert "insufficient PPE" in rejected[0].message


@pytest.mark.asyncio
async def test_partial_approval_notifies_progress(session_maker, users):
    permit = await create_permit(session_maker, users, roles=ALL_ROLES)

    await decide(session_maker, permit.id, ApproverRole.SITE_LEADER, users.site_leader)

    progress = await notifications_of(session_maker, permit.id, NotificationType.APPROVAL_PROGRESS)
    assert len(progress) == 1
    assert "Waiting for: Area Owner, Safety Officer" in progress[0].message


@pytest.mark.asyncio
async def test_terminal_permit_accepts_no_decisions(session_maker, users):
    permit = await create_permit(session_maker, users, roles=[ApproverRole.AREA_MANAGER, ApproverRole.SITE_LEADER])
    await decide(
        session_maker, permit.id, ApproverRole.AREA_MANAGER, users.area_manager,
        decision=ApprovalStatus.REJECTED, signature=None, reason="wrong area",
    )
    before = await reload(session_maker, permit.id)

    with pytest.raises(InvalidStateError):
        await decide(session_maker, permit.id, ApproverRole.SITE_LEADER, users.site_leader)

    after = await reload(session_maker, permit.id)
    assert after.site_leader_status == ApprovalStatus.PENDING
    assert after.version == before.version


@pytest.mark.asyncio
async def test_closed_permit_accepts_no_decisions(session_maker, users):
    permit = await create_active_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])
    async with session_maker() as session:
        await PermitService(session).close_permit(permit.id, users.creator.id, "Work complete")
    before = await reload(session_maker, permit.id)

    with pytest.raises(InvalidStateError):
        await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)
    with pytest.raises(InvalidStateError):
        await decide(
            session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer,
            decision=ApprovalStatus.REJECTED, signature=None, reason="too late",
        )

    after = await reload(session_maker, permit.id)
    assert after.status == PermitStatus.CLOSED
    assert after.version == before.version
    assert after.safety_officer_status == ApprovalStatus.APPROVED
    assert after.safety_officer_decided_at == before.safety_officer_decided_at
    assert after.rejection_reason is None


@pytest.mark.asyncio
async def test_decision_guards(session_maker, users):
    permit = await create_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER, ApproverRole.SITE_LEADER])

    with pytest.raises(NotFoundError):
        await decide(session_maker, users.creator.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)
    # unassigned role
    with pytest.raises(ForbiddenError):
        await decide(session_maker, permit.id, ApproverRole.AREA_MANAGER, users.area_manager)
    # wrong person for the role
    with pytest.raises(ForbiddenError):
        await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.site_leader)
    with pytest.raises(ValidationError):
        await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer, signature="  ")
    with pytest.raises(ValidationError):
        await decide(
            session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer,
            decision=ApprovalStatus.REJECTED, reason="",
        )

    await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)
    # already decided
    with pytest.raises(ForbiddenError):
        await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)


@pytest.mark.asyncio
async def test_racing_final_approvals_transition_once(session_maker, users):
    permit = await create_permit(session_maker, users, roles=ALL_ROLES)
    await decide(session_maker, permit.id, ApproverRole.AREA_MANAGER, users.area_manager)
    await decide(session_maker, permit.id, ApproverRole.SAFETY_OFFICER, users.safety_officer)

    async def final_approval():
        try:
            return await decide(session_maker, permit.id, ApproverRole.SITE_LEADER, users.site_leader)
        except InvalidStateError as e:
            return e

    results = await asyncio.gather(final_approval(), final_approval())

    assert results.count(PermitStatus.ACTIVE) == 1
    assert sum(isinstance(r, InvalidStateError) for r in results) == 1
    assert len(await notifications_of(session_maker, permit.id, NotificationType.APPROVED)) == 1

    async with session_maker() as session:
        history = await PermitStatusHistoryRepository(session).list_by_permit(permit.id)
    assert [h.to_status for h in history].count(PermitStatus.ACTIVE) == 1


@pytest.mark.asyncio
async def test_history_records_each_transition(session_maker, users):
    permit = await create_active_permit(session_maker, users, roles=[ApproverRole.SITE_LEADER])

    async with session_maker() as session:
        history = await PermitService(session).get_history(permit.id)

    assert [(h.from_status, h.to_status) for h in history] == [
        (None, PermitStatus.DRAFT),
        (PermitStatus.DRAFT, PermitStatus.PENDING_APPROVAL),
        (PermitStatus.PENDING_APPROVAL, PermitStatus.APPROVED),
        (PermitStatus.APPROVED, PermitStatus.ACTIVE),
    ]
    assert history[-1].changed_by_user_id == users.site_leader.id


@pytest.mark.asyncio
async def test_draft_then_submit(session_maker, users):
    data = PermitCreate(
        permit_type="Confined Space",
        start_time=hours_from_now(1),
        end_time=hours_from_now(2),
        safety_officer_id=users.safety_officer.id,
        submit=False,
    )
    async with session_maker() as session:
        draft = await PermitService(session).submit_permit(data, users.creator.id)
    assert draft.status == PermitStatus.DRAFT
    assert draft.safety_officer_status is None
    assert await notifications_of(session_maker, draft.id) == []

    async with session_maker() as session:
        with pytest.raises(ForbiddenError):
            await PermitService(session).submit_draft(draft.id, users.outsider.id)
    async with session_maker() as session:
        with pytest.raises(ValidationError) as exc:
            await PermitService(session).submit_draft(draft.id, users.creator.id)
    assert exc.value.details == {"missing": ["work_location", "work_description"]}

    async with session_maker() as session:
        permit = await PermitService(session).get_permit(draft.id)
        permit.work_location = "Tank 4"
        permit.work_description = "Inspection"
        await session.commit()

    async with session_maker() as session:
        submitted = await PermitService(session).submit_draft(draft.id, users.creator.id)
    assert submitted.status == PermitStatus.PENDING_APPROVAL
    assert submitted.safety_officer_status == ApprovalStatus.PENDING

    async with session_maker() as session:
        with pytest.raises(InvalidStateError):
            await PermitService(session).submit_draft(draft.id, users.creator.id)


@pytest.mark.asyncio
async def test_close_permit(session_maker, users):
    permit = await create_active_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER, ApproverRole.SITE_LEADER])

    async with session_maker() as session:
        with pytest.raises(ForbiddenError):
            await PermitService(session).close_permit(permit.id, users.safety_officer.id)

    async with session_maker() as session:
        closed = await PermitService(session).close_permit(permit.id, users.creator.id, "Work complete")
    assert closed.status == PermitStatus.CLOSED
    assert closed.closure_remarks == "Work complete"

    closed_notes = await notifications_of(session_maker, permit.id, NotificationType.PERMIT_CLOSED)
    assert {n.user_id for n in closed_notes} == {users.safety_officer.id, users.site_leader.id}

    async with session_maker() as session:
        with pytest.raises(InvalidStateError):
            await PermitService(session).close_permit(permit.id, users.creator.id)


@pytest.mark.asyncio
async def test_pending_permit_cannot_be_closed(session_maker, users):
    permit = await create_permit(session_maker, users, roles=[ApproverRole.SAFETY_OFFICER])

    async with session_maker() as session:
        with pytest.raises(InvalidStateError):
            await PermitService(session).close_permit(permit.id, users.creator.id)


@pytest.mark.asyncio
async def test_expire_permit_only_after_end_time(session_maker, users):
    start = hours_from_now(-3)
    permit = await create_permit(session_maker, users, start_time=start, end_time=start + timedelta(hours=2))

    async with session_maker() as session:
        assert not await PermitService(session).expire_permit(permit.id, start + timedelta(hours=1))
    async with session_maker() as session:
        assert await PermitService(session).expire_permit(permit.id, hours_from_now(0))

    stored = await reload(session_maker, permit.id)
    assert stored.status == PermitStatus.CLOSED
    closed = await notifications_of(session_maker, permit.id, NotificationType.PERMIT_CLOSED)
    assert [n.user_id for n in closed] == [users.creator.id]
