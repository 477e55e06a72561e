"""
Permit service with business logic.

Every read-evaluate-write on a permit runs under the permit's lock and a
row lock. Notifications are written only after the permit change has been
committed, and delivered over external channels after the lock is released.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.core.locks import PERMIT_SERIAL_KEY, permit_locks, sequence_locks
from app.db.repositories.extension_request_repository import ExtensionRequestRepository
from app.db.repositories.permit_repository import PermitRepository
from app.db.repositories.permit_status_history_repository import PermitStatusHistoryRepository
from app.db.repositories.user_repository import UserRepository
from app.models.extension_request import ExtensionStatus
from app.models.notification import NotificationType
from app.models.permit import ApprovalStatus, ApproverRole, Permit, PermitStatus, PermitStatusHistory
from app.schemas.permit import PermitCreate
from app.services.alert_dispatcher import AlertDispatcher
from app.services.approver_directory import (
    PERMIT_ROLES,
    ROLE_FIELDS,
    ApproverDirectory,
    assigned_roles,
    assigned_user,
    initial_statuses,
    role_status,
    role_votes,
)
from app.services.base_service import BaseService
from app.services.consensus import ConsensusOutcome, evaluate_consensus
from app.services.notification_service import Delivery, NotificationService, Outgoing
from app.services.permit_state_machine import PermitEvent, permit_state_machine
from app.utils.time_utils import ensure_utc, format_local, utc_now

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("permit_type", "work_location", "work_description")


def format_serial(serial_number: int) -> str:
    return f"PTW-{serial_number:04d}"


def require_decision_payload(
    decision: ApprovalStatus,
    signature: Optional[str],
    reason: Optional[str],
) -> None:
    """Approvals carry a signature, rejections a reason."""
    if decision == ApprovalStatus.APPROVED:
        if not signature or not signature.strip():
            raise ValidationError("A signature is required to approve", details={"field": "signature"})
    elif decision == ApprovalStatus.REJECTED:
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reject", details={"field": "reason"})
    else:
        raise ValidationError(
            "Decision must be Approved or Rejected",
            details={"decision": getattr(decision, "value", decision)},
        )


def apply_role_decision(
    record,
    role: ApproverRole,
    decision: ApprovalStatus,
    signature: Optional[str],
    reason: Optional[str],
    decided_at: datetime,
) -> None:
    fields = ROLE_FIELDS[role]
    setattr(record, fields.status_field, decision)
    setattr(record, fields.decided_at_field, decided_at)
    if decision == ApprovalStatus.APPROVED:
        setattr(record, fields.signature_field, signature.strip())
    else:
        setattr(record, fields.remarks_field, reason.strip())


def require_actor_holds_role(record, role: ApproverRole, actor_id: UUID, what: str) -> None:
    """The actor must be assigned to role and the role must still be undecided."""
    if assigned_user(record, role) != actor_id:
        raise ForbiddenError(
            f"You are not the assigned {role.label} for this {what}",
            details={"role": role.value},
        )
    if role_status(record, role) != ApprovalStatus.PENDING:
        raise ForbiddenError(
            f"The {role.label} decision on this {what} has already been recorded",
            details={"role": role.value, "status": role_status(record, role).value},
        )


class PermitService(BaseService):
    """Service for permit lifecycle operations."""

    def __init__(self, session: AsyncSession, dispatcher: Optional[AlertDispatcher] = None):
        self.session = session
        self.permit_repo = PermitRepository(session)
        self.history_repo = PermitStatusHistoryRepository(session)
        self.extension_repo = ExtensionRequestRepository(session)
        self.user_repo = UserRepository(session)
        self.approvers = ApproverDirectory(session)
        self.notifications = NotificationService(session, dispatcher)

    async def get_permit(self, permit_id: UUID) -> Permit:
        permit = await self.permit_repo.get(permit_id)
        if not permit:
            raise NotFoundError("Permit not found", details={"permit_id": str(permit_id)})
        return permit

    async def get_history(self, permit_id: UUID) -> List[PermitStatusHistory]:
        await self.get_permit(permit_id)
        return await self.history_repo.list_by_permit(permit_id)

    async def submit_permit(self, data: PermitCreate, actor_id: UUID) -> Permit:
        """
        Create a permit from a supervisor's draft.

        With data.submit the permit goes straight to Pending_Approval and the
        assigned approvers are asked for their decision; otherwise it is kept
        as a Draft.

        Raises:
            ValidationError: bad times, missing required fields, unknown approvers
        """
        start_time = ensure_utc(data.start_time)
        end_time = ensure_utc(data.end_time)
        if end_time <= start_time:
            raise ValidationError(
                "end_time must be later than start_time",
                details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
            )
        if data.submit:
            self._require_fields(data)
        await self._require_active_approvers(data)

        fields = {
            "permit_type": data.permit_type,
            "work_location": data.work_location,
            "work_description": data.work_description,
            "start_time": start_time,
            "end_time": end_time,
            "created_by_user_id": actor_id,
            "area_manager_id": data.area_manager_id,
            "safety_officer_id": data.safety_officer_id,
            "site_leader_id": data.site_leader_id,
        }

        async with sequence_locks.hold(PERMIT_SERIAL_KEY):
            serial_number = await self.permit_repo.next_serial_number()
            permit = await self.permit_repo.create(
                serial_number=serial_number,
                permit_serial=format_serial(serial_number),
                status=PermitStatus.DRAFT,
                **fields,
            )
            await self._record(permit, None, PermitStatus.DRAFT, "create", actor_id)
            outgoing: List[Outgoing] = []
            if data.submit:
                outgoing = await self._enter_review(permit, actor_id)
            await self._commit()

        logger.info(
            "Permit created",
            extra={
                "permit_id": str(permit.id),
                "permit_serial": permit.permit_serial,
                "status": permit.status.value,
                "actor_id": str(actor_id),
            },
        )
        await self._publish_and_deliver(permit, outgoing)
        return permit

    async def submit_draft(self, permit_id: UUID, actor_id: UUID) -> Permit:
        """Move a Draft to Pending_Approval once its required fields are filled in."""
        async with permit_locks.hold(permit_id):
            permit = await self._load_for_update(permit_id)
            permit_state_machine.next_status(permit.status, PermitEvent.SUBMIT)
            if permit.created_by_user_id != actor_id:
                raise ForbiddenError("Only the permit creator can submit this draft")
            self._require_fields(permit)
            await self._require_active_approvers(permit)
            outgoing = await self._enter_review(permit, actor_id)
            await self._commit()
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return permit

    async def record_approver_decision(
        self,
        permit_id: UUID,
        role: ApproverRole,
        decision: ApprovalStatus,
        actor_id: UUID,
        signature: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> PermitStatus:
        """
        Record one approver's decision and apply the consensus outcome.

        Raises:
            NotFoundError: no such permit
            InvalidStateError: permit is not Pending_Approval
            ForbiddenError: actor is not the assigned approver or the role already decided
            ValidationError: missing signature (approve) or reason (reject)
        """
        async with permit_locks.hold(permit_id):
            permit = await self._load_for_update(permit_id)
            if permit.status != PermitStatus.PENDING_APPROVAL:
                raise self._not_open(permit, "accepting approval decisions")
            require_actor_holds_role(permit, role, actor_id, "permit")
            require_decision_payload(decision, signature, reason)

            now = utc_now()
            apply_role_decision(permit, role, decision, signature, reason, now)
            actor = await self.user_repo.get(actor_id)
            actor_name = actor.full_name if actor else str(actor_id)

            outcome = evaluate_consensus(role_votes(permit, PERMIT_ROLES))
            outgoing: List[Outgoing] = []
            if outcome == ConsensusOutcome.REJECTED:
                await self._transition(permit, PermitEvent.CONSENSUS_REJECTED, actor_id, note=reason.strip())
                permit.rejection_reason = reason.strip()
                permit.rejected_by_role = role.value
                outgoing.append(Outgoing(
                    permit.created_by_user_id,
                    NotificationType.REJECTED,
                    f"Permit {permit.permit_serial} was rejected by {actor_name} ({role.label}). "
                    f"Reason: {reason.strip()}",
                ))
            elif outcome == ConsensusOutcome.APPROVED:
                await self._approve_and_activate(permit, actor_id, now)
                outgoing.append(Outgoing(
                    permit.created_by_user_id,
                    NotificationType.APPROVED,
                    f"Permit {permit.permit_serial} was approved by {actor_name} ({role.label}). "
                    f"All approvals are complete and work may proceed from {format_local(permit.start_time)}.",
                ))
            else:
                waiting = ", ".join(
                    r.label for r, _ in assigned_roles(permit, PERMIT_ROLES)
                    if role_status(permit, r) == ApprovalStatus.PENDING
                )
                outgoing.append(Outgoing(
                    permit.created_by_user_id,
                    NotificationType.APPROVAL_PROGRESS,
                    f"Permit {permit.permit_serial} was approved by {actor_name} ({role.label}). "
                    f"Waiting for: {waiting}.",
                ))

            await self._commit()
            logger.info(
                "Approver decision recorded",
                extra={
                    "permit_id": str(permit.id),
                    "role": role.value,
                    "decision": decision.value,
                    "actor_id": str(actor_id),
                    "outcome": outcome.value,
                    "status": permit.status.value,
                },
            )
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return permit.status

    async def close_permit(self, permit_id: UUID, actor_id: UUID, remarks: Optional[str] = None) -> Permit:
        """
        Close an Active (or Extension_Requested) permit. Creator only.

        An extension still awaiting decisions is rejected as part of the closure.
        """
        async with permit_locks.hold(permit_id):
            permit = await self._load_for_update(permit_id)
            if not permit_state_machine.can_fire(permit.status, PermitEvent.CLOSE):
                raise self._not_open(permit, "open for closure")
            if permit.created_by_user_id != actor_id:
                raise ForbiddenError("Only the permit creator can close this permit")

            now = utc_now()
            open_extension = await self.extension_repo.get_open_for_permit(permit.id)
            if open_extension:
                open_extension.status = ExtensionStatus.REJECTED
                open_extension.rejection_reason = "Permit closed before extension was resolved"
                open_extension.resolved_at = now

            await self._transition(permit, PermitEvent.CLOSE, actor_id, note=remarks)
            permit.closed_at = now
            permit.closure_remarks = remarks
            await self._commit()

            outgoing = [
                Outgoing(
                    user_id,
                    NotificationType.PERMIT_CLOSED,
                    f"Permit {permit.permit_serial} at {permit.work_location or 'the work site'} has been closed.",
                )
                for user_id in self._distinct_approvers(permit)
                if user_id != permit.created_by_user_id
            ]
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return permit

    async def expire_permit(self, permit_id: UUID, now: datetime) -> bool:
        """
        Close an Active permit whose end_time has passed.

        Returns False when there is nothing to do, for instance because the
        permit was extended or closed since it was selected.
        """
        now = ensure_utc(now)
        async with permit_locks.hold(permit_id):
            permit = await self.permit_repo.get_for_update(permit_id)
            if not permit or not permit_state_machine.can_fire(permit.status, PermitEvent.EXPIRE):
                return False
            if ensure_utc(permit.end_time) >= now:
                return False

            await self._transition(permit, PermitEvent.EXPIRE, None, note="End time passed")
            permit.closed_at = now
            permit.closure_remarks = "Closed automatically after end time"
            await self._commit()

            outgoing = [Outgoing(
                permit.created_by_user_id,
                NotificationType.PERMIT_CLOSED,
                f"Permit {permit.permit_serial} expired at {format_local(permit.end_time)} "
                f"and has been closed automatically.",
            )]
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return True

    async def _load_for_update(self, permit_id: UUID) -> Permit:
        permit = await self.permit_repo.get_for_update(permit_id)
        if not permit:
            raise NotFoundError("Permit not found", details={"permit_id": str(permit_id)})
        return permit

    def _not_open(self, permit: Permit, what: str) -> InvalidStateError:
        if permit_state_machine.is_terminal(permit.status):
            message = f"Permit is {permit.status.value}; no further changes are accepted"
        else:
            message = f"Permit is {permit.status.value} and not {what}"
        return InvalidStateError(message, details={"status": permit.status.value})

    def _require_fields(self, source) -> None:
        missing = [f for f in REQUIRED_FIELDS if not (getattr(source, f, None) or "").strip()]
        if missing:
            raise ValidationError("Required fields are missing", details={"missing": missing})

    async def _require_active_approvers(self, source) -> None:
        wanted = {r: assigned_user(source, r) for r in PERMIT_ROLES if assigned_user(source, r)}
        if not wanted:
            return
        found = {u.id: u for u in await self.user_repo.get_many(wanted.values())}
        invalid = [r.value for r, uid in wanted.items() if uid not in found or not found[uid].is_active]
        if invalid:
            raise ValidationError("Assigned approvers must be active users", details={"roles": invalid})

    async def _enter_review(self, permit: Permit, actor_id: UUID) -> List[Outgoing]:
        """Submit the permit for approval. Auto-approves when no approver is assigned."""
        for field, value in initial_statuses(
            {ROLE_FIELDS[r].id_field: assigned_user(permit, r) for r in PERMIT_ROLES},
            PERMIT_ROLES,
        ).items():
            setattr(permit, field, value)
        await self._transition(permit, PermitEvent.SUBMIT, actor_id)

        assigned = assigned_roles(permit, PERMIT_ROLES)
        if evaluate_consensus(role_votes(permit, PERMIT_ROLES)) == ConsensusOutcome.APPROVED:
            await self._approve_and_activate(permit, actor_id, utc_now(), note="No approvers assigned")
            return [Outgoing(
                permit.created_by_user_id,
                NotificationType.APPROVED,
                f"Permit {permit.permit_serial} needs no approvals and is now active.",
            )]

        return [
            Outgoing(
                user_id,
                NotificationType.APPROVAL_REQUEST,
                f"Permit {permit.permit_serial} ({permit.permit_type}) at {permit.work_location} "
                f"needs your approval as {role.label}. "
                f"Work window: {format_local(permit.start_time)} to {format_local(permit.end_time)}.",
            )
            for role, user_id in assigned
        ]

    async def _approve_and_activate(
        self,
        permit: Permit,
        actor_id: UUID,
        now: datetime,
        note: Optional[str] = None,
    ) -> None:
        await self._transition(permit, PermitEvent.CONSENSUS_APPROVED, actor_id, note=note)
        permit.approved_at = now
        await self._transition(permit, PermitEvent.ACTIVATE, actor_id)
        permit.activated_at = now

    async def _transition(
        self,
        permit: Permit,
        event: PermitEvent,
        actor_id: Optional[UUID],
        note: Optional[str] = None,
    ) -> None:
        from_status = permit.status
        permit.status = permit_state_machine.next_status(from_status, event)
        await self._record(permit, from_status, permit.status, event.value, actor_id, note)
        logger.info(
            "Permit status changed",
            extra={
                "permit_id": str(permit.id),
                "permit_serial": permit.permit_serial,
                "from_status": from_status.value,
                "to_status": permit.status.value,
                "event": event.value,
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

    async def _record(
        self,
        permit: Permit,
        from_status: Optional[PermitStatus],
        to_status: PermitStatus,
        event: str,
        actor_id: Optional[UUID],
        note: Optional[str] = None,
    ) -> None:
        await self.history_repo.add(
            permit_id=permit.id,
            from_status=from_status,
            to_status=to_status,
            event=event,
            changed_by_user_id=actor_id,
            note=note,
        )

    def _distinct_approvers(self, permit: Permit) -> List[UUID]:
        seen: List[UUID] = []
        for _, user_id in assigned_roles(permit, PERMIT_ROLES):
            if user_id not in seen:
                seen.append(user_id)
        return seen

    async def _publish(self, permit: Permit, outgoing: List[Outgoing]) -> List[Delivery]:
        return await self.notifications.publish(permit.id, outgoing, permit.permit_serial)

    async def _publish_and_deliver(self, permit: Permit, outgoing: List[Outgoing]) -> None:
        async with permit_locks.hold(permit.id):
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
