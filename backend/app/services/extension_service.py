"""
Extension service.
Runs the second, narrower approval round (Site Leader and Safety Officer)
that moves an Active permit's end_time later.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from app.core.locks import permit_locks
from app.models.extension_request import ExtensionRequest, ExtensionStatus
from app.models.notification import NotificationType
from app.models.permit import ApprovalStatus, ApproverRole, PermitStatus
from app.services.approver_directory import (
    EXTENSION_ROLES,
    ROLE_FIELDS,
    assigned_roles,
    initial_statuses,
    role_status,
    role_votes,
)
from app.services.consensus import ConsensusOutcome, evaluate_consensus
from app.services.notification_service import Outgoing
from app.services.permit_service import (
    PermitService,
    apply_role_decision,
    require_actor_holds_role,
    require_decision_payload,
)
from app.services.permit_state_machine import PermitEvent, permit_state_machine
from app.utils.time_utils import ensure_utc, format_local, utc_now

logger = logging.getLogger(__name__)


class ExtensionService(PermitService):
    """Service for permit extension requests."""

    async def get_extension(self, extension_id: UUID) -> ExtensionRequest:
        extension = await self.extension_repo.get(extension_id)
        if not extension:
            raise NotFoundError("Extension request not found", details={"extension_id": str(extension_id)})
        return extension

    async def list_extensions(self, permit_id: UUID) -> List[ExtensionRequest]:
        await self.get_permit(permit_id)
        return await self.extension_repo.list_by_permit(permit_id)

    async def request_extension(
        self,
        permit_id: UUID,
        new_end_time: datetime,
        reason: str,
        actor_id: UUID,
    ) -> ExtensionRequest:
        """
        Ask for a later end_time on an Active permit.

        Only one extension may be open per permit. When the permit has
        neither a Site Leader nor a Safety Officer the extension is approved
        on the spot.

        Raises:
            NotFoundError: no such permit
            InvalidStateError: permit not Active, or an extension is already open
            ForbiddenError: actor is not the permit's creator
            ValidationError: new_end_time not later than end_time, or empty reason
        """
        async with permit_locks.hold(permit_id):
            permit = await self._load_for_update(permit_id)
            if permit.status == PermitStatus.EXTENSION_REQUESTED or await self.extension_repo.get_open_for_permit(permit.id):
                raise InvalidStateError(
                    "An extension request is already open for this permit",
                    details={"status": permit.status.value},
                )
            if not permit_state_machine.can_fire(permit.status, PermitEvent.REQUEST_EXTENSION):
                raise self._not_open(permit, "open for extension")
            if permit.created_by_user_id != actor_id:
                raise ForbiddenError("Only the permit creator can request an extension")
            if not reason or not reason.strip():
                raise ValidationError("A reason is required", details={"field": "reason"})
            new_end_time = ensure_utc(new_end_time)
            current_end = ensure_utc(permit.end_time)
            if new_end_time <= current_end:
                raise ValidationError(
                    "new_end_time must be later than the current end_time",
                    details={"end_time": current_end.isoformat(), "new_end_time": new_end_time.isoformat()},
                )

            assignment = {
                ROLE_FIELDS[role].id_field: await self.approvers.get_assigned_approver(permit.id, role)
                for role in EXTENSION_ROLES
            }
            extension = await self.extension_repo.create(
                permit_id=permit.id,
                requested_by_user_id=actor_id,
                original_end_time=current_end,
                new_end_time=new_end_time,
                reason=reason.strip(),
                status=ExtensionStatus.EXTENSION_REQUESTED,
                **assignment,
                **initial_statuses(assignment, EXTENSION_ROLES),
            )

            approvers = assigned_roles(extension, EXTENSION_ROLES)
            if evaluate_consensus(role_votes(extension, EXTENSION_ROLES)) == ConsensusOutcome.APPROVED:
                # Nobody to ask
                extension.status = ExtensionStatus.APPROVED
                extension.resolved_at = utc_now()
                permit.end_time = new_end_time
                outgoing = [Outgoing(
                    permit.created_by_user_id,
                    NotificationType.EXTENSION_APPROVED,
                    f"Extension for permit {permit.permit_serial} needs no approvals. "
                    f"New end time: {format_local(new_end_time)}.",
                    extension_id=extension.id,
                )]
            else:
                await self._transition(permit, PermitEvent.REQUEST_EXTENSION, actor_id, note=reason.strip())
                outgoing = [
                    Outgoing(
                        user_id,
                        NotificationType.EXTENSION_REQUEST,
                        f"Permit {permit.permit_serial} requests an extension from "
                        f"{format_local(current_end)} to {format_local(new_end_time)}. "
                        f"Your approval as {role.label} is needed. Reason: {reason.strip()}",
                        extension_id=extension.id,
                    )
                    for role, user_id in approvers
                ]

            await self._commit()
            logger.info(
                "Extension requested",
                extra={
                    "permit_id": str(permit.id),
                    "extension_id": str(extension.id),
                    "new_end_time": new_end_time.isoformat(),
                    "status": extension.status.value,
                    "actor_id": str(actor_id),
                },
            )
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return extension

    async def record_extension_decision(
        self,
        extension_id: UUID,
        role: ApproverRole,
        decision: ApprovalStatus,
        actor_id: UUID,
        signature: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> ExtensionStatus:
        """
        Record one extension approver's decision and apply the outcome.

        Approval moves the permit's end_time to new_end_time; rejection leaves
        it untouched. Either way the permit returns to Active.

        Raises:
            NotFoundError: no such extension
            InvalidStateError: extension already resolved
            ForbiddenError: role not part of extension approval, actor not assigned, or role decided
            ValidationError: missing signature (approve) or reason (reject)
        """
        extension = await self.get_extension(extension_id)
        permit_id = extension.permit_id

        async with permit_locks.hold(permit_id):
            extension = await self.extension_repo.get_for_update(extension_id)
            if extension.status != ExtensionStatus.EXTENSION_REQUESTED:
                raise InvalidStateError(
                    f"Extension request is {extension.status.value}; no further decisions are accepted",
                    details={"status": extension.status.value},
                )
            if role not in EXTENSION_ROLES:
                raise ForbiddenError(
                    f"The {role.label} does not take part in extension approval",
                    details={"role": role.value},
                )
            require_actor_holds_role(extension, role, actor_id, "extension request")
            require_decision_payload(decision, signature, reason)

            permit = await self._load_for_update(permit_id)
            now = utc_now()
            apply_role_decision(extension, role, decision, signature, reason, now)
            actor = await self.user_repo.get(actor_id)
            actor_name = actor.full_name if actor else str(actor_id)

            outcome = evaluate_consensus(role_votes(extension, EXTENSION_ROLES))
            if outcome == ConsensusOutcome.APPROVED:
                extension.status = ExtensionStatus.APPROVED
                extension.resolved_at = now
                permit.end_time = ensure_utc(extension.new_end_time)
                await self._transition(permit, PermitEvent.RESOLVE_EXTENSION, actor_id, note="Extension approved")
                outgoing = [Outgoing(
                    permit.created_by_user_id,
                    NotificationType.EXTENSION_APPROVED,
                    f"Extension for permit {permit.permit_serial} was approved. "
                    f"New end time: {format_local(extension.new_end_time)}.",
                    extension_id=extension.id,
                )]
            elif outcome == ConsensusOutcome.REJECTED:
                extension.status = ExtensionStatus.REJECTED
                extension.resolved_at = now
                extension.rejection_reason = reason.strip()
                await self._transition(permit, PermitEvent.RESOLVE_EXTENSION, actor_id, note="Extension rejected")
                outgoing = [Outgoing(
                    permit.created_by_user_id,
                    NotificationType.EXTENSION_REJECTED,
                    f"Extension for permit {permit.permit_serial} was rejected by {actor_name} ({role.label}). "
                    f"Reason: {reason.strip()}. The permit still ends at {format_local(permit.end_time)}.",
                    extension_id=extension.id,
                )]
            else:
                waiting = ", ".join(
                    r.label for r, _ in assigned_roles(extension, EXTENSION_ROLES)
                    if role_status(extension, r) == ApprovalStatus.PENDING
                )
                outgoing = [Outgoing(
                    permit.created_by_user_id,
                    NotificationType.APPROVAL_PROGRESS,
                    f"Extension for permit {permit.permit_serial} was approved by {actor_name} ({role.label}). "
                    f"Waiting for: {waiting}.",
                    extension_id=extension.id,
                )]

            await self._commit()
            logger.info(
                "Extension decision recorded",
                extra={
                    "permit_id": str(permit.id),
                    "extension_id": str(extension.id),
                    "role": role.value,
                    "decision": decision.value,
                    "actor_id": str(actor_id),
                    "status": extension.status.value,
                },
            )
            deliveries = await self._publish(permit, outgoing)
        await self.notifications.deliver(deliveries)
        return extension.status
