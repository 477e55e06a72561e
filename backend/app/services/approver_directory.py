"""
Approver directory.
Maps each approver role to its columns and resolves who holds a role on a
given permit or extension request.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.db.repositories.permit_repository import PermitRepository
from app.models.permit import ApprovalStatus, ApproverRole
from app.services.consensus import RoleVote


@dataclass(frozen=True)
class RoleFields:
    """Column names holding one role's assignment and decision."""
    id_field: str
    status_field: str
    decided_at_field: str
    signature_field: str
    remarks_field: str


ROLE_FIELDS: Dict[ApproverRole, RoleFields] = {
    role: RoleFields(
        id_field=f"{role.value}_id",
        status_field=f"{role.value}_status",
        decided_at_field=f"{role.value}_decided_at",
        signature_field=f"{role.value}_signature",
        remarks_field=f"{role.value}_remarks",
    )
    for role in ApproverRole
}

PERMIT_ROLES: Tuple[ApproverRole, ...] = (
    ApproverRole.AREA_MANAGER,
    ApproverRole.SAFETY_OFFICER,
    ApproverRole.SITE_LEADER,
)

# The Area Owner does not take part in extension approval
EXTENSION_ROLES: Tuple[ApproverRole, ...] = (
    ApproverRole.SITE_LEADER,
    ApproverRole.SAFETY_OFFICER,
)


def assigned_user(record: Any, role: ApproverRole) -> Optional[UUID]:
    return getattr(record, ROLE_FIELDS[role].id_field)


def role_status(record: Any, role: ApproverRole) -> Optional[ApprovalStatus]:
    return getattr(record, ROLE_FIELDS[role].status_field)


def assigned_roles(record: Any, roles: Tuple[ApproverRole, ...]) -> List[Tuple[ApproverRole, UUID]]:
    """(role, user id) for every role of roles that has someone assigned."""
    return [
        (role, assigned_user(record, role))
        for role in roles
        if assigned_user(record, role) is not None
    ]


def role_votes(record: Any, roles: Tuple[ApproverRole, ...]) -> List[RoleVote]:
    return [
        RoleVote(assigned=assigned_user(record, role) is not None, status=role_status(record, role))
        for role in roles
    ]


def initial_statuses(record_fields: Dict[str, Any], roles: Tuple[ApproverRole, ...]) -> Dict[str, Any]:
    """Status column values for a new record: Pending where assigned, NULL otherwise."""
    return {
        ROLE_FIELDS[role].status_field: (
            ApprovalStatus.PENDING if record_fields.get(ROLE_FIELDS[role].id_field) else None
        )
        for role in roles
    }


class ApproverDirectory:
    """Resolves approver assignments for persisted permits."""

    def __init__(self, session: AsyncSession):
        self.permit_repo = PermitRepository(session)

    async def get_assigned_approver(self, permit_id: UUID, role: ApproverRole) -> Optional[UUID]:
        """User assigned to role on the permit, or None if the role is unassigned."""
        permit = await self.permit_repo.get(permit_id)
        if not permit:
            raise NotFoundError("Permit not found", details={"permit_id": str(permit_id)})
        return assigned_user(permit, role)
