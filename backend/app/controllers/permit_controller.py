"""
Permit controller - coordinates service calls.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.services.alert_dispatcher import AlertDispatcher
from app.services.permit_service import PermitService
from app.schemas.permit import (
    ApproverDecisionRequest,
    ApproverDecisionResponse,
    PermitCloseRequest,
    PermitCreate,
    PermitResponse,
    PermitStatusHistoryListResponse,
    PermitStatusHistoryResponse,
)


class PermitController(BaseController):
    """Controller for permit operations."""

    def __init__(self, session: AsyncSession, dispatcher: Optional[AlertDispatcher] = None):
        self.permit_service = PermitService(session, dispatcher)

    async def submit_permit(self, data: PermitCreate, actor_id: UUID) -> PermitResponse:
        permit = await self.permit_service.submit_permit(data, actor_id)
        return PermitResponse.model_validate(permit)

    async def submit_draft(self, permit_id: UUID, actor_id: UUID) -> PermitResponse:
        permit = await self.permit_service.submit_draft(permit_id, actor_id)
        return PermitResponse.model_validate(permit)

    async def get_permit(self, permit_id: UUID) -> PermitResponse:
        permit = await self.permit_service.get_permit(permit_id)
        return PermitResponse.model_validate(permit)

    async def get_history(self, permit_id: UUID) -> PermitStatusHistoryListResponse:
        rows = await self.permit_service.get_history(permit_id)
        items = [PermitStatusHistoryResponse.model_validate(r) for r in rows]
        return PermitStatusHistoryListResponse(items=items, total=len(items))

    async def record_decision(
        self,
        permit_id: UUID,
        body: ApproverDecisionRequest,
        actor_id: UUID,
    ) -> ApproverDecisionResponse:
        status = await self.permit_service.record_approver_decision(
            permit_id,
            body.role,
            body.decision,
            actor_id,
            signature=body.signature,
            reason=body.reason,
        )
        return ApproverDecisionResponse(permit_id=permit_id, status=status)

    async def close_permit(self, permit_id: UUID, body: PermitCloseRequest, actor_id: UUID) -> PermitResponse:
        permit = await self.permit_service.close_permit(permit_id, actor_id, body.remarks)
        return PermitResponse.model_validate(permit)
