"""
Extension controller - coordinates service calls.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.services.alert_dispatcher import AlertDispatcher
from app.services.extension_service import ExtensionService
from app.schemas.extension import ExtensionCreate, ExtensionDecisionResponse, ExtensionResponse
from app.schemas.permit import ApproverDecisionRequest


class ExtensionController(BaseController):
    """Controller for extension request operations."""

    def __init__(self, session: AsyncSession, dispatcher: Optional[AlertDispatcher] = None):
        self.extension_service = ExtensionService(session, dispatcher)

    async def request_extension(self, permit_id: UUID, body: ExtensionCreate, actor_id: UUID) -> ExtensionResponse:
        extension = await self.extension_service.request_extension(
            permit_id, body.new_end_time, body.reason, actor_id
        )
        return ExtensionResponse.model_validate(extension)

    async def get_extension(self, extension_id: UUID) -> ExtensionResponse:
        extension = await self.extension_service.get_extension(extension_id)
        return ExtensionResponse.model_validate(extension)

    async def list_extensions(self, permit_id: UUID) -> List[ExtensionResponse]:
        extensions = await self.extension_service.list_extensions(permit_id)
        return [ExtensionResponse.model_validate(e) for e in extensions]

    async def record_decision(
        self,
        extension_id: UUID,
        body: ApproverDecisionRequest,
        actor_id: UUID,
    ) -> ExtensionDecisionResponse:
        status = await self.extension_service.record_extension_decision(
            extension_id,
            body.role,
            body.decision,
            actor_id,
            signature=body.signature,
            reason=body.reason,
        )
        return ExtensionDecisionResponse(extension_id=extension_id, status=status)
