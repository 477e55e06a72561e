"""
Extension request API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.db.session import get_db
from app.api.v1.middleware import require_actor
from app.controllers.extension_controller import ExtensionController
from app.deps.di_container import get_alert_dispatcher
from app.models.user import User
from app.services.alert_dispatcher import AlertDispatcher
from app.schemas.extension import ExtensionDecisionResponse, ExtensionResponse
from app.schemas.permit import ApproverDecisionRequest

router = APIRouter()


@router.get("/{extension_id}", response_model=ExtensionResponse)
async def get_extension(
    extension_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    controller = ExtensionController(db)
    return await controller.get_extension(extension_id)


@router.post("/{extension_id}/decisions", response_model=ExtensionDecisionResponse)
async def record_extension_decision(
    extension_id: UUID,
    body: ApproverDecisionRequest,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    """Record the acting approver's decision on an extension request."""
    controller = ExtensionController(db, dispatcher)
    return await controller.record_decision(extension_id, body, actor.id)
