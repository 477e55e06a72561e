"""
Permit API endpoints.
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.db.session import get_db
from app.api.v1.middleware import require_actor
from app.controllers.permit_controller import PermitController
from app.controllers.extension_controller import ExtensionController
from app.deps.di_container import get_alert_dispatcher
from app.models.user import User
from app.services.alert_dispatcher import AlertDispatcher
from app.schemas.extension import ExtensionCreate, ExtensionResponse
from app.schemas.permit import (
    ApproverDecisionRequest,
    ApproverDecisionResponse,
    PermitCloseRequest,
    PermitCreate,
    PermitResponse,
    PermitStatusHistoryListResponse,
)

router = APIRouter()


@router.post("", response_model=PermitResponse, status_code=status.HTTP_201_CREATED)
async def submit_permit(
    body: PermitCreate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    """Create a permit; submitted for approval unless submit is false."""
    controller = PermitController(db, dispatcher)
    return await controller.submit_permit(body, actor.id)


@router.get("/{permit_id}", response_model=PermitResponse)
async def get_permit(
    permit_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    controller = PermitController(db)
    return await controller.get_permit(permit_id)


@router.get("/{permit_id}/history", response_model=PermitStatusHistoryListResponse)
async def get_permit_history(
    permit_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    """Status transitions of a permit, oldest first."""
    controller = PermitController(db)
    return await controller.get_history(permit_id)


@router.post("/{permit_id}/submit", response_model=PermitResponse)
async def submit_draft(
    permit_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    """Submit a Draft permit for approval."""
    controller = PermitController(db, dispatcher)
    return await controller.submit_draft(permit_id, actor.id)


@router.post("/{permit_id}/decisions", response_model=ApproverDecisionResponse)
async def record_decision(
    permit_id: UUID,
    body: ApproverDecisionRequest,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    """Record the acting approver's decision for one role."""
    controller = PermitController(db, dispatcher)
    return await controller.record_decision(permit_id, body, actor.id)


@router.post("/{permit_id}/close", response_model=PermitResponse)
async def close_permit(
    permit_id: UUID,
    body: PermitCloseRequest,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    controller = PermitController(db, dispatcher)
    return await controller.close_permit(permit_id, body, actor.id)


@router.post("/{permit_id}/extensions", response_model=ExtensionResponse, status_code=status.HTTP_201_CREATED)
async def request_extension(
    permit_id: UUID,
    body: ExtensionCreate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    """Request a later end time for an Active permit."""
    controller = ExtensionController(db, dispatcher)
    return await controller.request_extension(permit_id, body, actor.id)


@router.get("/{permit_id}/extensions", response_model=List[ExtensionResponse])
async def list_extensions(
    permit_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    controller = ExtensionController(db)
    return await controller.list_extensions(permit_id)
