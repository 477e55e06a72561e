"""
Notification inbox endpoints. Users only ever see their own notifications.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from app.db.session import get_db
from app.api.v1.middleware import require_actor
from app.controllers.notification_controller import NotificationController
from app.models.user import User
from app.schemas.notification import MarkAllReadResponse, NotificationListResponse, NotificationResponse

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    """The acting user's notifications, newest first."""
    controller = NotificationController(db)
    return await controller.list_notifications(actor.id, skip, limit, unread_only)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    controller = NotificationController(db)
    return await controller.mark_all_read(actor.id)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_actor),
):
    controller = NotificationController(db)
    return await controller.mark_read(notification_id, actor.id)
