"""
Notification controller - coordinates service calls.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.controllers.base_controller import BaseController
from app.services.notification_service import NotificationService
from app.schemas.notification import MarkAllReadResponse, NotificationListResponse, NotificationResponse


class NotificationController(BaseController):
    """Controller for the notification inbox."""

    def __init__(self, session: AsyncSession):
        self.notification_service = NotificationService(session)

    async def list_notifications(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False,
    ) -> NotificationListResponse:
        items, unread = await self.notification_service.list_for_user(user_id, skip, limit, unread_only)
        return NotificationListResponse(
            items=[NotificationResponse.model_validate(n) for n in items],
            total=len(items),
            unread_count=unread,
        )

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> NotificationResponse:
        notification = await self.notification_service.mark_read(notification_id, user_id)
        return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, user_id: UUID) -> MarkAllReadResponse:
        return MarkAllReadResponse(updated=await self.notification_service.mark_all_read(user_id))
