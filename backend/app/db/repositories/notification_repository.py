"""
Notification repository for database operations.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func

from app.db.repositories.base_repository import BaseRepository
from app.models.notification import Notification, NotificationType


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def exists(self, permit_id: UUID, type: NotificationType) -> bool:
        """Check whether a notification of this type exists for the permit."""
        result = await self.session.execute(
            select(Notification.id)
            .where(
                Notification.permit_id == permit_id,
                Notification.type == type,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_user(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False,
    ) -> List[Notification]:
        """List a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_for_permit(
        self,
        permit_id: UUID,
        type: Optional[NotificationType] = None,
    ) -> List[Notification]:
        """List notifications about a permit, oldest first."""
        query = select(Notification).where(Notification.permit_id == permit_id)
        if type is not None:
            query = query.where(Notification.type == type)
        result = await self.session.execute(query.order_by(Notification.created_at))
        return list(result.scalars().all())

    async def count_unread(self, user_id: UUID) -> int:
        """Count unread notifications of a user."""
        result = await self.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return int(result.scalar_one())

    async def mark_read(self, notification_id: UUID, user_id: UUID, read_at: datetime) -> bool:
        """Mark one of the user's notifications as read. Returns False if it is not theirs."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
            .values(is_read=True, read_at=func.coalesce(Notification.read_at, read_at))
        )
        await self.session.flush()
        return result.rowcount > 0

    async def mark_all_read(self, user_id: UUID, read_at: datetime) -> int:
        """Mark every unread notification of the user as read."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        await self.session.flush()
        return result.rowcount

    async def delete_read_before(self, cutoff: datetime) -> int:
        """Delete read notifications created before cutoff. Reminder markers are kept."""
        result = await self.session.execute(
            delete(Notification).where(
                Notification.is_read.is_(True),
                Notification.created_at < cutoff,
                Notification.dedup_key.is_(None),
            )
        )
        await self.session.flush()
        return result.rowcount
