"""
Notification service.

Writes user-addressed notifications, enforces the once-per-permit rule for
reminders, serves the inbox and hands committed notifications to the
AlertDispatcher.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, StorageError
from app.db.repositories.notification_repository import NotificationRepository
from app.db.repositories.user_repository import UserRepository
from app.models.notification import Notification, NotificationType, ONCE_PER_PERMIT_TYPES
from app.models.user import User
from app.services.alert_dispatcher import AlertDispatcher
from app.services.base_service import BaseService
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outgoing:
    """A notification decided on but not yet written."""
    user_id: UUID
    type: NotificationType
    message: str
    extension_id: Optional[UUID] = None


@dataclass
class Delivery:
    """A committed notification with what the external channels need."""
    notification: Notification
    recipient: Optional[User]
    permit_serial: Optional[str] = None


class NotificationService(BaseService):
    """Service for notification operations."""

    def __init__(self, session: AsyncSession, dispatcher: Optional[AlertDispatcher] = None):
        self.session = session
        self.dispatcher = dispatcher
        self.notification_repo = NotificationRepository(session)
        self.user_repo = UserRepository(session)

    async def create(
        self,
        user_id: UUID,
        permit_id: Optional[UUID],
        type: NotificationType,
        message: str,
        extension_id: Optional[UUID] = None,
    ) -> Notification:
        """Stage one notification in the current transaction."""
        return await self.notification_repo.create(
            user_id=user_id,
            permit_id=permit_id,
            extension_id=extension_id,
            type=type,
            message=message,
            dedup_key=type.value if type in ONCE_PER_PERMIT_TYPES and permit_id else None,
        )

    async def exists(self, permit_id: UUID, type: NotificationType) -> bool:
        return await self.notification_repo.exists(permit_id, type)

    async def create_once(
        self,
        user_id: UUID,
        permit_id: UUID,
        type: NotificationType,
        message: str,
    ) -> Optional[Notification]:
        """
        Create and commit a once-per-permit notification.

        Returns None when one already exists, including when a concurrent
        writer inserted it between the existence check and the insert.
        """
        if await self.notification_repo.exists(permit_id, type):
            return None
        try:
            notification = await self.create(user_id, permit_id, type, message)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                "Notification already written by another writer",
                extra={"permit_id": str(permit_id), "type": type.value},
            )
            return None
        return notification

    async def publish(
        self,
        permit_id: Optional[UUID],
        outgoing: Sequence[Outgoing],
        permit_serial: Optional[str] = None,
    ) -> List[Delivery]:
        """
        Write and commit notifications that follow an already committed state change.

        A failure here is logged and reported as nothing published; the state
        change stays committed.
        """
        if not outgoing:
            return []
        try:
            recipients = {u.id: u for u in await self.user_repo.get_many(o.user_id for o in outgoing)}
            deliveries = []
            for item in outgoing:
                notification = await self.create(
                    item.user_id,
                    permit_id,
                    item.type,
                    item.message,
                    extension_id=item.extension_id,
                )
                deliveries.append(Delivery(notification, recipients.get(item.user_id), permit_serial))
            await self._commit()
        except (SQLAlchemyError, StorageError) as e:
            await self.session.rollback()
            logger.error(
                f"Notifications not written: {e}",
                extra={"permit_id": str(permit_id) if permit_id else None, "count": len(outgoing)},
            )
            return []
        return deliveries

    async def deliver(self, deliveries: Sequence[Delivery]) -> None:
        """Send committed notifications through the external channels, best-effort."""
        if not self.dispatcher:
            return
        for delivery in deliveries:
            await self.dispatcher.dispatch(
                delivery.notification,
                delivery.recipient,
                permit_serial=delivery.permit_serial,
            )

    async def list_for_user(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False,
    ) -> Tuple[List[Notification], int]:
        """A page of the user's inbox, newest first, and their unread count."""
        items = await self.notification_repo.list_for_user(user_id, skip, limit, unread_only)
        unread = await self.notification_repo.count_unread(user_id)
        return items, unread

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        updated = await self.notification_repo.mark_read(notification_id, user_id, utc_now())
        if not updated:
            raise NotFoundError(
                "Notification not found",
                details={"notification_id": str(notification_id)},
            )
        await self._commit()
        notification = await self.notification_repo.get(notification_id)
        await self.session.refresh(notification)
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        count = await self.notification_repo.mark_all_read(user_id, utc_now())
        await self._commit()
        logger.info("Notifications marked read", extra={"user_id": str(user_id), "count": count})
        return count

    async def purge_read(self, older_than_days: int) -> int:
        """Delete read notifications older than the given age. Reminder markers survive."""
        cutoff = utc_now() - timedelta(days=older_than_days)
        count = await self.notification_repo.delete_read_before(cutoff)
        await self._commit()
        logger.info("Read notifications purged", extra={"count": count, "older_than_days": older_than_days})
        return count
