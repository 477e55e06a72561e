"""
Alert dispatcher.
Delivers committed notifications over external channels (email, webhook).
Delivery is best-effort: failures are logged and never propagate.
"""

import logging
from typing import Optional

from app.core.integrations.http.http_client import HttpClient
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)


SUBJECTS = {
    NotificationType.APPROVAL_REQUEST: "PTW Approval Required",
    NotificationType.APPROVAL_PROGRESS: "PTW Update",
    NotificationType.APPROVED: "PTW Approved",
    NotificationType.REJECTED: "PTW Rejected",
    NotificationType.EXTENSION_REQUEST: "PTW Extension Request",
    NotificationType.EXTENSION_APPROVED: "PTW Extension Approved",
    NotificationType.EXTENSION_REJECTED: "PTW Extension Rejected",
    NotificationType.REMINDER_START: "PTW Starting Soon",
    NotificationType.REMINDER_END: "PTW Expiring Soon",
    NotificationType.REMINDER_END_CRITICAL: "CRITICAL: PTW Expiring",
    NotificationType.PERMIT_CLOSED: "PTW Closed",
}


class AlertDispatcher:
    """Fans a notification out to the configured external channels."""

    def __init__(
        self,
        email_service: Optional[EmailService] = None,
        webhook_client: Optional[HttpClient] = None,
    ):
        self.email_service = email_service
        self.webhook_client = webhook_client

    async def dispatch(
        self,
        notification: Notification,
        recipient: Optional[User],
        permit_serial: Optional[str] = None,
    ) -> None:
        """Send notification through every channel; never raises."""
        subject = SUBJECTS.get(notification.type, "PTW Notification")
        if permit_serial:
            subject = f"{subject}: {permit_serial}"

        if self.email_service and recipient and recipient.email:
            try:
                await self.email_service.send(recipient.email, subject, notification.message)
            except Exception as e:
                logger.warning(
                    f"Email delivery failed: {e}",
                    extra={"notification_id": str(notification.id), "to": recipient.email},
                )

        if self.webhook_client:
            payload = {
                "notification_id": str(notification.id),
                "type": notification.type.value,
                "user_id": str(notification.user_id),
                "permit_id": str(notification.permit_id) if notification.permit_id else None,
                "permit_serial": permit_serial,
                "subject": subject,
                "message": notification.message,
                "created_at": notification.created_at.isoformat() if notification.created_at else None,
            }
            try:
                await self.webhook_client.post_json("", payload)
            except Exception as e:
                logger.warning(
                    f"Webhook delivery failed: {e}",
                    extra={"notification_id": str(notification.id)},
                )

    async def close(self) -> None:
        if self.webhook_client:
            await self.webhook_client.close()
