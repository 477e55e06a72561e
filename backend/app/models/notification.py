"""
Notification model.
Append-only, user-addressed messages; only the read state ever changes.
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.utils.time_utils import utc_now


class NotificationType(str, enum.Enum):
    """Closed set of notification types."""
    APPROVAL_REQUEST = "APPROVAL_REQUEST"
    APPROVAL_PROGRESS = "APPROVAL_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXTENSION_REQUEST = "EXTENSION_REQUEST"
    EXTENSION_APPROVED = "EXTENSION_APPROVED"
    EXTENSION_REJECTED = "EXTENSION_REJECTED"
    REMINDER_START = "REMINDER_START"
    REMINDER_END = "REMINDER_END"
    REMINDER_END_CRITICAL = "REMINDER_END_CRITICAL"
    PERMIT_CLOSED = "PERMIT_CLOSED"


# At most one notification of each of these types may exist per permit
ONCE_PER_PERMIT_TYPES = frozenset({
    NotificationType.REMINDER_START,
    NotificationType.REMINDER_END,
    NotificationType.REMINDER_END_CRITICAL,
})


class Notification(Base):
    """A message addressed to one user, optionally about one permit."""

    __tablename__ = "notifications"
    __table_args__ = (
        # NULL dedup_key never collides, so only once-per-permit types are constrained
        UniqueConstraint("permit_id", "dedup_key", name="uq_notifications_permit_dedup"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    permit_id = Column(Uuid(as_uuid=True), ForeignKey("permits.id", ondelete="CASCADE"), nullable=True, index=True)
    extension_id = Column(Uuid(as_uuid=True), ForeignKey("permit_extensions.id", ondelete="SET NULL"), nullable=True)
    type = Column(SQLEnum(NotificationType), nullable=False, index=True)
    message = Column(Text, nullable=False)
    dedup_key = Column(String(50), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
