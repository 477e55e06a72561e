"""
User model.
Users are maintained by the surrounding system; this service only reads them
to resolve actors, approvers and notification recipients.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Uuid
import uuid

from app.db.base import Base
from app.utils.time_utils import utc_now


class User(Base):
    """A supervisor, approver or administrator."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    role = Column(String(50), nullable=False, default="Supervisor")  # informational only
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
