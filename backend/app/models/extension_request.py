"""
Permit extension request model.
Extensions need their own approval round from the Site Leader and the
Safety Officer; the Area Owner does not take part.
"""

from sqlalchemy import Column, Text, Integer, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.models.permit import ApprovalStatus
from app.utils.time_utils import utc_now


class ExtensionStatus(str, enum.Enum):
    """Aggregate status of an extension request."""
    EXTENSION_REQUESTED = "Extension_Requested"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ExtensionRequest(Base):
    """A request to move a permit's end_time later."""

    __tablename__ = "permit_extensions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    permit_id = Column(Uuid(as_uuid=True), ForeignKey("permits.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    original_end_time = Column(DateTime(timezone=True), nullable=False)
    new_end_time = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=False)

    status = Column(
        SQLEnum(ExtensionStatus),
        nullable=False,
        default=ExtensionStatus.EXTENSION_REQUESTED,
        index=True,
    )

    site_leader_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    site_leader_status = Column(SQLEnum(ApprovalStatus), nullable=True)
    site_leader_decided_at = Column(DateTime(timezone=True), nullable=True)
    site_leader_signature = Column(Text, nullable=True)
    site_leader_remarks = Column(Text, nullable=True)

    safety_officer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    safety_officer_status = Column(SQLEnum(ApprovalStatus), nullable=True)
    safety_officer_decided_at = Column(DateTime(timezone=True), nullable=True)
    safety_officer_signature = Column(Text, nullable=True)
    safety_officer_remarks = Column(Text, nullable=True)

    rejection_reason = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    permit = relationship("Permit", back_populates="extensions")
    requested_by = relationship("User", foreign_keys=[requested_by_user_id])
