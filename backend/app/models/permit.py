"""
Permit to Work models: the permit itself, its approval fields and its
status audit trail.
"""

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
import enum

from app.db.base import Base
from app.utils.time_utils import utc_now


class PermitStatus(str, enum.Enum):
    """Permit lifecycle status."""
    DRAFT = "Draft"
    PENDING_APPROVAL = "Pending_Approval"
    APPROVED = "Approved"
    ACTIVE = "Active"
    EXTENSION_REQUESTED = "Extension_Requested"
    REJECTED = "Rejected"
    CLOSED = "Closed"


class ApprovalStatus(str, enum.Enum):
    """Decision state of a single approver role."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApproverRole(str, enum.Enum):
    """Approver roles. The value is the column prefix on permits and extensions."""
    AREA_MANAGER = "area_manager"
    SAFETY_OFFICER = "safety_officer"
    SITE_LEADER = "site_leader"

    @property
    def label(self) -> str:
        return {
            ApproverRole.AREA_MANAGER: "Area Owner",
            ApproverRole.SAFETY_OFFICER: "Safety Officer",
            ApproverRole.SITE_LEADER: "Site Leader",
        }[self]


class Permit(Base):
    """A time-bounded work authorization."""

    __tablename__ = "permits"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    serial_number = Column(Integer, nullable=False, unique=True)
    permit_serial = Column(String(20), nullable=False, unique=True, index=True)  # PTW-0001

    permit_type = Column(String(100), nullable=True)
    work_location = Column(String(255), nullable=True)
    work_description = Column(Text, nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)

    status = Column(SQLEnum(PermitStatus), nullable=False, default=PermitStatus.DRAFT, index=True)
    created_by_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    # Approver assignment; status fields are only meaningful when the id is set
    area_manager_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    area_manager_status = Column(SQLEnum(ApprovalStatus), nullable=True)
    area_manager_decided_at = Column(DateTime(timezone=True), nullable=True)
    area_manager_signature = Column(Text, nullable=True)
    area_manager_remarks = Column(Text, nullable=True)

    safety_officer_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    safety_officer_status = Column(SQLEnum(ApprovalStatus), nullable=True)
    safety_officer_decided_at = Column(DateTime(timezone=True), nullable=True)
    safety_officer_signature = Column(Text, nullable=True)
    safety_officer_remarks = Column(Text, nullable=True)

    site_leader_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    site_leader_status = Column(SQLEnum(ApprovalStatus), nullable=True)
    site_leader_decided_at = Column(DateTime(timezone=True), nullable=True)
    site_leader_signature = Column(Text, nullable=True)
    site_leader_remarks = Column(Text, nullable=True)

    rejection_reason = Column(Text, nullable=True)
    rejected_by_role = Column(String(50), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closure_remarks = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    extensions = relationship(
        "ExtensionRequest",
        back_populates="permit",
        cascade="all, delete-orphan",
        order_by="ExtensionRequest.created_at",
    )
    status_history = relationship(
        "PermitStatusHistory",
        back_populates="permit",
        cascade="all, delete-orphan",
        order_by="PermitStatusHistory.id",
    )


class PermitStatusHistory(Base):
    """Audit trail for permit status changes."""

    __tablename__ = "permit_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)  # insertion order
    permit_id = Column(Uuid(as_uuid=True), ForeignKey("permits.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(SQLEnum(PermitStatus), nullable=True)
    to_status = Column(SQLEnum(PermitStatus), nullable=False)
    event = Column(String(50), nullable=False)
    changed_by_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    note = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Relationships
    permit = relationship("Permit", back_populates="status_history")
    changed_by = relationship("User", foreign_keys=[changed_by_user_id])
