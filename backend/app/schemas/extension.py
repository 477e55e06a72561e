"""
Extension request Pydantic schemas.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from app.models.extension_request import ExtensionStatus
from app.models.permit import ApprovalStatus
from app.schemas.common import as_utc, require_aware


class ExtensionCreate(BaseModel):
    new_end_time: datetime
    reason: str = Field(..., max_length=2000)

    @field_validator("new_end_time")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return require_aware(v)


class ExtensionResponse(BaseModel):
    """Extension request response schema."""
    id: UUID
    permit_id: UUID
    requested_by_user_id: UUID
    original_end_time: datetime
    new_end_time: datetime
    reason: str
    status: ExtensionStatus
    site_leader_id: Optional[UUID] = None
    site_leader_status: Optional[ApprovalStatus] = None
    site_leader_decided_at: Optional[datetime] = None
    site_leader_remarks: Optional[str] = None
    safety_officer_id: Optional[UUID] = None
    safety_officer_status: Optional[ApprovalStatus] = None
    safety_officer_decided_at: Optional[datetime] = None
    safety_officer_remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    @field_validator(
        "original_end_time", "new_end_time", "site_leader_decided_at",
        "safety_officer_decided_at", "resolved_at", "created_at",
    )
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class ExtensionDecisionResponse(BaseModel):
    extension_id: UUID
    status: ExtensionStatus
