"""
Permit Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from app.models.permit import ApprovalStatus, ApproverRole, PermitStatus
from app.schemas.common import as_utc, require_aware


class PermitCreate(BaseModel):
    """Supervisor's permit draft."""
    permit_type: Optional[str] = Field(None, max_length=100)
    work_location: Optional[str] = Field(None, max_length=255)
    work_description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    area_manager_id: Optional[UUID] = None
    safety_officer_id: Optional[UUID] = None
    site_leader_id: Optional[UUID] = None
    submit: bool = Field(default=True, description="False keeps the permit as a Draft")

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return require_aware(v)


class ApproverDecisionRequest(BaseModel):
    """One approver's decision. Approvals need a signature, rejections a reason."""
    role: ApproverRole
    decision: ApprovalStatus
    signature: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=2000)


class PermitCloseRequest(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class PermitResponse(BaseModel):
    """Permit response schema."""
    id: UUID
    permit_serial: str
    permit_type: Optional[str] = None
    work_location: Optional[str] = None
    work_description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: PermitStatus
    created_by_user_id: UUID

    area_manager_id: Optional[UUID] = None
    area_manager_status: Optional[ApprovalStatus] = None
    area_manager_decided_at: Optional[datetime] = None
    area_manager_remarks: Optional[str] = None
    safety_officer_id: Optional[UUID] = None
    safety_officer_status: Optional[ApprovalStatus] = None
    safety_officer_decided_at: Optional[datetime] = None
    safety_officer_remarks: Optional[str] = None
    site_leader_id: Optional[UUID] = None
    site_leader_status: Optional[ApprovalStatus] = None
    site_leader_decided_at: Optional[datetime] = None
    site_leader_remarks: Optional[str] = None

    rejection_reason: Optional[str] = None
    rejected_by_role: Optional[str] = None
    approved_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closure_remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        "start_time", "end_time", "area_manager_decided_at", "safety_officer_decided_at",
        "site_leader_decided_at", "approved_at", "activated_at", "closed_at",
        "created_at", "updated_at",
    )
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class ApproverDecisionResponse(BaseModel):
    """Result of a decision: the permit's status after it was applied."""
    permit_id: UUID
    status: PermitStatus


class PermitStatusHistoryResponse(BaseModel):
    id: int
    from_status: Optional[PermitStatus] = None
    to_status: PermitStatus
    event: str
    changed_by_user_id: Optional[UUID] = None
    note: Optional[str] = None
    changed_at: datetime

    @field_validator("changed_at")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class PermitStatusHistoryListResponse(BaseModel):
    items: List[PermitStatusHistoryResponse]
    total: int
