"""
Notification Pydantic schemas.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from app.models.notification import NotificationType
from app.schemas.common import as_utc


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    permit_id: Optional[UUID] = None
    extension_id: Optional[UUID] = None
    type: NotificationType
    message: str
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    @field_validator("read_at", "created_at")
    @classmethod
    def _utc(cls, v):
        return as_utc(v)

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
