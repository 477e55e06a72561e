"""
Database models.
Import all models here to ensure they're registered with Base.
"""

from app.models.user import User
from app.models.permit import (
    Permit,
    PermitStatus,
    PermitStatusHistory,
    ApprovalStatus,
    ApproverRole,
)
from app.models.extension_request import ExtensionRequest, ExtensionStatus
from app.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "Permit",
    "PermitStatus",
    "PermitStatusHistory",
    "ApprovalStatus",
    "ApproverRole",
    "ExtensionRequest",
    "ExtensionStatus",
    "Notification",
    "NotificationType",
]
