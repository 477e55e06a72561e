"""
API v1 router that aggregates all endpoint routers.
All routes require an acting user except health.
"""

from fastapi import APIRouter, Depends
from app.api.v1.middleware import require_actor

from app.api.v1.endpoints import (
    health,
    permits,
    extensions,
    notifications,
    reminders,
)

api_router = APIRouter()

# Public routes
api_router.include_router(health.router, tags=["health"])

# Protected routes; the acting user is resolved at the router level
api_router.include_router(
    permits.router,
    prefix="/permits",
    tags=["permits"],
    dependencies=[Depends(require_actor)],
)
api_router.include_router(
    extensions.router,
    prefix="/extensions",
    tags=["extensions"],
    dependencies=[Depends(require_actor)],
)
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(require_actor)],
)
api_router.include_router(
    reminders.router,
    prefix="/reminders",
    tags=["reminders"],
    dependencies=[Depends(require_actor)],
)
