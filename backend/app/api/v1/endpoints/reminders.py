"""
Reminder scan endpoint.
Runs one scan on demand at the server clock.
"""

from typing import Optional
from fastapi import APIRouter, Depends

from app.api.v1.middleware import require_actor
from app.controllers.reminder_controller import ReminderController
from app.deps.di_container import get_alert_dispatcher
from app.models.user import User
from app.services.alert_dispatcher import AlertDispatcher
from app.schemas.reminder import ReminderScanRequest, ReminderScanResponse

router = APIRouter()


@router.post("/scan", response_model=ReminderScanResponse)
async def run_scan(
    body: Optional[ReminderScanRequest] = None,
    actor: User = Depends(require_actor),
    dispatcher: AlertDispatcher = Depends(get_alert_dispatcher),
):
    controller = ReminderController(dispatcher)
    return await controller.run_scan(body.now if body else None)
