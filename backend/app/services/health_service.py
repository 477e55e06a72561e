"""
Health service.
Reports database connectivity and the state of the reminder scheduler.
"""

import time
from typing import Optional

from app.db.repositories.health_repository import HealthRepository
from app.db.session import get_sessionmaker
from app.schemas.health import HealthResponse
from app.services.reminder_scheduler import ReminderScheduler


class HealthService:
    """Service for health check operations."""

    def __init__(self, scheduler: Optional[ReminderScheduler] = None):
        self.start_time = time.time()
        self.scheduler = scheduler

    async def get_health(self) -> HealthResponse:
        uptime_seconds = int(time.time() - self.start_time)

        checks = {}
        try:
            async with get_sessionmaker()() as session:
                db_ok = await HealthRepository(session).check_database()
            checks["database"] = "ok" if db_ok else "error"
        except Exception as e:
            checks["database"] = f"error: {e}"

        scheduler = self.scheduler.status() if self.scheduler else {"enabled": False, "running": False}
        if scheduler.get("enabled"):
            checks["reminder_scheduler"] = "ok" if scheduler.get("running") else "stopped"

        status = "ok" if all(check == "ok" for check in checks.values()) else "degraded"

        return HealthResponse(
            status=status,
            uptime=f"PT{uptime_seconds}S",  # ISO 8601 duration
            checks=checks,
            scheduler=scheduler,
        )
