"""
Permit repository for database operations.
"""

from datetime import datetime
from typing import Iterable, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.db.repositories.base_repository import BaseRepository
from app.models.permit import Permit, PermitStatus


class PermitRepository(BaseRepository[Permit]):
    """Repository for permit operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Permit, session)

    async def next_serial_number(self) -> int:
        """Return MAX(serial_number) + 1. Callers serialise allocation."""
        result = await self.session.execute(select(func.max(Permit.serial_number)))
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def list_ids_starting_between(
        self,
        window_start: datetime,
        window_end: datetime,
        statuses: Iterable[PermitStatus],
    ) -> List[UUID]:
        """IDs of permits in one of statuses whose start_time lies in [window_start, window_end]."""
        result = await self.session.execute(
            select(Permit.id)
            .where(
                Permit.status.in_(list(statuses)),
                Permit.start_time >= window_start,
                Permit.start_time <= window_end,
            )
            .order_by(Permit.start_time)
        )
        return list(result.scalars().all())

    async def list_ids_ending_between(
        self,
        window_start: datetime,
        window_end: datetime,
        statuses: Iterable[PermitStatus],
    ) -> List[UUID]:
        """IDs of permits in one of statuses whose end_time lies in [window_start, window_end]."""
        result = await self.session.execute(
            select(Permit.id)
            .where(
                Permit.status.in_(list(statuses)),
                Permit.end_time >= window_start,
                Permit.end_time <= window_end,
            )
            .order_by(Permit.end_time)
        )
        return list(result.scalars().all())

    async def list_ids_ended_before(
        self,
        moment: datetime,
        statuses: Iterable[PermitStatus],
    ) -> List[UUID]:
        """IDs of permits in one of statuses whose end_time is earlier than moment."""
        result = await self.session.execute(
            select(Permit.id)
            .where(
                Permit.status.in_(list(statuses)),
                Permit.end_time < moment,
            )
            .order_by(Permit.end_time)
        )
        return list(result.scalars().all())
