"""
Permit status history repository for database operations.
"""

from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.permit import PermitStatusHistory


class PermitStatusHistoryRepository(BaseRepository[PermitStatusHistory]):
    """Repository for permit status history operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(PermitStatusHistory, session)

    async def add(self, **kwargs) -> PermitStatusHistory:
        """Stage a history row; it is flushed with the permit change."""
        instance = PermitStatusHistory(**kwargs)
        self.session.add(instance)
        return instance

    async def list_by_permit(self, permit_id: UUID):
        """List status history for a permit, oldest first."""
        result = await self.session.execute(
            select(PermitStatusHistory)
            .where(PermitStatusHistory.permit_id == permit_id)
            .order_by(PermitStatusHistory.id)
        )
        return list(result.scalars().all())
