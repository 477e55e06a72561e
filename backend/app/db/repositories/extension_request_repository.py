"""
Extension request repository for database operations.
"""

from typing import Optional, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.extension_request import ExtensionRequest, ExtensionStatus


class ExtensionRequestRepository(BaseRepository[ExtensionRequest]):
    """Repository for permit extension requests."""

    def __init__(self, session: AsyncSession):
        super().__init__(ExtensionRequest, session)

    async def get_open_for_permit(self, permit_id: UUID) -> Optional[ExtensionRequest]:
        """Get the unresolved extension request of a permit, if any."""
        result = await self.session.execute(
            select(ExtensionRequest)
            .where(
                ExtensionRequest.permit_id == permit_id,
                ExtensionRequest.status == ExtensionStatus.EXTENSION_REQUESTED,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_by_permit(self, permit_id: UUID) -> List[ExtensionRequest]:
        """List every extension request of a permit, oldest first."""
        result = await self.session.execute(
            select(ExtensionRequest)
            .where(ExtensionRequest.permit_id == permit_id)
            .order_by(ExtensionRequest.created_at)
        )
        return list(result.scalars().all())
