"""
User repository for database operations.
"""

from typing import Iterable, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.repositories.base_repository import BaseRepository
from app.models.user import User


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_many(self, ids: Iterable[UUID]) -> List[User]:
        """Get users by ID; unknown IDs are skipped."""
        id_list = [i for i in set(ids) if i is not None]
        if not id_list:
            return []
        result = await self.session.execute(
            select(User).where(User.id.in_(id_list))
        )
        return list(result.scalars().all())
