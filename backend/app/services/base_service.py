"""
Base service class.
Services contain business logic and coordinate repositories.
"""

from abc import ABC
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidStateError, StorageError

logger = logging.getLogger(__name__)


class BaseService(ABC):
    """Base service class for all services."""

    session: AsyncSession

    async def _commit(self) -> None:
        """Commit the session, translating persistence failures into domain errors."""
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise InvalidStateError(
                "Record was changed by another request; reload and try again"
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Commit failed: {e}", extra={"service": type(self).__name__})
            raise StorageError() from e
