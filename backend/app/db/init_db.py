"""
Database initialization and bootstrapping.
"""

from app.db.base import Base
from app.db import session as db_session
from app.core.logging import get_logger

# Registers every model with Base.metadata
import app.models  # noqa: F401

logger = get_logger(__name__)


async def create_tables() -> None:
    """
    Create all database tables that do not exist yet.
    Enabled with AUTO_CREATE_TABLES; production deployments manage schema separately.
    """
    if db_session.engine is None:
        db_session.create_engine()

    async with db_session.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Database tables initialized",
        extra={"tables": sorted(Base.metadata.tables.keys())},
    )
