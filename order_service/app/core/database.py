"""Database configuration for Order Service"""

from typing import AsyncGenerator, Optional

from shared.core.database import DatabaseManager
from sqlalchemy.ext.asyncio import AsyncSession

from .settings import get_settings

_database_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Get the Order Service database manager, creating it on first use"""
    global _database_manager
    if _database_manager is None:
        settings = get_settings()
        _database_manager = DatabaseManager(
            database_url=settings.ORDER_DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
    return _database_manager


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async for session in get_database_manager().get_async_session():
        yield session
