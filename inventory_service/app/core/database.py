"""Database configuration for Inventory Service"""

from typing import Optional

from shared.core.database import DatabaseManager

from .settings import get_settings

_database_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Get the Inventory Service database manager, creating it on first use"""
    global _database_manager
    if _database_manager is None:
        settings = get_settings()
        _database_manager = DatabaseManager(
            database_url=settings.INVENTORY_DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            lock_timeout_ms=settings.LOCK_TIMEOUT_MS,
        )
    return _database_manager
