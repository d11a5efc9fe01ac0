"""Database configuration for Notification Service"""

from typing import Optional

from shared.core.database import DatabaseManager

# Registers notification_logs on the shared metadata before create_tables
from ..models import NotificationLog  # noqa: F401
from .settings import get_settings

_database_manager: Optional[DatabaseManager] = None


def get_database_manager() -> DatabaseManager:
    """Get the Notification Service database manager, creating it on first use"""
    global _database_manager
    if _database_manager is None:
        settings = get_settings()
        _database_manager = DatabaseManager(
            database_url=settings.NOTIFICATION_DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
    return _database_manager
