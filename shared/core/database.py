"""Database configuration shared by the fulfillment services"""

from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..models.base import FulfillmentBase


class DatabaseManager:
    """Async database manager with per-service pool settings."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 5,
        lock_timeout_ms: Optional[int] = None,
    ) -> None:
        engine_kwargs: Dict[str, Any] = {
            "echo": echo,
            "future": True,
        }

        if "sqlite" in database_url:
            # SQLite configuration for development and tests
            engine_kwargs["connect_args"] = {
                "timeout": 60,
                "check_same_thread": False,
            }
        else:
            server_settings: Dict[str, str] = {"jit": "off"}
            if lock_timeout_ms:
                # Bounds how long a settlement waits on a locked product row
                server_settings["lock_timeout"] = str(lock_timeout_ms)

            engine_kwargs.update(
                {
                    "pool_size": pool_size,
                    "max_overflow": max_overflow,
                    "pool_timeout": 45,
                    "pool_recycle": 3600,
                    "pool_pre_ping": True,
                    "pool_reset_on_return": "rollback",
                    "connect_args": {
                        "command_timeout": 30,
                        "server_settings": server_settings,
                    },
                }
            )

        self.database_url = database_url
        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_maker = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_tables(self) -> None:
        """Create all fulfillment tables that do not exist yet."""
        async with self.async_engine.begin() as conn:
            await conn.run_sync(FulfillmentBase.metadata.create_all, checkfirst=True)

    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session."""
        async with self.async_session_maker() as session:
            yield session

    async def close(self) -> None:
        """Properly close the database engine and connections."""
        await self.async_engine.dispose()
