"""
Startup and shutdown sequence shared by the fulfillment services.

Each service creates its tables, then starts its event infrastructure
(broker connection, consumers, outbox relay). A failure at either step
tears down whatever already started and aborts startup.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .database import DatabaseManager
from .settings import FulfillmentSettings

InitEvents = Callable[[async_sessionmaker[AsyncSession]], Awaitable[None]]
CloseEvents = Callable[[], Awaitable[None]]


def _elapsed_ms(since: float) -> int:
    return int((time.time() - since) * 1000)


def service_lifespan(
    settings: FulfillmentSettings,
    logger: logging.Logger,
    get_database_manager: Callable[[], DatabaseManager],
    init_events: InitEvents,
    close_events: CloseEvents,
) -> Callable[[FastAPI], Any]:
    """Build a FastAPI lifespan for one service."""
    service = settings.SERVICE_NAME

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        startup_start = time.time()
        database_manager = get_database_manager()
        logger.info(
            f"Starting {service} initialization",
            extra={
                "environment": settings.ENVIRONMENT,
                "debug_mode": settings.DEBUG,
                "file_logging_enabled": settings.enable_file_logging,
                "service_version": settings.APP_VERSION,
            },
        )

        try:
            step_start = time.time()
            await database_manager.create_tables()
            db_ms = _elapsed_ms(step_start)

            step_start = time.time()
            await init_events(database_manager.async_session_maker)
            events_ms = _elapsed_ms(step_start)
        except Exception as e:
            logger.error(
                f"Failed to start {service}",
                exc_info=True,
                extra={
                    "startup_duration_ms": _elapsed_ms(startup_start),
                    "error_type": type(e).__name__,
                },
            )
            try:
                await close_events()
            finally:
                await database_manager.close()
            raise

        logger.info(
            f"{service} started successfully",
            extra={
                "total_startup_duration_ms": _elapsed_ms(startup_start),
                "database_init_ms": db_ms,
                "event_init_ms": events_ms,
            },
        )

        yield

        shutdown_start = time.time()
        logger.info(f"Starting {service} shutdown")
        try:
            await close_events()
        finally:
            await database_manager.close()
        logger.info(
            f"{service} shutdown completed",
            extra={"shutdown_duration_ms": _elapsed_ms(shutdown_start)},
        )

    return lifespan
