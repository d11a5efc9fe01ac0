"""
Notification Service FastAPI Application
========================================

Consumes order outcome events and emails customers. Exposes only /health.
"""

from fastapi import FastAPI
from shared.core.lifespan import service_lifespan
from shared.utils.logging import setup_logging

from notification_service.app.api.v1.health import router as health_router
from notification_service.app.core.database import get_database_manager
from notification_service.app.core.events import close_events, init_events
from notification_service.app.core.settings import get_settings

settings = get_settings()

logger = setup_logging(
    "notification_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=settings.enable_file_logging,
)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=service_lifespan(
            settings, logger, get_database_manager, init_events, close_events
        ),
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.include_router(health_router, tags=["Health"])

    return app


app = create_app()
