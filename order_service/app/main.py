"""
Order Service FastAPI Application
=================================

Accepts orders over HTTP and hands them to settlement through the outbox.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from shared.core.lifespan import service_lifespan
from shared.utils.logging import setup_logging

from order_service.app.api.v1.health import router as health_router
from order_service.app.api.v1.orders import router as orders_router
from order_service.app.core.database import get_database_manager
from order_service.app.core.events import close_events, init_events
from order_service.app.core.settings import get_settings
from order_service.app.middleware.error import setup_order_error_handling

settings = get_settings()

logger = setup_logging(
    "order_service",
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

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )
    setup_order_error_handling(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(orders_router, prefix="/api/v1", tags=["Order Management"])
    logger.info(
        "API routes configured",
        extra={"routes": ["/health", "/api/v1/orders"]},
    )

    return app


app = create_app()
