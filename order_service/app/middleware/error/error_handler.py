"""
Error handlers for the Order Service API.

Every error leaves the service as
``{"error": {type, message, correlation_id, user_id, timestamp, path, method}}``
with an optional ``details`` object.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from shared.utils.logging import setup_logging
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.settings import get_settings

logger = setup_logging(
    "order_service.middleware.error", log_level=get_settings().LOG_LEVEL
)


def _request_context(request: Request) -> Dict[str, Any]:
    # correlation_id and user_id are set by the request-context dependencies
    return {
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
        "user_id": getattr(request.state, "user_id", "anonymous"),
        "path": request.url.path,
        "method": request.method,
    }


def _field_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


class OrderServiceErrorHandler:
    """Turns exceptions raised while serving a request into error bodies."""

    @staticmethod
    def setup_error_handlers(app: FastAPI) -> None:
        handler = OrderServiceErrorHandler
        app.add_exception_handler(StarletteHTTPException, handler.handle_http_error)
        app.add_exception_handler(
            RequestValidationError, handler.handle_request_validation_error
        )
        app.add_exception_handler(ValidationError, handler.handle_data_validation_error)
        app.add_exception_handler(ValueError, handler.handle_value_error)
        app.add_exception_handler(SQLAlchemyError, handler.handle_database_error)
        app.add_exception_handler(Exception, handler.handle_unexpected_error)

    @staticmethod
    async def handle_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        # Raised deliberately by services and dependencies (400, 401, 404, ...)
        return OrderServiceErrorHandler._create_error_response(
            request, exc.status_code, "http_error", str(exc.detail)
        )

    @staticmethod
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return OrderServiceErrorHandler._create_error_response(
            request,
            422,
            "validation_error",
            "Request validation failed",
            details={"validation_errors": _field_errors(exc.errors())},
        )

    @staticmethod
    async def handle_data_validation_error(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return OrderServiceErrorHandler._create_error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "data_validation_error",
            "Data validation failed",
            details={"validation_errors": _field_errors(exc.errors())},
        )

    @staticmethod
    async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return OrderServiceErrorHandler._create_error_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            "value_error",
            str(exc),
            details={"exception_type": type(exc).__name__},
        )

    @staticmethod
    async def handle_database_error(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        """Database trouble outside placement (lookups, listings); safe to retry."""
        logger.error(
            "Database error while serving request",
            extra={
                **_request_context(request),
                "exception_type": type(exc).__name__,
                "event_type": "database_error",
            },
            exc_info=exc,
        )
        return OrderServiceErrorHandler._create_error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "database_unavailable",
            "The order store is temporarily unavailable",
        )

    @staticmethod
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        """Log the failure in full; the caller only learns the exception type."""
        logger.error(
            "Unhandled exception occurred",
            extra={
                **_request_context(request),
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": "".join(traceback.format_exception(exc)),
                "event_type": "unhandled_exception",
            },
        )
        return OrderServiceErrorHandler._create_error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_server_error",
            "An internal server error occurred",
            details={"exception_type": type(exc).__name__},
        )

    @staticmethod
    def _create_error_response(
        request: Request,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        context = _request_context(request)
        error: Dict[str, Any] = {
            "type": error_type,
            "message": message,
            "correlation_id": context["correlation_id"],
            "user_id": context["user_id"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": context["path"],
            "method": context["method"],
        }
        if details:
            error["details"] = details

        if status_code < 500:
            logger.warning(
                f"Client error: {error_type}",
                extra={
                    **context,
                    "status_code": status_code,
                    "error_type": error_type,
                    "event_type": "client_error",
                },
            )

        return JSONResponse(status_code=status_code, content={"error": error})


def setup_order_error_handling(app: FastAPI) -> None:
    OrderServiceErrorHandler.setup_error_handlers(app)
    logger.info(
        "Order Service error handling configured",
        extra={"event_type": "error_handler_setup"},
    )
