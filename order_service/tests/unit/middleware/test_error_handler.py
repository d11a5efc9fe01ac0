"""
Unit tests for Order Service Error Handler.
"""

import json

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from order_service.app.middleware.error.error_handler import (
    OrderServiceErrorHandler,
    setup_order_error_handling,
)


class Quantity(BaseModel):
    quantity: int


class TestOrderServiceErrorHandler:
    @pytest.fixture
    def app(self):
        app = FastAPI()
        OrderServiceErrorHandler.setup_error_handlers(app)
        return app

    def test_setup_error_handlers(self, app):
        assert StarletteHTTPException in app.exception_handlers
        assert RequestValidationError in app.exception_handlers
        assert ValidationError in app.exception_handlers
        assert ValueError in app.exception_handlers
        assert SQLAlchemyError in app.exception_handlers
        assert Exception in app.exception_handlers

    @pytest.mark.asyncio
    async def test_http_exception_handler(self, app, mock_request):
        exc = StarletteHTTPException(status_code=400, detail="Product ID 999 not found")

        response = await app.exception_handlers[StarletteHTTPException](mock_request, exc)

        assert response.status_code == 400
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "http_error"
        assert response_data["error"]["message"] == "Product ID 999 not found"
        assert response_data["error"]["correlation_id"] == "test-correlation-id"
        assert response_data["error"]["user_id"] == "123"
        assert response_data["error"]["path"] == "/api/v1/orders"
        assert response_data["error"]["method"] == "POST"

    @pytest.mark.asyncio
    async def test_request_validation_error_handler(self, app, mock_request):
        exc = RequestValidationError(
            [
                {
                    "loc": ["body", "items"],
                    "msg": "field required",
                    "type": "missing",
                }
            ]
        )

        response = await app.exception_handlers[RequestValidationError](mock_request, exc)

        assert response.status_code == 422
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "validation_error"
        assert response_data["error"]["details"]["validation_errors"] == [
            {"field": "body.items", "message": "field required", "type": "missing"}
        ]

    @pytest.mark.asyncio
    async def test_pydantic_validation_error_handler(self, app, mock_request):
        with pytest.raises(ValidationError) as exc_info:
            Quantity(quantity="many")

        response = await app.exception_handlers[ValidationError](mock_request, exc_info.value)

        assert response.status_code == 400
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "data_validation_error"
        [detail] = response_data["error"]["details"]["validation_errors"]
        assert detail["field"] == "quantity"

    @pytest.mark.asyncio
    async def test_value_error_handler(self, app, mock_request):
        response = await app.exception_handlers[ValueError](
            mock_request, ValueError("Invalid input")
        )

        assert response.status_code == 400
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "value_error"
        assert response_data["error"]["message"] == "Invalid input"

    @pytest.mark.asyncio
    async def test_database_error_is_service_unavailable(self, app, mock_request):
        exc = OperationalError("SELECT", {}, Exception("connection refused"))

        response = await app.exception_handlers[SQLAlchemyError](mock_request, exc)

        assert response.status_code == 503
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "database_unavailable"
        assert "connection refused" not in response.body.decode()

    @pytest.mark.asyncio
    async def test_general_exception_hides_details(self, app, mock_request):
        response = await app.exception_handlers[Exception](
            mock_request, RuntimeError("database password is hunter2")
        )

        assert response.status_code == 500
        response_data = json.loads(response.body)
        assert response_data["error"]["type"] == "internal_server_error"
        assert response_data["error"]["message"] == "An internal server error occurred"
        assert response_data["error"]["details"] == {"exception_type": "RuntimeError"}
        assert "hunter2" not in response.body.decode()

    def test_create_error_response_with_details(self, mock_request):
        details = {"field": "items", "reason": "required"}

        response = OrderServiceErrorHandler._create_error_response(
            request=mock_request,
            status_code=422,
            error_type="validation_error",
            message="Validation failed",
            details=details,
        )

        assert response.status_code == 422
        response_data = json.loads(response.body)
        assert response_data["error"]["details"] == details
        assert "timestamp" in response_data["error"]

    def test_create_error_response_missing_correlation_id(self, mock_request):
        del mock_request.state.correlation_id

        response = OrderServiceErrorHandler._create_error_response(
            request=mock_request,
            status_code=500,
            error_type="server_error",
            message="Server error",
        )

        response_data = json.loads(response.body)
        assert response_data["error"]["correlation_id"] == "unknown"
        assert response_data["error"]["user_id"] == "123"
        assert "details" not in response_data["error"]

    def test_create_error_response_missing_user_id(self, mock_request):
        del mock_request.state.user_id

        response = OrderServiceErrorHandler._create_error_response(
            request=mock_request,
            status_code=401,
            error_type="http_error",
            message="Not authenticated",
        )

        response_data = json.loads(response.body)
        assert response_data["error"]["user_id"] == "anonymous"

    def test_setup_order_error_handling(self):
        app = FastAPI()
        setup_order_error_handling(app)

        assert Exception in app.exception_handlers
