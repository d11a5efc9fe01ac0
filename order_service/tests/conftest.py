"""
Pytest configuration and fixtures for Order Service tests.

Database, broker and outbox fixtures come from the repository-level
conftest.py.
"""

from typing import AsyncGenerator
from unittest.mock import Mock

import httpx
import pytest
from fastapi import FastAPI, Request

from order_service.app.api.deps import get_async_session, get_order_outbox_relay
from order_service.app.main import app


@pytest.fixture
def test_app(session_maker, outbox_relay) -> FastAPI:
    """The order app wired to the per-test database and in-memory broker."""

    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_order_outbox_relay] = lambda: outbox_relay
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app without running its lifespan."""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_request():
    request = Mock(spec=Request)
    request.url.path = "/api/v1/orders"
    request.method = "POST"
    request.state.correlation_id = "test-correlation-id"
    request.state.user_id = "123"
    return request
