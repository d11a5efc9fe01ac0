"""
Pytest configuration and fixtures for Notification Service tests.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from notification_service.app.services.notification_service import NotificationService
from shared.models import Order, OrderStatus


@pytest.fixture
def email_provider():
    provider = Mock()
    provider.send_email = AsyncMock(
        return_value={"success": True, "message_id": "msg-1", "provider": "sendgrid"}
    )
    return provider


@pytest.fixture
def notification_service(session_maker, email_provider):
    return NotificationService(session_maker, email_provider)


@pytest.fixture
def confirmed_order(session_maker):
    """Insert a CONFIRMED order with a known total."""

    async def _make(total_amount: str = "45.50") -> int:
        async with session_maker() as session:
            order = Order(
                user_id=1,
                status=OrderStatus.CONFIRMED.value,
                total_amount=Decimal(total_amount),
            )
            session.add(order)
            await session.commit()
            return order.id

    return _make
