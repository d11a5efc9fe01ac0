"""
Pytest configuration and fixtures shared by every service's tests.
"""

import os
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Mapping, Optional

import pytest

# Set up test environment before any settings are loaded
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Registers notification_logs on the shared metadata
import notification_service.app.models  # noqa: E402,F401
from shared.core.database import DatabaseManager  # noqa: E402
from shared.events import PublishError  # noqa: E402
from shared.events.outbox import OutboxRelay  # noqa: E402
from shared.models import Order, OrderItem, OrderStatus, OutboxEvent, Product, User  # noqa: E402
from sqlalchemy import select  # noqa: E402


class FakeBroker:
    """In-memory stand-in for KafkaBroker.publish"""

    def __init__(self) -> None:
        self.published: List[Dict[str, Any]] = []
        self.fail = False

    async def publish(
        self,
        topic: str,
        message: Any,
        key: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if self.fail:
            raise PublishError("broker unavailable")
        self.published.append(
            {"topic": topic, "message": message, "key": key, "headers": dict(headers or {})}
        )

    def messages(self, topic: str) -> List[Any]:
        return [p["message"] for p in self.published if p["topic"] == topic]

    async def health_check(self) -> bool:
        return not self.fail


@pytest.fixture
async def db_manager(tmp_path) -> AsyncGenerator[DatabaseManager, None]:
    """Fresh SQLite database per test."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def session_maker(db_manager):
    return db_manager.async_session_maker


@pytest.fixture
async def seed_catalog(session_maker) -> Dict[str, int]:
    """One customer and two products: Widget A (stock 5) and Widget B (stock 10)."""
    async with session_maker() as session:
        session.add(User(id=1, name="Ada Lovelace", email="ada@example.com"))
        session.add(
            Product(id=1, name="Widget A", price=Decimal("10.00"), stock=5, category="widgets")
        )
        session.add(
            Product(id=2, name="Widget B", price=Decimal("25.50"), stock=10, category="widgets")
        )
        await session.commit()
    return {"user_id": 1, "widget_a": 1, "widget_b": 2}


@pytest.fixture
def make_order(session_maker):
    """Insert an order directly, bypassing placement."""

    async def _make(
        user_id: int = 1,
        lines=((1, 2),),
        status: OrderStatus = OrderStatus.PENDING,
    ) -> int:
        async with session_maker() as session:
            order = Order(user_id=user_id, status=status.value, total_amount=Decimal("0"))
            session.add(order)
            await session.flush()
            for product_id, quantity in lines:
                session.add(
                    OrderItem(
                        order_id=order.id,
                        product_id=product_id,
                        quantity=quantity,
                        price=Decimal("1.00"),
                    )
                )
            await session.commit()
            return order.id

    return _make


@pytest.fixture
def stock_of(session_maker):
    async def _stock(product_id: int) -> int:
        async with session_maker() as session:
            product = await session.get(Product, product_id)
            return product.stock

    return _stock


@pytest.fixture
def order_status_of(session_maker):
    async def _status(order_id: int) -> str:
        async with session_maker() as session:
            order = await session.get(Order, order_id)
            return order.status

    return _status


@pytest.fixture
def outbox_rows(session_maker):
    async def _rows(topic: Optional[str] = None) -> List[OutboxEvent]:
        async with session_maker() as session:
            query = select(OutboxEvent).order_by(OutboxEvent.id)
            if topic:
                query = query.where(OutboxEvent.topic == topic)
            result = await session.execute(query)
            return list(result.scalars().all())

    return _rows


@pytest.fixture
def fake_broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def outbox_relay(session_maker, fake_broker) -> OutboxRelay:
    return OutboxRelay(session_maker, fake_broker, batch_size=10, poll_interval=0.01)
