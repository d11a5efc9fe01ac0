"""
Unit tests for order placement and lookup.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from order_service.app.services.order_service import OrderService
from shared.events import ORDER_PLACED, OrderLineItem, OrderPlacedEvent
from shared.events.outbox import OutboxRepository


@pytest.fixture
async def order_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def order_service(order_session, outbox_relay):
    return OrderService(order_session, outbox_relay, max_order_items=3)


class TestPlaceOrder:
    @pytest.mark.asyncio
    async def test_creates_pending_order_with_price_snapshot(
        self, order_service, seed_catalog, session_maker, order_status_of
    ):
        result = await order_service.place_order(
            user_id=1,
            items=[{"product_id": 1, "quantity": 2}, {"product_id": 2, "quantity": 1}],
        )

        assert result["status"] == "PENDING"
        assert result["total_amount"] == Decimal("45.50")
        assert await order_status_of(result["order_id"]) == "PENDING"

        order = await order_service.get_order(result["order_id"], user_id=1)
        prices = {item.product_id: Decimal(item.price) for item in order.items}
        assert prices == {1: Decimal("10.00"), 2: Decimal("25.50")}

    @pytest.mark.asyncio
    async def test_stock_is_not_touched_at_placement(
        self, order_service, seed_catalog, stock_of
    ):
        await order_service.place_order(
            user_id=1, items=[{"product_id": 1, "quantity": 500}]
        )

        assert await stock_of(1) == 5

    @pytest.mark.asyncio
    async def test_placement_event_is_staged_and_flushed(
        self, order_service, seed_catalog, fake_broker, outbox_rows
    ):
        result = await order_service.place_order(
            user_id=1, items=[{"product_id": 1, "quantity": 2}]
        )

        [row] = await outbox_rows(ORDER_PLACED)
        assert row.published_at is not None
        assert row.aggregate_id == str(result["order_id"])

        [published] = fake_broker.published
        assert published["topic"] == ORDER_PLACED
        assert published["key"] == str(result["order_id"])
        assert published["message"]["order_id"] == result["order_id"]
        assert published["message"]["user_id"] == 1
        assert published["message"]["items"] == [{"product_id": 1, "quantity": 2}]

    @pytest.mark.asyncio
    async def test_broker_outage_still_accepts_order(
        self, order_service, seed_catalog, fake_broker, outbox_rows
    ):
        fake_broker.fail = True

        result = await order_service.place_order(
            user_id=1, items=[{"product_id": 1, "quantity": 1}]
        )

        assert result["status"] == "PENDING"
        [row] = await outbox_rows(ORDER_PLACED)
        assert row.published_at is None
        assert row.publish_attempts == 1

    @pytest.mark.asyncio
    async def test_placement_leaves_older_backlog_to_the_relay(
        self, order_service, seed_catalog, fake_broker, outbox_rows, session_maker
    ):
        async with session_maker() as session:
            await OutboxRepository(session).add(
                ORDER_PLACED,
                OrderPlacedEvent(
                    order_id=99,
                    user_id=1,
                    items=[OrderLineItem(product_id=2, quantity=1)],
                    total_amount=Decimal("25.50"),
                ),
                aggregate_id=99,
            )
            await session.commit()

        result = await order_service.place_order(
            user_id=1, items=[{"product_id": 1, "quantity": 1}]
        )

        [published] = fake_broker.published
        assert published["key"] == str(result["order_id"])
        backlog, placed = await outbox_rows(ORDER_PLACED)
        assert backlog.aggregate_id == "99"
        assert backlog.published_at is None
        assert placed.published_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "items, detail",
        [
            ([], "Order must contain at least one item"),
            ([{"product_id": 1, "quantity": 0}], "Item quantity must be greater than 0"),
            ([{"product_id": 1, "quantity": -2}], "Item quantity must be greater than 0"),
            (
                [{"product_id": 1, "quantity": 1}] * 4,
                "Order cannot contain more than 3 items",
            ),
            (
                [{"product_id": 1, "quantity": 1}, {"product_id": 999, "quantity": 1}],
                "Product ID 999 not found",
            ),
        ],
    )
    async def test_rejected_orders_write_nothing(
        self, order_service, seed_catalog, fake_broker, outbox_rows, items, detail
    ):
        with pytest.raises(HTTPException) as exc_info:
            await order_service.place_order(user_id=1, items=items)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == detail
        assert await outbox_rows() == []
        assert fake_broker.published == []
        listing = await order_service.list_orders(user_id=1)
        assert listing["total"] == 0

    @pytest.mark.asyncio
    async def test_database_failure_is_500_and_rolled_back(
        self, order_service, seed_catalog, outbox_rows
    ):
        with patch.object(
            order_service.session,
            "commit",
            AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("disk I/O"))),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await order_service.place_order(
                    user_id=1, items=[{"product_id": 1, "quantity": 1}]
                )

        assert exc_info.value.status_code == 500
        assert await outbox_rows() == []


class TestOrderLookup:
    @pytest.mark.asyncio
    async def test_get_order_of_another_user_is_not_found(
        self, order_service, seed_catalog, make_order
    ):
        order_id = await make_order(user_id=1)

        with pytest.raises(HTTPException) as exc_info:
            await order_service.get_order(order_id, user_id=2)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_get_missing_order_is_not_found(self, order_service, seed_catalog):
        with pytest.raises(HTTPException) as exc_info:
            await order_service.get_order(12345, user_id=1)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_list_orders_is_newest_first_and_paginated(
        self, order_service, seed_catalog, make_order
    ):
        first = await make_order(user_id=1)
        second = await make_order(user_id=1)
        third = await make_order(user_id=1)
        await make_order(user_id=2)

        page = await order_service.list_orders(user_id=1, skip=0, limit=2)

        assert page["total"] == 3
        assert [o.id for o in page["orders"]] == [third, second]

        rest = await order_service.list_orders(user_id=1, skip=2, limit=2)
        assert [o.id for o in rest["orders"]] == [first]
