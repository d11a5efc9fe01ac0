"""
Order placement: validates the requested items, records a PENDING order and
stages the placement event in the same transaction.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from shared.events import ORDER_PLACED, OrderLineItem, OrderPlacedEvent
from shared.events.outbox import OutboxRelay, OutboxRepository
from shared.models import Order
from shared.utils.logging import setup_logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.settings import get_settings
from ..repository.order_repository import OrderRepository

logger = setup_logging("order_service.services.order", log_level=get_settings().LOG_LEVEL)


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        outbox_relay: Optional[OutboxRelay] = None,
        max_order_items: Optional[int] = None,
    ):
        self.session = session
        self.outbox_relay = outbox_relay
        self.order_repository = OrderRepository(session)
        self.max_order_items = (
            max_order_items
            if max_order_items is not None
            else get_settings().MAX_ORDER_ITEMS
        )

    def _validate_items(self, items: List[Dict[str, Any]]) -> None:
        """Validate order items before anything is read or written"""
        if not items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order must contain at least one item",
            )

        if len(items) > self.max_order_items:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Order cannot contain more than {self.max_order_items} items",
            )

        for item in items:
            if item.get("quantity", 0) <= 0:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Item quantity must be greater than 0",
                )

    async def place_order(
        self, user_id: int, items: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Create a PENDING order and stage its placement event.

        Stock is not checked or reserved here; settlement decides. The
        order, its lines and the outbox row commit together, so an order
        never exists without its placement event.
        """
        self._validate_items(items)

        products = await self.order_repository.get_products(
            item["product_id"] for item in items
        )
        for item in items:
            if item["product_id"] not in products:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Product ID {item['product_id']} not found",
                )

        total_amount = Decimal("0")
        lines = []
        for item in items:
            unit_price = Decimal(products[item["product_id"]].price)
            total_amount += unit_price * item["quantity"]
            lines.append((item["product_id"], item["quantity"], unit_price))

        try:
            order = await self.order_repository.create_order(
                user_id=user_id, lines=lines, total_amount=total_amount
            )
            outbox_row = await OutboxRepository(self.session).add(
                ORDER_PLACED,
                OrderPlacedEvent(
                    order_id=order.id,
                    user_id=user_id,
                    items=[
                        OrderLineItem(product_id=product_id, quantity=quantity)
                        for product_id, quantity, _ in lines
                    ],
                    total_amount=total_amount,
                ),
                aggregate_id=order.id,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Error creating order",
                extra={"user_id": user_id, "error": str(e)},
                exc_info=True,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create order.",
            )

        logger.info(
            "Order placed successfully.",
            extra={
                "order_id": order.id,
                "user_id": user_id,
                "items_count": len(lines),
                "total_amount": str(total_amount),
            },
        )

        if self.outbox_relay is not None:
            # The background relay owns any older backlog
            await self.outbox_relay.flush_event(outbox_row.event_id)

        return {
            "order_id": order.id,
            "status": order.status,
            "total_amount": total_amount,
        }

    async def get_order(self, order_id: int, user_id: int) -> Order:
        order = await self.order_repository.get_order_by_id(order_id)
        if order is None or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    async def list_orders(
        self, user_id: int, skip: int = 0, limit: int = 50
    ) -> Dict[str, Any]:
        """
        List orders for a user with pagination
        """
        orders, total_count = await self.order_repository.get_orders_by_user_id(
            user_id=user_id, skip=skip, limit=limit
        )

        logger.info(
            "Orders listed successfully.",
            extra={
                "user_id": user_id,
                "total_count": total_count,
                "returned_count": len(orders),
            },
        )

        return {"orders": orders, "total": total_count, "skip": skip, "limit": limit}
