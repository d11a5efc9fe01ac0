"""
Inventory settlement: turns one placement event into a terminal order state
and exactly one outcome event.

The whole settlement is one transaction. The order row and every referenced
product row are locked first; all line items are checked against the locked
stock before anything is written, so a CANCELLED order leaves stock untouched.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from shared.events import (
    ORDER_CONFIRMED,
    ORDER_FAILED,
    OrderConfirmedEvent,
    OrderFailedEvent,
    OrderLineItem,
    OrderPlacedEvent,
    PermanentMessageError,
)
from shared.events.outbox import OutboxRepository
from shared.models import OrderStatus, Product
from shared.utils.logging import setup_logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.settings import get_settings
from ..repository.inventory_repository import InventoryRepository

logger = setup_logging(
    "inventory_service.services.settlement", log_level=get_settings().LOG_LEVEL
)


class SettlementConflictError(Exception):
    """A locked row changed under the settlement; the message is retried"""


@dataclass(frozen=True)
class SettlementResult:
    order_id: int
    status: OrderStatus
    reason: Optional[str] = None
    # True when the order was already terminal and nothing was written
    skipped: bool = False


def find_shortfall(
    items: List[OrderLineItem], products: Dict[int, Product]
) -> Optional[str]:
    """Check line items in order against locked stock.

    Returns the reason for the first line that cannot be satisfied, or None
    when every line fits. Repeated products draw from the same remaining stock.
    """
    remaining = {product_id: product.stock for product_id, product in products.items()}

    for item in items:
        product = products.get(item.product_id)
        if product is None:
            return f"product #{item.product_id} not found"

        available = remaining[item.product_id]
        if available < item.quantity:
            return (
                f"insufficient stock for {product.name}, "
                f"available={available}, requested={item.quantity}"
            )
        remaining[item.product_id] = available - item.quantity

    return None


class SettlementService:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        settlement_timeout: float = 30.0,
    ):
        self.session_maker = session_maker
        self.settlement_timeout = settlement_timeout

    async def settle(self, event: OrderPlacedEvent) -> SettlementResult:
        """
        Settle one order under a deadline.

        Business failures (missing product, short stock) return a CANCELLED
        result. Database errors, lock timeouts and the deadline propagate so
        the message is redelivered; the transaction is rolled back first.
        """
        return await asyncio.wait_for(
            self._settle(event), timeout=self.settlement_timeout
        )

    async def _settle(self, event: OrderPlacedEvent) -> SettlementResult:
        async with self.session_maker() as session:
            async with session.begin():
                repository = InventoryRepository(session)

                order = await repository.lock_order(event.order_id)
                if order is None:
                    raise PermanentMessageError(f"Order #{event.order_id} not found")

                if order.status != OrderStatus.PENDING.value:
                    logger.info(
                        "Order already settled, skipping redelivery",
                        extra={
                            "order_id": order.id,
                            "status": order.status,
                            "operation": "settle_skipped",
                        },
                    )
                    return SettlementResult(
                        order_id=order.id,
                        status=OrderStatus(order.status),
                        skipped=True,
                    )

                products = await repository.lock_products(
                    item.product_id for item in event.items
                )
                reason = find_shortfall(event.items, products)

                if reason is None:
                    await self._apply_decrements(repository, event.items)
                    new_status = OrderStatus.CONFIRMED
                else:
                    new_status = OrderStatus.CANCELLED

                if not await repository.resolve_order(order.id, new_status):
                    raise SettlementConflictError(
                        f"Order #{order.id} left PENDING during settlement"
                    )

                user_email = await repository.get_user_email(order.user_id)
                if user_email is None:
                    logger.warning(
                        "No email on file for order owner",
                        extra={"order_id": order.id, "user_id": order.user_id},
                    )
                    user_email = ""

                outbox = OutboxRepository(session)
                if new_status is OrderStatus.CONFIRMED:
                    await outbox.add(
                        ORDER_CONFIRMED,
                        OrderConfirmedEvent(
                            order_id=order.id,
                            user_id=order.user_id,
                            user_email=user_email,
                        ),
                        aggregate_id=order.id,
                    )
                else:
                    await outbox.add(
                        ORDER_FAILED,
                        OrderFailedEvent(
                            order_id=order.id,
                            user_id=order.user_id,
                            user_email=user_email,
                            reason=reason,
                        ),
                        aggregate_id=order.id,
                    )

        if reason is None:
            logger.info(
                "Order confirmed",
                extra={
                    "order_id": event.order_id,
                    "items_count": len(event.items),
                    "operation": "settle_confirmed",
                },
            )
        else:
            logger.warning(
                "Order cancelled",
                extra={
                    "order_id": event.order_id,
                    "reason": reason,
                    "operation": "settle_cancelled",
                },
            )

        return SettlementResult(order_id=event.order_id, status=new_status, reason=reason)

    async def _apply_decrements(
        self, repository: InventoryRepository, items: List[OrderLineItem]
    ) -> None:
        totals: Dict[int, int] = OrderedDict()
        for item in sorted(items, key=lambda i: i.product_id):
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity

        for product_id, quantity in totals.items():
            if not await repository.decrement_stock(product_id, quantity):
                raise SettlementConflictError(
                    f"Stock for product #{product_id} changed under lock"
                )
