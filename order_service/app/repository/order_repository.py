from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from shared.models import Order, OrderItem, OrderStatus, Product
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Get the existing products among ``product_ids``, keyed by id"""
        ids = set(product_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product for product in result.scalars().all()}

    async def create_order(
        self,
        user_id: int,
        lines: List[Tuple[int, int, Decimal]],
        total_amount: Decimal,
    ) -> Order:
        """Add a PENDING order with its lines. The caller commits."""
        order = Order(
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            total_amount=total_amount,
        )
        self.session.add(order)
        await self.session.flush()  # Get the order ID

        for product_id, quantity, unit_price in lines:
            self.session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    quantity=quantity,
                    price=unit_price,
                )
            )
        await self.session.flush()
        return order

    async def get_order_by_id(self, order_id: int) -> Optional[Order]:
        """Get order by ID with items"""
        query = (
            select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_orders_by_user_id(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """Get orders for a user, newest first, and the total count"""
        count_query = select(func.count(Order.id)).where(Order.user_id == user_id)
        count_result = await self.session.execute(count_query)
        total_count = count_result.scalar() or 0

        query = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.user_id == user_id)
            .order_by(Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        orders = list(result.scalars().all())

        return orders, total_count
