"""Inventory repository for settlement database operations"""

from typing import Dict, Iterable, Optional

from shared.models import Order, OrderStatus, Product, User, utcnow
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession


class InventoryRepository:
    """Row-locking reads and conditional writes used inside one settlement transaction"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lock_order(self, order_id: int) -> Optional[Order]:
        """Get order by ID and hold its row lock until the transaction ends"""
        query = select(Order).where(Order.id == order_id).with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def lock_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Lock every existing product in ``product_ids``, in ascending id order"""
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        query = (
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
        )
        result = await self.db.execute(query)
        return {product.id: product for product in result.scalars().all()}

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Decrement stock only if enough remains. Returns False if no row matched."""
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def resolve_order(self, order_id: int, new_status: OrderStatus) -> bool:
        """Move a PENDING order to ``new_status``. Returns False if it was not PENDING."""
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING.value)
            .values(status=new_status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def get_user_email(self, user_id: int) -> Optional[str]:
        query = select(User.email).where(User.id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
