from decimal import Decimal
from typing import Optional

from shared.models import Order
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.notification import NotificationKind, NotificationLog


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def already_sent(self, order_id: int, kind: NotificationKind) -> bool:
        """Whether the outcome email for this order was already sent"""
        query = select(NotificationLog.id).where(
            NotificationLog.order_id == order_id,
            NotificationLog.kind == kind.value,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none() is not None

    async def record_sent(
        self, order_id: int, kind: NotificationKind, recipient: str
    ) -> NotificationLog:
        entry = NotificationLog(order_id=order_id, kind=kind.value, recipient=recipient)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_order_total(self, order_id: int) -> Optional[Decimal]:
        query = select(Order.total_amount).where(Order.id == order_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
