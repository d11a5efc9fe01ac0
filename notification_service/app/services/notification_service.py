"""
Sends one email per order outcome.

Delivery is at-least-once: the log row is written only after the provider
accepts the message, so a crash in between can repeat an email but never
lose one.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from jinja2 import DictLoader, Environment, StrictUndefined
from shared.events import OrderConfirmedEvent, OrderFailedEvent
from shared.utils.logging import setup_logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.settings import get_settings
from ..models.notification import NotificationKind
from ..providers.email_provider import EmailProvider
from ..repository.notification_repository import NotificationRepository
from ..templates import ORDER_TEMPLATES

logger = setup_logging(
    "notification_service.services.notification", log_level=get_settings().LOG_LEVEL
)


class NotificationService:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        email_provider: EmailProvider,
    ):
        self.session_maker = session_maker
        self.email_provider = email_provider
        self.template_env = Environment(
            loader=DictLoader(ORDER_TEMPLATES),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render(self, kind: NotificationKind, context: Dict[str, Any]) -> tuple[str, str]:
        """Render the subject and body for a notification kind"""
        subject = self.template_env.get_template(f"{kind.value}.subject").render(**context)
        body = self.template_env.get_template(f"{kind.value}.txt").render(**context)
        return subject, body

    async def notify_order_confirmed(self, event: OrderConfirmedEvent) -> bool:
        async with self.session_maker() as session:
            total_amount = await NotificationRepository(session).get_order_total(
                event.order_id
            )

        context = {
            "order_id": event.order_id,
            "total_amount": total_amount if total_amount is not None else "N/A",
            "order_date": _format_date(event.timestamp),
        }
        return await self._send_once(
            NotificationKind.ORDER_CONFIRMED, event.order_id, event.user_email, context
        )

    async def notify_order_failed(self, event: OrderFailedEvent) -> bool:
        context = {
            "order_id": event.order_id,
            "reason": event.reason,
            "order_date": _format_date(event.timestamp),
        }
        return await self._send_once(
            NotificationKind.ORDER_FAILED, event.order_id, event.user_email, context
        )

    async def _send_once(
        self,
        kind: NotificationKind,
        order_id: int,
        recipient: Optional[str],
        context: Dict[str, Any],
    ) -> bool:
        """Send unless already sent. Returns True if an email went out."""
        if not recipient:
            logger.warning(
                "No recipient for order notification, skipping",
                extra={"order_id": order_id, "kind": kind.value},
            )
            return False

        async with self.session_maker() as session:
            if await NotificationRepository(session).already_sent(order_id, kind):
                logger.info(
                    "Notification already sent, skipping",
                    extra={"order_id": order_id, "kind": kind.value},
                )
                return False

        subject, body = self.render(kind, context)
        # Raises NotificationDeliveryError, which leads to redelivery
        result = await self.email_provider.send_email(
            to_email=recipient, subject=subject, content=body
        )

        async with self.session_maker() as session:
            try:
                await NotificationRepository(session).record_sent(order_id, kind, recipient)
                await session.commit()
            except IntegrityError:
                # A concurrent delivery recorded it first
                await session.rollback()
                logger.warning(
                    "Notification recorded concurrently",
                    extra={"order_id": order_id, "kind": kind.value},
                )

        logger.info(
            "Order notification sent",
            extra={
                "order_id": order_id,
                "kind": kind.value,
                "recipient": recipient,
                "message_id": result.get("message_id"),
            },
        )
        return True


def _format_date(timestamp: datetime) -> str:
    return timestamp.strftime("%Y-%m-%d %H:%M:%S")
