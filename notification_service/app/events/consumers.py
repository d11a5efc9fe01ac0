"""
Notification Service Event Consumers
====================================

Consumes order outcome events and emails the customer.
"""

from typing import List

from shared.events import (
    ORDER_CONFIRMED,
    ORDER_FAILED,
    EventHandler,
    OrderConfirmedEvent,
    OrderFailedEvent,
    parse_event,
)
from shared.events.base.kafka_client import ConsumerWorker, KafkaBroker
from shared.utils.logging import setup_logging

from ..core.settings import get_settings
from ..services.notification_service import NotificationService

settings = get_settings()
logger = setup_logging(
    "notification_service.events.consumers", log_level=settings.LOG_LEVEL
)


class OrderConfirmedHandler(EventHandler):
    """Handle order confirmed events to send confirmation emails"""

    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    async def handle(self, payload: bytes) -> None:
        event = parse_event(payload, OrderConfirmedEvent)
        await self.notification_service.notify_order_confirmed(event)


class OrderFailedHandler(EventHandler):
    """Handle order failed events to send cancellation emails"""

    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    async def handle(self, payload: bytes) -> None:
        event = parse_event(payload, OrderFailedEvent)
        await self.notification_service.notify_order_failed(event)


class NotificationEventConsumer:
    """Notification service event consumer"""

    def __init__(self, broker: KafkaBroker, notification_service: NotificationService):
        self.broker = broker
        self.notification_service = notification_service
        self.workers: List[ConsumerWorker] = []

    async def start(self) -> None:
        self.workers.append(
            await self.broker.subscribe(
                ORDER_CONFIRMED, OrderConfirmedHandler(self.notification_service)
            )
        )
        self.workers.append(
            await self.broker.subscribe(
                ORDER_FAILED, OrderFailedHandler(self.notification_service)
            )
        )

        logger.info(
            "Started consuming notification service events",
            extra={"subscriptions": [ORDER_CONFIRMED, ORDER_FAILED]},
        )

    async def stop(self) -> None:
        workers, self.workers = self.workers, []
        for worker in workers:
            await worker.close()
