"""
Inventory Service Event Consumers
=================================

Consumes placement events and settles them against stock.
"""

from typing import Optional

from shared.events import ORDER_PLACED, EventHandler, OrderPlacedEvent, parse_event
from shared.events.base.kafka_client import ConsumerWorker, KafkaBroker
from shared.events.outbox import OutboxRelay
from shared.utils.logging import setup_logging

from ..core.settings import get_settings
from ..services.settlement_service import SettlementService

settings = get_settings()
logger = setup_logging("inventory_service.events.consumers", log_level=settings.LOG_LEVEL)


class OrderPlacedHandler(EventHandler):
    """Handle order placed events by settling the order against stock"""

    def __init__(
        self,
        settlement_service: SettlementService,
        outbox_relay: Optional[OutboxRelay] = None,
    ):
        self.settlement_service = settlement_service
        self.outbox_relay = outbox_relay

    async def handle(self, payload: bytes) -> None:
        event = parse_event(payload, OrderPlacedEvent)

        logger.info(
            "Processing order placed event",
            extra={
                "order_id": event.order_id,
                "items_count": len(event.items),
                "operation": "order_placed_received",
            },
        )

        result = await self.settlement_service.settle(event)

        # The outcome is committed; delivery is left to the relay from here
        if not result.skipped and self.outbox_relay is not None:
            await self.outbox_relay.flush()


class InventoryEventConsumer:
    """Inventory service event consumer"""

    def __init__(
        self,
        broker: KafkaBroker,
        settlement_service: SettlementService,
        outbox_relay: Optional[OutboxRelay] = None,
    ):
        self.broker = broker
        self.handler = OrderPlacedHandler(settlement_service, outbox_relay)
        self.worker: Optional[ConsumerWorker] = None

    async def start(self) -> None:
        self.worker = await self.broker.subscribe(ORDER_PLACED, self.handler)
        logger.info(
            "Started consuming inventory service events",
            extra={"subscriptions": [ORDER_PLACED]},
        )

    async def stop(self) -> None:
        if self.worker is not None:
            await self.worker.close()
            self.worker = None
