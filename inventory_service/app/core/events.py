"""
Inventory Service Event Management
Connects the broker, starts the outbox relay and the settlement consumer.
"""

from typing import Optional

from shared.events.base.kafka_client import KafkaBroker
from shared.events.outbox import OutboxRelay
from shared.utils.logging import setup_logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..events.consumers import InventoryEventConsumer
from ..services.settlement_service import SettlementService
from .settings import get_settings

logger = setup_logging("inventory_service.core.events", log_level=get_settings().LOG_LEVEL)

# Global instances
_broker: Optional[KafkaBroker] = None
_outbox_relay: Optional[OutboxRelay] = None
_consumer: Optional[InventoryEventConsumer] = None


async def init_events(session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Initialize event infrastructure. Raises BrokerConnectionError if Kafka is unreachable."""
    global _broker, _outbox_relay, _consumer

    settings = get_settings()

    _broker = KafkaBroker.from_settings(settings)
    await _broker.connect()

    _outbox_relay = OutboxRelay(
        session_maker,
        _broker,
        batch_size=settings.OUTBOX_BATCH_SIZE,
        poll_interval=settings.OUTBOX_POLL_INTERVAL,
    )
    _outbox_relay.start()

    settlement_service = SettlementService(
        session_maker, settlement_timeout=settings.SETTLEMENT_TIMEOUT
    )
    _consumer = InventoryEventConsumer(_broker, settlement_service, _outbox_relay)
    await _consumer.start()

    logger.info("Event infrastructure initialized successfully")


async def close_events() -> None:
    """Stop the consumer first, then the relay, then the broker"""
    global _broker, _outbox_relay, _consumer

    try:
        if _consumer:
            await _consumer.stop()
        if _outbox_relay:
            await _outbox_relay.stop()
        if _broker:
            await _broker.close()
        logger.info("Event infrastructure closed")
    finally:
        _broker = None
        _outbox_relay = None
        _consumer = None


def get_broker() -> Optional[KafkaBroker]:
    return _broker


def get_outbox_relay() -> Optional[OutboxRelay]:
    return _outbox_relay
