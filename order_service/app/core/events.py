"""
Order Service Event Management
Connects the broker and runs the outbox relay that delivers placement events.
"""

from typing import Optional

from shared.events.base.kafka_client import KafkaBroker
from shared.events.outbox import OutboxRelay
from shared.utils.logging import setup_logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .settings import get_settings

logger = setup_logging("order_service.core.events", log_level=get_settings().LOG_LEVEL)

# Global instances
_broker: Optional[KafkaBroker] = None
_outbox_relay: Optional[OutboxRelay] = None


async def init_events(session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Initialize event publishing. Raises BrokerConnectionError if Kafka is unreachable."""
    global _broker, _outbox_relay

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

    logger.info("Event publishing infrastructure initialized successfully")


async def close_events() -> None:
    """Close event publishing infrastructure"""
    global _broker, _outbox_relay

    try:
        if _outbox_relay:
            await _outbox_relay.stop()
        if _broker:
            await _broker.close()
        logger.info("Event publishing infrastructure closed")
    finally:
        _broker = None
        _outbox_relay = None


def get_broker() -> Optional[KafkaBroker]:
    return _broker


def get_outbox_relay() -> Optional[OutboxRelay]:
    """Get the outbox relay instance"""
    return _outbox_relay
