"""
Notification Service Event Management
Connects the broker and starts the outcome event consumers.
"""

from typing import Optional

from shared.events.base.kafka_client import KafkaBroker
from shared.utils.logging import setup_logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..events.consumers import NotificationEventConsumer
from ..providers.email_provider import EmailProvider
from ..services.notification_service import NotificationService
from .settings import get_settings

logger = setup_logging(
    "notification_service.core.events", log_level=get_settings().LOG_LEVEL
)

# Global instances
_broker: Optional[KafkaBroker] = None
_consumer: Optional[NotificationEventConsumer] = None


async def init_events(session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Initialize event consumption. Raises BrokerConnectionError if Kafka is unreachable."""
    global _broker, _consumer

    notification_service = NotificationService(
        session_maker, EmailProvider.from_settings()
    )

    _broker = KafkaBroker.from_settings(get_settings())
    await _broker.connect()

    _consumer = NotificationEventConsumer(_broker, notification_service)
    await _consumer.start()

    logger.info("Event consumption infrastructure initialized successfully")


async def close_events() -> None:
    global _broker, _consumer

    try:
        if _consumer:
            await _consumer.stop()
        if _broker:
            await _broker.close()
        logger.info("Event consumption infrastructure closed")
    finally:
        _broker = None
        _consumer = None


def get_broker() -> Optional[KafkaBroker]:
    return _broker
