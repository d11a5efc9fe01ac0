"""
Events module shared by the fulfillment services.

Broker:
    - KafkaBroker: durable publish/subscribe with bounded connect retries
    - ConsumerWorker: one-in-flight delivery, ack/redeliver, dead letters

Outbox:
    - OutboxRepository: stages events inside a business transaction
    - OutboxRelay: delivers staged events after commit

Topics:
    order_placed -> order_confirmed | order_failed
"""

from .base import (
    BrokerConnectionError,
    BrokerError,
    EventHandler,
    PermanentMessageError,
    PublishError,
)
from .schemas import (
    ALL_TOPICS,
    ORDER_CONFIRMED,
    ORDER_FAILED,
    ORDER_PLACED,
    OrderConfirmedEvent,
    OrderFailedEvent,
    OrderLineItem,
    OrderPlacedEvent,
    dead_letter_topic,
    parse_event,
)

__all__ = [
    # Errors
    "BrokerError",
    "BrokerConnectionError",
    "PublishError",
    "PermanentMessageError",
    # Handlers
    "EventHandler",
    # Topics
    "ALL_TOPICS",
    "ORDER_PLACED",
    "ORDER_CONFIRMED",
    "ORDER_FAILED",
    "dead_letter_topic",
    # Schemas
    "OrderLineItem",
    "OrderPlacedEvent",
    "OrderConfirmedEvent",
    "OrderFailedEvent",
    "parse_event",
]
