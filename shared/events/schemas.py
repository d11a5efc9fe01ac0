"""
Fulfillment Event Schemas
=========================

Payloads exchanged over the broker. All events are immutable once built.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .base import PermanentMessageError

# ==============================================
# TOPICS
# ==============================================

ORDER_PLACED = "order_placed"
ORDER_CONFIRMED = "order_confirmed"
ORDER_FAILED = "order_failed"

ALL_TOPICS = (ORDER_PLACED, ORDER_CONFIRMED, ORDER_FAILED)

DEAD_LETTER_SUFFIX = ".dead_letter"


def dead_letter_topic(topic: str) -> str:
    """Name of the topic that parks undeliverable messages from ``topic``"""
    return f"{topic}{DEAD_LETTER_SUFFIX}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==============================================
# EVENT DATA SCHEMAS
# ==============================================


class FulfillmentEvent(BaseModel):
    """Base fulfillment event"""

    model_config = ConfigDict(frozen=True)

    order_id: int
    user_id: int
    timestamp: datetime = Field(default_factory=_utcnow)


class OrderLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    quantity: int = Field(gt=0)


class OrderPlacedEvent(FulfillmentEvent):
    """Announces a new PENDING order awaiting settlement"""

    items: List[OrderLineItem] = Field(min_length=1)
    total_amount: Decimal


class OrderConfirmedEvent(FulfillmentEvent):
    """Order settled: stock decremented and status CONFIRMED"""

    user_email: str


class OrderFailedEvent(FulfillmentEvent):
    """Order could not be settled and was CANCELLED"""

    user_email: str
    reason: str


EventT = TypeVar("EventT", bound=FulfillmentEvent)


def parse_event(payload: bytes, event_class: Type[EventT]) -> EventT:
    """Deserialize a broker payload.

    A payload that does not validate will never validate, so the error is
    raised as PermanentMessageError.
    """
    try:
        return event_class.model_validate_json(payload)
    except ValidationError as e:
        raise PermanentMessageError(
            f"Malformed {event_class.__name__} payload: {e.error_count()} error(s)"
        ) from e
