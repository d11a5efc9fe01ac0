from datetime import datetime
from typing import Any

from sqlalchemy import JSON, TEXT, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import FulfillmentBaseModel, utcnow


class OutboxEvent(FulfillmentBaseModel):
    """Event staged in the same transaction as the state change it describes.

    The relay reads unpublished rows in id order, hands them to the broker
    and stamps ``published_at``.
    """

    __tablename__ = "outbox_events"

    event_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    publish_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(TEXT, nullable=True)

    __table_args__ = (Index("ix_outbox_events_published_id", "published_at", "id"),)
