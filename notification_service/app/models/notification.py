from datetime import datetime
from enum import Enum

from shared.models import FulfillmentBaseModel, utcnow
from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column


class NotificationKind(str, Enum):
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_FAILED = "order_failed"


class NotificationLog(FulfillmentBaseModel):
    """One row per email sent for an order outcome; suppresses duplicates"""

    __tablename__ = "notification_logs"

    order_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("order_id", "kind", name="uq_notification_logs_order_kind"),
    )
