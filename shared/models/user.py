from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import FulfillmentBaseModel


class User(FulfillmentBaseModel):
    """Customer account. Owned by the auth service; read here to resolve emails."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
