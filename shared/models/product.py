from decimal import Decimal

from sqlalchemy import TEXT, CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import FulfillmentBaseModel


class Product(FulfillmentBaseModel):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(TEXT, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # Mutated only by inventory settlement, under a row lock
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), index=True, nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="positive_price"),
        CheckConstraint("stock >= 0", name="positive_stock"),
    )
