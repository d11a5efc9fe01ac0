from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class OrderItemRequest(BaseModel):
    """Order item model for API. Quantities are checked by the service."""

    product_id: int
    quantity: int


class CreateOrderRequest(BaseModel):
    """Create order request model"""

    items: List[OrderItemRequest]


class CreateOrderResponse(BaseModel):
    """Accepted order; settlement happens asynchronously"""

    order_id: int
    status: str
    total_amount: Decimal
    message: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    quantity: int
    price: Decimal


class OrderDetailResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    total_amount: Decimal
    items: List[OrderItemResponse]
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    """Order list response model"""

    orders: List[OrderDetailResponse]
    total: int
    skip: int
    limit: int
    message: Optional[str] = None
