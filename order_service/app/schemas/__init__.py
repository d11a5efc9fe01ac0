"""
Order schemas package
"""

from .order import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDetailResponse,
    OrderItemRequest,
    OrderItemResponse,
    OrderListResponse,
)

__all__ = [
    "OrderItemRequest",
    "OrderItemResponse",
    # API schemas
    "CreateOrderRequest",
    "CreateOrderResponse",
    "OrderDetailResponse",
    "OrderListResponse",
]
