"""
Fulfillment Models

All services share one relational store. Every model inherits from
FulfillmentBaseModel which provides id, created_at and updated_at.
"""

from .base import FulfillmentBase, FulfillmentBaseModel, utcnow
from .order import Order, OrderItem, OrderStatus
from .outbox import OutboxEvent
from .product import Product
from .user import User

__all__ = [
    # Base classes
    "FulfillmentBase",
    "FulfillmentBaseModel",
    "utcnow",
    # Models
    "User",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OutboxEvent",
]
