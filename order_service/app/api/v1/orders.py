from typing import Optional

from fastapi import APIRouter, Query, status

from ...schemas.order import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDetailResponse,
    OrderListResponse,
)
from ...services.order_service import OrderService
from ..deps import CorrelationIdDep, CurrentUserIdDep, OrderServiceDep

router = APIRouter(prefix="/orders")


@router.get("", status_code=status.HTTP_200_OK)
async def list_orders(
    skip: int = Query(0, ge=0, description="Number of orders to skip"),
    limit: int = Query(50, ge=1, le=100, description="Number of orders to return"),
    user_id: int = CurrentUserIdDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderListResponse:
    """List user orders with pagination"""
    result = await order_service.list_orders(user_id=user_id, skip=skip, limit=limit)

    return OrderListResponse(
        orders=[OrderDetailResponse.model_validate(o) for o in result["orders"]],
        total=result["total"],
        skip=result["skip"],
        limit=result["limit"],
        message=f"Retrieved {len(result['orders'])} orders for user {user_id}",
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def create_order(
    order_data: CreateOrderRequest,
    correlation_id: Optional[str] = CorrelationIdDep,
    user_id: int = CurrentUserIdDep,
    order_service: OrderService = OrderServiceDep,
) -> CreateOrderResponse:
    """Place an order. Stock is settled asynchronously."""
    result = await order_service.place_order(
        user_id=user_id,
        items=[item.model_dump() for item in order_data.items],
    )

    return CreateOrderResponse(
        order_id=result["order_id"],
        status=result["status"],
        total_amount=result["total_amount"],
        message="Order accepted for processing",
    )


@router.get("/{order_id}", status_code=status.HTTP_200_OK)
async def get_order(
    order_id: int,
    user_id: int = CurrentUserIdDep,
    order_service: OrderService = OrderServiceDep,
) -> OrderDetailResponse:
    """Get order details by ID"""
    order = await order_service.get_order(order_id=order_id, user_id=user_id)
    return OrderDetailResponse.model_validate(order)
