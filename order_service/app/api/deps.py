"""
FastAPI dependency injection for Order Service

Provides dependency injection for services, database sessions, the caller's
user id and correlation ID management. Event delivery is handled by the
core.events module.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from shared.events.outbox import OutboxRelay
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db_session
from ..core.events import get_outbox_relay
from ..services.order_service import OrderService

# =====================================================
# DATABASE DEPENDENCIES
# =====================================================


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide async database session"""
    async for session in get_db_session():
        yield session


# =====================================================
# EVENT DEPENDENCIES
# =====================================================


def get_order_outbox_relay() -> Optional[OutboxRelay]:
    """Provide the OutboxRelay instance, if events are initialized"""
    return get_outbox_relay()


# =====================================================
# SERVICE DEPENDENCIES
# =====================================================


def get_order_service(
    session: AsyncSession = Depends(get_async_session),
    outbox_relay: Optional[OutboxRelay] = Depends(get_order_outbox_relay),
) -> OrderService:
    """Provide OrderService instance with database and outbox relay"""
    return OrderService(session, outbox_relay)


# =====================================================
# REQUEST CONTEXT DEPENDENCIES
# =====================================================


def get_correlation_id(request: Request) -> Optional[str]:
    """Extract correlation ID from request headers"""
    correlation_id = request.headers.get("X-Correlation-ID") or request.headers.get(
        "x-request-id"
    )
    if correlation_id:
        request.state.correlation_id = correlation_id
    return correlation_id


def get_current_user_id(request: Request) -> int:
    """Get the caller's user ID from the X-User-ID header set by the gateway"""
    user_id = request.headers.get("X-User-ID")
    if not user_id or not user_id.isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    request.state.user_id = int(user_id)
    return int(user_id)


# =====================================================
# COMMON DEPENDENCY ALIASES
# =====================================================

CorrelationIdDep = Depends(get_correlation_id)
DatabaseDep = Depends(get_async_session)
CurrentUserIdDep = Depends(get_current_user_id)
OrderServiceDep = Depends(get_order_service)
