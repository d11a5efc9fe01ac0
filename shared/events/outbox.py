"""
Transactional Outbox
====================

Services never publish to the broker inside a business transaction. They
stage the event with ``OutboxRepository.add`` in the same session as the
state change, and ``OutboxRelay`` delivers committed rows afterwards.
"""

import asyncio
import os
import uuid
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.base import utcnow
from ..models.outbox import OutboxEvent
from ..utils.logging import setup_logging
from .base import PublishError
from .base.kafka_client import KafkaBroker

logger = setup_logging("shared.events.outbox", log_level=os.getenv("LOG_LEVEL", "INFO"))


class OutboxRepository:
    """Stages events in the caller's transaction"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, topic: str, event: BaseModel, aggregate_id: int) -> OutboxEvent:
        """Add an event row; it becomes visible to the relay on commit"""
        row = OutboxEvent(
            event_id=uuid.uuid4().hex,
            topic=topic,
            event_type=topic,
            aggregate_id=str(aggregate_id),
            payload=event.model_dump(mode="json"),
            occurred_at=utcnow(),
            publish_attempts=0,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_pending(self, limit: int = 100) -> list[OutboxEvent]:
        result = await self.session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.published_at.is_(None))
            .order_by(OutboxEvent.id)
            .limit(limit)
        )
        return list(result.scalars().all())


class OutboxRelay:
    """
    Publishes committed outbox rows in id order.

    Rows are claimed with ``FOR UPDATE SKIP LOCKED`` so relays in several
    processes never publish the same row at once. A publish failure records
    the attempt and ends the batch; the row is retried on the next pass.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        broker: KafkaBroker,
        batch_size: int = 100,
        poll_interval: float = 1.0,
    ):
        self.session_maker = session_maker
        self.broker = broker
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._lock = asyncio.Lock()

    async def relay_pending(self) -> int:
        """Publish one batch of pending rows. Returns how many were published."""
        published = 0
        async with self._lock:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        select(OutboxEvent)
                        .where(OutboxEvent.published_at.is_(None))
                        .order_by(OutboxEvent.id)
                        .limit(self.batch_size)
                        .with_for_update(skip_locked=True)
                    )
                    for row in result.scalars().all():
                        if not await self._publish(row):
                            break
                        published += 1

        return published

    async def _publish(self, row: OutboxEvent) -> bool:
        """Publish a claimed row and mark it; on failure record the attempt"""
        try:
            await self.broker.publish(
                row.topic,
                row.payload,
                key=row.aggregate_id,
                headers={
                    "event_id": row.event_id,
                    "event_type": row.event_type,
                },
            )
        except PublishError as e:
            row.publish_attempts += 1
            row.last_error = str(e)
            logger.warning(
                "Outbox publish failed, will retry",
                extra={
                    "event_id": row.event_id,
                    "topic": row.topic,
                    "aggregate_id": row.aggregate_id,
                    "attempts": row.publish_attempts,
                    "error": str(e),
                    "operation": "outbox_publish_failed",
                },
            )
            return False

        row.published_at = utcnow()
        logger.info(
            "Outbox event published",
            extra={
                "event_id": row.event_id,
                "topic": row.topic,
                "aggregate_id": row.aggregate_id,
                "operation": "outbox_published",
            },
        )
        return True

    async def flush(self) -> int:
        """Relay pending rows without letting a failure reach the caller"""
        try:
            return await self.relay_pending()
        except SQLAlchemyError as e:
            logger.warning(
                "Outbox flush failed, background relay will retry",
                extra={"error": str(e), "operation": "outbox_flush_failed"},
            )
            return 0

    async def flush_event(self, event_id: str) -> bool:
        """
        Publish a single committed row, leaving any backlog to the background
        relay. Returns False if the row was not published by this call.
        """
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        select(OutboxEvent)
                        .where(
                            OutboxEvent.event_id == event_id,
                            OutboxEvent.published_at.is_(None),
                        )
                        .with_for_update(skip_locked=True)
                    )
                    row = result.scalar_one_or_none()
                    if row is None:
                        # Already published, or claimed by a relay right now
                        return False
                    return await self._publish(row)
        except SQLAlchemyError as e:
            logger.warning(
                "Outbox flush failed, background relay will retry",
                extra={"event_id": event_id, "error": str(e), "operation": "outbox_flush_failed"},
            )
            return False

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll for pending rows until ``stop_event`` is set"""
        logger.info(
            "Outbox relay started",
            extra={"poll_interval": self.poll_interval, "operation": "relay_start"},
        )
        while not stop_event.is_set():
            published = await self.flush()
            if published >= self.batch_size:
                # Backlog; go straight to the next batch
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Outbox relay stopped", extra={"operation": "relay_stop"})

    def start(self) -> asyncio.Task:
        self._stop_event = asyncio.Event()
        self.task = asyncio.create_task(self.run(self._stop_event), name="outbox-relay")
        return self.task

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self.task is not None:
            await self.task
            self.task = None
