import asyncio
import json
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer  # type: ignore
from aiokafka.admin import AIOKafkaAdminClient, NewTopic  # type: ignore
from aiokafka.errors import KafkaError  # type: ignore
from pydantic import BaseModel

from ...utils.logging import setup_logging
from ..schemas import ALL_TOPICS, dead_letter_topic
from . import (
    BrokerConnectionError,
    EventHandler,
    PermanentMessageError,
    PublishError,
)

logger = setup_logging("shared.events.kafka", log_level=os.getenv("LOG_LEVEL", "INFO"))

Message = Union[BaseModel, Mapping[str, Any], bytes]


def _encode_key(key: Optional[Union[str, bytes, int]]) -> Optional[bytes]:
    if key is None:
        return None
    if isinstance(key, bytes):
        return key
    return str(key).encode("utf-8")


def _serialize(message: Message) -> bytes:
    if isinstance(message, bytes):
        return message
    if isinstance(message, BaseModel):
        return message.model_dump_json().encode("utf-8")
    return json.dumps(dict(message), default=str).encode("utf-8")


class ConsumerWorker:
    """
    Delivers messages from one subscription to its handler, one at a time.

    Handler success commits the offset. Handler failure seeks back to the
    same offset so the message is delivered again after ``redelivery_delay``.
    Permanent failures, and messages that exceed ``max_redeliveries``, are
    copied to the topic's dead-letter topic and committed.
    """

    def __init__(
        self,
        broker: "KafkaBroker",
        consumer: AIOKafkaConsumer,
        topic: str,
        handler: EventHandler,
        max_redeliveries: int = 5,
        redelivery_delay: float = 1.0,
        poll_timeout_ms: int = 1000,
        stop_event: Optional[asyncio.Event] = None,
    ):
        self.broker = broker
        self.consumer = consumer
        self.topic = topic
        self.handler = handler
        self.max_redeliveries = max_redeliveries
        self.redelivery_delay = redelivery_delay
        self.poll_timeout_ms = poll_timeout_ms
        self.stop_event = stop_event or asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        # Failed attempts per (partition, offset); reset on restart
        self._attempts: Dict[Tuple[int, int], int] = {}

    def start(self) -> asyncio.Task:
        self.task = asyncio.create_task(self.run(), name=f"consumer-{self.topic}")
        return self.task

    async def run(self) -> None:
        logger.info(
            "Consumer worker started",
            extra={"topic": self.topic, "operation": "worker_start"},
        )
        while not self.stop_event.is_set():
            try:
                batch = await self.consumer.getmany(
                    timeout_ms=self.poll_timeout_ms, max_records=1
                )
            except KafkaError as e:
                logger.error(
                    "Kafka poll failed",
                    extra={
                        "topic": self.topic,
                        "error": str(e),
                        "operation": "poll_error",
                    },
                )
                await self._pause(self.redelivery_delay)
                continue

            for tp, messages in batch.items():
                for message in messages:
                    if self.stop_event.is_set():
                        break
                    try:
                        await self.process(tp, message)
                    except Exception as e:
                        # Offset is left uncommitted; the message comes back
                        # after the next rebalance or restart
                        logger.error(
                            "Unexpected error processing message",
                            exc_info=True,
                            extra={
                                "topic": self.topic,
                                "partition": tp.partition,
                                "offset": message.offset,
                                "error_type": type(e).__name__,
                                "operation": "process_error",
                            },
                        )
                        self._attempts.pop((tp.partition, message.offset), None)
                        await self._pause(self.redelivery_delay)

        logger.info(
            "Consumer worker stopped",
            extra={"topic": self.topic, "operation": "worker_stop"},
        )

    async def process(self, tp: Any, message: Any) -> None:
        """Run the handler for one message and settle its offset"""
        key = (tp.partition, message.offset)
        attempts = self._attempts.get(key, 0) + 1

        try:
            await self.handler.handle(message.value)
        except PermanentMessageError as e:
            logger.error(
                "Permanent message failure, dead-lettering",
                extra={
                    "topic": self.topic,
                    "partition": tp.partition,
                    "offset": message.offset,
                    "error": str(e),
                    "operation": "permanent_failure",
                },
            )
            await self._dead_letter(tp, message, e, attempts)
            return
        except Exception as e:
            if self.max_redeliveries and attempts > self.max_redeliveries:
                logger.error(
                    "Redelivery limit reached, dead-lettering",
                    extra={
                        "topic": self.topic,
                        "partition": tp.partition,
                        "offset": message.offset,
                        "attempts": attempts,
                        "error": str(e),
                        "operation": "redelivery_exhausted",
                    },
                )
                await self._dead_letter(tp, message, e, attempts)
                return

            self._attempts[key] = attempts
            logger.warning(
                "Handler failed, message will be redelivered",
                extra={
                    "topic": self.topic,
                    "partition": tp.partition,
                    "offset": message.offset,
                    "attempts": attempts,
                    "error": str(e),
                    "operation": "redeliver",
                },
            )
            self._seek_back(tp, message)
            await self._pause(self.redelivery_delay)
            return

        await self._commit(tp, message)

    async def _dead_letter(
        self, tp: Any, message: Any, error: Exception, attempts: int
    ) -> None:
        target = dead_letter_topic(self.topic)
        try:
            await self.broker.publish(
                target,
                message.value,
                key=message.key,
                headers={"error": str(error), "attempts": str(attempts)},
            )
        except PublishError as e:
            # The message cannot be parked, so it stays on the topic
            logger.error(
                "Dead-letter publish failed, message will be redelivered",
                extra={
                    "topic": self.topic,
                    "dead_letter_topic": target,
                    "offset": message.offset,
                    "error": str(e),
                    "operation": "dead_letter_failed",
                },
            )
            self._seek_back(tp, message)
            await self._pause(self.redelivery_delay)
            return

        await self._commit(tp, message)

    def _seek_back(self, tp: Any, message: Any) -> None:
        """Rewind to ``message`` so it is fetched again"""
        try:
            self.consumer.seek(tp, message.offset)
        except KafkaError as e:
            # Partition revoked by a rebalance; its new owner redelivers it
            self._attempts.pop((tp.partition, message.offset), None)
            logger.warning(
                "Seek failed, partition no longer assigned",
                extra={
                    "topic": self.topic,
                    "partition": tp.partition,
                    "offset": message.offset,
                    "error": str(e),
                    "operation": "seek_failed",
                },
            )

    async def _commit(self, tp: Any, message: Any) -> None:
        self._attempts.pop((tp.partition, message.offset), None)
        try:
            await self.consumer.commit({tp: message.offset + 1})
        except KafkaError as e:
            # Uncommitted offsets are redelivered after a rebalance
            logger.warning(
                "Offset commit failed",
                extra={
                    "topic": self.topic,
                    "offset": message.offset,
                    "error": str(e),
                    "operation": "commit_failed",
                },
            )

    async def _pause(self, delay: float) -> None:
        """Sleep for ``delay`` seconds or until the worker is stopped"""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def close(self) -> None:
        self.stop_event.set()
        if self.task is not None:
            await self.task
            self.task = None
        try:
            await self.consumer.stop()  # type: ignore
        except KafkaError as e:
            logger.warning(
                "Error stopping Kafka consumer",
                extra={"topic": self.topic, "error": str(e), "operation": "stop_consumer"},
            )


class KafkaBroker:
    """
    Kafka publisher and subscription manager for the fulfillment services.

    ``connect`` is retried a fixed number of times and declares every topic
    (with its dead-letter topic) before returning. Publishing is durable
    (``acks="all"``) and never retried here; callers see ``PublishError``.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        group_id: str,
        topics: Iterable[str] = ALL_TOPICS,
        max_retries: int = 10,
        retry_delay: float = 3.0,
        replication_factor: int = 1,
        max_redeliveries: int = 5,
        redelivery_delay: float = 1.0,
        connect_timeout: float = 30.0,
        publish_timeout: float = 10.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.group_id = group_id
        self.topics = list(topics)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.replication_factor = replication_factor
        self.max_redeliveries = max_redeliveries
        self.redelivery_delay = redelivery_delay
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout
        self.producer: Optional[AIOKafkaProducer] = None
        self.workers: List[ConsumerWorker] = []
        self._connection_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> "KafkaBroker":
        """Build a broker from a service's FulfillmentSettings"""
        return cls(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=settings.SERVICE_NAME,
            group_id=settings.KAFKA_GROUP_ID,
            max_retries=settings.KAFKA_CONNECT_RETRIES,
            retry_delay=settings.KAFKA_RETRY_DELAY,
            replication_factor=settings.KAFKA_REPLICATION_FACTOR,
            max_redeliveries=settings.MAX_REDELIVERIES,
            redelivery_delay=settings.REDELIVERY_DELAY,
        )

    @property
    def is_connected(self) -> bool:
        return self.producer is not None

    def _create_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            acks="all",
            retry_backoff_ms=1000,
            request_timeout_ms=30000,
        )

    def _create_admin_client(self) -> AIOKafkaAdminClient:
        return AIOKafkaAdminClient(
            bootstrap_servers=self.bootstrap_servers,
            client_id=f"{self.client_id}-admin",
        )

    def _create_consumer(self, topic: str, group_id: str) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=group_id,
            client_id=f"{self.client_id}-{topic}",
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            max_poll_records=1,
        )

    async def _declare_topics(self) -> None:
        """Create every topic and dead-letter topic that does not exist yet"""
        admin_client = self._create_admin_client()
        await admin_client.start()  # type: ignore
        try:
            existing = set(await admin_client.list_topics())
            wanted = []
            for topic in self.topics:
                wanted.extend([topic, dead_letter_topic(topic)])

            missing = [
                NewTopic(
                    name=name,
                    num_partitions=1,
                    replication_factor=self.replication_factor,
                )
                for name in wanted
                if name not in existing
            ]
            if missing:
                await admin_client.create_topics(missing)
                logger.info(
                    "Created Kafka topics",
                    extra={
                        "topics": [t.name for t in missing],
                        "operation": "create_topics",
                    },
                )
        finally:
            await admin_client.close()  # type: ignore

    async def connect(self) -> None:
        """Start the producer and declare topics, retrying with a fixed delay"""
        async with self._connection_lock:
            if self.producer is not None:
                return

            for attempt in range(1, self.max_retries + 1):
                producer = self._create_producer()
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt,
                            "max_retries": self.max_retries,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(
                        producer.start(), timeout=self.connect_timeout  # type: ignore
                    )
                    await self._declare_topics()
                except (KafkaError, asyncio.TimeoutError, OSError) as e:
                    logger.warning(
                        "Kafka connection attempt failed",
                        extra={
                            "attempt": attempt,
                            "error": str(e),
                            "retry_delay": self.retry_delay,
                            "operation": "kafka_connect_failed",
                        },
                    )
                    await self._stop_quietly(producer)
                    if attempt < self.max_retries:
                        await asyncio.sleep(self.retry_delay)
                    continue

                self.producer = producer
                logger.info(
                    "Successfully connected to Kafka",
                    extra={"topics": self.topics, "operation": "kafka_connected"},
                )
                return

            logger.error(
                "Failed to connect to Kafka",
                extra={
                    "bootstrap_servers": self.bootstrap_servers,
                    "max_retries": self.max_retries,
                    "operation": "kafka_connect_exhausted",
                },
            )
            raise BrokerConnectionError(
                f"Could not connect to Kafka at {self.bootstrap_servers} "
                f"after {self.max_retries} attempts"
            )

    async def _stop_quietly(self, producer: AIOKafkaProducer) -> None:
        try:
            await producer.stop()  # type: ignore
        except (KafkaError, OSError) as e:
            logger.warning(
                "Error stopping Kafka producer",
                extra={"error": str(e), "operation": "stop_producer"},
            )

    async def publish(
        self,
        topic: str,
        message: Message,
        key: Optional[Union[str, bytes, int]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Durably publish one message; raises PublishError on any failure"""
        if self.producer is None:
            raise PublishError("Kafka producer not connected")

        try:
            value = _serialize(message)
        except (TypeError, ValueError) as e:
            raise PublishError(f"Could not serialize message for {topic}: {e}") from e

        kafka_headers = [
            (name, str(header).encode("utf-8"))
            for name, header in (headers or {}).items()
        ]

        try:
            await asyncio.wait_for(
                self.producer.send_and_wait(  # type: ignore
                    topic,
                    value=value,
                    key=_encode_key(key),
                    headers=kafka_headers or None,
                ),
                timeout=self.publish_timeout,
            )
        except (KafkaError, asyncio.TimeoutError) as e:
            logger.error(
                "Failed to publish message to Kafka",
                extra={
                    "topic": topic,
                    "error": str(e) or type(e).__name__,
                    "operation": "publish_failed",
                },
            )
            raise PublishError(f"Failed to publish to {topic}: {e}") from e

        logger.debug(
            "Published message to Kafka topic",
            extra={"topic": topic, "headers": dict(headers or {}), "operation": "publish"},
        )

    async def subscribe(
        self,
        topic: str,
        handler: EventHandler,
        group_id: Optional[str] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> ConsumerWorker:
        """Start a worker delivering ``topic`` to ``handler`` one message at a time"""
        consumer = self._create_consumer(topic, group_id or self.group_id)
        await consumer.start()  # type: ignore

        worker = ConsumerWorker(
            broker=self,
            consumer=consumer,
            topic=topic,
            handler=handler,
            max_redeliveries=self.max_redeliveries,
            redelivery_delay=self.redelivery_delay,
            stop_event=stop_event,
        )
        worker.start()
        self.workers.append(worker)

        logger.info(
            "Subscribed to Kafka topic",
            extra={
                "topic": topic,
                "group_id": group_id or self.group_id,
                "handler": type(handler).__name__,
                "operation": "subscribe",
            },
        )
        return worker

    async def close(self) -> None:
        """Stop all workers, then the producer. Safe to call more than once."""
        workers, self.workers = self.workers, []
        for worker in workers:
            await worker.close()

        producer, self.producer = self.producer, None
        if producer is not None:
            await self._stop_quietly(producer)
            logger.info("Kafka producer stopped")

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        return self.is_connected
