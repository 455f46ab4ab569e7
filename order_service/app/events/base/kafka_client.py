import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition  # type: ignore
from aiokafka.admin import AIOKafkaAdminClient, NewTopic  # type: ignore
from aiokafka.errors import (  # type: ignore
    KafkaConnectionError,
    KafkaError,
    KafkaTimeoutError,
    NodeNotReadyError,
    RequestTimedOutError,
    TopicAlreadyExistsError,
)

from ...services.exceptions import (
    BrokerConnectionError,
    BrokerUnavailableError,
    InfrastructureError,
)
from ...utils.logging import setup_order_logging as setup_logging
from . import BrokerConnection, Delivery, MessageHandler

logger = setup_logging("order_service.events.kafka")

# Errors meaning the broker itself is unreachable, as opposed to a bad request
_CONNECTION_ERRORS = (
    KafkaConnectionError,
    NodeNotReadyError,
    KafkaTimeoutError,
    RequestTimedOutError,
    asyncio.TimeoutError,
    OSError,
)

Sleep = Callable[[float], Awaitable[None]]


class KafkaBrokerConnection(BrokerConnection):
    """
    Order Service broker connection with a reconnection supervisor.

    Owns one producer (publishing) and one consumer (all consumed queues)
    per process. A queue is a Kafka topic; durable topics are created with
    the configured replication factor and every send waits for ``acks=all``.
    Offsets are committed manually, after the handler decided to ACK.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        group_id: str,
        replication_factor: int = 1,
        max_retries: int = 10,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
        connect_timeout: float = 30.0,
        ack_on_handler_error: bool = True,
        producer_factory: Optional[Callable[[], Any]] = None,
        consumer_factory: Optional[Callable[[], Any]] = None,
        admin_factory: Optional[Callable[[], Any]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.group_id = group_id
        self.replication_factor = replication_factor
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay
        self.connect_timeout = connect_timeout
        self.ack_on_handler_error = ack_on_handler_error

        self._producer_factory = producer_factory or self._create_producer
        self._consumer_factory = consumer_factory or self._create_consumer
        self._admin_factory = admin_factory or self._create_admin
        self._sleep = sleep

        self._producer: Any = None
        self._consumer: Any = None
        self._handlers: Dict[str, MessageHandler] = {}
        self._asserted_queues: Set[str] = set()
        self._connected = False
        self._closed = False
        self._connection_lock = asyncio.Lock()
        self._consume_task: Optional["asyncio.Task[None]"] = None
        self._reconnect_task: Optional["asyncio.Task[None]"] = None
        self.connect_attempts = 0

    # ------------------------------------------------------------------
    # Client factories
    # ------------------------------------------------------------------

    def _create_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=f"{self.client_id}-producer",
            acks="all",
            enable_idempotence=True,
            retry_backoff_ms=1000,
            request_timeout_ms=30000,
            connections_max_idle_ms=540000,
        )

    def _create_consumer(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            client_id=f"{self.client_id}-consumer",
            enable_auto_commit=False,
            auto_offset_reset="earliest",
        )

    def _create_admin(self) -> AIOKafkaAdminClient:
        return AIOKafkaAdminClient(
            bootstrap_servers=self.bootstrap_servers,
            client_id=f"{self.client_id}-admin",
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connected and self._producer is not None

    @property
    def queues(self) -> List[str]:
        return sorted(self._handlers)

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the given 0-based failed attempt"""
        return min(self.retry_delay * (2**attempt), self.max_retry_delay)

    async def connect(self) -> None:
        """Connect to Kafka, retrying with exponential backoff"""
        async with self._connection_lock:
            if self._connected:
                return
            self._closed = False
            await self._connect_with_retry()

    async def _connect_with_retry(self) -> None:
        for attempt in range(self.max_retries):
            self.connect_attempts = attempt + 1
            try:
                logger.info(
                    "Attempting Kafka connection",
                    extra={
                        "attempt": attempt + 1,
                        "max_retries": self.max_retries,
                        "operation": "kafka_connect",
                    },
                )
                await self._open()
            except (KafkaError, OSError, asyncio.TimeoutError) as e:
                await self._release()
                if attempt < self.max_retries - 1:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"Kafka connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    await self._sleep(delay)
                continue

            self._connected = True
            if self._handlers:
                self._subscribe()
                self._start_consuming()
            logger.info(
                "Successfully connected to Kafka",
                extra={"attempt": attempt + 1, "queues": self.queues},
            )
            return

        logger.error(
            f"Failed to connect to Kafka after {self.max_retries} attempts. "
            "Giving up until the connection is restarted."
        )
        raise BrokerConnectionError(
            f"Could not connect to Kafka at {self.bootstrap_servers}",
            details={"attempts": self.max_retries},
        )

    async def _open(self) -> None:
        producer = self._producer_factory()
        self._producer = producer
        await asyncio.wait_for(producer.start(), timeout=self.connect_timeout)

        consumer = self._consumer_factory()
        self._consumer = consumer
        await asyncio.wait_for(consumer.start(), timeout=self.connect_timeout)

    async def _release(self) -> None:
        """Stop the consume task and both clients; forget asserted queues"""
        task, self._consume_task = self._consume_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        for name, client in (("consumer", self._consumer), ("producer", self._producer)):
            if client is None:
                continue
            try:
                await client.stop()
            except Exception as e:
                logger.warning(
                    f"Error stopping Kafka {name}",
                    extra={"error": str(e), "operation": f"stop_{name}"},
                )

        self._consumer = None
        self._producer = None
        self._asserted_queues.clear()

    def _connection_lost(self, error: BaseException) -> None:
        """Mark the connection down and reconnect in the background"""
        if self._closed or not self._connected:
            return
        self._connected = False
        logger.warning(
            "Kafka connection lost. Reconnecting...",
            extra={"error": str(error), "operation": "connection_lost"},
        )
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        async with self._connection_lock:
            if self._closed or self._connected:
                return
            await self._release()
            try:
                await self._connect_with_retry()
            except BrokerConnectionError:
                logger.error(
                    "Kafka reconnection abandoned",
                    extra={"attempts": self.connect_attempts, "operation": "reconnect"},
                )

    async def wait_reconnected(self) -> None:
        """Wait for a pending background reconnection, if any"""
        task = self._reconnect_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        """Stop consuming and release the producer and consumer"""
        self._closed = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        async with self._connection_lock:
            await self._release()
            self._connected = False
        logger.info("Kafka connection closed")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected,
            "connect_attempts": self.connect_attempts,
            "queues": self.queues,
        }

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def _require_connection(self, operation: str, queue_name: str) -> Any:
        if not self.is_connected:
            raise BrokerUnavailableError(
                "Kafka connection unavailable",
                details={"operation": operation, "queue": queue_name},
            )
        return self._producer

    async def _ensure_queue(self, queue_name: str, durable: bool = True) -> None:
        """Ensure the topic backing a queue exists, creating it if necessary."""
        if queue_name in self._asserted_queues:
            return

        admin_client = self._admin_factory()
        started = False
        try:
            await admin_client.start()
            started = True
            topics = await admin_client.list_topics()
            if queue_name not in topics:
                await admin_client.create_topics(
                    [
                        NewTopic(
                            name=queue_name,
                            num_partitions=1,
                            replication_factor=(
                                self.replication_factor if durable else 1
                            ),
                        )
                    ]
                )
                logger.info(
                    "Created Kafka topic",
                    extra={"queue": queue_name, "operation": "create_topic"},
                )
        except TopicAlreadyExistsError:
            pass
        except _CONNECTION_ERRORS as e:
            self._connection_lost(e)
            raise BrokerUnavailableError(
                f"Kafka unavailable while asserting queue {queue_name}",
                details={"queue": queue_name},
            ) from e
        except KafkaError as e:
            raise InfrastructureError(
                f"Could not assert queue {queue_name}: {e}",
                details={"queue": queue_name},
            ) from e
        finally:
            if started:
                await admin_client.close()

        self._asserted_queues.add(queue_name)

    async def publish(
        self, queue_name: str, payload: Dict[str, Any], durable: bool = True
    ) -> None:
        """Publish a JSON payload persistently; failures propagate"""
        producer = self._require_connection("publish", queue_name)
        await self._ensure_queue(queue_name, durable=durable)

        body = json.dumps(payload, default=str).encode("utf-8")
        try:
            await producer.send_and_wait(queue_name, value=body)
        except _CONNECTION_ERRORS as e:
            logger.error(
                "Failed to publish message, broker unreachable",
                extra={"queue": queue_name, "error": str(e)},
            )
            self._connection_lost(e)
            raise BrokerUnavailableError(
                f"Kafka unavailable while publishing to {queue_name}",
                details={"queue": queue_name},
            ) from e
        except KafkaError as e:
            logger.error(
                "Failed to publish message",
                extra={"queue": queue_name, "error": str(e)},
            )
            raise InfrastructureError(
                f"Could not publish to {queue_name}: {e}",
                details={"queue": queue_name},
            ) from e

        logger.info(
            "Published message to Kafka topic",
            extra={"queue": queue_name, "operation": "publish"},
        )

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------

    async def consume(self, queue_name: str, handler: MessageHandler) -> None:
        """Register the handler for a queue and start the consume task"""
        self._require_connection("consume", queue_name)
        await self._ensure_queue(queue_name, durable=True)

        self._handlers[queue_name] = handler
        self._subscribe()
        self._start_consuming()
        logger.info(
            "Listening for messages",
            extra={"queue": queue_name, "operation": "subscribe"},
        )

    def _subscribe(self) -> None:
        self._consumer.subscribe(topics=self.queues)

    def _start_consuming(self) -> None:
        if self._consume_task is None or self._consume_task.done():
            self._consume_task = asyncio.create_task(
                self._consume_messages(self._consumer)
            )

    async def _consume_messages(self, consumer: Any) -> None:
        """Supervisor loop: decode, dispatch, then ack or requeue"""
        try:
            async for message in consumer:
                await self._dispatch(consumer, message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Kafka consumer loop stopped unexpectedly",
                exc_info=True,
                extra={"error": str(e), "operation": "consume"},
            )
            self._connection_lost(e)

    async def _dispatch(self, consumer: Any, message: Any) -> None:
        partition = TopicPartition(message.topic, message.partition)
        handler = self._handlers.get(message.topic)
        if handler is None:
            logger.warning(
                "No handler registered for queue, acknowledging",
                extra={"queue": message.topic, "offset": message.offset},
            )
            await self._ack(consumer, partition, message)
            return

        try:
            payload = json.loads(message.value.decode("utf-8"))
        except (AttributeError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(
                "Discarding undecodable message",
                extra={"queue": message.topic, "offset": message.offset, "error": str(e)},
            )
            await self._ack(consumer, partition, message)
            return

        logger.info(
            "Message received",
            extra={"queue": message.topic, "offset": message.offset},
        )
        try:
            decision = await handler(payload)
        except Exception as e:
            decision = Delivery.ACK if self.ack_on_handler_error else Delivery.REQUEUE
            logger.error(
                f"Message handler failed: {e}",
                exc_info=True,
                extra={
                    "queue": message.topic,
                    "offset": message.offset,
                    "decision": decision.value,
                },
            )

        if decision is Delivery.REQUEUE:
            consumer.seek(partition, message.offset)
            await self._sleep(self.retry_delay)
        else:
            await self._ack(consumer, partition, message)

    async def _ack(self, consumer: Any, partition: TopicPartition, message: Any) -> None:
        try:
            await consumer.commit({partition: message.offset + 1})
        except KafkaError as e:
            # Uncommitted offsets are redelivered after the next rebalance
            logger.warning(
                "Failed to commit offset",
                extra={"queue": message.topic, "offset": message.offset, "error": str(e)},
            )
