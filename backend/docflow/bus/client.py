"""
Message Bus Client (kombu)

Connection lifecycle and pub/sub plumbing shared by the gateway and both
worker services.

Topology:
  topic           → durable direct exchange named after the topic; messages
                    are published with routing_key=<topic>
  consumer group  → one durable queue per (group, topic), "<group>.<topic>",
                    bound to the topic exchange

Competing consumers in the same group share a queue, so each message reaches
exactly one instance per group; every distinct group has its own queue and
receives its own copy.

Delivery contract:
  - publish() serializes to JSON and sends once. Failures raise PublishError;
    there is no automatic retry.
  - Each BusConsumer runs one asyncio task with prefetch 1. A message is
    fully handled (including any publish or repository write the handler
    does) before the next one is dispatched.
  - The message is acked once the handler returns. Handler errors go to the
    HandlerFailurePolicy, whose Disposition decides between ack and requeue
    (default LogAndDrop: log, ack, never redelivered). A policy that raises
    is logged and the message is acked.

kombu is synchronous; every broker call runs on a single-thread executor
owned by the producer or consumer, so a connection is only ever touched from
one thread.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Awaitable, Callable, Iterable

from kombu import Connection, Consumer, Exchange, Producer, Queue
from kombu.exceptions import KombuError
from kombu.message import Message
from pydantic import BaseModel

from docflow.bus.policies import Disposition, HandlerFailurePolicy, LogAndDrop
from docflow.core.config import Settings
from docflow.core.errors import ConnectError, PublishError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Any], Awaitable[None]]


def topic_exchange(topic: str) -> Exchange:
    return Exchange(topic, type="direct", durable=True)


def group_queue(group_id: str, topic: str) -> Queue:
    return Queue(
        f"{group_id}.{topic}",
        exchange=topic_exchange(topic),
        routing_key=topic,
        durable=True,
    )


def _serialize(message: Any) -> Any:
    if isinstance(message, BaseModel):
        return message.model_dump(mode="json", by_alias=True)
    return message


def _broker_errors(connection: Connection) -> tuple[type[BaseException], ...]:
    return (KombuError, OSError) + tuple(connection.connection_errors) + tuple(connection.channel_errors)


# ---------------------------------------------------------------------------
# Consumer
# ---------------------------------------------------------------------------

class BusConsumer:
    """
    One consumer-group member subscribed to a set of topics.
    Created by MessageBus.subscribe(); call stop() to leave the group.
    """

    def __init__(
        self,
        connection: Connection,
        group_id: str,
        topics: list[str],
        handler: MessageHandler,
        *,
        failure_policy: HandlerFailurePolicy | None = None,
        poll_interval: float = 1.0,
        tag_prefix: str = "",
    ) -> None:
        self.group_id = group_id
        self.topics = list(topics)
        self._connection = connection
        self._handler = handler
        self._failure_policy = failure_policy or LogAndDrop()
        self._poll_interval = poll_interval
        self._tag_prefix = tag_prefix

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"bus-{group_id}")
        self._channel = None
        self._consumer: Consumer | None = None
        self._received: list[tuple[Any, Message]] = []
        self._task: asyncio.Task | None = None
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self._attach)
        except _broker_errors(self._connection) as exc:
            self._executor.shutdown(wait=False)
            raise ConnectError(f"Failed to subscribe group {self.group_id}: {exc}") from exc

        for topic in self.topics:
            logger.info("Subscribed to topic | topic=%s group=%s", topic, self.group_id)

        self._stopping = False
        self._task = loop.create_task(self._run(), name=f"bus-consumer-{self.group_id}")

    async def stop(self) -> None:
        self._stopping = True
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Consumer task ended with an error | group=%s", self.group_id)
            self._task = None

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._detach)
        self._executor.shutdown(wait=True)
        logger.info("Consumer disconnected | group=%s", self.group_id)

    def _attach(self) -> None:
        """Open a channel, declare the group queues and start consuming."""
        self._connection.ensure_connection(max_retries=1)
        self._channel = self._connection.channel()
        self._consumer = Consumer(
            self._channel,
            queues=[group_queue(self.group_id, t) for t in self.topics],
            callbacks=[self._on_message],
            on_decode_error=self._on_decode_error,
            accept=["json"],
            prefetch_count=1,
            tag_prefix=self._tag_prefix,
        )
        self._consumer.consume()

    def _detach(self) -> None:
        try:
            if self._consumer is not None:
                self._consumer.cancel()
            if self._channel is not None:
                self._channel.close()
        except _broker_errors(self._connection) as exc:
            logger.warning("Error while cancelling consumer | group=%s error=%s", self.group_id, exc)
        finally:
            self._consumer = None
            self._channel = None
            self._connection.release()

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        errors = _broker_errors(self._connection)

        while not self._stopping:
            try:
                deliveries = await loop.run_in_executor(self._executor, self._poll)
            except errors as exc:
                logger.error("Consumer connection lost | group=%s error=%s", self.group_id, exc)
                await asyncio.sleep(self._poll_interval)
                await self._reattach(loop, errors)
                continue

            for body, message in deliveries:
                await self._dispatch(loop, body, message)

    def _poll(self) -> list[tuple[Any, Message]]:
        received: list[tuple[Any, Message]] = []
        self._received = received
        try:
            self._connection.drain_events(timeout=self._poll_interval)
        except socket.timeout:
            pass
        return received

    def _on_message(self, body: Any, message: Message) -> None:
        # Runs inside drain_events on the executor thread; dispatch happens
        # back on the event loop.
        self._received.append((body, message))

    def _on_decode_error(self, message: Message, exc: Exception) -> None:
        logger.error(
            "Undecodable message, dropping | group=%s content_type=%s error=%s",
            self.group_id, message.content_type, exc,
        )
        message.ack()

    async def _dispatch(self, loop: asyncio.AbstractEventLoop, body: Any, message: Message) -> None:
        info = message.delivery_info or {}
        topic = info.get("exchange") or info.get("routing_key") or ""
        logger.debug("Received message | topic=%s group=%s", topic, self.group_id)
        disposition = Disposition.ACK
        try:
            await self._handler(topic, body)
        except Exception as exc:
            try:
                disposition = await self._failure_policy.on_failure(topic, body, exc) or Disposition.ACK
            except Exception:
                logger.exception(
                    "Failure policy raised, acking message | topic=%s group=%s",
                    topic, self.group_id,
                )
                disposition = Disposition.ACK

        requeue = disposition == Disposition.REQUEUE
        settle = message.requeue if requeue else message.ack
        try:
            await loop.run_in_executor(self._executor, settle)
        except _broker_errors(self._connection) as exc:
            logger.error(
                "Failed to %s message | topic=%s error=%s",
                "requeue" if requeue else "ack", topic, exc,
            )

    async def _reattach(self, loop: asyncio.AbstractEventLoop, errors: tuple) -> None:
        try:
            await loop.run_in_executor(self._executor, self._attach)
            logger.info("Consumer reconnected | group=%s", self.group_id)
        except errors as exc:
            logger.error("Consumer reconnect failed | group=%s error=%s", self.group_id, exc)


# ---------------------------------------------------------------------------
# Bus client
# ---------------------------------------------------------------------------

class MessageBus:
    """
    Producer connection plus a registry of consumers.

    Usage::

        bus = MessageBus(settings.broker_url, client_id="api-gateway")
        await bus.connect()
        await bus.publish("document-text-processing", {"documentId": ...})
        await bus.subscribe("gateway-group", ["document-processing-results"], handler)
        ...
        await bus.close()
    """

    def __init__(
        self,
        url: str,
        client_id: str = "document-processor",
        *,
        connect_retries: int = 3,
        poll_interval: float = 1.0,
    ) -> None:
        self.url = url
        self.client_id = client_id
        self._connect_retries = max(1, connect_retries)
        self._poll_interval = poll_interval

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bus-producer")
        self._connection: Connection | None = None
        self._producer: Producer | None = None
        self._consumers: list[BusConsumer] = []

    @classmethod
    def from_settings(cls, settings: Settings, service_name: str) -> MessageBus:
        """Bus for one service; client id is "<bus_client_id>-<service_name>"."""
        return cls(
            settings.broker_url,
            client_id=f"{settings.bus_client_id}-{service_name}",
            connect_retries=settings.bus_connect_retries,
            poll_interval=settings.bus_poll_interval,
        )

    @property
    def connected(self) -> bool:
        return self._producer is not None

    async def connect(self) -> None:
        """Open the producer connection. Raises ConnectError if the broker is down."""
        loop = asyncio.get_running_loop()
        connection = Connection(self.url)
        try:
            await loop.run_in_executor(self._executor, self._open, connection)
        except _broker_errors(connection) as exc:
            connection.release()
            logger.error("Error connecting to broker | client=%s error=%s", self.client_id, exc)
            raise ConnectError(f"Broker unavailable at {connection.as_uri()}: {exc}") from exc

        self._connection = connection
        logger.info("Bus producer connected | client=%s broker=%s", self.client_id, connection.as_uri())

    def _open(self, connection: Connection) -> None:
        connection.ensure_connection(
            max_retries=self._connect_retries,
            interval_start=1,
            interval_step=1,
            interval_max=5,
        )
        self._producer = Producer(connection.channel(), serializer="json")

    async def publish(self, topic: str, message: Any) -> None:
        """Append `message` to `topic`. Raises PublishError; never retries."""
        if self._producer is None or self._connection is None:
            raise PublishError(topic, "producer is not connected")

        exchange = topic_exchange(topic)
        send = partial(
            self._producer.publish,
            _serialize(message),
            exchange=exchange,
            routing_key=topic,
            declare=[exchange],
            retry=False,
        )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, send)
        except _broker_errors(self._connection) as exc:
            logger.error("Error sending message | topic=%s error=%s", topic, exc)
            raise PublishError(topic, exc) from exc

        logger.info("Message sent | topic=%s", topic)

    async def subscribe(
        self,
        group_id: str,
        topics: Iterable[str],
        handler: MessageHandler,
        *,
        failure_policy: HandlerFailurePolicy | None = None,
    ) -> BusConsumer:
        """Join `group_id` on every topic and start the dispatch loop."""
        base = self._connection or Connection(self.url)
        consumer = BusConsumer(
            base.clone(),
            group_id,
            list(topics),
            handler,
            failure_policy=failure_policy,
            poll_interval=self._poll_interval,
            tag_prefix=f"{self.client_id}-",
        )
        await consumer.start()
        self._consumers.append(consumer)
        logger.info("Bus consumer started | client=%s group=%s", self.client_id, group_id)
        return consumer

    async def close(self) -> None:
        """Stop every consumer, then release the producer connection."""
        for consumer in self._consumers:
            await consumer.stop()
        self._consumers.clear()

        if self._connection is not None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(self._executor, self._connection.release)
            self._connection = None
        self._producer = None
        self._executor.shutdown(wait=True)
        logger.info("Bus disconnected | client=%s", self.client_id)
