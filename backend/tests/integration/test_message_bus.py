"""
Integration Tests — MessageBus over kombu's in-memory transport
════════════════════════════════════════════════════════════════
Exercises the real client (exchanges, group queues, consumer threads) with
`memory://`, so no broker is needed. Every test uses its own topic names
because the memory transport's state is process-wide.

  ✅ publish → subscriber receives the JSON body with its topic
  ✅ two consumer groups each receive every message
  ✅ a handler exception does not stop the dispatch loop
  ✅ a failure policy that raises is contained; close() still completes
  ✅ a policy answering REQUEUE gets the message redelivered
  ✅ messages are handled one at a time, in publish order
  ✅ publish before connect → PublishError
"""

from __future__ import annotations

import asyncio
import uuid

import pytest
import pytest_asyncio

from docflow.bus.client import MessageBus
from docflow.bus.policies import Disposition
from docflow.core.errors import PublishError
from docflow.schemas.documents import DocumentType, WorkItem

WAIT = 5.0


@pytest.fixture
def topic() -> str:
    return f"test-topic-{uuid.uuid4().hex[:8]}"


@pytest_asyncio.fixture
async def message_bus():
    bus = MessageBus("memory://", client_id="test-client", poll_interval=0.05)
    await bus.connect()
    yield bus
    await bus.close()


class Collector:
    """Handler that records deliveries and signals once `expected` arrived."""

    def __init__(self, expected: int = 1) -> None:
        self.expected = expected
        self.received: list[tuple[str, object]] = []
        self.done = asyncio.Event()

    async def __call__(self, topic, message) -> None:
        self.received.append((topic, message))
        if len(self.received) >= self.expected:
            self.done.set()

    async def wait(self) -> None:
        await asyncio.wait_for(self.done.wait(), timeout=WAIT)


@pytest.mark.integration
class TestMessageBus:

    async def test_publish_reaches_subscriber(self, message_bus, topic):
        collector = Collector()
        await message_bus.subscribe("group-a", [topic], collector)

        await message_bus.publish(topic, {"hello": "world"})
        await collector.wait()

        assert collector.received == [(topic, {"hello": "world"})]

    async def test_pydantic_messages_use_camel_case(self, message_bus, topic):
        collector = Collector()
        await message_bus.subscribe("group-a", [topic], collector)
        document_id = uuid.uuid4()

        await message_bus.publish(
            topic, WorkItem(document_id=document_id, name="n", type=DocumentType.TEXT, content="c")
        )
        await collector.wait()

        (_, body), = collector.received
        assert body == {"documentId": str(document_id), "name": "n", "type": "text", "content": "c"}

    async def test_each_group_gets_its_own_copy(self, message_bus, topic):
        gateway, audit = Collector(), Collector()
        await message_bus.subscribe("gateway-group", [topic], gateway)
        await message_bus.subscribe("audit-group", [topic], audit)

        await message_bus.publish(topic, {"n": 1})
        await gateway.wait()
        await audit.wait()

        assert gateway.received == audit.received == [(topic, {"n": 1})]

    async def test_handler_failure_does_not_stop_consumer(self, message_bus, topic):
        collector = Collector(expected=2)
        failures: list[BaseException] = []

        class RecordingPolicy:
            async def on_failure(self, topic, message, exc):
                failures.append(exc)
                return Disposition.ACK

        async def flaky(topic, message):
            await collector(topic, message)
            if message["n"] == 1:
                raise RuntimeError("boom")

        consumer = await message_bus.subscribe(
            "group-a", [topic], flaky, failure_policy=RecordingPolicy()
        )
        await message_bus.publish(topic, {"n": 1})
        await message_bus.publish(topic, {"n": 2})
        await collector.wait()

        assert [m["n"] for _, m in collector.received] == [1, 2]
        assert len(failures) == 1 and str(failures[0]) == "boom"
        assert consumer.running

    async def test_raising_failure_policy_is_contained(self, topic, caplog):
        bus = MessageBus("memory://", client_id="policy-down", poll_interval=0.05)
        await bus.connect()
        collector = Collector(expected=2)

        class BrokenPolicy:
            async def on_failure(self, topic, message, exc):
                raise RuntimeError("policy down")

        async def flaky(topic, message):
            await collector(topic, message)
            if message["n"] == 1:
                raise RuntimeError("boom")

        consumer = await bus.subscribe("group-a", [topic], flaky, failure_policy=BrokenPolicy())
        await bus.publish(topic, {"n": 1})
        await bus.publish(topic, {"n": 2})
        await collector.wait()

        assert [m["n"] for _, m in collector.received] == [1, 2]
        assert consumer.running
        assert "Failure policy raised" in caplog.text

        await bus.close()
        assert not consumer.running
        assert not bus.connected

    async def test_requeue_disposition_redelivers(self, message_bus, topic):
        collector = Collector(expected=2)
        attempts: list[int] = []

        class RetryOnce:
            async def on_failure(self, topic, message, exc):
                attempts.append(message["n"])
                return Disposition.REQUEUE if len(attempts) == 1 else Disposition.ACK

        async def fails_first(topic, message):
            await collector(topic, message)
            if len(collector.received) == 1:
                raise RuntimeError("transient")

        await message_bus.subscribe("group-a", [topic], fails_first, failure_policy=RetryOnce())
        await message_bus.publish(topic, {"n": 7})
        await collector.wait()

        assert [m["n"] for _, m in collector.received] == [7, 7]
        assert attempts == [7]

    async def test_messages_handled_sequentially_in_order(self, message_bus, topic):
        collector = Collector(expected=5)
        in_flight = 0
        max_in_flight = 0

        async def slow(topic, message):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            await collector(topic, message)

        await message_bus.subscribe("group-a", [topic], slow)
        for n in range(5):
            await message_bus.publish(topic, {"n": n})
        await collector.wait()

        assert [m["n"] for _, m in collector.received] == [0, 1, 2, 3, 4]
        assert max_in_flight == 1

    async def test_one_consumer_many_topics(self, message_bus, topic):
        other = f"{topic}-other"
        collector = Collector(expected=2)
        await message_bus.subscribe("group-a", [topic, other], collector)

        await message_bus.publish(topic, {"n": 1})
        await message_bus.publish(other, {"n": 2})
        await collector.wait()

        assert sorted(t for t, _ in collector.received) == sorted([topic, other])

    async def test_close_stops_consumers(self, topic):
        bus = MessageBus("memory://", client_id="closing", poll_interval=0.05)
        await bus.connect()
        consumer = await bus.subscribe("group-a", [topic], Collector())

        await bus.close()

        assert not consumer.running
        assert not bus.connected

    async def test_publish_without_connection_fails(self, topic):
        bus = MessageBus("memory://")
        with pytest.raises(PublishError) as exc_info:
            await bus.publish(topic, {"n": 1})
        assert exc_info.value.topic == topic

    def test_client_id_prefixed_from_settings(self, test_settings):
        settings = test_settings.model_copy(update={"bus_client_id": "docflow"})
        bus = MessageBus.from_settings(settings, "text-service")

        assert bus.client_id == "docflow-text-service"
        assert bus.url == settings.broker_url
