"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : test_settings, routes, repository, bus, orchestrator,
                    gateway_app, client, sample payloads

Environment strategy:
  - The document store is the in-memory repository; no PostgreSQL needed.
  - The message bus is a RecordingBus that captures publishes and lets a
    test pump them to subscribers explicitly, so ordering is deterministic.
  - Tests that exercise the real kombu client use the `memory://` transport.
  - Analyzer delays are zero.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, no I/O)
  pytest -m integration           # HTTP + bus stack tests
  pytest tests/unit/test_validation.py
"""

from __future__ import annotations

import base64
import os
import struct
import uuid
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DOCUMENT_STORE",       "memory")
os.environ.setdefault("BROKER_URL",           "memory://")
os.environ.setdefault("IMAGE_ANALYSIS_DELAY", "0")
os.environ.setdefault("TEXT_ANALYSIS_DELAY",  "0")
os.environ.setdefault("APP_ENV",              "development")
os.environ.setdefault("LOG_DIR",              "")

from docflow.core.config import Settings  # noqa: E402
from docflow.core.errors import PublishError  # noqa: E402
from docflow.lifecycle.orchestrator import DocumentOrchestrator  # noqa: E402
from docflow.lifecycle.routing import TopicRoutes  # noqa: E402
from docflow.repository.memory import InMemoryDocumentRepository  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Recording bus: in-process stand-in for MessageBus
# ─────────────────────────────────────────────────────────────────────────────

class RecordingBus:
    """
    Same async surface as MessageBus (connect / publish / subscribe / close).

    publish() serializes exactly like the real client and appends to
    `published`; nothing is delivered until pump() is awaited. Set
    `publish_error` to make the next publishes fail.
    """

    def __init__(self) -> None:
        self.connected = False
        self.closed = False
        self.published: list[tuple[str, Any]] = []
        self.subscriptions: list[tuple[str, list[str], Any]] = []
        self.publish_error: str | None = None
        self.connect_error: Exception | None = None
        self._cursor = 0

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def publish(self, topic: str, message: Any) -> None:
        if self.publish_error is not None:
            raise PublishError(topic, self.publish_error)
        if isinstance(message, BaseModel):
            message = message.model_dump(mode="json", by_alias=True)
        self.published.append((topic, message))

    async def subscribe(self, group_id: str, topics, handler, *, failure_policy=None):
        self.subscriptions.append((group_id, list(topics), handler))

    async def close(self) -> None:
        self.closed = True

    def messages_on(self, topic: str) -> list[Any]:
        return [m for t, m in self.published if t == topic]

    async def pump(self) -> int:
        """Deliver every undelivered message (including ones published while pumping)."""
        delivered = 0
        while self._cursor < len(self.published):
            topic, message = self.published[self._cursor]
            self._cursor += 1
            for _, topics, handler in self.subscriptions:
                if topic in topics:
                    await handler(topic, message)
                    delivered += 1
        return delivered


# ─────────────────────────────────────────────────────────────────────────────
# Core fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        document_store="memory",
        broker_url="memory://",
        image_analysis_delay=0,
        text_analysis_delay=0,
        bus_poll_interval=0.1,
        log_dir="",
    )


@pytest.fixture
def routes(test_settings) -> TopicRoutes:
    return TopicRoutes.from_settings(test_settings)


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def orchestrator(repository, bus, routes) -> DocumentOrchestrator:
    return DocumentOrchestrator(repository, bus, routes)


@pytest.fixture
def unknown_document_id() -> uuid.UUID:
    """A stable UUID that never names a stored document."""
    return uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")


# ─────────────────────────────────────────────────────────────────────────────
# Gateway app + HTTP client (lifespan runs against the fakes)
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def gateway_app(test_settings, repository, bus):
    from docflow.services.gateway import create_gateway_app
    return create_gateway_app(test_settings, repository=repository, bus=bus)


@pytest_asyncio.fixture
async def client(gateway_app) -> AsyncGenerator[AsyncClient, None]:
    async with gateway_app.router.lifespan_context(gateway_app):
        transport = ASGITransport(app=gateway_app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac


# ─────────────────────────────────────────────────────────────────────────────
# Sample payloads
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def png_bytes() -> bytes:
    """PNG signature + IHDR header for a 640x480 image."""
    ihdr = struct.pack(">I", 13) + b"IHDR" + struct.pack(">II", 640, 480) + b"\x08\x02\x00\x00\x00"
    return b"\x89PNG\r\n\x1a\n" + ihdr + b"\x00" * 16


@pytest.fixture
def png_base64(png_bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def sample_text() -> str:
    return (
        "Document processing pipelines route work by type. "
        "Processing happens asynchronously!\n\n"
        "Results flow back to the gateway. Pipelines scale horizontally."
    )
