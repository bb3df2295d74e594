"""
Processing service — shared app factory for the image and text workers.

A worker service is a TypedWorker subscribed to its type topic in its own
consumer group, plus an HTTP surface that only serves /health. If the broker
is unreachable at startup the service keeps serving HTTP and logs the
failure; processing simply does not happen until it is restarted.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial

from fastapi import FastAPI

from docflow.api.health import make_health_router
from docflow.bus.client import MessageBus
from docflow.core.config import Settings, get_settings
from docflow.core.errors import ConnectError
from docflow.core.logging import configure_logging
from docflow.lifecycle.routing import TopicRoutes
from docflow.schemas.documents import DocumentType
from docflow.workers.analyzers import analyze_image, analyze_text
from docflow.workers.typed_worker import Analyzer, TypedWorker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerProfile:
    """Everything that distinguishes one processing service from another."""
    service_name: str
    document_type: DocumentType
    topic: str
    group_id: str
    analyzer: Analyzer
    host: str
    port: int


def worker_profile(document_type: DocumentType, settings: Settings) -> WorkerProfile:
    routes = TopicRoutes.from_settings(settings)
    document_type = DocumentType(document_type)

    if document_type is DocumentType.IMAGE:
        return WorkerProfile(
            service_name="image-service",
            document_type=document_type,
            topic=routes.image,
            group_id=settings.image_service_group_id,
            analyzer=partial(analyze_image, delay=settings.image_analysis_delay),
            host=settings.image_service_host,
            port=settings.image_service_port,
        )
    return WorkerProfile(
        service_name="text-service",
        document_type=document_type,
        topic=routes.text,
        group_id=settings.text_service_group_id,
        analyzer=partial(analyze_text, delay=settings.text_analysis_delay),
        host=settings.text_service_host,
        port=settings.text_service_port,
    )


def create_worker_app(
    document_type: DocumentType,
    settings: Settings | None = None,
    *,
    bus: MessageBus | None = None,
    analyzer: Analyzer | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    profile = worker_profile(document_type, settings)
    configure_logging(profile.service_name, settings)
    routes = TopicRoutes.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s | topic=%s group=%s",
            profile.service_name, profile.topic, profile.group_id,
        )
        message_bus = bus or MessageBus.from_settings(settings, profile.service_name)
        worker = TypedWorker(
            profile.document_type,
            profile.topic,
            analyzer or profile.analyzer,
            message_bus,
            routes.results,
        )
        app.state.bus = message_bus
        app.state.worker = worker

        try:
            await message_bus.connect()
            await message_bus.subscribe(profile.group_id, [profile.topic], worker.handle)
            logger.info("%s consumer started", profile.service_name)
        except ConnectError as exc:
            logger.error(
                "Failed to start %s consumer, serving health only | error=%s",
                profile.service_name, exc,
            )

        yield

        logger.info("Shutting down %s", profile.service_name)
        await message_bus.close()

    app = FastAPI(
        title=f"Document Processing {profile.document_type.value.capitalize()} Service",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.profile = profile
    app.include_router(make_health_router(profile.service_name))
    return app


def run_worker(document_type: DocumentType) -> None:
    import uvicorn

    settings = get_settings()
    profile = worker_profile(document_type, settings)
    uvicorn.run(
        create_worker_app(document_type, settings),
        host=profile.host,
        port=profile.port,
        log_level="debug" if settings.debug else "info",
    )
