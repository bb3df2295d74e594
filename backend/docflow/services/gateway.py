"""
API Gateway — Entry Point

Synchronous front door for documents plus the gateway side of the
asynchronous processing loop:

  client ──HTTP──▶ DocumentOrchestrator ──▶ type topic ──▶ worker
                                                              │
  repository ◀── ResultReconciler ◀── results topic ◀─────────┘

Startup (fatal on failure):
  1. Document store connectivity check (+ table creation in dev)
  2. Bus producer connection
  3. Results consumer joins the gateway consumer group
Shutdown: consumers stop, bus connections close, the DB pool is disposed.
uvicorn turns SIGINT/SIGTERM into the lifespan shutdown.

Middleware stack:
  1. CORS
  2. Request ID + structured request logging with latency
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from docflow.api.documents import router as documents_router
from docflow.api.errors import install_exception_handlers
from docflow.api.health import make_health_router
from docflow.bus.client import MessageBus
from docflow.core.config import Settings, get_settings
from docflow.core.errors import ConnectError, RepositoryError
from docflow.core.logging import configure_logging
from docflow.gateway.reconciler import ResultReconciler
from docflow.lifecycle.orchestrator import DocumentOrchestrator
from docflow.lifecycle.routing import TopicRoutes
from docflow.repository.base import DocumentRepository
from docflow.repository.factory import get_repository

SERVICE_NAME = "api-gateway"

logger = logging.getLogger(__name__)


def create_gateway_app(
    settings: Settings | None = None,
    *,
    repository: DocumentRepository | None = None,
    bus: MessageBus | None = None,
) -> FastAPI:
    """
    Build the gateway app. `repository` and `bus` default to the configured
    backends; tests inject fakes.
    """
    settings = settings or get_settings()
    configure_logging(SERVICE_NAME, settings)

    # ------------------------------------------------------------------
    # Application lifespan: startup / shutdown hooks
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting API gateway | env=%s store=%s",
            settings.app_env, settings.document_store,
        )

        store = repository or get_repository(settings)
        try:
            await store.ping()
            if settings.db_auto_create:
                await store.prepare()
        except RepositoryError as exc:
            logger.critical("Document store check failed at startup: %s", exc)
            await store.close()
            raise

        routes = TopicRoutes.from_settings(settings)
        message_bus = bus or MessageBus.from_settings(settings, SERVICE_NAME)
        orchestrator = DocumentOrchestrator(store, message_bus, routes)
        reconciler = ResultReconciler(orchestrator, routes.results)
        try:
            await message_bus.connect()
            await message_bus.subscribe(
                settings.gateway_group_id, [routes.results], reconciler.handle
            )
        except ConnectError as exc:
            logger.critical("Message bus unavailable at startup: %s", exc)
            await message_bus.close()
            await store.close()
            raise

        app.state.repository = store
        app.state.bus = message_bus
        app.state.orchestrator = orchestrator
        app.state.reconciler = reconciler
        logger.info("API gateway ready | results_topic=%s", routes.results)

        yield

        logger.info("Shutting down API gateway")
        await message_bus.close()
        await store.close()

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    app = FastAPI(
        title="Document Processing API",
        description="API for processing documents (images and text)",
        version="1.0.0",
        docs_url="/api-docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/api-docs/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    install_exception_handlers(app)

    app.include_router(documents_router, prefix="/api")
    app.include_router(make_health_router(SERVICE_NAME))

    return app


def run() -> None:
    """Console entry point: docflow-gateway."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_gateway_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
