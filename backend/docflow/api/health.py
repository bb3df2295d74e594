"""Liveness endpoint shared by every service (no external checks)."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from docflow.schemas.documents import HealthResponse


def make_health_router(service_name: str) -> APIRouter:
    router = APIRouter(tags=["Operations"])

    @router.get(
        "/health",
        response_model=HealthResponse,
        summary="Liveness probe",
        description="Returns 200 if the process is alive.",
    )
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=service_name,
            timestamp=datetime.now(timezone.utc),
        )

    return router
