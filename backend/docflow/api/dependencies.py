"""
FastAPI dependencies.

The orchestrator is built once per process in the app lifespan and stored
on app.state; routes receive it through Depends so tests can override it.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from docflow.lifecycle.orchestrator import DocumentOrchestrator


def get_orchestrator(request: Request) -> DocumentOrchestrator:
    return request.app.state.orchestrator


Orchestrator = Annotated[DocumentOrchestrator, Depends(get_orchestrator)]
