"""
Document Repository Factory

Selects the backend (postgres | memory) based on config. Services only call
get_repository() and never touch the concrete classes directly.
"""

from __future__ import annotations

from docflow.core.config import Settings
from docflow.repository.base import DocumentRepository


def get_repository(settings: Settings) -> DocumentRepository:
    """Build the configured document store. Called once per process."""
    backend = settings.document_store.lower()

    if backend == "postgres":
        from docflow.db.session import create_engine
        from docflow.repository.sql import SqlDocumentRepository
        return SqlDocumentRepository(create_engine(settings))

    if backend == "memory":
        from docflow.repository.memory import InMemoryDocumentRepository
        return InMemoryDocumentRepository()

    raise ValueError(
        f"Unknown document store: '{backend}'. "
        f"Valid options: 'postgres', 'memory'"
    )
