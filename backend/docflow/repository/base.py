"""
Document Repository — Abstract Base

Every concrete store (PostgreSQL, in-memory) implements this interface. The
orchestration core only speaks this protocol, so the store is an injected
dependency rather than process-wide state, and lifecycle logic is testable
without a live database.

Contract (all operations atomic per record):
  - create(fields)                       -> DocumentRecord
  - get(id)                              -> DocumentRecord | None
  - list()                               -> list[DocumentRecord]
  - update(id, fields)                   -> DocumentRecord | None
  - delete(id)                           -> bool
  - set_status(id, status, result, expected) -> DocumentRecord | None
Connectivity loss surfaces as RepositoryError, never as a silent None.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import UUID

from docflow.schemas.documents import DocumentStatus, DocumentType

# Fields a caller may change through update(); type and content are immutable.
MUTABLE_FIELDS: frozenset[str] = frozenset({"name", "keywords"})


@dataclass(frozen=True)
class DocumentRecord:
    """Persisted document state as returned by every repository backend."""
    id:         UUID
    name:       str
    type:       DocumentType
    content:    str
    status:     DocumentStatus
    created_at: datetime
    updated_at: datetime
    keywords:   list[str]             = field(default_factory=list)
    result:     dict[str, Any] | None = None

    def with_changes(self, **changes: Any) -> "DocumentRecord":
        return replace(self, **changes)


class DocumentRepository(ABC):
    """Persistent store of document records keyed by identifier."""

    @abstractmethod
    async def create(
        self,
        *,
        name: str,
        type: DocumentType,
        content: str,
        keywords: list[str] | None = None,
    ) -> DocumentRecord:
        """Insert a new record in `pending` with a freshly assigned id."""

    @abstractmethod
    async def get(self, document_id: UUID) -> DocumentRecord | None:
        """Return the record, or None if no such id exists."""

    @abstractmethod
    async def list(self) -> list[DocumentRecord]:
        """Return every record, oldest first."""

    @abstractmethod
    async def update(self, document_id: UUID, fields: dict[str, Any]) -> DocumentRecord | None:
        """Apply user-editable field changes; refreshes updated_at."""

    @abstractmethod
    async def delete(self, document_id: UUID) -> bool:
        """Remove the record. Returns False if nothing was deleted."""

    @abstractmethod
    async def set_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        result: dict[str, Any] | None = None,
        *,
        expected: DocumentStatus | None = None,
    ) -> DocumentRecord | None:
        """
        Move the record to `status`, storing `result` when given.

        With `expected`, the write only applies while the stored status still
        equals it (compare-and-set); otherwise None is returned and the row is
        untouched. Transition legality is checked by the caller, not here.
        """

    async def ping(self) -> None:
        """Raise RepositoryError if the store is unreachable."""

    async def prepare(self) -> None:
        """Create storage structures (tables) if they are missing."""

    async def close(self) -> None:
        """Release pooled connections."""


def check_mutable_fields(fields: dict[str, Any]) -> None:
    illegal = set(fields) - MUTABLE_FIELDS
    if illegal:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(illegal))}")
