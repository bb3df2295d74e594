"""
In-process document store.

Backs local demos (DOCUMENT_STORE=memory) and the test suite. State lives on
the instance, not the module, so each app or test gets its own store.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from docflow.repository.base import DocumentRecord, DocumentRepository, check_mutable_fields
from docflow.schemas.documents import DocumentStatus, DocumentType

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentRepository(DocumentRepository):
    """Dict-backed repository; an asyncio.Lock makes each operation atomic."""

    def __init__(self) -> None:
        self._documents: dict[UUID, DocumentRecord] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        *,
        name: str,
        type: DocumentType,
        content: str,
        keywords: list[str] | None = None,
    ) -> DocumentRecord:
        now = _now()
        record = DocumentRecord(
            id=uuid.uuid4(),
            name=name,
            type=DocumentType(type),
            content=content,
            keywords=list(keywords or []),
            status=DocumentStatus.PENDING,
            result=None,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._documents[record.id] = record
        logger.debug("Document stored | doc=%s", record.id)
        return record

    async def get(self, document_id: UUID) -> DocumentRecord | None:
        return self._documents.get(document_id)

    async def list(self) -> list[DocumentRecord]:
        return sorted(self._documents.values(), key=lambda d: d.created_at)

    async def update(self, document_id: UUID, fields: dict[str, Any]) -> DocumentRecord | None:
        check_mutable_fields(fields)
        async with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                return None
            changes = dict(fields)
            if "keywords" in changes:
                changes["keywords"] = list(changes["keywords"])
            updated = current.with_changes(**changes, updated_at=_now())
            self._documents[document_id] = updated
            return updated

    async def delete(self, document_id: UUID) -> bool:
        async with self._lock:
            return self._documents.pop(document_id, None) is not None

    async def set_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        result: dict[str, Any] | None = None,
        *,
        expected: DocumentStatus | None = None,
    ) -> DocumentRecord | None:
        async with self._lock:
            current = self._documents.get(document_id)
            if current is None:
                return None
            if expected is not None and current.status != expected:
                return None
            changes: dict[str, Any] = {"status": DocumentStatus(status), "updated_at": _now()}
            if result is not None:
                changes["result"] = result
            updated = current.with_changes(**changes)
            self._documents[document_id] = updated
            return updated
