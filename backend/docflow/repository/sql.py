"""
PostgreSQL document store (SQLAlchemy async + asyncpg).

Each call opens a session from the shared pool, runs one short transaction
and returns the connection. Status changes are a single UPDATE ... RETURNING,
optionally guarded by the expected current status, so concurrent writers
never interleave a read-modify-write on the same row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from docflow.core.errors import RepositoryError
from docflow.db.session import check_db_health, create_session_factory, init_models
from docflow.models.documents import Document
from docflow.repository.base import DocumentRecord, DocumentRepository, check_mutable_fields
from docflow.schemas.documents import DocumentStatus, DocumentType

logger = logging.getLogger(__name__)

# asyncpg can surface socket failures before SQLAlchemy wraps them
_STORE_ERRORS = (SQLAlchemyError, OSError)


def _to_record(row: Document) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        name=row.name,
        type=DocumentType(row.type),
        content=row.content,
        keywords=list(row.keywords or []),
        status=DocumentStatus(row.status),
        result=row.result,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlDocumentRepository(DocumentRepository):
    """Repository over the `documents` table."""

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._engine = engine
        self._sessions = session_factory or create_session_factory(engine)

    async def create(
        self,
        *,
        name: str,
        type: DocumentType,
        content: str,
        keywords: list[str] | None = None,
    ) -> DocumentRecord:
        now = datetime.now(timezone.utc)
        row = Document(
            name=name,
            type=DocumentType(type).value,
            content=content,
            keywords=list(keywords or []),
            status=DocumentStatus.PENDING.value,
            result=None,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._sessions() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
        except _STORE_ERRORS as exc:
            logger.error("Document insert failed | error=%s", exc)
            raise RepositoryError(f"Failed to create document: {exc}") from exc
        return _to_record(row)

    async def get(self, document_id: UUID) -> DocumentRecord | None:
        try:
            async with self._sessions() as session:
                row = await session.get(Document, document_id)
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"Failed to read document {document_id}: {exc}") from exc
        return _to_record(row) if row is not None else None

    async def list(self) -> list[DocumentRecord]:
        try:
            async with self._sessions() as session:
                rows = (
                    await session.execute(select(Document).order_by(Document.created_at))
                ).scalars().all()
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"Failed to list documents: {exc}") from exc
        return [_to_record(r) for r in rows]

    async def update(self, document_id: UUID, fields: dict[str, Any]) -> DocumentRecord | None:
        check_mutable_fields(fields)
        values = dict(fields, updated_at=datetime.now(timezone.utc))
        stmt = (
            update(Document)
            .where(Document.id == document_id)
            .values(**values)
            .returning(Document)
        )
        return await self._update_returning(stmt, document_id)

    async def delete(self, document_id: UUID) -> bool:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(Document).where(Document.id == document_id)
                    )
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"Failed to delete document {document_id}: {exc}") from exc
        return result.rowcount > 0

    async def set_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        result: dict[str, Any] | None = None,
        *,
        expected: DocumentStatus | None = None,
    ) -> DocumentRecord | None:
        values: dict[str, Any] = {
            "status": DocumentStatus(status).value,
            "updated_at": datetime.now(timezone.utc),
        }
        if result is not None:
            values["result"] = result

        stmt = update(Document).where(Document.id == document_id)
        if expected is not None:
            stmt = stmt.where(Document.status == DocumentStatus(expected).value)
        stmt = stmt.values(**values).returning(Document)
        return await self._update_returning(stmt, document_id)

    async def ping(self) -> None:
        health = await check_db_health(self._engine)
        if health["status"] != "ok":
            raise RepositoryError(f"Database unavailable: {health.get('detail')}")

    async def prepare(self) -> None:
        try:
            await init_models(self._engine)
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"Failed to create tables: {exc}") from exc

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database pool closed")

    async def _update_returning(self, stmt, document_id: UUID) -> DocumentRecord | None:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    row = (
                        await session.execute(
                            stmt.execution_options(synchronize_session=False)
                        )
                    ).scalars().first()
        except _STORE_ERRORS as exc:
            raise RepositoryError(f"Failed to update document {document_id}: {exc}") from exc
        return _to_record(row) if row is not None else None
