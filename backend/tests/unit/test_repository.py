"""
Unit Tests — document repository (in-memory backend + factory)
"""

from __future__ import annotations

import pytest

from docflow.repository import InMemoryDocumentRepository, get_repository
from docflow.schemas.documents import DocumentStatus, DocumentType


async def _create(repo: InMemoryDocumentRepository, name: str = "doc"):
    return await repo.create(name=name, type=DocumentType.TEXT, content="body", keywords=["k"])


@pytest.mark.unit
class TestInMemoryRepository:

    async def test_create_assigns_id_and_pending(self, repository):
        first = await _create(repository)
        second = await _create(repository)

        assert first.id != second.id
        assert first.status is DocumentStatus.PENDING
        assert first.result is None
        assert first.created_at == first.updated_at

    async def test_get_missing_returns_none(self, repository, unknown_document_id):
        assert await repository.get(unknown_document_id) is None

    async def test_update_rejects_immutable_fields(self, repository):
        record = await _create(repository)
        with pytest.raises(ValueError):
            await repository.update(record.id, {"content": "changed"})

    async def test_update_missing_returns_none(self, repository, unknown_document_id):
        assert await repository.update(unknown_document_id, {"name": "x"}) is None

    async def test_keywords_are_copied(self, repository):
        keywords = ["a"]
        record = await _create(repository)
        updated = await repository.update(record.id, {"keywords": keywords})
        keywords.append("b")
        assert updated.keywords == ["a"]

    async def test_delete_reports_presence(self, repository):
        record = await _create(repository)
        assert await repository.delete(record.id) is True
        assert await repository.delete(record.id) is False

    async def test_set_status_compare_and_set(self, repository):
        record = await _create(repository)

        stale = await repository.set_status(
            record.id, DocumentStatus.COMPLETED, {"x": 1}, expected=DocumentStatus.PROCESSING
        )
        assert stale is None
        assert (await repository.get(record.id)).status is DocumentStatus.PENDING

        moved = await repository.set_status(
            record.id, DocumentStatus.PROCESSING, expected=DocumentStatus.PENDING
        )
        assert moved.status is DocumentStatus.PROCESSING

    async def test_set_status_without_result_keeps_previous(self, repository):
        record = await _create(repository)
        await repository.set_status(record.id, DocumentStatus.COMPLETED, {"x": 1})
        again = await repository.set_status(record.id, DocumentStatus.COMPLETED)
        assert again.result == {"x": 1}

    async def test_instances_do_not_share_state(self):
        a, b = InMemoryDocumentRepository(), InMemoryDocumentRepository()
        await _create(a)
        assert await b.list() == []

    async def test_lifecycle_hooks_are_no_ops(self, repository):
        await repository.ping()
        await repository.prepare()
        await repository.close()


@pytest.mark.unit
class TestRepositoryFactory:

    def test_memory_backend(self, test_settings):
        assert isinstance(get_repository(test_settings), InMemoryDocumentRepository)

    def test_postgres_backend(self, test_settings):
        from docflow.repository.sql import SqlDocumentRepository

        settings = test_settings.model_copy(update={"document_store": "postgres"})
        assert isinstance(get_repository(settings), SqlDocumentRepository)

    def test_unknown_backend(self, test_settings):
        settings = test_settings.model_copy(update={"document_store": "mongo"})
        with pytest.raises(ValueError, match="Unknown document store"):
            get_repository(settings)


@pytest.mark.unit
class TestSqlRepositoryErrors:
    """Store outages surface as RepositoryError, never as a silent None."""

    @pytest.fixture
    def broken_repo(self):
        from unittest.mock import AsyncMock, MagicMock

        from sqlalchemy.exc import OperationalError

        from docflow.repository.sql import SqlDocumentRepository

        sessions = MagicMock()
        sessions.return_value.__aenter__ = AsyncMock(
            side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
        )
        sessions.return_value.__aexit__ = AsyncMock(return_value=False)
        return SqlDocumentRepository(MagicMock(), sessions)

    async def test_get_wraps_driver_error(self, broken_repo, unknown_document_id):
        from docflow.core.errors import RepositoryError

        with pytest.raises(RepositoryError, match="Failed to read document"):
            await broken_repo.get(unknown_document_id)

    async def test_create_wraps_driver_error(self, broken_repo):
        from docflow.core.errors import RepositoryError

        with pytest.raises(RepositoryError) as exc_info:
            await broken_repo.create(name="a", type=DocumentType.TEXT, content="b")
        assert exc_info.value.error_code == "REPOSITORY_UNAVAILABLE"

    async def test_update_checks_fields_before_touching_store(self, broken_repo, unknown_document_id):
        with pytest.raises(ValueError):
            await broken_repo.update(unknown_document_id, {"status": "completed"})
