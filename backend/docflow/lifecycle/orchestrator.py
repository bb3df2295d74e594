"""
Document Lifecycle Orchestrator

Gateway-side owner of a document's status. Intake flow for submit():

  ┌──────────────────────────────────────────────────────────────┐
  │ 1. Validate every field, collecting all violations           │
  │ 2. Persist the record            (status=pending)            │
  │ 3. Publish the work item to the topic chosen by type         │
  │ 4. Transition the record         (pending → processing)      │
  └──────────────────────────────────────────────────────────────┘

If step 3 fails the record stays pending and PublishError propagates to the
caller. Nothing re-queues it: the record is an orphan until someone
resubmits or deletes it.

Every status change goes through transition(), which checks the transition
table before writing, so an out-of-order or replayed update fails loudly
instead of silently moving a document backwards.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from uuid import UUID

from docflow.core.errors import InvalidTransitionError, NotFoundError, PublishError
from docflow.lifecycle.routing import TopicRoutes
from docflow.lifecycle.state_machine import validate_transition
from docflow.lifecycle.validation import validate_changes, validate_submission
from docflow.repository.base import DocumentRecord, DocumentRepository
from docflow.schemas.documents import DocumentStatus, DocumentType, WorkItem

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    async def publish(self, topic: str, message: Any) -> None: ...


class DocumentOrchestrator:
    """
    Stateless service object; repository and bus are injected so the
    lifecycle can be exercised without a live store or broker.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        publisher: Publisher,
        routes: TopicRoutes | None = None,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._routes = routes or TopicRoutes()

    @property
    def routes(self) -> TopicRoutes:
        return self._routes

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def submit(
        self,
        name: Any,
        type: Any,
        content: Any,
        keywords: Any = None,
    ) -> DocumentRecord:
        validate_submission(name, type, content, keywords)

        record = await self._repository.create(
            name=name,
            type=DocumentType(type),
            content=content,
            keywords=keywords or [],
        )
        logger.info("Document created | doc=%s type=%s", record.id, record.type.value)

        topic = self._routes.for_type(record.type)
        work_item = WorkItem(
            document_id=record.id,
            name=record.name,
            type=record.type,
            content=record.content,
        )
        try:
            await self._publisher.publish(topic, work_item)
        except PublishError as exc:
            exc.document_id = record.id
            logger.error(
                "Work item not published, document left pending | doc=%s topic=%s",
                record.id, topic,
            )
            raise

        try:
            return await self.transition(record.id, DocumentStatus.PROCESSING)
        except InvalidTransitionError:
            # A fast worker's result was reconciled before we got here.
            current = await self._repository.get(record.id)
            logger.warning(
                "Document moved on before processing was recorded | doc=%s status=%s",
                record.id, current.status.value if current else "deleted",
            )
            return current or record

    # ------------------------------------------------------------------
    # Pass-through CRUD
    # ------------------------------------------------------------------

    async def get(self, document_id: UUID) -> DocumentRecord:
        record = await self._repository.get(document_id)
        if record is None:
            raise NotFoundError(document_id)
        return record

    async def list(self) -> list[DocumentRecord]:
        return await self._repository.list()

    async def update(
        self,
        document_id: UUID,
        *,
        name: Any = None,
        keywords: Any = None,
    ) -> DocumentRecord:
        validate_changes(name, keywords)

        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if keywords is not None:
            fields["keywords"] = keywords

        record = await self._repository.update(document_id, fields)
        if record is None:
            raise NotFoundError(document_id)
        logger.info("Document updated | doc=%s fields=%s", document_id, ",".join(sorted(fields)))
        return record

    async def delete(self, document_id: UUID) -> None:
        if not await self._repository.delete(document_id):
            raise NotFoundError(document_id)
        logger.info("Document deleted | doc=%s", document_id)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        document_id: UUID,
        target: DocumentStatus,
        result: dict[str, Any] | None = None,
    ) -> DocumentRecord:
        """
        Validated status change. The write is conditional on the status that
        was read, so a concurrent writer forces a re-check instead of being
        overwritten.
        """
        target = DocumentStatus(target)
        if result is not None and target in (DocumentStatus.PENDING, DocumentStatus.PROCESSING):
            raise ValueError(f"A result cannot be stored on a {target.value} document")

        for _ in range(2):
            current = await self._repository.get(document_id)
            if current is None:
                raise NotFoundError(document_id)
            validate_transition(current.status, target, document_id)

            updated = await self._repository.set_status(
                document_id, target, result, expected=current.status
            )
            if updated is not None:
                logger.info(
                    "Status transition | doc=%s %s -> %s",
                    document_id, current.status.value, target.value,
                )
                return updated

        raise InvalidTransitionError(current.status.value, target.value, document_id)

    async def apply_result(
        self,
        document_id: UUID,
        result: dict[str, Any],
        outcome: DocumentStatus = DocumentStatus.COMPLETED,
    ) -> DocumentRecord:
        """
        Record a worker outcome. A result for a still-pending document proves
        its work item was accepted, so pending → processing is recorded first.
        """
        current = await self.get(document_id)
        if current.status is DocumentStatus.PENDING:
            try:
                await self.transition(document_id, DocumentStatus.PROCESSING)
            except InvalidTransitionError:
                # submit() recorded processing between our read and write
                logger.debug("Processing already recorded | doc=%s", document_id)
        return await self.transition(document_id, outcome, result)

    async def fail(self, document_id: UUID, result: dict[str, Any] | None = None) -> DocumentRecord:
        """processing → failed. Not reachable from the bus yet: result messages carry no failure flag."""
        return await self.transition(document_id, DocumentStatus.FAILED, result)
