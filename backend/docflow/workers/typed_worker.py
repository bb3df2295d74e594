"""
Typed Worker — one component for both processing services.

The image and text services differ only in the topic they consume, the
document type they accept and the analyzer they run. Each handled message:

  1. Must come from the worker's own topic
  2. Must carry documentId, type and content, and type must match
  3. Is analyzed (a suspension point of variable latency)
  4. Produces {documentId, result} on the shared results topic

Malformed or mistyped work items are logged and dropped; there is no
dead-letter path. Analyzer and publish failures propagate to the bus
consumer's failure policy, which by default logs and drops the message,
leaving the document in `processing`.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as SchemaError

from docflow.core.errors import AnalysisError
from docflow.lifecycle.orchestrator import Publisher
from docflow.schemas.documents import DocumentType, ResultMessage, WorkItem

logger = logging.getLogger(__name__)

Analyzer = Callable[[WorkItem], Awaitable[dict[str, Any]]]

_REQUIRED_FIELDS = ("documentId", "type", "content")


class TypedWorker:
    """Bus handler bound to a single document type."""

    def __init__(
        self,
        document_type: DocumentType,
        topic: str,
        analyzer: Analyzer,
        publisher: Publisher,
        results_topic: str,
    ) -> None:
        self.document_type = DocumentType(document_type)
        self.topic = topic
        self.results_topic = results_topic
        self._analyzer = analyzer
        self._publisher = publisher

    def parse(self, message: Any) -> WorkItem | None:
        """Return the work item, or None (after logging) if it must be dropped."""
        if not isinstance(message, dict):
            logger.error("Invalid message format: expected an object | topic=%s", self.topic)
            return None

        missing = [f for f in _REQUIRED_FIELDS if not message.get(f)]
        if missing:
            logger.error(
                "Invalid message format: missing required fields | topic=%s missing=%s",
                self.topic, ",".join(missing),
            )
            return None

        if message["type"] != self.document_type.value:
            logger.error(
                "Invalid document type for %s service | doc=%s type=%s",
                self.document_type.value, message.get("documentId"), message["type"],
            )
            return None

        try:
            return WorkItem.model_validate(message)
        except SchemaError as exc:
            logger.error(
                "Invalid work item, dropping | doc=%s errors=%d",
                message.get("documentId"), exc.error_count(),
            )
            return None

    async def handle(self, topic: str, message: Any) -> None:
        logger.info("Received message | topic=%s", topic)

        if topic != self.topic:
            logger.warning("Received message from unexpected topic | topic=%s", topic)
            return

        work_item = self.parse(message)
        if work_item is None:
            return

        logger.info(
            "Processing %s document | doc=%s", self.document_type.value, work_item.document_id
        )
        try:
            result = await self._analyzer(work_item)
        except AnalysisError:
            raise
        except Exception as exc:
            raise AnalysisError(work_item.document_id, exc) from exc

        await self._publisher.publish(
            self.results_topic,
            ResultMessage(document_id=work_item.document_id, result=result),
        )
        logger.info(
            "Processing result sent | doc=%s type=%s",
            work_item.document_id, self.document_type.value,
        )
