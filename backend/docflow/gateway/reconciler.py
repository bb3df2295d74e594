"""
Result Reconciliation Consumer

Runs in the gateway's consumer group on the results topic and applies each
worker result to the document it names.

Result messages carry no status or type, so every result is recorded as
`completed` (see outcome_for). Messages that cannot be applied are logged
and dropped; there is no synchronous caller to report to:
  - missing documentId / result, or unparseable payload
  - unknown documentId (nothing is created)
  - a transition the state machine rejects (e.g. result for a failed document)

Replaying a result for a completed document overwrites the stored result;
it is not a new transition.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as SchemaError

from docflow.core.errors import InvalidTransitionError, NotFoundError
from docflow.lifecycle.orchestrator import DocumentOrchestrator
from docflow.schemas.documents import DocumentStatus, ResultMessage

logger = logging.getLogger(__name__)


class ResultReconciler:

    def __init__(self, orchestrator: DocumentOrchestrator, results_topic: str) -> None:
        self._orchestrator = orchestrator
        self.results_topic = results_topic

    def outcome_for(self, message: ResultMessage) -> DocumentStatus:
        """
        Terminal status implied by a result message.

        Always completed: workers only publish on success and the message has
        no failure indicator. A failure channel would be decided here.
        """
        return DocumentStatus.COMPLETED

    async def handle(self, topic: str, message: Any) -> bool:
        """Bus handler. Returns True when the result was applied."""
        logger.info("Received message | topic=%s", topic)

        if topic != self.results_topic:
            logger.warning("Received message from unexpected topic | topic=%s", topic)
            return False

        if (
            not isinstance(message, dict)
            or not message.get("documentId")
            or message.get("result") is None
        ):
            logger.error("Invalid message format: missing documentId or result")
            return False

        try:
            result_message = ResultMessage.model_validate(message)
        except SchemaError as exc:
            logger.error(
                "Invalid result message, dropping | doc=%s errors=%d",
                message.get("documentId"), exc.error_count(),
            )
            return False

        document_id = result_message.document_id
        logger.info("Processing result for document | doc=%s", document_id)
        try:
            await self._orchestrator.apply_result(
                document_id,
                result_message.result,
                self.outcome_for(result_message),
            )
        except NotFoundError:
            logger.error("Document not found when processing result | doc=%s", document_id)
            return False
        except InvalidTransitionError as exc:
            logger.error("Result rejected by state machine | doc=%s error=%s", document_id, exc)
            return False

        logger.info("Document processed successfully | doc=%s", document_id)
        return True
