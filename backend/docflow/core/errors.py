"""
Exception taxonomy shared by the gateway and the worker services.

    DocflowError
    ├── ValidationError         client input violates field constraints  → 400
    ├── NotFoundError           identifier has no record                 → 404
    ├── InvalidTransitionError  status change not in the transition table → 409
    ├── RepositoryError         document store unavailable               → 503
    ├── AnalysisError           analyzer failed on a work item (workers only)
    └── BusError                message broker unavailable               → 503
        ├── ConnectError
        └── PublishError

HTTP mapping lives in docflow.api.errors; background consumers only log.
"""

from __future__ import annotations


class DocflowError(Exception):
    """Base class for every error raised by docflow itself."""

    error_code = "INTERNAL_ERROR"


class ValidationError(DocflowError):
    """Carries every violated rule, not just the first one found."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(self.violations) or "Validation failed")


class NotFoundError(DocflowError):
    error_code = "NOT_FOUND"

    def __init__(self, document_id: object) -> None:
        self.document_id = document_id
        super().__init__(f"Document with ID {document_id} not found")


class InvalidTransitionError(DocflowError):
    error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str, document_id: object = None) -> None:
        self.current = current
        self.target = target
        self.document_id = document_id
        suffix = f" for document {document_id}" if document_id is not None else ""
        super().__init__(f"Illegal status transition {current} -> {target}{suffix}")


class RepositoryError(DocflowError):
    error_code = "REPOSITORY_UNAVAILABLE"


class BusError(DocflowError):
    error_code = "BUS_UNAVAILABLE"


class ConnectError(BusError):
    pass


class PublishError(BusError):
    def __init__(self, topic: str, reason: object) -> None:
        self.topic = topic
        # Set by the orchestrator when the failed publish leaves a pending record behind
        self.document_id: object = None
        super().__init__(f"Failed to publish to topic {topic}: {reason}")


class AnalysisError(DocflowError):
    """An analyzer could not produce a result for a work item."""

    error_code = "ANALYSIS_FAILED"

    def __init__(self, document_id: object, reason: object) -> None:
        self.document_id = document_id
        super().__init__(f"Analysis failed for document {document_id}: {reason}")
