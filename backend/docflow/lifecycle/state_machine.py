"""
Document status state machine.

    pending ──(work item published)──▶ processing ──(result)──▶ completed
                                            │
                                            └──(worker failure)──▶ failed

completed → completed is the one self-loop: a redelivered or duplicate
result overwrites the stored result without counting as a new transition.
Everything else out of a terminal status is illegal.
"""

from __future__ import annotations

from docflow.core.errors import InvalidTransitionError
from docflow.schemas.documents import DocumentStatus

ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING:    frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.COMPLETED, DocumentStatus.FAILED}),
    DocumentStatus.COMPLETED:  frozenset({DocumentStatus.COMPLETED}),
    DocumentStatus.FAILED:     frozenset(),
}

TERMINAL_STATUSES: frozenset[DocumentStatus] = frozenset(
    {DocumentStatus.COMPLETED, DocumentStatus.FAILED}
)


def is_terminal(status: DocumentStatus) -> bool:
    return DocumentStatus(status) in TERMINAL_STATUSES


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    return DocumentStatus(target) in ALLOWED_TRANSITIONS[DocumentStatus(current)]


def validate_transition(
    current: DocumentStatus,
    target: DocumentStatus,
    document_id: object = None,
) -> None:
    """Raise InvalidTransitionError unless current → target is in the table."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            DocumentStatus(current).value, DocumentStatus(target).value, document_id
        )
