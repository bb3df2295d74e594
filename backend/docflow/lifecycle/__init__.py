"""
Document lifecycle orchestration: intake validation, type routing, the
status state machine and the orchestrator that ties them to the repository
and the message bus.
"""

from docflow.lifecycle.orchestrator import DocumentOrchestrator
from docflow.lifecycle.routing import TopicRoutes
from docflow.lifecycle.state_machine import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    can_transition,
    is_terminal,
    validate_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DocumentOrchestrator",
    "TERMINAL_STATUSES",
    "TopicRoutes",
    "can_transition",
    "is_terminal",
    "validate_transition",
]
