"""
Unit Tests — status state machine and type routing
"""

from __future__ import annotations

import itertools

import pytest

from docflow.core.errors import InvalidTransitionError
from docflow.lifecycle.routing import TopicRoutes
from docflow.lifecycle.state_machine import (
    ALLOWED_TRANSITIONS,
    can_transition,
    is_terminal,
    validate_transition,
)
from docflow.schemas.documents import DocumentStatus, DocumentType

P, R, C, F = (
    DocumentStatus.PENDING,
    DocumentStatus.PROCESSING,
    DocumentStatus.COMPLETED,
    DocumentStatus.FAILED,
)

LEGAL = {(P, R), (R, C), (R, F), (C, C)}


@pytest.mark.unit
class TestTransitions:

    @pytest.mark.parametrize("current,target", sorted(LEGAL))
    def test_legal_transitions(self, current, target):
        assert can_transition(current, target)
        validate_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [pair for pair in itertools.product(DocumentStatus, repeat=2) if pair not in LEGAL],
    )
    def test_everything_else_is_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError):
            validate_transition(current, target)

    def test_table_covers_every_status(self):
        assert set(ALLOWED_TRANSITIONS) == set(DocumentStatus)

    def test_failed_is_a_sink(self):
        assert ALLOWED_TRANSITIONS[F] == frozenset()

    def test_terminal_statuses(self):
        assert is_terminal(C) and is_terminal(F)
        assert not is_terminal(P) and not is_terminal(R)

    def test_error_names_both_states_and_document(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(C, R, "doc-1")
        err = exc_info.value
        assert (err.current, err.target, err.document_id) == ("completed", "processing", "doc-1")
        assert "completed -> processing" in str(err)

    def test_accepts_raw_string_values(self):
        assert can_transition("pending", "processing")


@pytest.mark.unit
class TestTopicRoutes:

    def test_defaults(self):
        routes = TopicRoutes()
        assert routes.for_type(DocumentType.IMAGE) == "document-image-processing"
        assert routes.for_type(DocumentType.TEXT) == "document-text-processing"
        assert routes.results == "document-processing-results"

    def test_routing_is_a_bijection(self):
        routes = TopicRoutes()
        topics = {routes.for_type(t) for t in DocumentType}
        assert len(topics) == len(DocumentType)
        assert routes.results not in topics

    def test_accepts_type_value(self):
        assert TopicRoutes().for_type("text") == "document-text-processing"

    def test_duplicate_topics_rejected(self):
        with pytest.raises(ValueError):
            TopicRoutes(image="shared", text="shared")

    def test_from_settings(self, test_settings):
        custom = test_settings.model_copy(update={"topic_text_processing": "texts"})
        assert TopicRoutes.from_settings(custom).text == "texts"
