"""
Document Lifecycle — Pydantic Schemas

Covers three surfaces:
  - HTTP request/response bodies for /api/documents
  - Message bus payloads (work items and result messages)
  - Uniform error envelope for all 4xx/5xx responses

Wire format is camelCase (documentId, createdAt, ...) on both HTTP and the
bus; Python attributes stay snake_case via alias generation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Field limits, enforced by docflow.lifecycle.validation
# ---------------------------------------------------------------------------

NAME_MAX_LENGTH: int = 255
CONTENT_MAX_BYTES: int = 10 * 1024 * 1024   # 10 MB
MAX_KEYWORDS: int = 20
KEYWORD_MAX_LENGTH: int = 50


class DocumentType(str, Enum):
    """Immutable after creation; selects the processing topic."""
    IMAGE = "image"
    TEXT  = "text"


class DocumentStatus(str, Enum):
    """
    Document lifecycle state.
    Transitions: pending → processing → completed | failed
    """
    PENDING    = "pending"      # record persisted, work item not yet accepted
    PROCESSING = "processing"   # work item published to the type topic
    COMPLETED  = "completed"    # result reconciled from the results topic
    FAILED     = "failed"       # terminal worker failure


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# HTTP requests
# ---------------------------------------------------------------------------

# OpenAPI shapes for the untyped request fields
_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": {"type": "string"}}


class DocumentCreateRequest(_CamelModel):
    """
    POST /api/documents body.
    Fields accept any JSON value here so that missing and mistyped fields
    are reported together with every other violation (see lifecycle.validation).
    """
    name:     Any = Field(default=None, json_schema_extra=_STRING)
    type:     Any = Field(default=None, json_schema_extra=_STRING)
    content:  Any = Field(default=None, json_schema_extra=_STRING)
    keywords: Any = Field(default=None, json_schema_extra=_STRING_LIST)


class DocumentUpdateRequest(_CamelModel):
    """PUT /api/documents/{id} body — at least one field is required."""
    name:     Any = Field(default=None, json_schema_extra=_STRING)
    keywords: Any = Field(default=None, json_schema_extra=_STRING_LIST)


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------

class DocumentView(_CamelModel):
    """
    Sanitized document representation.
    `content` is only set when the caller asked for the payload; routes use
    response_model_exclude_unset so an unset content is omitted entirely.
    """
    id:         UUID
    name:       str
    type:       DocumentType
    keywords:   list[str]           = Field(default_factory=list)
    status:     DocumentStatus
    result:     dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    content:    str | None          = None


class HealthResponse(BaseModel):
    status:    str = "ok"
    service:   str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Bus payloads
# ---------------------------------------------------------------------------

class WorkItem(_CamelModel):
    """Projection of a document sent on the type-specific topic."""
    document_id: UUID
    name:        str = ""
    type:        DocumentType
    content:     str


class ResultMessage(_CamelModel):
    """Worker output sent on the shared results topic; correlates by id only."""
    document_id: UUID
    result:      dict[str, Any]


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")
