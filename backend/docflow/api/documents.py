"""
Documents API Router — /api/documents

  POST   /api/documents        create + dispatch for processing   201 | 400 | 503
  GET    /api/documents        list (content elided by default)   200
  GET    /api/documents/{id}   fetch one                          200 | 404
  PUT    /api/documents/{id}   update name and/or keywords        200 | 400 | 404
  DELETE /api/documents/{id}   remove                             204 | 404

Processing is asynchronous: a created document is returned in `processing`
and clients poll GET /api/documents/{id} to observe the terminal status.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from docflow.api.dependencies import Orchestrator
from docflow.core.errors import NotFoundError
from docflow.repository.base import DocumentRecord
from docflow.schemas.documents import (
    DocumentCreateRequest,
    DocumentUpdateRequest,
    DocumentView,
    ErrorResponse,
)

router = APIRouter(prefix="/documents", tags=["Documents"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Document not found"},
    503: {"model": ErrorResponse, "description": "Message bus or document store unavailable"},
}


def _parse_id(document_id: str) -> UUID:
    """Ids that are not UUIDs cannot name a document, so they are simply not found."""
    try:
        return UUID(document_id)
    except ValueError:
        raise NotFoundError(document_id) from None


def to_view(record: DocumentRecord, include_content: bool = False) -> DocumentView:
    """Sanitized view; `content` is left unset unless explicitly requested."""
    fields = dict(
        id=record.id,
        name=record.name,
        type=record.type,
        keywords=record.keywords,
        status=record.status,
        result=record.result,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
    if include_content:
        fields["content"] = record.content
    return DocumentView(**fields)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=DocumentView,
    response_model_exclude_unset=True,
    summary="Create a new document",
    responses={400: _ERRORS[400], 503: _ERRORS[503]},
)
async def create_document(body: DocumentCreateRequest, orchestrator: Orchestrator):
    record = await orchestrator.submit(
        name=body.name,
        type=body.type,
        content=body.content,
        keywords=body.keywords,
    )
    return to_view(record)


@router.get(
    "",
    response_model=list[DocumentView],
    response_model_exclude_unset=True,
    summary="Get all documents",
)
async def list_documents(
    orchestrator: Orchestrator,
    include_content: bool = Query(False, alias="includeContent"),
):
    return [to_view(r, include_content) for r in await orchestrator.list()]


@router.get(
    "/{document_id}",
    response_model=DocumentView,
    response_model_exclude_unset=True,
    summary="Get a document by ID",
    responses={404: _ERRORS[404]},
)
async def get_document(
    document_id: str,
    orchestrator: Orchestrator,
    include_content: bool = Query(False, alias="includeContent"),
):
    return to_view(await orchestrator.get(_parse_id(document_id)), include_content)


@router.put(
    "/{document_id}",
    response_model=DocumentView,
    response_model_exclude_unset=True,
    summary="Update a document",
    responses={400: _ERRORS[400], 404: _ERRORS[404]},
)
async def update_document(
    document_id: str,
    body: DocumentUpdateRequest,
    orchestrator: Orchestrator,
):
    record = await orchestrator.update(_parse_id(document_id), name=body.name, keywords=body.keywords)
    return to_view(record)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a document",
    responses={404: _ERRORS[404]},
)
async def delete_document(document_id: str, orchestrator: Orchestrator):
    await orchestrator.delete(_parse_id(document_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
