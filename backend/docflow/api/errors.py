"""
HTTP exception handlers — uniform structured error responses.

Every synchronous error becomes an ErrorResponse envelope:

  ValidationError / RequestValidationError → 400 VALIDATION_ERROR
  NotFoundError                            → 404 NOT_FOUND
  InvalidTransitionError                   → 409 INVALID_TRANSITION
  BusError (ConnectError, PublishError)    → 503 BUS_UNAVAILABLE
  RepositoryError                          → 503 REPOSITORY_UNAVAILABLE
  anything else                            → 500 INTERNAL_ERROR (no stack trace)
"""

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docflow.core.errors import (
    BusError,
    DocflowError,
    InvalidTransitionError,
    NotFoundError,
    PublishError,
    RepositoryError,
    ValidationError,
)
from docflow.schemas.documents import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DocflowError], int]] = [
    (ValidationError,        status.HTTP_400_BAD_REQUEST),
    (NotFoundError,          status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (BusError,               status.HTTP_503_SERVICE_UNAVAILABLE),
    (RepositoryError,        status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def _error_response(request: Request, status_code: int, body: ErrorResponse) -> JSONResponse:
    body.request_id = body.request_id or _request_id(request)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _details_for(exc: DocflowError) -> list[ErrorDetail]:
    if isinstance(exc, ValidationError):
        return [
            ErrorDetail(field=violation.split(" ", 1)[0], message=violation, code=exc.error_code)
            for violation in exc.violations
        ]
    if isinstance(exc, PublishError) and exc.document_id is not None:
        return [
            ErrorDetail(
                field="documentId",
                message=f"Document {exc.document_id} was stored but remains pending",
                code="DOCUMENT_LEFT_PENDING",
            )
        ]
    return []


def install_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(DocflowError)
    async def docflow_exception_handler(request: Request, exc: DocflowError):
        status_code = next(
            (code for err_type, code in _STATUS_BY_ERROR if isinstance(exc, err_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if status_code >= 500:
            logger.error("Request failed | path=%s error=%s", request.url.path, exc)
        body = ErrorResponse(
            error_code=exc.error_code,
            message=str(exc),
            details=_details_for(exc),
        )
        return _error_response(request, status_code, body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Body/query type errors are client input errors too: 400, not 422."""
        details = [
            ErrorDetail(
                field=".".join(str(loc) for loc in err["loc"] if loc != "body") or None,
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
        )
        return _error_response(request, status.HTTP_400_BAD_REQUEST, body)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = _request_id(request) or str(uuid.uuid4())
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )
