"""
Intake validation for document fields.

Rules are checked exhaustively: every violation is collected and reported
in a single ValidationError so the client can fix the request in one pass.
"""

from __future__ import annotations

from typing import Any

from docflow.core.errors import ValidationError
from docflow.schemas.documents import (
    CONTENT_MAX_BYTES,
    KEYWORD_MAX_LENGTH,
    MAX_KEYWORDS,
    NAME_MAX_LENGTH,
    DocumentType,
)

_TYPE_CHOICES = ", ".join(t.value for t in DocumentType)


def _name_violations(name: Any) -> list[str]:
    if name is None or name == "":
        return ["name is required"]
    if not isinstance(name, str):
        return ["name must be a string"]
    if len(name) > NAME_MAX_LENGTH:
        return [f"name must be between 1 and {NAME_MAX_LENGTH} characters"]
    return []


def _type_violations(type_: Any) -> list[str]:
    if type_ is None or type_ == "":
        return ["type is required"]
    if not isinstance(type_, str) or type_ not in {t.value for t in DocumentType}:
        return [f"type must be one of: {_TYPE_CHOICES}"]
    return []


def _content_violations(content: Any) -> list[str]:
    if content is None or content == "":
        return ["content is required"]
    if not isinstance(content, str):
        return ["content must be a string"]
    if len(content.encode("utf-8")) > CONTENT_MAX_BYTES:
        return [f"content must not exceed {CONTENT_MAX_BYTES // (1024 * 1024)} MB"]
    return []


def _keyword_violations(keywords: Any) -> list[str]:
    if keywords is None:
        return []
    if not isinstance(keywords, list):
        return ["keywords must be an array of strings"]

    violations: list[str] = []
    if len(keywords) > MAX_KEYWORDS:
        violations.append(f"keywords must contain at most {MAX_KEYWORDS} items")
    for index, keyword in enumerate(keywords):
        if not isinstance(keyword, str):
            violations.append(f"keywords[{index}] must be a string")
        elif not 1 <= len(keyword) <= KEYWORD_MAX_LENGTH:
            violations.append(
                f"keywords[{index}] must be between 1 and {KEYWORD_MAX_LENGTH} characters"
            )
    return violations


def validate_submission(
    name: Any,
    type_: Any,
    content: Any,
    keywords: Any = None,
) -> None:
    violations = (
        _name_violations(name)
        + _type_violations(type_)
        + _content_violations(content)
        + _keyword_violations(keywords)
    )
    if violations:
        raise ValidationError(violations)


def validate_changes(name: Any = None, keywords: Any = None) -> None:
    """Rules for PUT: at least one field, each present field valid."""
    if name is None and keywords is None:
        raise ValidationError(["at least one of name or keywords is required"])

    violations: list[str] = []
    if name is not None:
        violations += _name_violations(name)
    violations += _keyword_violations(keywords)
    if violations:
        raise ValidationError(violations)
