"""
SQLAlchemy ORM Model — Documents

Maps to the `documents` table. Using SQLAlchemy 2.x mapped classes for full
async support. The repository layer converts rows into DocumentRecord values
so nothing above it depends on the ORM.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Declarative base shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Document model: documents
# ---------------------------------------------------------------------------

class Document(Base):
    """
    A submitted image or text document and its processing outcome.

    State machine (status column):
        pending    — row created, work item not yet published
        processing — work item published to the type topic
        completed  — result reconciled from the results topic
        failed     — terminal worker failure
    """

    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="documents_status_check",
        ),
        CheckConstraint(
            "type IN ('image', 'text')",
            name="documents_type_check",
        ),
        Index("idx_documents_status",     "status"),
        Index("idx_documents_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="image | text — immutable, selects the processing topic",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Base64 for images, raw text otherwise",
    )

    keywords: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        server_default="pending",
    )

    result: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        comment="Populated only once status is completed or failed",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} type={self.type} status={self.status}>"
