"""
Document type → topic routing.

Routing is a bijection: every type has exactly one work topic and no two
types share one, so an image never lands on the text topic and vice versa.
"""

from __future__ import annotations

from dataclasses import dataclass

from docflow.core.config import Settings
from docflow.schemas.documents import DocumentType


@dataclass(frozen=True)
class TopicRoutes:
    image:   str = "document-image-processing"
    text:    str = "document-text-processing"
    results: str = "document-processing-results"

    def __post_init__(self) -> None:
        if len({self.image, self.text, self.results}) != 3:
            raise ValueError("image, text and results topics must be distinct")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TopicRoutes":
        return cls(
            image=settings.topic_image_processing,
            text=settings.topic_text_processing,
            results=settings.topic_processing_results,
        )

    def for_type(self, document_type: DocumentType) -> str:
        routes = {DocumentType.IMAGE: self.image, DocumentType.TEXT: self.text}
        return routes[DocumentType(document_type)]
