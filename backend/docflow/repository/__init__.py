from docflow.repository.base import DocumentRecord, DocumentRepository
from docflow.repository.factory import get_repository
from docflow.repository.memory import InMemoryDocumentRepository

__all__ = [
    "DocumentRecord",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "get_repository",
]
