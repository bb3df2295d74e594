"""Text processing service entry point (docflow-text-service)."""

from docflow.schemas.documents import DocumentType
from docflow.services.worker import run_worker


def run() -> None:
    run_worker(DocumentType.TEXT)


if __name__ == "__main__":
    run()
