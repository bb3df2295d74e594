"""Image processing service entry point (docflow-image-service)."""

from docflow.schemas.documents import DocumentType
from docflow.services.worker import run_worker


def run() -> None:
    run_worker(DocumentType.IMAGE)


if __name__ == "__main__":
    run()
