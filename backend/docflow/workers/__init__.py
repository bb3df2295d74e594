"""
Document processing workers.

  analyzers.py     image / text analysis stand-ins
  typed_worker.py  generic bus handler parameterized by type, topic and analyzer
"""

from docflow.workers.analyzers import analyze_image, analyze_text
from docflow.workers.typed_worker import Analyzer, TypedWorker

__all__ = ["Analyzer", "TypedWorker", "analyze_image", "analyze_text"]
