"""
Content analyzers.

Stand-ins for real image / text analysis: they wait a configurable amount of
time (to model variable-latency work) and then compute cheap, deterministic
statistics from the payload. Both are idempotent and side-effect free, so a
duplicate work item simply yields the same result again.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
import struct
import time
from collections import Counter
from typing import Any

from docflow.core.errors import AnalysisError
from docflow.schemas.documents import WorkItem

# Magic byte signatures checked against the start of the decoded image
_IMAGE_SIGNATURES: dict[bytes, str] = {
    b"\x89PNG\r\n\x1a\n": "PNG",
    b"\xff\xd8\xff":      "JPEG",
    b"GIF87a":            "GIF",
    b"GIF89a":            "GIF",
    b"BM":                "BMP",
}

_WORD_RE = re.compile(r"[A-Za-z][A-Za-z'-]*")
_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s|$)")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")

_STOPWORDS = frozenset(
    "the and for that with this from have are was were will would there their "
    "been into about which when what your they them than then also such".split()
)


# ---------------------------------------------------------------------------
# Image
# ---------------------------------------------------------------------------

def _decode_image(content: str) -> bytes:
    # Accept data URLs: data:image/png;base64,....
    if content.startswith("data:") and "," in content:
        content = content.split(",", 1)[1]
    return base64.b64decode(content, validate=True)


def _sniff_format(data: bytes) -> str:
    for magic, fmt in _IMAGE_SIGNATURES.items():
        if data.startswith(magic):
            return fmt
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    return "UNKNOWN"


def _dimensions(data: bytes, fmt: str) -> str | None:
    if fmt == "PNG" and len(data) >= 24:
        width, height = struct.unpack(">II", data[16:24])
        return f"{width}x{height}"
    if fmt == "GIF" and len(data) >= 10:
        width, height = struct.unpack("<HH", data[6:10])
        return f"{width}x{height}"
    if fmt == "BMP" and len(data) >= 26:
        width, height = struct.unpack("<ii", data[18:26])
        return f"{width}x{abs(height)}"
    return None


async def analyze_image(work_item: WorkItem, *, delay: float = 0.0) -> dict[str, Any]:
    started = time.perf_counter()
    if delay:
        await asyncio.sleep(delay)

    try:
        data = _decode_image(work_item.content)
    except (binascii.Error, ValueError) as exc:
        raise AnalysisError(work_item.document_id, f"content is not valid base64: {exc}") from exc

    fmt = _sniff_format(data)
    metadata: dict[str, Any] = {"format": fmt, "sizeBytes": len(data)}
    dims = _dimensions(data, fmt)
    if dims:
        metadata["dimensions"] = dims

    return {
        "analysis": "Image analysis complete",
        "metadata": metadata,
        "processingTime": f"{time.perf_counter() - started:.2f}s",
    }


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def _top_keywords(words: list[str], limit: int = 5) -> list[str]:
    counts = Counter(
        w for w in (word.lower() for word in words)
        if len(w) > 3 and w not in _STOPWORDS
    )
    return [word for word, _ in counts.most_common(limit)]


async def analyze_text(work_item: WorkItem, *, delay: float = 0.0) -> dict[str, Any]:
    started = time.perf_counter()
    if delay:
        await asyncio.sleep(delay)

    text = work_item.content
    words = _WORD_RE.findall(text)
    stripped = text.strip()

    sentences = len(_SENTENCE_END_RE.findall(stripped))
    if stripped and not _SENTENCE_END_RE.search(stripped[-1:] + " "):
        sentences += 1  # trailing sentence without terminal punctuation

    return {
        "analysis": "Text analysis complete",
        "statistics": {
            "wordCount":      len(words),
            "characterCount": len(text),
            "sentenceCount":  sentences,
            "paragraphCount": len([p for p in _PARAGRAPH_RE.split(stripped) if p.strip()]),
        },
        "keywords": _top_keywords(words),
        "processingTime": f"{time.perf_counter() - started:.2f}s",
    }
