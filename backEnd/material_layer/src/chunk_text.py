"""
Character-based text chunking with overlap.

Each page is normalized and windowed independently, so chunks never span
pages. Overlap keeps text that straddles a window boundary searchable.
"""

import logging
import re
import uuid
from typing import Iterator

from .errors import ValidationError
from .schemas.chunk import Chunk, ChunkSet
from .schemas.pages import ExtractedPages

logger = logging.getLogger(__name__)

# Default chunking parameters
DEFAULT_CHUNK_SIZE = 800
DEFAULT_OVERLAP = 150

HORIZONTAL_WS = re.compile(r"[ \t]+")
EXCESS_NEWLINES = re.compile(r"\n{3,}")


def normalize_page_text(text: str) -> str:
    """
    Normalize raw page text before windowing.

    Form feeds become newlines, runs of spaces/tabs collapse to one space,
    three or more newlines collapse to a blank line, then the result is trimmed.
    """
    text = (text or "").replace("\f", "\n")
    text = HORIZONTAL_WS.sub(" ", text)
    text = EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def validate_chunk_params(chunk_size: int, overlap: int) -> None:
    """Reject parameters that would stall or degenerate the window."""
    if chunk_size < 1:
        raise ValidationError(
            "chunk_size must be at least 1",
            field="chunk_size",
            value=chunk_size,
        )
    if overlap < 0:
        raise ValidationError(
            "overlap must not be negative",
            field="overlap",
            value=overlap,
        )
    if overlap >= chunk_size:
        raise ValidationError(
            "overlap must be smaller than chunk_size",
            field="overlap",
            value=overlap,
            chunk_size=chunk_size,
        )


def split_with_overlap(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> Iterator[tuple[int, str]]:
    """
    Slide a window of chunk_size characters over text.

    Consecutive windows share `overlap` characters; the stride is
    chunk_size - overlap. Whitespace-only windows are skipped.

    Yields:
        (start offset in text, trimmed window text)
    """
    validate_chunk_params(chunk_size, overlap)

    start = 0
    length = len(text)
    while start < length:
        end = min(start + chunk_size, length)
        piece = text[start:end].strip()
        if piece:
            yield start, piece
        if end >= length:
            break
        start = max(0, end - overlap)


def build_chunk_set(
    pages: ExtractedPages,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> ChunkSet:
    """
    Build a fresh chunk set for one document.

    Args:
        pages: Extracted pages of the document
        chunk_size: Window length in characters
        overlap: Characters shared by consecutive windows on a page

    Returns:
        ChunkSet with new chunk ids, the parameters used and a timestamp
    """
    validate_chunk_params(chunk_size, overlap)

    chunks: list[Chunk] = []
    empty_pages = 0

    for page in pages.pages:
        text = normalize_page_text(page.text)
        if not text:
            empty_pages += 1
            continue

        for _, piece in split_with_overlap(text, chunk_size, overlap):
            chunks.append(
                Chunk(
                    chunk_id=uuid.uuid4().hex,
                    doc_id=pages.doc_id,
                    page_start=page.page,
                    page_end=page.page,
                    text=piece,
                )
            )

    if empty_pages:
        logger.debug(f"{pages.doc_id}: {empty_pages}/{pages.page_count} pages had no text")

    return ChunkSet(
        doc_id=pages.doc_id,
        chunk_size=chunk_size,
        overlap=overlap,
        chunks=chunks,
    )
