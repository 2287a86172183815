"""
Lexical search over one document's chunks.

Scoring is plain term frequency: for every query token, count its
non-overlapping case-insensitive occurrences in the chunk text and sum.
Ties keep chunk order (stable sort, no secondary key).
"""

import logging
import re

from .errors import NotChunkedError
from .schemas.chunk import Chunk, ChunkSet
from .schemas.search import MaterialHit
from .stage_store import StageStore

logger = logging.getLogger(__name__)

SNIPPET_MAX_LEN = 180
ELLIPSIS = "…"


def tokenize(query: str) -> list[str]:
    """Lower-case and split on whitespace runs (ideographic space included)."""
    return (query or "").lower().split()


def count_occurrences(text: str, token: str) -> int:
    """Non-overlapping, case-insensitive occurrences of token in text."""
    if not token:
        return 0
    # str.count scans left to right and resumes after each match
    return text.lower().count(token.lower())


def score_chunk(chunk: Chunk, tokens: list[str]) -> int:
    return sum(count_occurrences(chunk.text, token) for token in tokens)


def make_snippet(text: str, tokens: list[str], max_len: int = SNIPPET_MAX_LEN) -> str:
    """
    Window of max_len characters around the first query token found.

    Tokens are tried in query order; the match sits about a third into the
    window. Ellipses mark a window that stops short of either end.
    """
    # Offsets come from the original text; lower() can change its length
    pos = -1
    for token in tokens:
        match = re.search(re.escape(token), text, re.IGNORECASE) if token else None
        if match:
            pos = match.start()
            break

    if pos == -1:
        return text[:max_len]

    start = max(0, pos - max_len // 3)
    end = min(len(text), start + max_len)
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    return f"{prefix}{text[start:end]}{suffix}"


def search_material(chunk_set: ChunkSet, query: str, top_k: int = 5) -> list[MaterialHit]:
    """
    Rank a chunk set against a free-text query.

    Args:
        chunk_set: Chunks to search
        query: Free-text query; an empty query yields no hits
        top_k: Maximum number of hits

    Returns:
        At most top_k hits, all with score >= 1, best first
    """
    tokens = tokenize(query)
    if not tokens or top_k < 1:
        return []

    scored = [(chunk, score_chunk(chunk, tokens)) for chunk in chunk_set.chunks]
    scored = [(chunk, score) for chunk, score in scored if score > 0]
    scored.sort(key=lambda pair: pair[1], reverse=True)

    return [
        MaterialHit(
            chunk_id=chunk.chunk_id,
            pdf_id=chunk.doc_id,
            page_start=chunk.page_start,
            page_end=chunk.page_end,
            score=score,
            snippet=make_snippet(chunk.text, tokens),
        )
        for chunk, score in scored[:top_k]
    ]


def search_document(
    store: StageStore,
    doc_id: str,
    query: str,
    top_k: int = 5,
) -> tuple[ChunkSet, list[MaterialHit]]:
    """
    Search a stored document's chunk set.

    Raises:
        NotChunkedError: the document has no chunk set yet (run the pipeline first)
    """
    chunk_set = store.read_chunks(doc_id)
    if chunk_set is None:
        raise NotChunkedError("document is not chunked yet", {"doc_id": doc_id})

    hits = search_material(chunk_set, query, top_k)
    logger.debug(f"Search {doc_id} for {query!r}: {len(hits)} hits of {len(chunk_set.chunks)} chunks")
    return chunk_set, hits
