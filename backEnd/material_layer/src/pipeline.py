"""
Pipeline orchestrator.

Drives each document through a one-directional state machine:

    uploaded --extract--> extracted --chunk--> chunked

The ensure_* calls are idempotent: when the target artifact already exists it
is returned as-is and nothing is re-derived. Blocking file I/O and chunking
run in worker threads so concurrent requests keep making progress.

There is no per-document lock. Two concurrent builds for the same id both run
and the last atomic replace wins.
"""

import asyncio
import logging
import time
from typing import Optional

from .chunk_text import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, build_chunk_set, validate_chunk_params
from .errors import InternalError, NotExtractedError
from .extract_pages import BaseExtractor, extract_document
from .schemas.chunk import ChunkSet
from .schemas.document import DocumentStatus
from .schemas.pages import ExtractedPages
from .stage_store import StageStore

logger = logging.getLogger(__name__)

DEFAULT_REPRESENTATIVE_TEXT_CHARS = 8000


class PipelineOrchestrator:
    """Ensures extraction then chunking have completed for a document."""

    def __init__(
        self,
        store: StageStore,
        extractor: BaseExtractor,
        representative_text_chars: int = DEFAULT_REPRESENTATIVE_TEXT_CHARS,
        default_chunk_size: int = DEFAULT_CHUNK_SIZE,
        default_overlap: int = DEFAULT_OVERLAP,
    ):
        validate_chunk_params(default_chunk_size, default_overlap)
        self.store = store
        self.extractor = extractor
        self.representative_text_chars = representative_text_chars
        self.default_chunk_size = default_chunk_size
        self.default_overlap = default_overlap

    def _params(self, chunk_size: Optional[int], overlap: Optional[int]) -> tuple[int, int]:
        chunk_size = self.default_chunk_size if chunk_size is None else chunk_size
        overlap = self.default_overlap if overlap is None else overlap
        validate_chunk_params(chunk_size, overlap)
        return chunk_size, overlap

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def ensure_extracted(self, doc_id: str) -> ExtractedPages:
        """Existing extracted pages, or extract and persist them now."""
        existing = await asyncio.to_thread(self.store.read_extracted, doc_id)
        if existing is not None:
            logger.debug(f"Reusing extracted pages for {doc_id} ({existing.page_count} pages)")
            return existing
        return await self._extract(doc_id)

    async def reextract(self, doc_id: str) -> ExtractedPages:
        """Re-run extraction and overwrite the pages. Chunks are left as they are."""
        return await self._extract(doc_id)

    async def _extract(self, doc_id: str) -> ExtractedPages:
        raw_path = await asyncio.to_thread(self.store.raw_path, doc_id)
        logger.info(f"Extracting {doc_id} from {raw_path.name}")

        # ToolUnavailable / ExtractionFailed propagate unchanged, nothing is written
        pages = await extract_document(self.extractor, doc_id, raw_path)
        await asyncio.to_thread(self.store.write_extracted, pages)

        stored = await asyncio.to_thread(self.store.read_extracted, doc_id)
        if stored is None:
            raise InternalError(
                "extraction reported success but left no artifact",
                {"doc_id": doc_id, "stage": "extract"},
            )
        return stored

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    async def ensure_chunked(
        self,
        doc_id: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> ChunkSet:
        """
        Existing chunk set, or extract (if needed) and chunk now.

        An existing chunk set is returned even when it was built with
        different parameters; use rechunk to rebuild.
        """
        chunk_size, overlap = self._params(chunk_size, overlap)

        existing = await asyncio.to_thread(self.store.read_chunks, doc_id)
        if existing is not None:
            logger.debug(f"Reusing {len(existing.chunks)} chunks for {doc_id}")
            return existing

        pages = await self.ensure_extracted(doc_id)
        return await self._chunk(pages, chunk_size, overlap)

    async def rechunk(
        self,
        doc_id: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
    ) -> ChunkSet:
        """Rebuild the chunk set from existing pages, replacing any prior set."""
        chunk_size, overlap = self._params(chunk_size, overlap)

        pages = await asyncio.to_thread(self.store.read_extracted, doc_id)
        if pages is None:
            raise NotExtractedError(
                "document has not been extracted yet",
                {"doc_id": doc_id},
            )
        return await self._chunk(pages, chunk_size, overlap)

    async def _chunk(self, pages: ExtractedPages, chunk_size: int, overlap: int) -> ChunkSet:
        doc_id = pages.doc_id
        started = time.perf_counter()

        chunk_set = await asyncio.to_thread(build_chunk_set, pages, chunk_size, overlap)
        await asyncio.to_thread(self.store.write_chunks, chunk_set)

        stored = await asyncio.to_thread(self.store.read_chunks, doc_id)
        if stored is None:
            raise InternalError(
                "chunking reported success but left no artifact",
                {"doc_id": doc_id, "stage": "chunk"},
            )

        elapsed = time.perf_counter() - started
        logger.info(
            f"Chunked {doc_id}: {len(stored.chunks)} chunks from {pages.page_count} pages "
            f"(size={chunk_size}, overlap={overlap}) in {elapsed:.2f}s"
        )
        return stored

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    async def get_representative_text(self, doc_id: str) -> str:
        """Bounded prefix of the document text, pages joined in order."""
        pages = await self.ensure_extracted(doc_id)
        text = pages.full_text("\n")[: self.representative_text_chars]

        if not text.strip():
            raise InternalError(
                "no text could be extracted from the document",
                {"doc_id": doc_id, "reason": "empty_text", "page_count": pages.page_count},
            )
        return text

    async def status(self, doc_id: str) -> DocumentStatus:
        """Document record plus the furthest stage reached."""
        record = await asyncio.to_thread(self.store.describe, doc_id)
        stage = await asyncio.to_thread(self.store.stage_of, doc_id)
        return DocumentStatus(**record.model_dump(), stage=stage)
