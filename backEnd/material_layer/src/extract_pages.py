"""
PDF text extraction, one text string per page.

Backends:
- pdfplumber (default): in-process, run in a worker thread
- poppler: `pdfinfo` for the page count, then `pdftotext` once per page,
  run as concurrent subprocesses and reassembled by page index

A missing dependency raises ToolUnavailableError; unreadable content raises
ExtractionFailedError. Either way nothing partial is returned.
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import ExtractionFailedError, ToolUnavailableError, ValidationError
from .parallel import parallel_map
from .schemas.pages import ExtractedPages, PageText

logger = logging.getLogger(__name__)

PAGES_PATTERN = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)


class BaseExtractor(ABC):
    """Converts a stored file into ordered per-page text."""

    name: str = "base"

    @abstractmethod
    async def extract_pages(self, path: Path) -> list[str]:
        """
        Extract text for pages 1..N.

        Returns:
            Page texts, index 0 is page 1
        """


class PdfPlumberExtractor(BaseExtractor):
    """Extract page text with pdfplumber."""

    name = "pdfplumber"

    def _extract_sync(self, path: Path) -> list[str]:
        try:
            import pdfplumber  # Lazy import
        except ImportError as e:
            raise ToolUnavailableError(
                "pdfplumber is not installed",
                {"tool": "pdfplumber", "path": str(path)},
            ) from e

        try:
            with pdfplumber.open(path) as pdf:
                return [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            raise ExtractionFailedError(
                "could not read document content",
                {"path": str(path), "reason": f"{type(e).__name__}: {e}"[:300]},
            ) from e

    async def extract_pages(self, path: Path) -> list[str]:
        return await asyncio.to_thread(self._extract_sync, Path(path))


class PopplerExtractor(BaseExtractor):
    """Extract page text with the poppler command line tools."""

    name = "poppler"

    def __init__(
        self,
        max_concurrent: int = 4,
        pdfinfo_bin: str = "pdfinfo",
        pdftotext_bin: str = "pdftotext",
    ):
        self.max_concurrent = max_concurrent
        self.pdfinfo_bin = pdfinfo_bin
        self.pdftotext_bin = pdftotext_bin

    async def _run(self, *args: str) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ToolUnavailableError(
                f"{args[0]} not found; install poppler-utils",
                {"tool": args[0]},
            ) from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise ExtractionFailedError(
                f"{args[0]} exited with status {proc.returncode}",
                {
                    "tool": args[0],
                    "stderr": stderr.decode("utf-8", errors="replace").strip()[:300],
                },
            )
        return stdout.decode("utf-8", errors="replace")

    async def page_count(self, path: Path) -> int:
        """Page count reported by pdfinfo."""
        stdout = await self._run(self.pdfinfo_bin, str(path))
        match = PAGES_PATTERN.search(stdout)
        if not match:
            raise ExtractionFailedError(
                "could not detect page count via pdfinfo",
                {"path": str(path)},
            )
        return int(match.group(1))

    async def extract_page(self, path: Path, page: int) -> str:
        return await self._run(
            self.pdftotext_bin,
            "-f", str(page),
            "-l", str(page),
            "-enc", "UTF-8",
            "-layout",
            str(path),
            "-",
        )

    async def extract_pages(self, path: Path) -> list[str]:
        path = Path(path)
        count = await self.page_count(path)

        return await parallel_map(
            list(range(1, count + 1)),
            lambda page: self.extract_page(path, page),
            max_concurrent=self.max_concurrent,
            desc=f"pdftotext {path.name}",
        )


EXTRACTORS: dict[str, type[BaseExtractor]] = {
    PdfPlumberExtractor.name: PdfPlumberExtractor,
    PopplerExtractor.name: PopplerExtractor,
}


def get_extractor(name: str = "pdfplumber", max_concurrent: int = 4) -> BaseExtractor:
    """
    Get an extraction backend by name.

    Args:
        name: pdfplumber or poppler
        max_concurrent: Per-page concurrency (poppler only)
    """
    if name == PopplerExtractor.name:
        return PopplerExtractor(max_concurrent=max_concurrent)
    if name == PdfPlumberExtractor.name:
        return PdfPlumberExtractor()

    valid = ", ".join(sorted(EXTRACTORS))
    raise ValidationError(
        f"unknown extraction backend: {name}. Must be one of: {valid}",
        field="extract_backend",
        value=name,
    )


async def extract_document(
    extractor: BaseExtractor,
    doc_id: str,
    path: Path,
) -> ExtractedPages:
    """
    Run extraction for one stored file.

    Args:
        extractor: Backend to use
        doc_id: Document identifier
        path: Raw file path

    Returns:
        Complete ExtractedPages artifact (not yet persisted)
    """
    started = time.perf_counter()
    texts = await extractor.extract_pages(Path(path))

    pages = [PageText(page=i, text=text) for i, text in enumerate(texts, start=1)]
    result = ExtractedPages(
        doc_id=doc_id,
        page_count=len(pages),
        pages=pages,
        extractor=extractor.name,
    )

    elapsed = time.perf_counter() - started
    logger.info(f"Extracted {result.page_count} pages from {doc_id} with {extractor.name} in {elapsed:.2f}s")
    return result
