"""
Backfill legacy artifacts into the canonical versioned schema.

Older stores hold artifacts in several shapes:
- extracted/{id}.json keyed by pdf_id (page_count, pages, created_at)
- {id}.json at the store root keyed by pdf_id (status, pages, meta.page_count)
- {id}.text.json at the store root holding only the whole text
- chunks/{id}.json keyed by pdf_id, with chunks carrying pdf_id

Readers only accept the canonical schema, so run this once after upgrading.
Canonical artifacts are never rewritten. Legacy files at the store root are
left in place; they are no longer read.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import InternalError
from .schemas.chunk import Chunk, ChunkSet
from .schemas.pages import ARTIFACT_SCHEMA_VERSION, ExtractedPages, PageText
from .stage_store import DOC_ID_PATTERN, RAW_SUFFIXES, StageStore, validate_doc_id

logger = logging.getLogger(__name__)

LEGACY_EXTRACTOR = "legacy"

# Per-artifact outcomes
UNCHANGED = "unchanged"
MIGRATED = "migrated"
BACKFILLED = "backfilled"
DISCARDED = "discarded"
ABSENT = "absent"
FAILED = "failed"


class MigrationResult(BaseModel):
    """What migrate_document did (or would do) for one document."""

    doc_id: str
    extracted: str = ABSENT
    chunks: str = ABSENT
    source: Optional[str] = Field(default=None, description="Legacy file the pages came from")
    notes: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.extracted in (MIGRATED, BACKFILLED) or self.chunks in (MIGRATED, DISCARDED)


def _load_json(path: Path, doc_id: str) -> Optional[dict[str, Any]]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InternalError(
            "artifact is not valid JSON",
            {"doc_id": doc_id, "path": str(path), "reason": "artifact_invalid"},
        ) from e

    if not isinstance(raw, dict):
        raise InternalError(
            "artifact is not a JSON object",
            {"doc_id": doc_id, "path": str(path), "reason": "artifact_invalid"},
        )
    return raw


def _is_canonical(raw: dict[str, Any]) -> bool:
    return raw.get("schema_version") == ARTIFACT_SCHEMA_VERSION


def _pages_from_legacy(doc_id: str, raw: dict[str, Any], notes: list[str]) -> ExtractedPages:
    legacy_pages = sorted(
        (p for p in raw.get("pages") or [] if isinstance(p, dict)),
        key=lambda p: int(p.get("page") or 0),
    )
    numbers = [int(p.get("page") or 0) for p in legacy_pages]
    if numbers != list(range(1, len(numbers) + 1)):
        notes.append(f"pages renumbered 1..{len(numbers)} from {numbers[:10]}")

    pages = [
        PageText(page=i, text=str(p.get("text") or ""))
        for i, p in enumerate(legacy_pages, start=1)
    ]

    declared = raw.get("page_count") or (raw.get("meta") or {}).get("page_count")
    if declared is not None and int(declared) != len(pages):
        notes.append(f"declared page_count={declared} but {len(pages)} pages present")

    fields: dict[str, Any] = {
        "doc_id": doc_id,
        "page_count": len(pages),
        "pages": pages,
        "extractor": LEGACY_EXTRACTOR,
    }
    if raw.get("created_at"):
        fields["created_at"] = raw["created_at"]
    return ExtractedPages(**fields)


def _pages_from_text(doc_id: str, raw: dict[str, Any]) -> ExtractedPages:
    fields: dict[str, Any] = {
        "doc_id": doc_id,
        "page_count": 1,
        "pages": [PageText(page=1, text=str(raw.get("text") or ""))],
        "extractor": LEGACY_EXTRACTOR,
    }
    if raw.get("created_at"):
        fields["created_at"] = raw["created_at"]
    return ExtractedPages(**fields)


def _chunks_from_legacy(doc_id: str, raw: dict[str, Any], notes: list[str]) -> ChunkSet:
    chunks = []
    for c in raw.get("chunks") or []:
        text = str(c.get("text") or "").strip()
        if not text:
            continue
        page_start = int(c.get("page_start") or 1)
        chunks.append(
            Chunk(
                chunk_id=str(c.get("chunk_id")),
                doc_id=doc_id,
                page_start=page_start,
                page_end=int(c.get("page_end") or page_start),
                text=text,
            )
        )

    dropped = len(raw.get("chunks") or []) - len(chunks)
    if dropped:
        notes.append(f"dropped {dropped} empty chunks")

    fields: dict[str, Any] = {
        "doc_id": doc_id,
        "chunk_size": raw.get("chunk_size"),
        "overlap": raw.get("overlap"),
        "chunks": chunks,
    }
    if raw.get("created_at"):
        fields["created_at"] = raw["created_at"]
    return ChunkSet(**fields)


def migrate_document(store: StageStore, doc_id: str, dry_run: bool = False) -> MigrationResult:
    """
    Convert one document's legacy artifacts to the canonical schema.

    Args:
        store: Stage store to migrate in place
        doc_id: Document identifier
        dry_run: Report without writing

    Returns:
        MigrationResult describing each artifact's outcome
    """
    validate_doc_id(doc_id)
    result = MigrationResult(doc_id=doc_id)

    # Extracted pages: first legacy shape found wins
    extracted_raw = _load_json(store.extracted_path(doc_id), doc_id)
    root_raw = _load_json(store.root / f"{doc_id}.json", doc_id)
    text_raw = _load_json(store.root / f"{doc_id}.text.json", doc_id)

    pages: Optional[ExtractedPages] = None
    try:
        if extracted_raw is not None and _is_canonical(extracted_raw):
            result.extracted = UNCHANGED
        elif extracted_raw is not None and isinstance(extracted_raw.get("pages"), list):
            result.source = str(store.extracted_path(doc_id))
            pages = _pages_from_legacy(doc_id, extracted_raw, result.notes)
            result.extracted = MIGRATED
        elif root_raw is not None and isinstance(root_raw.get("pages"), list):
            result.source = str(store.root / f"{doc_id}.json")
            pages = _pages_from_legacy(doc_id, root_raw, result.notes)
            result.extracted = MIGRATED
        elif text_raw is not None and "text" in text_raw:
            result.source = str(store.root / f"{doc_id}.text.json")
            pages = _pages_from_text(doc_id, text_raw)
            result.extracted = BACKFILLED
        elif extracted_raw is not None:
            raise InternalError(
                "extracted artifact has an unknown shape",
                {"doc_id": doc_id, "path": str(store.extracted_path(doc_id)), "reason": "artifact_invalid"},
            )
    except (PydanticValidationError, TypeError, ValueError) as e:
        # Unconvertible legacy pages stay on disk untouched
        pages = None
        result.extracted = FAILED
        result.notes.append(f"extracted pages not migrated: {str(e).splitlines()[0]}")
        logger.warning(f"Could not migrate extracted pages for {doc_id} from {result.source}: {e}")

    if pages is not None and not dry_run:
        store.write_extracted(pages)

    # Chunk set
    chunks_raw = _load_json(store.chunks_path(doc_id), doc_id)
    if chunks_raw is not None and _is_canonical(chunks_raw):
        result.chunks = UNCHANGED
    elif chunks_raw is not None:
        try:
            chunk_set = _chunks_from_legacy(doc_id, chunks_raw, result.notes)
        except (PydanticValidationError, TypeError, ValueError) as e:
            # Legacy builds accepted overlap >= chunk_size; drop so ensure_chunked rebuilds
            result.chunks = DISCARDED
            result.notes.append(f"chunk set discarded: {str(e).splitlines()[0]}")
            if not dry_run:
                store.chunks_path(doc_id).unlink(missing_ok=True)
        else:
            result.chunks = MIGRATED
            if not dry_run:
                store.write_chunks(chunk_set)

    if result.changed:
        logger.info(
            f"{'Would migrate' if dry_run else 'Migrated'} {doc_id}: "
            f"extracted={result.extracted}, chunks={result.chunks}"
        )
    return result


def discover_doc_ids(store: StageStore) -> list[str]:
    """Every document id with a raw file or an artifact in the store."""
    ids: set[str] = set()

    for path in store.root.iterdir():
        if not path.is_file() or path.name.startswith("."):
            continue
        name = path.name
        if name == store.registry_path.name:
            continue
        if name.endswith(".text.json"):
            ids.add(name[: -len(".text.json")])
        elif path.suffix.lower() in RAW_SUFFIXES or path.suffix == ".json":
            ids.add(path.stem)
        elif not path.suffix:
            ids.add(name)

    for directory in (store.extract_dir, store.chunk_dir):
        if directory.is_dir():
            ids.update(p.stem for p in directory.glob("*.json"))

    return sorted(i for i in ids if DOC_ID_PATTERN.match(i))


def migrate_all(store: StageStore, dry_run: bool = False) -> list[MigrationResult]:
    """Migrate every document found in the store."""
    results = [migrate_document(store, doc_id, dry_run=dry_run) for doc_id in discover_doc_ids(store)]
    changed = sum(1 for r in results if r.changed)
    logger.info(f"Migration {'dry run ' if dry_run else ''}complete: {changed}/{len(results)} documents changed")
    return results
