"""
Stage store: per-document raw files and pipeline artifacts on local disk.

Layout under the store root:
    {doc_id}.pdf               raw upload (or .png/.jpg/.jpeg)
    metadata.json              document registry (list of DocumentRecord)
    extracted/{doc_id}.json    ExtractedPages artifact
    chunks/{doc_id}.json       ChunkSet artifact

Every write goes to a temp file in the target directory and is moved into
place with os.replace, so readers see either the old or the new artifact.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import InternalError, NotFoundError, ValidationError
from .schemas.chunk import ChunkSet
from .schemas.document import DocumentRecord, DocumentStage
from .schemas.pages import ARTIFACT_SCHEMA_VERSION, ExtractedPages

logger = logging.getLogger(__name__)

RAW_SUFFIXES = (".pdf", ".png", ".jpg", ".jpeg")
DOC_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

ArtifactT = TypeVar("ArtifactT", bound=BaseModel)


def generate_doc_id() -> str:
    """New opaque document id."""
    return uuid.uuid4().hex


def validate_doc_id(doc_id: str) -> str:
    """Reject ids that could escape the store root."""
    if not isinstance(doc_id, str) or not DOC_ID_PATTERN.match(doc_id):
        raise ValidationError("invalid document id", field="doc_id", value=str(doc_id)[:80])
    return doc_id


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write data to path via temp-file-then-rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_json(path: Path, payload: object) -> None:
    """Serialize payload as indented UTF-8 JSON and write atomically."""
    if isinstance(payload, BaseModel):
        data = payload.model_dump_json(indent=2).encode("utf-8")
    else:
        data = json.dumps(payload, indent=2, ensure_ascii=False, default=str).encode("utf-8")
    atomic_write_bytes(path, data)


class StageStore:
    """
    File-backed store for documents and their stage artifacts.

    Safe for concurrent readers; concurrent writers of the same artifact
    are not serialized and the last replace wins.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def extract_dir(self) -> Path:
        return self.root / "extracted"

    @property
    def chunk_dir(self) -> Path:
        return self.root / "chunks"

    @property
    def registry_path(self) -> Path:
        return self.root / "metadata.json"

    def extracted_path(self, doc_id: str) -> Path:
        return self.extract_dir / f"{validate_doc_id(doc_id)}.json"

    def chunks_path(self, doc_id: str) -> Path:
        return self.chunk_dir / f"{validate_doc_id(doc_id)}.json"

    # ------------------------------------------------------------------
    # Raw files + registry
    # ------------------------------------------------------------------

    def put_raw(
        self,
        data: bytes,
        filename: str,
        doc_id: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Store uploaded bytes and register the document.

        Args:
            data: Raw file content
            filename: Original upload filename (used for the stored suffix)
            doc_id: Optional explicit id; a new one is generated otherwise

        Returns:
            The DocumentRecord written to the registry
        """
        doc_id = validate_doc_id(doc_id) if doc_id else generate_doc_id()

        suffix = Path(filename or "").suffix.lower()
        if suffix not in RAW_SUFFIXES:
            suffix = ".pdf"

        raw_path = self.root / f"{doc_id}{suffix}"
        atomic_write_bytes(raw_path, data)

        record = DocumentRecord(
            doc_id=doc_id,
            filename=filename or raw_path.name,
            size_bytes=len(data),
            stored_path=raw_path.relative_to(self.root).as_posix(),
            sha256=hashlib.sha256(data).hexdigest(),
        )

        with self._registry_lock:
            records = [r for r in self._read_registry() if r.doc_id != doc_id]
            records.append(record)
            atomic_write_json(
                self.registry_path,
                [r.model_dump(mode="json") for r in records],
            )

        logger.info(f"Stored {record.size_bytes} bytes for {doc_id} ({record.filename})")
        return record

    def _read_registry(self) -> list[DocumentRecord]:
        if not self.registry_path.exists():
            return []
        try:
            raw = json.loads(self.registry_path.read_text(encoding="utf-8"))
            return [DocumentRecord.model_validate(r) for r in raw]
        except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
            raise InternalError(
                "document registry is unreadable",
                {"path": str(self.registry_path), "reason": str(e)[:200]},
            ) from e

    def list_documents(self) -> list[DocumentRecord]:
        """All registered documents in upload order."""
        return self._read_registry()

    def get_document(self, doc_id: str) -> DocumentRecord:
        """Registry entry for doc_id, or NotFoundError."""
        validate_doc_id(doc_id)
        for record in self._read_registry():
            if record.doc_id == doc_id:
                return record
        raise NotFoundError("document not found", {"doc_id": doc_id})

    def describe(self, doc_id: str) -> DocumentRecord:
        """
        Registry entry for doc_id, or one derived from the raw file.

        Raw files copied into the store by hand (or left by older versions
        that kept no registry) still get a record; nothing is written back.
        """
        try:
            return self.get_document(doc_id)
        except NotFoundError:
            path = self.raw_path(doc_id)

        data = path.read_bytes()
        return DocumentRecord(
            doc_id=doc_id,
            filename=path.name,
            size_bytes=len(data),
            stored_path=path.relative_to(self.root).as_posix(),
            sha256=hashlib.sha256(data).hexdigest(),
            created_at=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        )

    def raw_path(self, doc_id: str) -> Path:
        """Try the candidate raw filenames for doc_id."""
        validate_doc_id(doc_id)
        candidates = [self.root / f"{doc_id}{suffix}" for suffix in RAW_SUFFIXES]
        candidates.append(self.root / doc_id)

        for path in candidates:
            if path.is_file():
                return path

        raise NotFoundError("uploaded file not found for doc_id", {"doc_id": doc_id})

    def read_raw(self, doc_id: str) -> bytes:
        """Raw uploaded bytes for doc_id."""
        return self.raw_path(doc_id).read_bytes()

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _read_artifact(
        self,
        path: Path,
        model: type[ArtifactT],
        doc_id: str,
    ) -> Optional[ArtifactT]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            version = json.loads(raw).get("schema_version")
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError) as e:
            raise InternalError(
                "artifact is not valid JSON",
                {"doc_id": doc_id, "path": str(path), "reason": "artifact_invalid"},
            ) from e

        if version != ARTIFACT_SCHEMA_VERSION:
            raise InternalError(
                "artifact uses an outdated schema; run the migrate command",
                {
                    "doc_id": doc_id,
                    "path": str(path),
                    "reason": "artifact_needs_migration",
                    "schema_version": version,
                },
            )

        try:
            return model.model_validate_json(raw)
        except PydanticValidationError as e:
            raise InternalError(
                "artifact does not match its schema",
                {"doc_id": doc_id, "path": str(path), "reason": "artifact_invalid"},
            ) from e

    def read_extracted(self, doc_id: str) -> Optional[ExtractedPages]:
        """Extracted pages for doc_id, or None when not extracted yet."""
        return self._read_artifact(self.extracted_path(doc_id), ExtractedPages, doc_id)

    def write_extracted(self, pages: ExtractedPages) -> Path:
        """Persist (overwrite) the extracted pages artifact."""
        path = self.extracted_path(pages.doc_id)
        atomic_write_json(path, pages)
        return path

    def read_chunks(self, doc_id: str) -> Optional[ChunkSet]:
        """Chunk set for doc_id, or None when not chunked yet."""
        return self._read_artifact(self.chunks_path(doc_id), ChunkSet, doc_id)

    def write_chunks(self, chunk_set: ChunkSet) -> Path:
        """Persist (atomically replace) the chunk set artifact."""
        path = self.chunks_path(chunk_set.doc_id)
        atomic_write_json(path, chunk_set)
        return path

    def stage_of(self, doc_id: str) -> DocumentStage:
        """Furthest stage whose artifact exists on disk."""
        if self.chunks_path(doc_id).exists():
            return DocumentStage.CHUNKED
        if self.extracted_path(doc_id).exists():
            return DocumentStage.EXTRACTED
        self.raw_path(doc_id)
        return DocumentStage.UPLOADED
