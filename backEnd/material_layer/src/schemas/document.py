"""
Document registry schema.

A DocumentRecord is created on upload and never modified afterwards.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class DocumentStage(str, Enum):
    """Pipeline stage reached by a document (one-directional)."""

    UPLOADED = "uploaded"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"


class DocumentRecord(BaseModel):
    """Registry entry for an uploaded document."""

    doc_id: str = Field(..., description="Opaque id assigned at upload (uuid4 hex)")
    filename: str = Field(..., description="Original upload filename")
    size_bytes: int = Field(..., ge=0, description="Raw file size in bytes")
    stored_path: str = Field(
        ...,
        description="Raw file path relative to the store root",
        examples=["3f2a9c0d4b6e4e1f9a7c2d5b8e0f1a2b.pdf"],
    )
    sha256: str = Field(..., description="SHA256 of the raw bytes")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the upload was stored",
    )


class DocumentStatus(DocumentRecord):
    """Registry entry plus the furthest stage reached."""

    stage: DocumentStage
