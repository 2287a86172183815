"""
Chunk schema for lexical search units.

Chunks never span pages: page_start == page_end for every chunk built
by the chunking stage. Chunk ids are unique within one build only.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .pages import ARTIFACT_SCHEMA_VERSION


class Chunk(BaseModel):
    """A bounded span of normalized page text."""

    chunk_id: str = Field(..., description="Unique within a build (uuid4 hex)")
    doc_id: str = Field(..., description="Parent document identifier")
    page_start: int = Field(..., ge=1)
    page_end: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "chunk_id": "b7e1c9d2a4f04a6c8e2b1d3f5a7c9e0b",
                "doc_id": "3f2a9c0d4b6e4e1f9a7c2d5b8e0f1a2b",
                "page_start": 4,
                "page_end": 4,
                "text": "IgM is the first antibody produced in a primary immune response...",
            }
        }
    )


class ChunkSet(BaseModel):
    """All chunks of one document plus the parameters that built them."""

    schema_version: int = Field(default=ARTIFACT_SCHEMA_VERSION)
    doc_id: str
    chunk_size: int = Field(..., ge=1)
    overlap: int = Field(..., ge=0)
    chunks: list[Chunk] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "ChunkSet":
        if self.overlap >= self.chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        return self
