"""
Pydantic schemas for material layer records and artifacts.

Persisted artifacts (ExtractedPages, ChunkSet) are self-describing:
they carry schema_version, doc_id, the parameters used and created_at.
"""

from .chunk import Chunk, ChunkSet
from .document import DocumentRecord, DocumentStage, DocumentStatus
from .pages import ARTIFACT_SCHEMA_VERSION, ExtractedPages, PageText
from .question import AutoSearchResult, GeneratedQuery, QuestionHit, QuestionRow
from .search import MaterialHit

__all__ = [
    "ARTIFACT_SCHEMA_VERSION",
    "AutoSearchResult",
    "Chunk",
    "ChunkSet",
    "DocumentRecord",
    "DocumentStage",
    "DocumentStatus",
    "ExtractedPages",
    "GeneratedQuery",
    "MaterialHit",
    "PageText",
    "QuestionHit",
    "QuestionRow",
]
