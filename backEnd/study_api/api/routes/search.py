"""Search endpoints: inside one document, and document-driven question search."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from material_layer.src.auto_search import QueryGenerator, auto_search
from material_layer.src.errors import ValidationError
from material_layer.src.material_search import search_document
from material_layer.src.pipeline import PipelineOrchestrator
from material_layer.src.question_search import QuestionCorpus
from material_layer.src.schemas.question import GeneratedQuery, QuestionHit
from material_layer.src.schemas.search import MaterialHit
from material_layer.src.stage_store import StageStore

from ...config.settings import Settings, get_settings
from ...observability.tracing import get_tracer, span
from ..deps import (
    get_orchestrator,
    get_query_generator,
    get_question_corpus,
    get_request_id,
    get_store,
)


router = APIRouter(prefix="/search", tags=["search"])


# =============================================================================
# Request/Response Models
# =============================================================================


class MaterialSearchRequest(BaseModel):
    """Search inside one chunked document."""

    pdf_id: Optional[str] = Field(default=None, description="Document id")
    query: Optional[str] = Field(default=None, description="Whitespace-separated terms")
    top_k: int = Field(default=5, ge=1, le=20, description="Maximum hits")


class MaterialSearchResponse(BaseModel):
    """Ranked chunks for a query."""

    ok: bool = True
    request_id: str
    pdf_id: str
    query: str
    top_k: int
    chunk_size: int
    overlap: int
    hit_count: int
    hits: list[MaterialHit] = Field(default_factory=list)


class AutoSearchRequest(BaseModel):
    """Find questions related to a document."""

    pdf_id: Optional[str] = Field(default=None, description="Document id")
    top_k: Optional[float] = Field(
        default=None,
        description="Maximum hits; floored and clamped to 1..50 (default 10)",
    )


class AutoSearchResponse(BaseModel):
    """Generated query plus ranked questions."""

    ok: bool = True
    request_id: str
    pdf_id: str
    generated: GeneratedQuery
    hit_count: int
    hits: list[QuestionHit] = Field(default_factory=list)


def _required(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required", field=field)
    return value


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/material", response_model=MaterialSearchResponse)
async def search_material_endpoint(
    request: MaterialSearchRequest,
    store: StageStore = Depends(get_store),
    request_id: str = Depends(get_request_id),
):
    """
    Term-frequency search over a document's chunks.

    The document must already be chunked; otherwise NOT_CHUNKED.
    """
    pdf_id = _required(request.pdf_id, "pdf_id")
    query = _required(request.query, "query")

    with span("search_material", run_type="tool", doc_id=pdf_id, top_k=request.top_k):
        chunk_set, hits = await asyncio.to_thread(
            search_document, store, pdf_id, query, request.top_k
        )
    get_tracer().log_search("material", query, pdf_id, len(hits))

    return MaterialSearchResponse(
        request_id=request_id,
        pdf_id=pdf_id,
        query=query,
        top_k=request.top_k,
        chunk_size=chunk_set.chunk_size,
        overlap=chunk_set.overlap,
        hit_count=len(hits),
        hits=hits,
    )


@router.post("/auto", response_model=AutoSearchResponse)
async def search_auto_endpoint(
    request: AutoSearchRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    corpus: QuestionCorpus = Depends(get_question_corpus),
    generate_query: QueryGenerator = Depends(get_query_generator),
    settings: Settings = Depends(get_settings),
    request_id: str = Depends(get_request_id),
):
    """
    Find exam questions related to a document.

    Extracts and chunks the document when needed, generates a query from its
    opening text and searches the question corpus with it.
    """
    pdf_id = _required(request.pdf_id, "pdf_id")

    with span("search_auto", doc_id=pdf_id):
        result = await auto_search(
            orchestrator,
            corpus,
            generate_query,
            pdf_id,
            settings.resolved_questions_csv_path(),
            top_k=request.top_k,
            delimiter=settings.questions_csv_delimiter,
        )
    get_tracer().log_search("auto", result.generated.query, pdf_id, len(result.hits))

    return AutoSearchResponse(
        request_id=request_id,
        pdf_id=result.pdf_id,
        generated=result.generated,
        hit_count=len(result.hits),
        hits=result.hits,
    )
