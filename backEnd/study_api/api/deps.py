"""
Dependency providers for the API routes.

Every collaborator is resolved through FastAPI's Depends so tests can swap
them with app.dependency_overrides.
"""

import uuid
from functools import lru_cache

from fastapi import Depends, Request

from material_layer.src.auto_search import HeuristicQueryGenerator, QueryGenerator
from material_layer.src.extract_pages import BaseExtractor, get_extractor
from material_layer.src.pipeline import PipelineOrchestrator
from material_layer.src.question_search import QuestionCorpus
from material_layer.src.stage_store import StageStore

from ..agents.query_agent import LLMQueryGenerator
from ..config.settings import Settings, get_settings


# One corpus cache per process; keyed by path inside QuestionCorpus.
_question_corpus = QuestionCorpus()


@lru_cache()
def _store_for(root: str) -> StageStore:
    # Shared per root so the registry lock covers every request.
    return StageStore(root)


def get_request_id(request: Request) -> str:
    """Request id assigned by the middleware (or a fresh one)."""
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = uuid.uuid4().hex
        request.state.request_id = request_id
    return request_id


def get_store(settings: Settings = Depends(get_settings)) -> StageStore:
    return _store_for(settings.upload_dir)


def get_document_extractor(settings: Settings = Depends(get_settings)) -> BaseExtractor:
    return get_extractor(settings.extract_backend, settings.extract_max_concurrency)


def get_orchestrator(
    store: StageStore = Depends(get_store),
    extractor: BaseExtractor = Depends(get_document_extractor),
    settings: Settings = Depends(get_settings),
) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        store,
        extractor,
        representative_text_chars=settings.representative_text_chars,
        default_chunk_size=settings.default_chunk_size,
        default_overlap=settings.default_overlap,
    )


@lru_cache()
def _llm_query_generator() -> LLMQueryGenerator:
    # Built once; the chat client is created on first use and reused after.
    return LLMQueryGenerator()


def get_question_corpus() -> QuestionCorpus:
    return _question_corpus


def get_query_generator(settings: Settings = Depends(get_settings)) -> QueryGenerator:
    """LLM generator by default, the offline heuristic when QUERY_GENERATOR=heuristic."""
    if settings.query_generator == "heuristic":
        return HeuristicQueryGenerator()
    return _llm_query_generator()
