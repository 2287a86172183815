"""Shared fixtures for API tests."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from material_layer.src.extract_pages import BaseExtractor
from material_layer.src.question_search import QuestionCorpus
from material_layer.src.stage_store import StageStore
from study_api.api.deps import (
    _llm_query_generator,
    get_document_extractor,
    get_question_corpus,
    get_store,
)
from study_api.api.main import create_app
from study_api.config.settings import Settings, get_settings
from study_api.observability.tracing import get_tracer


class StubExtractor(BaseExtractor):
    """Returns canned page texts without touching the file."""

    name = "stub"

    def __init__(self, pages=None):
        self.pages = pages if pages is not None else [
            "Type 1 hypersensitivity reactions involve IgE.",
            "Mast cells degranulate.",
        ]
        self.calls = 0

    async def extract_pages(self, path: Path) -> list[str]:
        self.calls += 1
        return list(self.pages)


QUESTIONS_CSV = (
    "question_code,rbc_id,rbc_name,environment,body_statement,choice_1,choice_2,choice_3,choice_4,choice_5,answer,comment\n"
    "Q001,R1,Immunology,,Which antibody appears first in a primary immune response?,IgA,IgD,IgE,IgG,IgM,E,IgM is produced first\n"
    "Q002,R1,Immunology,Allergy clinic,Type 1 hypersensitivity is mediated by which antibody?,IgA,IgD,IgE,IgG,IgM,C,Mast cells bind IgE\n"
)


@pytest.fixture(autouse=True)
def clean_env():
    """Isolate every test from the developer's environment and cached settings."""
    with patch.dict(os.environ, {}, clear=True):
        get_settings.cache_clear()
        get_tracer.cache_clear()
        _llm_query_generator.cache_clear()
        yield
    get_settings.cache_clear()
    get_tracer.cache_clear()
    _llm_query_generator.cache_clear()


@pytest.fixture
def questions_csv(tmp_path: Path) -> Path:
    path = tmp_path / "questions.csv"
    path.write_text(QUESTIONS_CSV, encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, questions_csv: Path) -> Settings:
    return Settings(
        _env_file=None,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        QUESTIONS_CSV_PATH=str(questions_csv),
        QUERY_GENERATOR="heuristic",
        MAX_UPLOAD_MB=1,
    )


@pytest.fixture
def store(settings: Settings) -> StageStore:
    return StageStore(settings.upload_dir)


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def app(settings, store, extractor):
    corpus = QuestionCorpus()
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_document_extractor] = lambda: extractor
    app.dependency_overrides[get_question_corpus] = lambda: corpus
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def uploaded(client) -> str:
    """Doc id of a document uploaded through the API."""
    response = client.post(
        "/pdfs",
        files={"file": ("lecture.pdf", b"%PDF-1.4 fake", "application/pdf")},
    )
    assert response.status_code == 201
    return response.json()["doc_id"]
