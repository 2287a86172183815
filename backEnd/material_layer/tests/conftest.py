"""Shared fixtures for material layer tests."""

from pathlib import Path

import pytest

from material_layer.src.errors import ExtractionFailedError, ToolUnavailableError
from material_layer.src.extract_pages import BaseExtractor
from material_layer.src.pipeline import PipelineOrchestrator
from material_layer.src.question_search import QuestionCorpus
from material_layer.src.stage_store import StageStore


class FakeExtractor(BaseExtractor):
    """In-memory extractor returning canned pages and counting calls."""

    name = "fake"

    def __init__(self, pages=None, error=None):
        self.pages = pages if pages is not None else ["Page one text about IgM.", "Page two text."]
        self.error = error
        self.calls = 0

    async def extract_pages(self, path: Path) -> list[str]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.pages)


QUESTIONS_CSV = (
    "question_code,rbc_id,rbc_name,environment,body_statement,choice_1,choice_2,choice_3,choice_4,choice_5,answer,comment\n"
    "Q001,R1,Immunology,,Which antibody appears first in a primary immune response?,IgA,IgD,IgE,IgG,IgM,E,IgM is produced first\n"
    "Q002,R1,Immunology,Allergy clinic,Type 1 hypersensitivity is mediated by which antibody?,IgA,IgD,IgE,IgG,IgM,C,Mast cells bind IgE\n"
    "Q003,R2,Cardiology,,Which drug is first-line for stable angina?,Nitrates,Statins,Aspirin,Digoxin,Warfarin,A,\n"
)


@pytest.fixture
def store(tmp_path: Path) -> StageStore:
    return StageStore(tmp_path / "uploads")


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def orchestrator(store: StageStore, extractor: FakeExtractor) -> PipelineOrchestrator:
    return PipelineOrchestrator(store, extractor)


@pytest.fixture
def uploaded(store: StageStore) -> str:
    """Doc id of a stored (not yet extracted) document."""
    record = store.put_raw(b"%PDF-1.4 fake", "lecture.pdf")
    return record.doc_id


@pytest.fixture
def questions_csv(tmp_path: Path) -> Path:
    path = tmp_path / "questions.csv"
    path.write_text(QUESTIONS_CSV, encoding="utf-8")
    return path


@pytest.fixture
def corpus() -> QuestionCorpus:
    return QuestionCorpus()


@pytest.fixture
def tool_missing() -> ToolUnavailableError:
    return ToolUnavailableError("pdftotext not found", {"tool": "pdftotext"})


@pytest.fixture
def corrupt() -> ExtractionFailedError:
    return ExtractionFailedError("could not read document content", {"reason": "bad xref"})
