"""Tests for the idempotent pipeline orchestrator."""

import asyncio

import pytest

from material_layer.src.errors import (
    ExtractionFailedError,
    InternalError,
    NotExtractedError,
    NotFoundError,
    ToolUnavailableError,
    ValidationError,
)
from material_layer.src.pipeline import PipelineOrchestrator
from material_layer.src.schemas.document import DocumentStage

from .conftest import FakeExtractor


class TestEnsureExtracted:
    """Tests for the extraction stage."""

    def test_extracts_and_persists(self, orchestrator, store, extractor, uploaded):
        pages = asyncio.run(orchestrator.ensure_extracted(uploaded))

        assert pages.page_count == 2
        assert pages.extractor == "fake"
        assert store.read_extracted(uploaded) == pages
        assert extractor.calls == 1

    def test_second_call_reuses_artifact(self, orchestrator, extractor, uploaded):
        first = asyncio.run(orchestrator.ensure_extracted(uploaded))
        second = asyncio.run(orchestrator.ensure_extracted(uploaded))

        assert first == second
        assert extractor.calls == 1

    def test_reextract_overwrites(self, orchestrator, extractor, uploaded):
        asyncio.run(orchestrator.ensure_extracted(uploaded))
        extractor.pages = ["replacement"]

        pages = asyncio.run(orchestrator.reextract(uploaded))

        assert [p.text for p in pages.pages] == ["replacement"]
        assert extractor.calls == 2

    def test_unknown_document(self, orchestrator):
        with pytest.raises(NotFoundError):
            asyncio.run(orchestrator.ensure_extracted("missing"))

    @pytest.mark.parametrize("error_fixture", ["tool_missing", "corrupt"])
    def test_extraction_errors_propagate_unchanged(self, store, uploaded, error_fixture, request):
        error = request.getfixturevalue(error_fixture)
        orchestrator = PipelineOrchestrator(store, FakeExtractor(error=error))

        with pytest.raises(type(error)) as exc:
            asyncio.run(orchestrator.ensure_chunked(uploaded))

        assert exc.value is error
        assert store.read_extracted(uploaded) is None
        assert store.read_chunks(uploaded) is None

    def test_error_types_distinct(self, tool_missing, corrupt):
        assert isinstance(tool_missing, ToolUnavailableError)
        assert isinstance(corrupt, ExtractionFailedError)
        assert tool_missing.code != corrupt.code

    def test_missing_artifact_after_write_is_internal(self, orchestrator, store, uploaded, monkeypatch):
        """A stage that claims success but leaves no artifact fails INTERNAL."""
        monkeypatch.setattr(store, "write_extracted", lambda pages: None)

        with pytest.raises(InternalError) as exc:
            asyncio.run(orchestrator.ensure_extracted(uploaded))
        assert exc.value.details["doc_id"] == uploaded


class TestEnsureChunked:
    """Tests for the chunking stage."""

    def test_extracts_then_chunks(self, orchestrator, store, uploaded):
        chunk_set = asyncio.run(orchestrator.ensure_chunked(uploaded))

        assert store.stage_of(uploaded) == DocumentStage.CHUNKED
        assert chunk_set.chunk_size == 800
        assert chunk_set.overlap == 150
        assert [c.text for c in chunk_set.chunks] == ["Page one text about IgM.", "Page two text."]

    def test_idempotent(self, orchestrator, uploaded):
        """Second call returns identical chunk texts and parameters."""
        first = asyncio.run(orchestrator.ensure_chunked(uploaded, 10, 3))
        second = asyncio.run(orchestrator.ensure_chunked(uploaded, 10, 3))

        assert [c.text for c in first.chunks] == [c.text for c in second.chunks]
        assert [c.chunk_id for c in first.chunks] == [c.chunk_id for c in second.chunks]
        assert (first.chunk_size, first.overlap) == (second.chunk_size, second.overlap)

    def test_existing_set_returned_regardless_of_params(self, orchestrator, uploaded):
        asyncio.run(orchestrator.ensure_chunked(uploaded, 800, 150))
        again = asyncio.run(orchestrator.ensure_chunked(uploaded, 100, 10))

        assert (again.chunk_size, again.overlap) == (800, 150)

    def test_never_re_derives_extraction(self, orchestrator, extractor, uploaded):
        asyncio.run(orchestrator.ensure_chunked(uploaded))
        asyncio.run(orchestrator.ensure_chunked(uploaded))
        asyncio.run(orchestrator.ensure_extracted(uploaded))

        assert extractor.calls == 1

    def test_invalid_params_rejected(self, orchestrator, uploaded):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(orchestrator.ensure_chunked(uploaded, 100, 100))
        assert exc.value.details["field"] == "overlap"

    def test_missing_chunk_artifact_is_internal(self, orchestrator, store, uploaded, monkeypatch):
        monkeypatch.setattr(store, "write_chunks", lambda chunk_set: None)

        with pytest.raises(InternalError):
            asyncio.run(orchestrator.ensure_chunked(uploaded))

    def test_concurrent_calls_are_safe(self, orchestrator, store, uploaded):
        """Unserialized concurrent builds still leave one complete chunk set."""

        async def run_both():
            return await asyncio.gather(
                orchestrator.ensure_chunked(uploaded),
                orchestrator.ensure_chunked(uploaded),
            )

        first, second = asyncio.run(run_both())

        stored = store.read_chunks(uploaded)
        assert [c.text for c in first.chunks] == [c.text for c in second.chunks]
        assert [c.text for c in stored.chunks] == [c.text for c in first.chunks]


class TestRechunk:
    """Tests for forced chunk rebuilds."""

    def test_requires_extraction(self, orchestrator, uploaded):
        with pytest.raises(NotExtractedError) as exc:
            asyncio.run(orchestrator.rechunk(uploaded))
        assert exc.value.details == {"doc_id": uploaded}
        assert exc.value.status == 409

    def test_replaces_chunk_set(self, orchestrator, uploaded):
        original = asyncio.run(orchestrator.ensure_chunked(uploaded))
        rebuilt = asyncio.run(orchestrator.rechunk(uploaded, 10, 2))

        assert (rebuilt.chunk_size, rebuilt.overlap) == (10, 2)
        assert len(rebuilt.chunks) > len(original.chunks)

    def test_reextract_keeps_chunks(self, orchestrator, store, extractor, uploaded):
        chunk_set = asyncio.run(orchestrator.ensure_chunked(uploaded))
        extractor.pages = ["different"]
        asyncio.run(orchestrator.reextract(uploaded))

        assert store.read_chunks(uploaded) == chunk_set


class TestRepresentativeText:
    """Tests for representative text access."""

    def test_pages_joined_in_order(self, orchestrator, uploaded):
        text = asyncio.run(orchestrator.get_representative_text(uploaded))
        assert text == "Page one text about IgM.\nPage two text."

    def test_truncated(self, store, uploaded):
        orchestrator = PipelineOrchestrator(
            store,
            FakeExtractor(pages=["a" * 50, "b" * 50]),
            representative_text_chars=60,
        )
        text = asyncio.run(orchestrator.get_representative_text(uploaded))
        assert text == "a" * 50 + "\n" + "b" * 9

    def test_empty_text_is_internal(self, store, uploaded):
        orchestrator = PipelineOrchestrator(store, FakeExtractor(pages=["  ", "\n"]))

        with pytest.raises(InternalError) as exc:
            asyncio.run(orchestrator.get_representative_text(uploaded))
        assert exc.value.details["reason"] == "empty_text"


class TestStatus:
    """Tests for document status."""

    def test_status_tracks_stage(self, orchestrator, uploaded):
        assert asyncio.run(orchestrator.status(uploaded)).stage == DocumentStage.UPLOADED

        asyncio.run(orchestrator.ensure_extracted(uploaded))
        status = asyncio.run(orchestrator.status(uploaded))

        assert status.stage == DocumentStage.EXTRACTED
        assert status.filename == "lecture.pdf"
