"""
Tests for page normalization and overlapped windowing.

These tests ensure chunking:
- Normalizes page text before windowing
- Always makes forward progress (stride >= chunk_size - overlap)
- Keeps every word of a page inside at least one chunk
- Never lets a chunk span two pages
"""

import random
import string

import pytest

from material_layer.src.chunk_text import (
    build_chunk_set,
    normalize_page_text,
    split_with_overlap,
    validate_chunk_params,
)
from material_layer.src.errors import ValidationError
from material_layer.src.schemas.pages import ExtractedPages, PageText


def _pages(doc_id: str, *texts: str) -> ExtractedPages:
    return ExtractedPages(
        doc_id=doc_id,
        page_count=len(texts),
        pages=[PageText(page=i, text=t) for i, t in enumerate(texts, start=1)],
    )


def _random_words(seed: int, count: int, max_len: int = 12) -> str:
    rng = random.Random(seed)
    words = [
        "".join(rng.choice(string.ascii_letters + string.digits) for _ in range(rng.randint(1, max_len)))
        for _ in range(count)
    ]
    separators = [rng.choice([" ", "  ", "\n", "\t", "\n\n\n"]) for _ in range(count)]
    return "".join(w + s for w, s in zip(words, separators))


class TestNormalizePageText:
    """Tests for per-page normalization."""

    def test_form_feed_becomes_newline(self):
        assert normalize_page_text("first\fsecond") == "first\nsecond"

    def test_horizontal_whitespace_collapsed(self):
        assert normalize_page_text("a  \t  b\t\tc") == "a b c"

    def test_three_or_more_newlines_collapsed(self):
        assert normalize_page_text("a\n\n\n\n\nb") == "a\n\nb"

    def test_double_newline_kept(self):
        assert normalize_page_text("a\n\nb") == "a\n\nb"

    def test_trimmed(self):
        assert normalize_page_text("  \n text \n\f") == "text"

    def test_empty_and_none(self):
        assert normalize_page_text("") == ""
        assert normalize_page_text(None) == ""


class TestSplitWithOverlap:
    """Tests for the sliding window."""

    def test_850_chars_gives_two_chunks(self):
        """850 chars with 800/150 → 2 chunks, second starts at 650."""
        text = "".join(string.ascii_lowercase[i % 26] for i in range(850))

        windows = list(split_with_overlap(text, 800, 150))

        assert len(windows) == 2
        assert windows[0] == (0, text[:800])
        assert windows[1] == (650, text[650:])

    def test_short_text_single_chunk(self):
        assert list(split_with_overlap("short text", 800, 150)) == [(0, "short text")]

    def test_exact_size_single_chunk(self):
        text = "x" * 800
        assert len(list(split_with_overlap(text, 800, 150))) == 1

    def test_empty_text_no_chunks(self):
        assert list(split_with_overlap("", 800, 150)) == []

    def test_zero_overlap_partitions_text(self):
        """With no overlap the windows tile the text exactly."""
        text = "abcdefghij" * 7
        windows = list(split_with_overlap(text, 10, 0))
        assert "".join(piece for _, piece in windows) == text

    @pytest.mark.parametrize("chunk_size,overlap", [(1, 0), (2, 1), (10, 9), (50, 15), (800, 150)])
    def test_forward_progress(self, chunk_size, overlap):
        """Window starts strictly increase by at least chunk_size - overlap."""
        text = "y" * 1000
        starts = [start for start, _ in split_with_overlap(text, chunk_size, overlap)]

        assert starts[0] == 0
        for prev, cur in zip(starts, starts[1:]):
            assert cur - prev >= chunk_size - overlap
        assert starts[-1] + chunk_size >= len(text)

    @pytest.mark.parametrize(
        "seed,chunk_size,overlap",
        [(1, 50, 15), (2, 40, 20), (3, 30, 12), (4, 800, 150), (5, 64, 32)],
    )
    def test_every_word_covered(self, seed, chunk_size, overlap):
        """Every maximal non-whitespace run appears verbatim in some chunk."""
        text = normalize_page_text(_random_words(seed, 300))
        pieces = [piece for _, piece in split_with_overlap(text, chunk_size, overlap)]

        for word in text.split():
            assert any(word in piece for piece in pieces), word

    def test_whitespace_only_window_skipped(self):
        text = "a" + " " * 20 + "b"
        pieces = [piece for _, piece in split_with_overlap(text, 5, 0)]
        assert pieces == ["a", "b"]


class TestValidateChunkParams:
    """Tests for boundary validation of chunk parameters."""

    def test_defaults_valid(self):
        validate_chunk_params(800, 150)

    def test_overlap_equal_to_size_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_chunk_params(100, 100)
        assert exc.value.details["field"] == "overlap"
        assert exc.value.code == "VALIDATION_ERROR"

    def test_overlap_larger_than_size_rejected(self):
        with pytest.raises(ValidationError):
            validate_chunk_params(100, 150)

    def test_non_positive_size_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_chunk_params(0, 0)
        assert exc.value.details["field"] == "chunk_size"

    def test_negative_overlap_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_chunk_params(100, -1)
        assert exc.value.details["field"] == "overlap"


class TestBuildChunkSet:
    """Tests for whole-document chunk set construction."""

    def test_parameters_recorded(self):
        chunk_set = build_chunk_set(_pages("doc1", "hello world"), 500, 50)

        assert chunk_set.doc_id == "doc1"
        assert chunk_set.chunk_size == 500
        assert chunk_set.overlap == 50
        assert chunk_set.schema_version == 1
        assert chunk_set.created_at is not None

    def test_chunks_are_page_scoped(self):
        """Chunks never span pages; page_start == page_end."""
        pages = _pages("doc1", "alpha " * 50, "beta " * 50)
        chunk_set = build_chunk_set(pages, 100, 20)

        for chunk in chunk_set.chunks:
            assert chunk.page_start == chunk.page_end
            if chunk.page_start == 1:
                assert "beta" not in chunk.text
            else:
                assert "alpha" not in chunk.text

        assert {c.page_start for c in chunk_set.chunks} == {1, 2}

    def test_empty_pages_contribute_nothing(self):
        pages = _pages("doc1", "  \f\n ", "content here", "")
        chunk_set = build_chunk_set(pages)

        assert len(chunk_set.chunks) == 1
        assert chunk_set.chunks[0].page_start == 2

    def test_chunk_ids_unique_and_fresh(self):
        pages = _pages("doc1", "z" * 5000)
        first = build_chunk_set(pages, 100, 10)
        second = build_chunk_set(pages, 100, 10)

        ids = [c.chunk_id for c in first.chunks]
        assert len(ids) == len(set(ids))
        assert not set(ids) & {c.chunk_id for c in second.chunks}
        assert [c.text for c in first.chunks] == [c.text for c in second.chunks]

    def test_normalized_text_is_chunked(self):
        chunk_set = build_chunk_set(_pages("doc1", "IgM\t\t  antibody\f"))
        assert chunk_set.chunks[0].text == "IgM antibody"

    def test_invalid_params_rejected(self):
        with pytest.raises(ValidationError):
            build_chunk_set(_pages("doc1", "text"), 100, 100)
