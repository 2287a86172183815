"""
Tests for term-frequency search over document chunks.

Covers tokenization, non-overlapping counting, stable ranking,
top_k bounds and snippet windows.
"""

import asyncio

import pytest

from material_layer.src.errors import NotChunkedError, NotFoundError
from material_layer.src.material_search import (
    count_occurrences,
    make_snippet,
    search_document,
    search_material,
    tokenize,
)
from material_layer.src.schemas.chunk import Chunk, ChunkSet


def _chunk_set(*texts: str) -> ChunkSet:
    return ChunkSet(
        doc_id="doc1",
        chunk_size=800,
        overlap=150,
        chunks=[
            Chunk(chunk_id=f"c{i}", doc_id="doc1", page_start=i, page_end=i, text=t)
            for i, t in enumerate(texts, start=1)
        ],
    )


class TestTokenize:
    """Tests for query tokenization."""

    def test_lowercase_whitespace_split(self):
        assert tokenize("  IgM\tHyper\n sensitivity ") == ["igm", "hyper", "sensitivity"]

    def test_ideographic_space(self):
        assert tokenize("免疫　抗体") == ["免疫", "抗体"]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("   ") == []


class TestCountOccurrences:
    """Tests for non-overlapping counting."""

    def test_case_insensitive(self):
        assert count_occurrences("IgM igm IGM", "igm") == 3

    def test_non_overlapping(self):
        """'aa' in 'aaaa' counts 2, not 3."""
        assert count_occurrences("aaaa", "aa") == 2
        assert count_occurrences("aaa", "aa") == 1

    def test_substring_matches(self):
        assert count_occurrences("hypersensitivity hyperplasia", "hyper") == 2

    def test_empty_token(self):
        assert count_occurrences("anything", "") == 0


class TestSearchMaterial:
    """Tests for ranking."""

    def test_igm_hyper_scores_three(self):
        """Chunk with IgM once and hyper twice scores 3."""
        chunk_set = _chunk_set("IgM rises in hypersensitivity and hyperacute rejection.")

        hits = search_material(chunk_set, "igm hyper", top_k=5)

        assert len(hits) == 1
        assert hits[0].score == 3
        assert hits[0].chunk_id == "c1"
        assert hits[0].pdf_id == "doc1"

    def test_zero_scores_excluded(self):
        hits = search_material(_chunk_set("nothing relevant", "IgG only"), "igm", top_k=5)
        assert hits == []

    def test_empty_query_no_hits(self):
        assert search_material(_chunk_set("IgM"), "   ", top_k=5) == []

    def test_descending_score(self):
        chunk_set = _chunk_set("igm", "igm igm igm", "igm igm")
        hits = search_material(chunk_set, "IgM", top_k=5)
        assert [h.chunk_id for h in hits] == ["c2", "c3", "c1"]
        assert [h.score for h in hits] == [3, 2, 1]

    def test_ties_keep_chunk_order(self):
        chunk_set = _chunk_set("b igm", "a igm", "c igm", "d igm")
        hits = search_material(chunk_set, "igm", top_k=10)
        assert [h.chunk_id for h in hits] == ["c1", "c2", "c3", "c4"]

    @pytest.mark.parametrize("top_k", [1, 2, 3, 20])
    def test_result_count_bound(self, top_k):
        chunk_set = _chunk_set(*(["igm"] * 10))
        hits = search_material(chunk_set, "igm", top_k=top_k)
        assert len(hits) == min(top_k, 10)
        assert all(h.score >= 1 for h in hits)

    def test_extra_occurrence_never_lowers_rank(self):
        """Adding an occurrence to a matching chunk keeps or raises its rank."""
        base = ["igm one", "igm igm two", "igm three"]
        before = [h.chunk_id for h in search_material(_chunk_set(*base), "igm", 10)]

        boosted = [base[0] + " igm", base[1], base[2]]
        after_hits = search_material(_chunk_set(*boosted), "igm", 10)
        after = [h.chunk_id for h in after_hits]

        assert after.index("c1") <= before.index("c1")
        assert after_hits[after.index("c1")].score == 2


class TestSnippet:
    """Tests for snippet windows."""

    def test_short_text_no_ellipsis(self):
        assert make_snippet("IgM is first", ["igm"]) == "IgM is first"

    def test_window_biased_one_third(self):
        text = "x" * 300 + "IgM" + "y" * 300
        snippet = make_snippet(text, ["igm"], max_len=180)

        assert snippet.startswith("…")
        assert snippet.endswith("…")
        body = snippet[1:-1]
        assert len(body) == 180
        assert body.index("IgM") == 60

    def test_match_near_start_no_prefix(self):
        text = "IgM " + "z" * 400
        snippet = make_snippet(text, ["igm"])
        assert snippet.startswith("IgM")
        assert snippet.endswith("…")

    def test_first_present_token_in_query_order(self):
        text = "a" * 100 + "beta" + "a" * 100 + "alpha" + "a" * 100
        snippet = make_snippet(text, ["missing", "alpha", "beta"], max_len=30)
        assert "alpha" in snippet
        assert "beta" not in snippet

    def test_window_found_after_length_changing_lowercase(self):
        """'İ'.lower() is two code points; the window must still hold the match."""
        text = "İ" * 200 + " IgM " + "x" * 10

        snippet = make_snippet(text, ["igm"])

        assert "IgM" in snippet
        assert snippet.startswith("…")

    def test_search_hit_snippet_contains_match(self):
        chunk_set = _chunk_set("İ" * 200 + " igm " + "x" * 10)

        hits = search_material(chunk_set, "igm", top_k=5)

        assert hits[0].score == 1
        assert "igm" in hits[0].snippet

    def test_no_token_falls_back_to_prefix(self):
        assert make_snippet("abcdef", ["zzz"], max_len=3) == "abc"


class TestSearchDocument:
    """Tests for searching a stored document."""

    def test_not_chunked_is_error(self, store, uploaded):
        """No chunk set yields NOT_CHUNKED, never an empty success."""
        with pytest.raises(NotChunkedError) as exc:
            search_document(store, uploaded, "igm")

        assert exc.value.code == "NOT_CHUNKED"
        assert exc.value.details == {"doc_id": uploaded}
        assert not isinstance(exc.value, NotFoundError)

    def test_search_after_pipeline(self, orchestrator, store, uploaded):
        asyncio.run(orchestrator.ensure_chunked(uploaded))

        chunk_set, hits = search_document(store, uploaded, "IgM", top_k=5)

        assert chunk_set.doc_id == uploaded
        assert len(hits) == 1
        assert hits[0].page_start == 1
        assert "IgM" in hits[0].snippet
