"""
Document to question search.

Flow:
1. Ensure the document is extracted and chunked (idempotent)
2. Take its representative text
3. Generate {query, keywords} from it (LLM or heuristic)
4. Search the question corpus with the generated query
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from .chunk_text import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP
from .pipeline import PipelineOrchestrator
from .question_search import QuestionCorpus, search_questions
from .schemas.question import AutoSearchResult, GeneratedQuery

logger = logging.getLogger(__name__)

# Async callable: representative text -> GeneratedQuery (raises GenerationFailedError)
QueryGenerator = Callable[[str], Awaitable[GeneratedQuery]]

DEFAULT_TOP_K = 10
MIN_TOP_K = 1
MAX_TOP_K = 50


def clamp_top_k(
    value: Optional[Union[int, float]],
    default: int = DEFAULT_TOP_K,
    low: int = MIN_TOP_K,
    high: int = MAX_TOP_K,
) -> int:
    """Floor value and clamp it into [low, high]; missing or non-finite means low."""
    if value is None:
        value = default
    if not math.isfinite(value):
        return low
    return min(high, max(low, math.floor(value)))


class HeuristicQueryGenerator:
    """
    Offline query generator.

    Keeps the distinct words of three or more letters/digits from the start
    of the text, in first-seen order.
    """

    def __init__(self, head_chars: int = 2500, max_keywords: int = 10, min_word_len: int = 3):
        self.head_chars = head_chars
        self.max_keywords = max_keywords
        self.min_word_len = min_word_len

    def generate(self, text: str) -> GeneratedQuery:
        head = text[: self.head_chars]
        cleaned = "".join(c if c.isalnum() or c.isspace() else " " for c in head)
        words = [w for w in cleaned.split() if len(w) >= self.min_word_len]

        keywords = list(dict.fromkeys(words))[: self.max_keywords]
        return GeneratedQuery(query=" ".join(keywords), keywords=keywords)

    async def __call__(self, text: str) -> GeneratedQuery:
        return self.generate(text)


async def auto_search(
    orchestrator: PipelineOrchestrator,
    corpus: QuestionCorpus,
    generate_query: QueryGenerator,
    doc_id: str,
    csv_path: Union[Path, str],
    top_k: Optional[Union[int, float]] = DEFAULT_TOP_K,
    delimiter: str = ",",
) -> AutoSearchResult:
    """
    Run the full document to question flow.

    Args:
        orchestrator: Pipeline used to extract and chunk the document
        corpus: Question cache
        generate_query: Query generator (LLM adapter or heuristic)
        doc_id: Document identifier
        csv_path: Question corpus path
        top_k: Requested hit count, clamped to 1..50
        delimiter: Corpus field delimiter

    Returns:
        AutoSearchResult with the generated query and ranked hits
    """
    doc_id = doc_id.strip()
    top_k = clamp_top_k(top_k)

    await orchestrator.ensure_extracted(doc_id)
    await orchestrator.ensure_chunked(doc_id, DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP)

    text = await orchestrator.get_representative_text(doc_id)
    generated = await generate_query(text)
    logger.info(f"Generated query for {doc_id}: {generated.query!r} ({len(generated.keywords)} keywords)")

    rows = await asyncio.to_thread(corpus.load, csv_path, delimiter)
    hits = search_questions(rows, generated.query, generated.keywords, top_k)

    return AutoSearchResult(pdf_id=doc_id, generated=generated, hits=hits)
