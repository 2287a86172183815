"""
Query Generation Agent - document text to question-search query.

Asks a chat model for a short search query plus keywords describing the
representative text of a document. The result drives the question corpus
search in material_layer.src.auto_search.

Failures are reported as GenerationFailedError with a distinguishable reason:
- missing_credentials: no LLM provider configured
- upstream_error: the model call itself failed
- unparsable_response: no usable JSON object in the reply
"""

import json
import logging
import re
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from material_layer.src.errors import GenerationFailedError
from material_layer.src.schemas.question import GeneratedQuery

from ..config.llm_providers import get_llm
from ..observability.tracing import span

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 10

SYSTEM_PROMPT = """You help students find exam questions related to their study material.

Your task: Read an excerpt of a study document and produce a search query for a
bank of exam-style questions.

## RULES

1. The query is a short phrase (2-8 words) naming the main topic of the excerpt.
2. Keywords are distinctive terms from the excerpt: diseases, drugs, mechanisms,
   anatomy, named laws. Skip generic words ("chapter", "figure", "patient").
3. Keep the excerpt's language and spelling; do not translate.
4. At most 10 keywords, most important first.

## OUTPUT FORMAT

Return only a JSON object:
{
    "query": "<short topic phrase>",
    "keywords": ["<term>", "<term>", ...]
}"""

JSON_PATTERNS = [
    r'```json\s*(\{.*?\})\s*```',
    r'```\s*(\{.*?\})\s*```',
    r'\{[^{}]*"query"[^{}]*\}',
]


def _normalize_keywords(raw: Any, max_keywords: int) -> list[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, list):
        return []

    keywords: list[str] = []
    for item in raw:
        if not isinstance(item, (str, int, float)):
            continue
        keyword = str(item).strip()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords[:max_keywords]


def parse_generated_query(response: str, max_keywords: int = MAX_KEYWORDS) -> GeneratedQuery:
    """
    Parse a model reply into a GeneratedQuery.

    Accepts a fenced ```json block or a bare object containing "query".
    Keywords are de-duplicated, blanks dropped, capped at max_keywords.

    Raises:
        GenerationFailedError: reason unparsable_response
    """
    for pattern in JSON_PATTERNS:
        for match in re.findall(pattern, response, re.DOTALL):
            json_str = match.strip()
            if not json_str.startswith("{"):
                continue
            try:
                data = json.loads(json_str)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict) or "query" not in data:
                continue

            keywords = _normalize_keywords(data.get("keywords"), max_keywords)
            query = str(data.get("query") or "").strip() or " ".join(keywords)
            if not query:
                continue
            return GeneratedQuery(query=query, keywords=keywords)

    raise GenerationFailedError(
        "could not parse a query from the model response",
        reason=GenerationFailedError.UNPARSABLE_RESPONSE,
        response=response[:300],
    )


def _message_text(content: Any) -> str:
    """Flatten chat message content (string or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return str(content)


class LLMQueryGenerator:
    """
    Query generator backed by a langchain chat model.

    Async callable: representative text -> GeneratedQuery.
    """

    def __init__(self, llm: Optional[BaseChatModel] = None, max_keywords: int = MAX_KEYWORDS):
        self._llm = llm
        self.max_keywords = max_keywords

    @property
    def llm(self) -> BaseChatModel:
        """Lazy-load the configured chat model."""
        if self._llm is None:
            try:
                self._llm = get_llm()
            except ValueError as e:
                raise GenerationFailedError(
                    "no LLM provider configured for query generation",
                    reason=GenerationFailedError.MISSING_CREDENTIALS,
                ) from e
        return self._llm

    async def __call__(self, text: str) -> GeneratedQuery:
        llm = self.llm
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=f"## EXCERPT\n\n{text}"),
        ]

        with span("generate_query", run_type="llm", chars=len(text)):
            try:
                response = await llm.ainvoke(messages)
            except Exception as e:
                logger.warning(f"Query generation call failed: {type(e).__name__}: {e}")
                raise GenerationFailedError(
                    "query generation service call failed",
                    reason=GenerationFailedError.UPSTREAM_ERROR,
                    error_type=type(e).__name__,
                ) from e

            content = _message_text(response.content)
            try:
                return parse_generated_query(content, self.max_keywords)
            except GenerationFailedError:
                logger.warning(f"Unparsable query generation response: {content[:200]!r}")
                raise
