"""
LangSmith integration for observability and tracing.

Provides:
- Trace configuration from environment
- Spans around query generation and searches
- Run logging for searches and errors

Every call is a no-op when LANGCHAIN_API_KEY is not set.
"""

import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Optional

from langsmith import Client
from langsmith.run_trees import RunTree

from ..config.settings import get_settings


def configure_langsmith() -> Optional[Client]:
    """
    Configure LangSmith from environment variables.

    Required env vars:
    - LANGCHAIN_API_KEY: LangSmith API key
    - LANGCHAIN_PROJECT: Project name (default: "study-search")
    - LANGCHAIN_TRACING_V2: Enable tracing (default: true)

    Returns:
        LangSmith client if configured, None otherwise
    """
    settings = get_settings()

    if not settings.is_langsmith_configured():
        return None

    # Set environment variables for LangChain
    os.environ["LANGCHAIN_TRACING_V2"] = str(settings.langchain_tracing_v2).lower()
    os.environ["LANGCHAIN_PROJECT"] = settings.langchain_project
    os.environ["LANGCHAIN_API_KEY"] = settings.langchain_api_key

    return Client()


class StudyTracer:
    """
    Tracer for search service events.

    Records:
    - Query generation calls
    - Material and question searches
    - Unhandled errors
    """

    def __init__(self):
        self._client: Optional[Client] = None
        self._project: str = get_settings().langchain_project

    @property
    def client(self) -> Optional[Client]:
        """Lazy-load LangSmith client."""
        if self._client is None:
            self._client = configure_langsmith()
        return self._client

    @property
    def is_enabled(self) -> bool:
        return self.client is not None

    @contextmanager
    def span(self, name: str, run_type: str = "chain", **metadata):
        """
        Create a trace span with metadata.

        Args:
            name: Span name
            run_type: LangSmith run type (chain, tool, llm, etc.)
            **metadata: Additional metadata to attach

        Yields:
            RunTree for the span, or None when tracing is off
        """
        if not self.is_enabled:
            yield None
            return

        run = RunTree(
            name=name,
            run_type=run_type,
            extra=metadata,
            project_name=self._project,
        )

        try:
            yield run
            run.end()
            run.post()
        except Exception as e:
            run.end(error=str(e))
            run.post()
            raise

    def log_search(
        self,
        kind: str,
        query: str,
        doc_id: str,
        num_results: int,
    ) -> None:
        """
        Log a material or question search.

        Args:
            kind: "material" or "auto"
            query: Query used
            doc_id: Document searched or used to generate the query
            num_results: Number of hits returned
        """
        if not self.is_enabled:
            return

        self.client.create_run(
            name=f"{kind}_search",
            run_type="tool",
            project_name=self._project,
            inputs={"query": query, "doc_id": doc_id},
            outputs={"num_results": num_results},
        )

    def log_error(self, error: Exception, context: dict[str, Any]) -> None:
        """Log an unhandled error with request context."""
        if not self.is_enabled:
            return

        self.client.create_run(
            name="error",
            run_type="chain",
            project_name=self._project,
            inputs=context,
            outputs={
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
            error=str(error),
        )


@lru_cache()
def get_tracer() -> StudyTracer:
    """Get singleton tracer instance."""
    return StudyTracer()


def span(name: str, run_type: str = "chain", **metadata):
    """Span on the shared tracer (no-op when tracing is off)."""
    return get_tracer().span(name, run_type=run_type, **metadata)
