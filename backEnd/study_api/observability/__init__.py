"""Observability and tracing for the study search API."""

from .tracing import (
    configure_langsmith,
    get_tracer,
    span,
    StudyTracer,
)

__all__ = [
    "configure_langsmith",
    "get_tracer",
    "span",
    "StudyTracer",
]
