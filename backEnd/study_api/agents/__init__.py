"""LLM agents for the study search API."""

from .query_agent import LLMQueryGenerator, parse_generated_query

__all__ = [
    "LLMQueryGenerator",
    "parse_generated_query",
]
