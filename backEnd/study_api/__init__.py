"""
Study Search API.

FastAPI service over the material layer: PDF upload, idempotent
extraction/chunking, material search, and LLM-driven question search,
with LangSmith observability.
"""

__version__ = "0.1.0"
