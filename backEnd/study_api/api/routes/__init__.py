"""API route modules."""

from .health import router as health_router
from .pdfs import router as pdfs_router
from .search import router as search_router

__all__ = ["health_router", "pdfs_router", "search_router"]
