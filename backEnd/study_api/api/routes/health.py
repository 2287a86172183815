"""Health check endpoints."""

import os
from pathlib import Path

from fastapi import APIRouter, Depends

from ...config.settings import Settings, get_settings


router = APIRouter(prefix="/health", tags=["health"])


def _dir_writable(path: Path) -> bool:
    # The store creates its root on first use, so an absent dir counts when its parent is writable.
    path = path.resolve()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path.is_dir() and os.access(path, os.W_OK)


@router.get("")
async def health_check():
    """Basic health check."""
    return {"ok": True}


@router.get("/ready")
async def readiness_check(settings: Settings = Depends(get_settings)):
    """
    Readiness check - verifies all dependencies are available.
    """
    checks = {
        "llm_configured": settings.query_generator == "heuristic" or settings.is_openai_configured(),
        "langsmith_configured": settings.is_langsmith_configured(),
        "upload_dir_writable": _dir_writable(Path(settings.upload_dir)),
        "questions_csv_present": settings.resolved_questions_csv_path().is_file(),
    }

    # Tracing is optional
    required = {k: v for k, v in checks.items() if k != "langsmith_configured"}
    all_ready = all(required.values())

    return {
        "ok": all_ready,
        "status": "ready" if all_ready else "degraded",
        "checks": checks,
    }


@router.get("/config")
async def config_info(settings: Settings = Depends(get_settings)):
    """
    Configuration info (non-sensitive).
    """
    return {
        "extract_backend": settings.extract_backend,
        "query_generator": settings.query_generator,
        "chunk_size": settings.default_chunk_size,
        "overlap": settings.default_overlap,
        "max_upload_mb": settings.max_upload_mb,
        "llm_provider": "azure" if settings.is_azure_configured() else "openai",
        "llm_model": settings.openai_model,
        "langsmith_project": settings.langchain_project if settings.is_langsmith_configured() else None,
        "langsmith_enabled": settings.is_langsmith_configured(),
    }
