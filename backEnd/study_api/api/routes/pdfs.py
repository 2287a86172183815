"""Document upload and pipeline stage endpoints."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel, Field

from material_layer.src.errors import ValidationError
from material_layer.src.pipeline import PipelineOrchestrator
from material_layer.src.schemas.document import DocumentRecord, DocumentStatus
from material_layer.src.stage_store import StageStore

from ...config.settings import Settings, get_settings
from ..deps import get_orchestrator, get_request_id, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdfs", tags=["pdfs"])

PDF_MIME = "application/pdf"


# =============================================================================
# Request/Response Models
# =============================================================================


class ExtractResponse(BaseModel):
    """Extraction stage result."""

    ok: bool = True
    request_id: str
    pdf_id: str
    page_count: int
    extractor: str
    created_at: datetime


class ChunkResponse(BaseModel):
    """Chunking stage result."""

    ok: bool = True
    request_id: str
    pdf_id: str
    chunk_count: int
    chunk_size: int
    overlap: int
    created_at: datetime


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=DocumentRecord, status_code=201)
async def upload_pdf(
    file: UploadFile = File(..., description="PDF document"),
    store: StageStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a document.

    Accepted when either the filename ends in .pdf or the content type is
    application/pdf. Stored as-is; extraction happens on demand.
    """
    filename = file.filename or ""
    is_pdf_name = Path(filename).suffix.lower() == ".pdf"
    is_pdf_mime = (file.content_type or "").lower() == PDF_MIME
    if not is_pdf_name and not is_pdf_mime:
        raise ValidationError(
            "Only PDF files are allowed",
            field="file",
            filename=filename,
            content_type=file.content_type,
        )

    # Read one byte past the limit to detect oversize uploads without buffering them whole.
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"file exceeds the {settings.max_upload_mb} MB upload limit",
            field="file",
            max_upload_mb=settings.max_upload_mb,
        )
    if not data:
        raise ValidationError("file is empty", field="file")

    return await asyncio.to_thread(store.put_raw, data, filename or "upload.pdf")


@router.get("/{doc_id}", response_model=DocumentStatus)
async def get_pdf(
    doc_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Document record plus the furthest pipeline stage reached."""
    return await orchestrator.status(doc_id)


@router.post("/{doc_id}/extract", response_model=ExtractResponse)
async def extract_pdf(
    doc_id: str,
    force: bool = Query(False, description="Re-extract even if pages exist"),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id),
):
    """
    Ensure the document's pages are extracted.

    Reuses an existing artifact unless force is set.
    """
    if force:
        pages = await orchestrator.reextract(doc_id)
    else:
        pages = await orchestrator.ensure_extracted(doc_id)

    return ExtractResponse(
        request_id=request_id,
        pdf_id=doc_id,
        page_count=pages.page_count,
        extractor=pages.extractor,
        created_at=pages.created_at,
    )


@router.post("/{doc_id}/chunk", response_model=ChunkResponse)
async def chunk_pdf(
    doc_id: str,
    chunk_size: Optional[int] = Query(None, ge=1, description="Characters per chunk"),
    overlap: Optional[int] = Query(None, ge=0, description="Characters shared by consecutive chunks"),
    force: bool = Query(False, description="Rebuild even if a chunk set exists"),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id),
):
    """
    Ensure the document is chunked (extracting first when needed).

    An existing chunk set is returned as-is unless force is set, whatever
    parameters were requested.
    """
    if force:
        await orchestrator.ensure_extracted(doc_id)
        chunk_set = await orchestrator.rechunk(doc_id, chunk_size, overlap)
    else:
        chunk_set = await orchestrator.ensure_chunked(doc_id, chunk_size, overlap)

    return ChunkResponse(
        request_id=request_id,
        pdf_id=doc_id,
        chunk_count=len(chunk_set.chunks),
        chunk_size=chunk_set.chunk_size,
        overlap=chunk_set.overlap,
        created_at=chunk_set.created_at,
    )
