"""
FastAPI application for study material search.

Provides REST endpoints for:
- Uploading documents and driving extraction/chunking
- Term-frequency search inside a document
- Document-driven question search
- Health checks

Every error leaves the service as the same envelope:
    {"ok": false, "request_id": "...", "error": {"code", "message", "details"}}
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from material_layer.src.errors import ApiError, InternalError, ValidationError

from .. import __version__
from ..config.settings import get_settings
from ..observability.tracing import configure_langsmith, get_tracer
from .deps import get_request_id
from .routes import health_router, pdfs_router, search_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_langsmith()
    logger.info(f"Study search API started (upload_dir={settings.upload_dir})")
    yield
    # Shutdown (nothing to clean up)


def error_response(request: Request, error: ApiError) -> JSONResponse:
    """Render an ApiError as the error envelope."""
    return JSONResponse(
        status_code=error.status,
        content=jsonable_encoder({
            "ok": False,
            "request_id": get_request_id(request),
            "error": error.to_dict(),
        }),
    )


def _validation_field(loc: tuple) -> str:
    # ("body", "top_k") -> "top_k"; ("body",) for a missing body -> "body"
    names = [str(part) for part in loc if not isinstance(part, int)]
    if len(names) > 1 and names[0] in ("body", "query", "path", "header"):
        names = names[1:]
    return ".".join(names) or "body"


def register_exception_handlers(app: FastAPI) -> None:
    """Map pipeline errors, request validation and crashes to the envelope."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.status >= 500:
            logger.error(f"[{get_request_id(request)}] {exc.code}: {exc.message} {exc.details}")
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = _validation_field(tuple(first.get("loc", ())))
        message = f"{field}: {first.get('msg', 'invalid request')}"
        return error_response(request, ValidationError(message, field=field))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        request_id = get_request_id(request)
        logger.exception(f"[{request_id}] Unhandled error in {request.method} {request.url.path}")
        get_tracer().log_error(exc, {"request_id": request_id, "path": request.url.path})
        return error_response(request, InternalError("Internal server error"))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Study Material Search API",
        description="Upload study documents, search inside them and find related exam questions",
        version=__version__,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request.state.request_id = uuid.uuid4().hex
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(pdfs_router)
    app.include_router(search_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "study-search",
            "version": __version__,
            "docs": "/docs",
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "study_api.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
