"""
Error taxonomy for the material pipeline.

Every error carries a machine-readable code, an HTTP status, a human-readable
message and structured details (offending field, document id) so callers can
build UI messages without parsing free text.
"""

from typing import Any, Optional


class ApiError(Exception):
    """Base class for all pipeline errors surfaced to callers."""

    code: str = "INTERNAL"
    status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize as the `error` member of an API envelope."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(ApiError):
    """Bad caller input."""

    code = "VALIDATION_ERROR"
    status = 400

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        if field is not None:
            details = {"field": field, **details}
        super().__init__(message, details)


class CorpusSchemaError(ValidationError):
    """Question corpus is missing a required column."""


class NotFoundError(ApiError):
    """Unknown document id, missing raw file, or missing corpus source."""

    code = "NOT_FOUND"
    status = 404


class NotExtractedError(ApiError):
    """Chunking requested before extraction."""

    code = "NOT_EXTRACTED"
    status = 409


class NotChunkedError(ApiError):
    """Search requested before chunking."""

    code = "NOT_CHUNKED"
    status = 409


class ToolUnavailableError(ApiError):
    """Extraction dependency (library or binary) is missing."""

    code = "TOOL_UNAVAILABLE"
    status = 503


class ExtractionFailedError(ApiError):
    """Malformed or corrupt document content."""

    code = "EXTRACTION_FAILED"
    status = 422


class GenerationFailedError(ApiError):
    """Query-generation collaborator failed."""

    code = "GENERATION_FAILED"
    status = 502

    MISSING_CREDENTIALS = "missing_credentials"
    UPSTREAM_ERROR = "upstream_error"
    UNPARSABLE_RESPONSE = "unparsable_response"

    def __init__(self, message: str, reason: str, **details: Any):
        super().__init__(message, {"reason": reason, **details})
        self.reason = reason


class InternalError(ApiError):
    """An invariant was violated (stage claimed success but left no artifact, etc.)."""

    code = "INTERNAL"
    status = 500
