"""
Extracted pages artifact.

Produced once by the extraction stage and overwritten wholesale on re-run.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

# Bump together with a migration in migrate.py
ARTIFACT_SCHEMA_VERSION = 1


class PageText(BaseModel):
    """Plain text of a single page."""

    page: int = Field(..., ge=1, description="1-indexed page number")
    text: str = Field(default="", description="Raw extracted text")


class ExtractedPages(BaseModel):
    """Ordered per-page text for one document."""

    schema_version: int = Field(default=ARTIFACT_SCHEMA_VERSION)
    doc_id: str = Field(..., description="Parent document identifier")
    page_count: int = Field(..., ge=0)
    pages: list[PageText] = Field(default_factory=list)
    extractor: str = Field(default="unknown", description="Backend that produced the text")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _pages_in_order(self) -> "ExtractedPages":
        numbers = [p.page for p in self.pages]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"pages must be numbered 1..N in order, got {numbers[:10]}")
        if self.page_count != len(self.pages):
            raise ValueError(
                f"page_count={self.page_count} does not match {len(self.pages)} pages"
            )
        return self

    def full_text(self, separator: str = "\n") -> str:
        """Concatenate page texts in page order."""
        return separator.join(p.text for p in self.pages)
