"""Document search result schema."""

from pydantic import BaseModel, Field


class MaterialHit(BaseModel):
    """A scored chunk with a display snippet."""

    chunk_id: str
    pdf_id: str = Field(..., description="Parent document identifier")
    page_start: int
    page_end: int
    score: int = Field(..., ge=1, description="Summed token occurrence count")
    snippet: str
