"""
Question corpus schemas.

QuestionRow mirrors one row of the tabular question source; the lower-cased
search blob is computed at load time and excluded from serialization.
"""

from typing import Any

from pydantic import BaseModel, Field


class QuestionRow(BaseModel):
    """One exam-style question."""

    question_code: str
    rbc_id: str = ""
    rbc_name: str = ""
    environment: str = ""
    body_statement: str = ""
    choice_1: str = ""
    choice_2: str = ""
    choice_3: str = ""
    choice_4: str = ""
    choice_5: str = ""
    answer: str = ""
    comment: str = ""
    blob: str = Field(default="", exclude=True, description="Lower-cased search text")

    @property
    def choices(self) -> list[str]:
        return [self.choice_1, self.choice_2, self.choice_3, self.choice_4, self.choice_5]


class GeneratedQuery(BaseModel):
    """Search query derived from document content. Never persisted."""

    query: str = ""
    keywords: list[str] = Field(default_factory=list)


class QuestionHit(BaseModel):
    """A scored question with a composite snippet."""

    question_id: str
    title: str
    snippet: str
    score: int = Field(..., ge=1)
    meta: dict[str, Any] = Field(default_factory=dict)


class AutoSearchResult(BaseModel):
    """Result of the document → generated query → question flow."""

    pdf_id: str
    generated: GeneratedQuery
    hits: list[QuestionHit] = Field(default_factory=list)
