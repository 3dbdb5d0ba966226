"""Retrieval and answer models.

Both are transient: recomputed per question and never persisted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from finddocs.utils.text_normalizer import preview


class RetrievalResult(BaseModel):
    """A document matched against a query, with its keyword relevance."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    filename: str
    content_excerpt: str = Field(description="Document text handed to context assembly.")
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)

    def preview(self, length: int = 200) -> str:
        return preview(self.content_excerpt, length)


class QAAnswer(BaseModel):
    """The generation service's answer together with the sources it was given."""

    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    sources: tuple[RetrievalResult, ...] = ()
    conversation_id: str | None = None
    context_length: int = Field(default=0, ge=0)
