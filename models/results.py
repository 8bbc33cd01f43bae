"""
Record types for retrieved material and document segments.
"""
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class NormalizedResult(BaseModel):
    """One retrieval hit, independent of the back-end that produced it."""
    source: str
    title: str
    content: str = ""
    url: Optional[str] = None
    relevance: float = 0.0

    @field_validator("relevance", mode="before")
    @classmethod
    def clamp_relevance(cls, v):
        """Keep relevance inside [0, 1]."""
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        if value != value:  # NaN
            return 0.0
        return max(0.0, min(1.0, value))


class Citation(BaseModel):
    """A numbered source reference shown alongside the answer."""
    ordinal: int = Field(ge=1)
    title: str
    url: str
    snippet: str = ""


class BudgetAllocation(BaseModel):
    """A result together with its character quota and the text that fits it."""
    result: NormalizedResult
    quota: int = Field(ge=0)
    content: str = ""


class DocumentSegment(BaseModel):
    """An overlapping window of a long document."""
    text: str
    start_offset: int = Field(ge=0)
    end_offset: int = Field(ge=0)
