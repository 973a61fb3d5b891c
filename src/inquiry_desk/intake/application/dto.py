"""
Intake Application DTOs
=======================

Pydantic models for the intake endpoints.

The batch request keeps each candidate as a raw mapping so that one
malformed item is reported on its own instead of rejecting the batch.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from inquiry_desk.intake.domain import Candidate, IngestionOutcome, RelevanceAssessment

PriorityStr = Literal["low", "normal", "high", "urgent"]


# ========== Request DTOs ==========

class CandidateDTO(BaseModel):
    """One scraped candidate."""
    title: str = Field(..., min_length=1, max_length=500, description="Thread title")
    body: str = Field(default="", description="Excerpt of the opening post")
    external_reference: str = Field(..., min_length=1, max_length=500, description="Source URL or id")
    views: int = Field(default=0, ge=0)
    replies: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)

    @field_validator("title", "external_reference")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def to_candidate(self) -> Candidate:
        return Candidate(
            title=self.title,
            body=self.body,
            external_reference=self.external_reference,
            views=self.views,
            replies=self.replies,
            likes=self.likes,
        )


class CandidateBatchRequest(BaseModel):
    """Request model for batch ingestion."""
    candidates: List[Dict[str, Any]] = Field(..., description="Candidates to ingest")


# ========== Response DTOs ==========

class IngestResultItem(BaseModel):
    external_reference: Optional[str] = None
    admitted: bool
    duplicate: bool = False
    score: int
    category: str
    priority: PriorityStr
    inquiry_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: IngestionOutcome) -> "IngestResultItem":
        return cls(
            external_reference=outcome.external_reference,
            admitted=outcome.admitted,
            duplicate=outcome.duplicate,
            score=outcome.score,
            category=outcome.category,
            priority=outcome.priority.value,
            inquiry_id=outcome.inquiry_id,
            status=outcome.status,
            error=outcome.error,
        )


class IngestResponse(BaseModel):
    """Per-item results plus counters."""
    results: List[IngestResultItem]
    admitted: int
    rejected: int
    duplicates: int
    failed: int


class AssessResponse(BaseModel):
    """Dry-run relevance assessment."""
    score: int
    admitted: bool
    category: str
    priority: PriorityStr
    signals: List[str]

    @classmethod
    def from_assessment(cls, assessment: RelevanceAssessment) -> "AssessResponse":
        return cls(
            score=assessment.score,
            admitted=assessment.admitted,
            category=assessment.category,
            priority=assessment.priority.value,
            signals=assessment.signals,
        )
