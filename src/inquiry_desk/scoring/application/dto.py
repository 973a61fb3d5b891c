"""
Scoring Application DTOs
========================

Pydantic models for the reply endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from inquiry_desk.config import OutcomeSignal
from inquiry_desk.core import as_utc
from inquiry_desk.scoring.domain import Reply


# ========== Request DTOs ==========

class ReplySubmitRequest(BaseModel):
    """Request model for submitting a reply."""
    inquiry_id: str = Field(..., min_length=1)
    operator_id: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1, description="Reply text")
    submitted_at: Optional[datetime] = Field(None, description="Defaults to now")

    @field_validator("submitted_at")
    @classmethod
    def tag_naive_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class OutcomeRevisionRequest(BaseModel):
    """Downstream signal for a reply."""
    signal: OutcomeSignal


# ========== Response DTOs ==========

class ReplyScoreResponse(BaseModel):
    speed: int
    quality: int
    outcome: int
    total: int


class ReplyResponse(BaseModel):
    id: str
    inquiry_id: str
    operator_id: str
    body: str
    submitted_at: datetime
    reply_time_minutes: float
    score: ReplyScoreResponse
    outcome_signal: Optional[OutcomeSignal] = None

    @classmethod
    def from_entity(cls, reply: Reply) -> "ReplyResponse":
        return cls(
            id=reply.id,
            inquiry_id=reply.inquiry_id,
            operator_id=reply.operator_id,
            body=reply.body,
            submitted_at=reply.submitted_at,
            reply_time_minutes=round(reply.reply_time_minutes, 2),
            score=ReplyScoreResponse(**reply.score.to_dict()),
            outcome_signal=reply.outcome_signal,
        )


class ReplySubmitResponse(BaseModel):
    """Score breakdown for a newly submitted reply."""
    reply_id: str
    speed: int
    quality: int
    outcome: int
    total: int
    reply_time_minutes: float
    aggregates_updated: bool
