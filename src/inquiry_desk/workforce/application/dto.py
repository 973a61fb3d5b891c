"""
Workforce Application DTOs
==========================

Pydantic request/response models for the operator endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from inquiry_desk.workforce.domain import Operator, OperatorAggregates


# ========== Request DTOs ==========

class OperatorCreateRequest(BaseModel):
    """Request model for registering an operator."""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: Optional[str] = Field(None, max_length=255, description="Contact email (unique)")
    active: bool = Field(default=True, description="Joins the assignment pool immediately")


class OperatorActiveRequest(BaseModel):
    """Request model for joining or leaving the pool."""
    active: bool


# ========== Response DTOs ==========

class OperatorResponse(BaseModel):
    """Operator with aggregates."""
    id: str
    name: str
    email: Optional[str] = None
    active: bool
    total_replied: int
    total_missed: int
    total_score: int
    avg_reply_time: float = Field(..., description="Mean reply time in minutes")
    reply_rate: float = Field(..., description="Percentage of handled inquiries answered in time")
    last_assigned_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_entity(cls, operator: Operator) -> "OperatorResponse":
        return cls(
            id=operator.id,
            name=operator.name,
            email=operator.email,
            active=operator.active,
            total_replied=operator.total_replied,
            total_missed=operator.total_missed,
            total_score=operator.total_score,
            avg_reply_time=round(operator.avg_reply_time, 2),
            reply_rate=operator.reply_rate,
            last_assigned_at=operator.last_assigned_at,
            created_at=operator.created_at,
        )


class WorkloadEntry(BaseModel):
    """Open inquiries currently held by one operator."""
    operator_id: str
    name: str
    open_inquiries: int
    last_assigned_at: Optional[datetime] = None


class AggregatesResponse(BaseModel):
    total_replied: int
    total_score: int
    avg_reply_time: float

    @classmethod
    def from_value(cls, aggregates: OperatorAggregates) -> "AggregatesResponse":
        return cls(
            total_replied=aggregates.total_replied,
            total_score=aggregates.total_score,
            avg_reply_time=round(aggregates.avg_reply_time, 4),
        )


class RecomputeResponse(BaseModel):
    """Stored aggregates before the rebuild and the values rebuilt from replies."""
    operator_id: str
    previous: AggregatesResponse
    recomputed: AggregatesResponse
    was_consistent: bool
