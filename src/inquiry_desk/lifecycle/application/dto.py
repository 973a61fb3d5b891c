"""
Lifecycle Application DTOs
==========================

Pydantic models for the inquiry, lifecycle and activity endpoints.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from inquiry_desk.core import as_utc
from inquiry_desk.lifecycle.domain import ActivityRecord, Inquiry, RebalanceReport, SweepReport

InquiryStatusStr = Literal["unassigned", "assigned", "replied", "escalated", "missed"]
PriorityStr = Literal["low", "normal", "high", "urgent"]


# ========== Request DTOs ==========

class AssignRequest(BaseModel):
    """Manual (re)assignment. Without an operator the balancer picks one."""
    operator_id: Optional[str] = Field(None, description="Operator to assign; omit for least-recently-assigned")


class SweepRequest(BaseModel):
    """Optional evaluation instant, for replaying a sweep at a given time."""
    now: Optional[datetime] = None

    @field_validator("now")
    @classmethod
    def tag_naive_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


# ========== Response DTOs ==========

class InquiryResponse(BaseModel):
    """Inquiry with its lifecycle state."""
    id: str
    external_reference: str
    title: str
    body: str
    category: str
    priority: PriorityStr
    relevance_score: int
    status: InquiryStatusStr
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    bandwidth_minutes: int
    deadline: Optional[datetime] = None
    escalation_count: int
    replied_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, inquiry: Inquiry) -> "InquiryResponse":
        return cls(
            id=inquiry.id,
            external_reference=inquiry.external_reference,
            title=inquiry.title,
            body=inquiry.body,
            category=inquiry.category,
            priority=inquiry.priority.value,
            relevance_score=inquiry.relevance_score,
            status=inquiry.status.value,
            assigned_to=inquiry.assigned_to,
            assigned_at=inquiry.assigned_at,
            bandwidth_minutes=inquiry.bandwidth_minutes,
            deadline=inquiry.deadline,
            escalation_count=inquiry.escalation_count,
            replied_at=inquiry.replied_at,
            version=inquiry.version,
            created_at=inquiry.created_at,
            updated_at=inquiry.updated_at,
        )


class InquiryListResponse(BaseModel):
    inquiries: List[InquiryResponse]
    count: int


class InquiryStatsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_category: Dict[str, int]
    overdue: int


class ActivityResponse(BaseModel):
    id: Optional[str] = None
    inquiry_id: str
    operator_id: Optional[str] = None
    actor: str
    type: str
    description: str
    timestamp: datetime

    @classmethod
    def from_entity(cls, record: ActivityRecord) -> "ActivityResponse":
        return cls(
            id=record.id,
            inquiry_id=record.inquiry_id,
            operator_id=record.operator_id,
            actor=record.actor,
            type=record.type.value,
            description=record.description,
            timestamp=record.timestamp,
        )


class SweepResponse(BaseModel):
    scanned: int
    escalated: int
    reassigned: int
    missed: int
    skipped: int
    failed: int
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: SweepReport) -> "SweepResponse":
        return cls(
            scanned=report.scanned,
            escalated=report.escalated,
            reassigned=report.reassigned,
            missed=report.missed,
            skipped=report.skipped,
            failed=report.failed,
            errors=report.errors,
        )


class RebalanceResponse(BaseModel):
    scanned: int
    assigned: int
    waiting: int
    skipped: int
    failed: int
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: RebalanceReport) -> "RebalanceResponse":
        return cls(
            scanned=report.scanned,
            assigned=report.assigned,
            waiting=report.waiting,
            skipped=report.skipped,
            failed=report.failed,
            errors=report.errors,
        )
