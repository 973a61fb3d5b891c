"""
Lifecycle Controllers (API Routes)
==================================

FastAPI routes for the inquiry lifecycle: sweep and rebalance triggers,
manual assignment, and the inquiry/activity read surface.

Controllers delegate to application services.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from inquiry_desk.config import Category, InquiryStatus, Priority
from inquiry_desk.lifecycle.application import (
    ActivityResponse,
    AssignRequest,
    EscalationSweeper,
    InquiryListResponse,
    InquiryResponse,
    InquiryStatsResponse,
    LifecycleService,
    RebalanceResponse,
    SweepRequest,
    SweepResponse,
)
from inquiry_desk.lifecycle.infrastructure import EscalationNotifier
from inquiry_desk.shared.api.dependencies import (
    get_lifecycle_service,
    get_notifier,
    get_sweeper,
    get_uow,
)
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)
router = APIRouter(prefix="/lifecycle", tags=["Lifecycle"])
inquiry_router = APIRouter(prefix="/inquiries", tags=["Inquiries"])
activity_router = APIRouter(prefix="/activity", tags=["Activity"])


# ========== Example payloads for Swagger ==========

SWEEP_RESPONSE_EXAMPLE = {
    "scanned": 3,
    "escalated": 2,
    "reassigned": 2,
    "missed": 1,
    "skipped": 0,
    "failed": 0,
    "errors": []
}

INQUIRY_RESPONSE_EXAMPLE = {
    "id": "123e4567-e89b-12d3-a456-426614174000",
    "external_reference": "https://forum.example.com/t/12345",
    "title": "Looking for an app to handle subscription payments?",
    "body": "Our store sells coffee boxes and we want recurring billing at checkout.",
    "category": "Apps",
    "priority": "high",
    "relevance_score": 100,
    "status": "assigned",
    "assigned_to": "9b2f4c1e-7d3a-4e8b-a1c2-3f4e5d6a7b8c",
    "assigned_at": "2026-01-15T10:00:00Z",
    "bandwidth_minutes": 240,
    "deadline": "2026-01-15T14:00:00Z",
    "escalation_count": 0,
    "replied_at": None,
    "version": 2,
    "created_at": "2026-01-15T10:00:00Z",
    "updated_at": "2026-01-15T10:00:00Z"
}


# ========== Lifecycle triggers ==========

@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Run the escalation sweep",
    description="""
    Escalate every assigned inquiry whose deadline has passed:

    - The holder is charged a missed deadline and the inquiry is handed to the
      least-recently-assigned active operator with a fresh deadline
    - Inquiries already escalated `max_escalations` times become **missed**
    - With nobody available the inquiry stays **escalated** for the next rebalance

    Idempotent: running it again changes nothing until another deadline lapses.
    Escalation notices are sent after the sweep is committed.
    """,
    responses={
        200: {
            "description": "Sweep finished",
            "content": {
                "application/json": {
                    "example": SWEEP_RESPONSE_EXAMPLE
                }
            }
        }
    }
)
async def run_sweep(
    request: Request,
    payload: Optional[SweepRequest] = None,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    sweeper: EscalationSweeper = Depends(get_sweeper),
    notifier: Optional[EscalationNotifier] = Depends(get_notifier)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    report = await sweeper.sweep(payload.now if payload else None)
    await uow.commit()

    if notifier is not None and report.notices:
        sent = await notifier.notify(report.notices)
        logger.info(
            "Escalation notices sent",
            extra={"correlation_id": correlation_id, "sent": sent, "notices": len(report.notices)}
        )

    return SweepResponse.from_report(report)


@router.post(
    "/rebalance",
    response_model=RebalanceResponse,
    summary="Assign the backlog",
    description="""
    Assign unassigned and escalated inquiries, oldest first, until the backlog
    is empty or no active operator is left. Idempotent.
    """
)
async def run_rebalance(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: LifecycleService = Depends(get_lifecycle_service),
    notifier: Optional[EscalationNotifier] = Depends(get_notifier)
):
    report = await service.rebalance()
    await uow.commit()

    if notifier is not None and report.waiting:
        await notifier.notify_backlog(report.waiting)

    return RebalanceResponse.from_report(report)


# ========== Inquiries ==========

@inquiry_router.get(
    "",
    response_model=InquiryListResponse,
    summary="List inquiries"
)
async def list_inquiries(
    status: Optional[InquiryStatus] = Query(None, description="Filter by status"),
    assigned_to: Optional[str] = Query(None, description="Filter by operator ID"),
    category: Optional[Category] = Query(None, description="Filter by category"),
    priority: Optional[Priority] = Query(None, description="Filter by priority"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: LifecycleService = Depends(get_lifecycle_service)
):
    filters = {}
    if status:
        filters["status"] = status.value
    if assigned_to:
        filters["assigned_to"] = assigned_to
    if category:
        filters["category"] = category.value
    if priority:
        filters["priority"] = priority.value

    inquiries = await service.list_inquiries(filters, limit=limit, offset=offset)
    return InquiryListResponse(
        inquiries=[InquiryResponse.from_entity(i) for i in inquiries],
        count=len(inquiries)
    )


@inquiry_router.get(
    "/stats",
    response_model=InquiryStatsResponse,
    summary="Inquiry counts",
    description="Counts by status, priority and category, plus open inquiries past their deadline."
)
async def inquiry_stats(
    service: LifecycleService = Depends(get_lifecycle_service)
):
    return InquiryStatsResponse(**await service.stats())


@inquiry_router.get(
    "/{inquiry_id}",
    response_model=InquiryResponse,
    summary="Get inquiry",
    responses={
        200: {
            "description": "Inquiry found",
            "content": {
                "application/json": {
                    "example": INQUIRY_RESPONSE_EXAMPLE
                }
            }
        },
        404: {"description": "Inquiry not found"}
    }
)
async def get_inquiry(
    inquiry_id: str,
    service: LifecycleService = Depends(get_lifecycle_service)
):
    return InquiryResponse.from_entity(await service.get_inquiry(inquiry_id))


@inquiry_router.get(
    "/{inquiry_id}/activity",
    response_model=List[ActivityResponse],
    summary="Inquiry activity log",
    description="Append-only activity records for one inquiry, oldest first."
)
async def inquiry_activity(
    inquiry_id: str,
    limit: int = Query(100, ge=1, le=1000),
    service: LifecycleService = Depends(get_lifecycle_service)
):
    records = await service.activity_for(inquiry_id, limit=limit)
    return [ActivityResponse.from_entity(r) for r in records]


@inquiry_router.post(
    "/{inquiry_id}/assign",
    response_model=InquiryResponse,
    summary="Assign or reassign an inquiry",
    description="""
    Hand an open inquiry to a named operator, or to the least-recently-assigned
    active operator when `operator_id` is omitted. The deadline restarts from now.

    Returns **409** for replied or missed inquiries, inactive operators, an
    empty operator pool, or a conflict that survived retries.
    """,
    responses={
        404: {"description": "Inquiry or operator not found"},
        409: {"description": "Transition not allowed or lost to a concurrent change"}
    }
)
async def assign_inquiry(
    request: Request,
    inquiry_id: str,
    payload: Optional[AssignRequest] = None,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: LifecycleService = Depends(get_lifecycle_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    operator_id = payload.operator_id if payload else None

    inquiry = await service.assign(inquiry_id, operator_id)
    await uow.commit()

    logger.info(
        "Manual assignment",
        extra={
            "correlation_id": correlation_id,
            "inquiry_id": inquiry.id,
            "operator_id": inquiry.assigned_to,
        }
    )
    return InquiryResponse.from_entity(inquiry)


# ========== Activity ==========

@activity_router.get(
    "/recent",
    response_model=List[ActivityResponse],
    summary="Recent activity",
    description="Latest activity records across all inquiries, newest first."
)
async def recent_activity(
    limit: int = Query(50, ge=1, le=500),
    service: LifecycleService = Depends(get_lifecycle_service)
):
    records = await service.recent_activity(limit=limit)
    return [ActivityResponse.from_entity(r) for r in records]


# Export router
lifecycle_router = router
