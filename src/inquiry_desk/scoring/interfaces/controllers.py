"""
Scoring Controllers (API Routes)
================================

FastAPI routes for reply submission, outcome revision and the reply
history of inquiries and operators.

Controllers delegate to application services.
"""

import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from inquiry_desk.core import Clock
from inquiry_desk.lifecycle.application import LifecycleService
from inquiry_desk.scoring.application import (
    OutcomeRevisionRequest,
    ReplyResponse,
    ReplySubmitRequest,
    ReplySubmitResponse,
    ScoringService,
)
from inquiry_desk.shared.api.dependencies import (
    get_clock,
    get_config_provider,
    get_lifecycle_service,
    get_uow,
)
from inquiry_desk.shared.config import IPipelineConfigProvider
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from inquiry_desk.workforce.application import AggregatesResponse, RecomputeResponse

logger = get_logger(__name__)
router = APIRouter(tags=["Replies"])


# ========== Example payloads for Swagger ==========

REPLY_REQUEST_EXAMPLE = {
    "inquiry_id": "123e4567-e89b-12d3-a456-426614174000",
    "operator_id": "9b2f4c1e-7d3a-4e8b-a1c2-3f4e5d6a7b8c",
    "body": "Recharge and Bold Subscriptions both handle recurring billing at checkout. "
            "Recharge has the better customer portal if subscribers manage their own boxes.",
    "submitted_at": "2026-01-15T10:30:00Z"
}

REPLY_RESPONSE_EXAMPLE = {
    "reply_id": "5c7d9e1f-2a3b-4c5d-8e9f-0a1b2c3d4e5f",
    "speed": 39,
    "quality": 30,
    "outcome": 15,
    "total": 84,
    "reply_time_minutes": 30.0,
    "aggregates_updated": True
}


# ========== Dependencies ==========

async def get_scoring_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    lifecycle_service: LifecycleService = Depends(get_lifecycle_service),
    config_provider: IPipelineConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
) -> ScoringService:
    """Get scoring service instance."""
    return ScoringService(uow, lifecycle_service, config_provider, clock)


# ========== Route Handlers ==========

@router.post(
    "/replies",
    response_model=ReplySubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a reply",
    description="""
    Record an operator's reply, close the inquiry and score the reply:

    - **speed**: decays with the share of the bandwidth window used
      (the floor for replies after the deadline or from a previous holder)
    - **quality**: length band plus a bonus for replies without placeholder text
    - **outcome**: neutral until revised with `PATCH /replies/{id}/outcome`

    The operator's totals are updated in the same request. If that update
    fails the reply is still stored and `aggregates_updated` is `false`;
    `POST /operators/{id}/recompute` rebuilds the totals.
    """,
    responses={
        201: {
            "description": "Reply scored",
            "content": {
                "application/json": {
                    "example": REPLY_RESPONSE_EXAMPLE
                }
            }
        },
        404: {"description": "Inquiry or operator not found"},
        409: {"description": "Inquiry already replied or missed"}
    }
)
async def submit_reply(
    request: Request,
    payload: ReplySubmitRequest,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: ScoringService = Depends(get_scoring_service)
):
    start_time = time.perf_counter()
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    result = await service.submit_reply(
        inquiry_id=payload.inquiry_id,
        operator_id=payload.operator_id,
        body=payload.body,
        submitted_at=payload.submitted_at
    )
    await uow.commit()

    reply = result.reply
    logger.info(
        "Reply submitted",
        extra={
            "correlation_id": correlation_id,
            "reply_id": reply.id,
            "total": reply.score.total,
            "response_time_ms": int((time.perf_counter() - start_time) * 1000)
        }
    )

    return ReplySubmitResponse(
        reply_id=reply.id,
        speed=reply.score.speed,
        quality=reply.score.quality,
        outcome=reply.score.outcome,
        total=reply.score.total,
        reply_time_minutes=round(reply.reply_time_minutes, 2),
        aggregates_updated=result.aggregates_updated
    )


@router.patch(
    "/replies/{reply_id}/outcome",
    response_model=ReplyResponse,
    summary="Revise a reply's outcome",
    description="""
    Apply a downstream outcome signal (`resolved`, `thanked`, `no_response`,
    `unresolved`). Only the outcome component changes; the operator's
    total score moves by the difference.
    """
)
async def revise_outcome(
    reply_id: str,
    payload: OutcomeRevisionRequest,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: ScoringService = Depends(get_scoring_service)
):
    reply = await service.revise_outcome(reply_id, payload.signal)
    await uow.commit()
    return ReplyResponse.from_entity(reply)


@router.get(
    "/inquiries/{inquiry_id}/replies",
    response_model=List[ReplyResponse],
    tags=["Inquiries"],
    summary="Replies to an inquiry"
)
async def inquiry_replies(
    inquiry_id: str,
    service: ScoringService = Depends(get_scoring_service)
):
    replies = await service.replies_for_inquiry(inquiry_id)
    return [ReplyResponse.from_entity(r) for r in replies]


@router.get(
    "/operators/{operator_id}/replies",
    response_model=List[ReplyResponse],
    tags=["Operators"],
    summary="Replies by an operator",
    description="Newest first."
)
async def operator_replies(
    operator_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    service: ScoringService = Depends(get_scoring_service)
):
    replies = await service.replies_for_operator(operator_id, limit=limit)
    return [ReplyResponse.from_entity(r) for r in replies]


@router.post(
    "/operators/{operator_id}/recompute",
    response_model=RecomputeResponse,
    tags=["Operators"],
    summary="Rebuild operator aggregates",
    description="""
    Replay the operator's reply history and overwrite `total_replied`,
    `total_score` and `avg_reply_time` with the result. `total_missed` is
    not derived from replies and is left as is.
    """
)
async def recompute_aggregates(
    operator_id: str,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: ScoringService = Depends(get_scoring_service)
):
    previous, recomputed = await service.recompute_aggregates(operator_id)
    await uow.commit()
    return RecomputeResponse(
        operator_id=operator_id,
        previous=AggregatesResponse.from_value(previous),
        recomputed=AggregatesResponse.from_value(recomputed),
        was_consistent=previous.matches(recomputed)
    )


# Export router
scoring_router = router
