"""
Workforce Controllers (API Routes)
==================================

FastAPI routes for operator administration, the leaderboard and the
workload view.

Controllers delegate to application services.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from inquiry_desk.core import Clock
from inquiry_desk.shared.api.dependencies import get_clock, get_uow
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from inquiry_desk.workforce.application import (
    OperatorActiveRequest,
    OperatorCreateRequest,
    OperatorResponse,
    OperatorService,
    WorkloadEntry,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/operators", tags=["Operators"])


# ========== Example payloads for Swagger ==========

OPERATOR_RESPONSE_EXAMPLE = {
    "id": "9b2f4c1e-7d3a-4e8b-a1c2-3f4e5d6a7b8c",
    "name": "Priya",
    "email": "priya@example.com",
    "active": True,
    "total_replied": 42,
    "total_missed": 3,
    "total_score": 3150,
    "avg_reply_time": 47.5,
    "reply_rate": 93.3,
    "last_assigned_at": "2026-01-15T10:00:00Z",
    "created_at": "2026-01-01T09:00:00Z"
}


# ========== Dependencies ==========

async def get_operator_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    clock: Clock = Depends(get_clock)
) -> OperatorService:
    """Get operator service instance."""
    return OperatorService(uow, clock)


# ========== Route Handlers ==========

@router.get(
    "",
    response_model=List[OperatorResponse],
    summary="List operators"
)
async def list_operators(
    active_only: bool = Query(False, description="Only operators in the assignment pool"),
    service: OperatorService = Depends(get_operator_service)
):
    operators = await service.list_operators(active_only=active_only)
    return [OperatorResponse.from_entity(op) for op in operators]


@router.post(
    "",
    response_model=OperatorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an operator",
    responses={
        201: {
            "description": "Operator registered",
            "content": {
                "application/json": {
                    "example": OPERATOR_RESPONSE_EXAMPLE
                }
            }
        },
        422: {"description": "Blank name or duplicate email"}
    }
)
async def create_operator(
    request: Request,
    payload: OperatorCreateRequest,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: OperatorService = Depends(get_operator_service)
):
    operator = await service.create_operator(payload.name, payload.email, payload.active)
    await uow.commit()

    logger.info(
        "Operator registered",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "operator_id": operator.id
        }
    )
    return OperatorResponse.from_entity(operator)


@router.get(
    "/leaderboard",
    response_model=List[OperatorResponse],
    summary="Operator leaderboard",
    description="Active operators ranked by total score, ties broken by name."
)
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    service: OperatorService = Depends(get_operator_service)
):
    operators = await service.leaderboard(limit=limit)
    return [OperatorResponse.from_entity(op) for op in operators]


@router.get(
    "/workload",
    response_model=List[WorkloadEntry],
    summary="Open inquiries per active operator",
    description="Counts inquiries currently assigned to or escalated from each active operator."
)
async def workload(
    service: OperatorService = Depends(get_operator_service)
):
    entries = await service.workload()
    return [
        WorkloadEntry(
            operator_id=op.id,
            name=op.name,
            open_inquiries=count,
            last_assigned_at=op.last_assigned_at
        )
        for op, count in entries
    ]


@router.get(
    "/{operator_id}",
    response_model=OperatorResponse,
    summary="Get operator",
    responses={404: {"description": "Operator not found"}}
)
async def get_operator(
    operator_id: str,
    service: OperatorService = Depends(get_operator_service)
):
    return OperatorResponse.from_entity(await service.get_operator(operator_id))


@router.patch(
    "/{operator_id}/active",
    response_model=OperatorResponse,
    summary="Join or leave the assignment pool",
    description="""
    Inactive operators are skipped by the balancer. Inquiries they already
    hold stay with them until replied or escalated.
    """
)
async def set_operator_active(
    operator_id: str,
    payload: OperatorActiveRequest,
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: OperatorService = Depends(get_operator_service)
):
    operator = await service.set_active(operator_id, payload.active)
    await uow.commit()
    return OperatorResponse.from_entity(operator)


# Export router
workforce_router = router
