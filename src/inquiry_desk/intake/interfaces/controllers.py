"""
Intake Controllers (API Routes)
===============================

FastAPI routes for candidate ingestion.

Controllers delegate to application services.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from pydantic import ValidationError

from inquiry_desk.config import Priority
from inquiry_desk.core import Clock
from inquiry_desk.intake.application import (
    AssessResponse,
    CandidateBatchRequest,
    CandidateDTO,
    IngestResponse,
    IngestResultItem,
    IntakeService,
)
from inquiry_desk.intake.domain import Candidate
from inquiry_desk.lifecycle.application import LifecycleService
from inquiry_desk.shared.api.dependencies import (
    get_clock,
    get_config_provider,
    get_lifecycle_service,
    get_uow,
)
from inquiry_desk.shared.config import IPipelineConfigProvider
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)
router = APIRouter(prefix="/intake", tags=["Intake"])


# ========== Example payloads for Swagger ==========

CANDIDATE_BATCH_EXAMPLE = {
    "candidates": [
        {
            "title": "Looking for an app to handle subscription payments?",
            "body": "Our store sells coffee boxes and we want recurring billing at checkout.",
            "external_reference": "https://forum.example.com/t/12345",
            "views": 1200,
            "replies": 14,
            "likes": 9
        }
    ]
}

INGEST_RESPONSE_EXAMPLE = {
    "results": [
        {
            "external_reference": "https://forum.example.com/t/12345",
            "admitted": True,
            "duplicate": False,
            "score": 100,
            "category": "Apps",
            "priority": "high",
            "inquiry_id": "123e4567-e89b-12d3-a456-426614174000",
            "status": "assigned",
            "error": None
        }
    ],
    "admitted": 1,
    "rejected": 0,
    "duplicates": 0,
    "failed": 0
}


# ========== Dependencies ==========

async def get_intake_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    lifecycle_service: LifecycleService = Depends(get_lifecycle_service),
    config_provider: IPipelineConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
) -> IntakeService:
    """Get intake service instance."""
    return IntakeService(uow, lifecycle_service, config_provider, clock)


def _invalid_item(raw: dict, error: str) -> IngestResultItem:
    reference = raw.get("external_reference") if isinstance(raw, dict) else None
    return IngestResultItem(
        external_reference=reference if isinstance(reference, str) else None,
        admitted=False,
        score=0,
        category="",
        priority=Priority.NORMAL.value,
        error=error,
    )


# ========== Route Handlers ==========

@router.post(
    "/candidates",
    response_model=IngestResponse,
    status_code=status.HTTP_200_OK,
    summary="Ingest scraped candidates",
    description="""
    Run a batch of scraped forum threads through the intake pipeline:

    1. **Deduplicate** by `external_reference` (duplicates are reported, not errors)
    2. **Score** relevance from title/body keywords and engagement
    3. **Admit** candidates scoring above `admit_threshold` (40) and assign them to the
       least-recently-assigned active operator

    Each candidate is processed on its own: a malformed or failing item is
    reported with an `error` and the rest of the batch still goes through.
    Results come back in request order.
    """,
    responses={
        200: {
            "description": "Batch processed",
            "content": {
                "application/json": {
                    "example": INGEST_RESPONSE_EXAMPLE
                }
            }
        }
    }
)
async def ingest_candidates(
    request: Request,
    payload: CandidateBatchRequest = Body(..., examples=[CANDIDATE_BATCH_EXAMPLE]),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    service: IntakeService = Depends(get_intake_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    slots: List[Optional[IngestResultItem]] = []
    candidates: List[Candidate] = []
    for raw in payload.candidates:
        try:
            candidates.append(CandidateDTO.model_validate(raw).to_candidate())
            slots.append(None)
        except (ValidationError, ValueError) as e:
            slots.append(_invalid_item(raw, f"Invalid candidate: {e}"))

    report = await service.ingest_batch(candidates)
    await uow.commit()

    # Interleave service outcomes with the items rejected at validation
    outcomes = iter(report.outcomes)
    results = [
        slot if slot is not None else IngestResultItem.from_outcome(next(outcomes))
        for slot in slots
    ]
    invalid = sum(1 for slot in slots if slot is not None)

    logger.info(
        "Candidates ingested",
        extra={
            "correlation_id": correlation_id,
            "received": len(payload.candidates),
            "admitted": report.admitted,
            "invalid": invalid,
        }
    )

    return IngestResponse(
        results=results,
        admitted=report.admitted,
        rejected=report.rejected,
        duplicates=report.duplicates,
        failed=report.failed + invalid,
    )


@router.post(
    "/assess",
    response_model=AssessResponse,
    summary="Dry-run relevance scoring",
    description="""
    Score a single candidate with the current relevance vocabulary without
    storing anything. Useful for tuning `pipeline_config.yaml`.
    """
)
async def assess_candidate(
    payload: CandidateDTO,
    service: IntakeService = Depends(get_intake_service)
):
    return AssessResponse.from_assessment(service.assess(payload.to_candidate()))


# Export router
intake_router = router
