"""
Intake Application Services
===========================

Candidate ingestion: deduplicate, assess relevance, hand admitted
candidates to the lifecycle.

Each candidate in a batch is processed in its own savepoint, so a failing
item is reported and the rest of the batch carries on.
"""

from datetime import datetime
from typing import Optional, Sequence

from inquiry_desk.config import Priority
from inquiry_desk.core import (
    ApplicationException,
    DuplicateReferenceException,
    Clock,
    utc_now,
)
from inquiry_desk.intake.domain import (
    Candidate,
    IngestionOutcome,
    IngestReport,
    RelevanceAssessment,
    RelevanceScorer,
)
from inquiry_desk.lifecycle.application.services import IInquiryRepository, LifecycleService
from inquiry_desk.shared.config import IPipelineConfigProvider
from inquiry_desk.shared.infrastructure.logging import get_logger, log_latency
from inquiry_desk.shared.unit_of_work import IUnitOfWork

logger = get_logger(__name__)


class Deduplicator:
    """
    Read-only duplicate check by external reference.

    A failed lookup raises; the candidate is never inserted on a guess.
    """

    def __init__(self, inquiry_repository: IInquiryRepository):
        self._inquiries = inquiry_repository

    async def is_duplicate(self, external_reference: str) -> bool:
        return await self._inquiries.exists_by_reference(external_reference)


class RelevanceFilter:
    """Scores candidates against the current vocabulary (hot-reloadable)."""

    def __init__(self, config_provider: IPipelineConfigProvider):
        self._config_provider = config_provider

    def assess(self, candidate: Candidate) -> RelevanceAssessment:
        return RelevanceScorer.assess(candidate, self._config_provider.get_config().relevance)


class IntakeService:
    """
    Service for ingesting candidate inquiries.

    Duplicates are not errors: they come back as `duplicate=True` outcomes.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        lifecycle_service: LifecycleService,
        config_provider: IPipelineConfigProvider,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._lifecycle = lifecycle_service
        self._deduplicator = Deduplicator(uow.inquiries)
        self._filter = RelevanceFilter(config_provider)
        self._clock = clock

    def assess(self, candidate: Candidate) -> RelevanceAssessment:
        """Dry run: relevance only, nothing persisted."""
        return self._filter.assess(candidate)

    async def ingest(self, candidate: Candidate, now: Optional[datetime] = None) -> IngestionOutcome:
        """
        Ingest one candidate.

        Raises:
            RepositoryException: If the duplicate lookup fails
        """
        now = now or self._clock()

        if await self._deduplicator.is_duplicate(candidate.external_reference):
            logger.debug("Duplicate candidate skipped", extra={"external_reference": candidate.external_reference})
            return IngestionOutcome.duplicate_of(candidate.external_reference)

        assessment = self._filter.assess(candidate)
        outcome = IngestionOutcome(
            external_reference=candidate.external_reference,
            admitted=assessment.admitted,
            score=assessment.score,
            category=assessment.category,
            priority=assessment.priority,
        )
        if not assessment.admitted:
            logger.info(
                "Candidate rejected",
                extra={
                    "external_reference": candidate.external_reference,
                    "score": assessment.score,
                    "signals": assessment.signals,
                }
            )
            return outcome

        try:
            inquiry = await self._lifecycle.create_inquiry(candidate, assessment, now)
        except DuplicateReferenceException:
            # Lost an insert race with a concurrent ingest of the same reference
            return IngestionOutcome.duplicate_of(candidate.external_reference)

        outcome.inquiry_id = inquiry.id
        outcome.status = inquiry.status.value
        return outcome

    async def ingest_batch(
        self,
        candidates: Sequence[Candidate],
        now: Optional[datetime] = None
    ) -> IngestReport:
        now = now or self._clock()
        report = IngestReport()

        with log_latency(logger, "candidate_ingest", batch_size=len(candidates)):
            for candidate in candidates:
                try:
                    async with self._uow.savepoint():
                        outcome = await self.ingest(candidate, now)
                except ApplicationException as e:
                    logger.error(
                        "Candidate ingestion failed",
                        extra={"external_reference": candidate.external_reference, "error": e.message}
                    )
                    outcome = IngestionOutcome(
                        external_reference=candidate.external_reference,
                        admitted=False,
                        score=0,
                        category="",
                        priority=Priority.NORMAL,
                        error=e.message,
                    )
                report.outcomes.append(outcome)

        logger.info(
            "Candidate ingestion complete",
            extra={
                "admitted": report.admitted,
                "rejected": report.rejected,
                "duplicates": report.duplicates,
                "failed": report.failed,
            }
        )
        return report
