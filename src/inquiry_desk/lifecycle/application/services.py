"""
Lifecycle Application Services
==============================

Application services orchestrate the inquiry state machine and coordinate
between domain entities, the workload balancer and repositories.

Every write goes through `IInquiryRepository.save`, which only succeeds if
the stored version still equals the version that was read. Services work on
a copy of the entity so that a failed write never leaves a half-applied
transition in memory.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from inquiry_desk.config import ActivityType, InquiryStatus, BACKLOG_STATUSES, SYSTEM_ACTOR
from inquiry_desk.core import (
    ApplicationException,
    NoEligibleOperatorException,
    ResourceNotFoundException,
    TransitionConflictException,
    InvalidTransitionException,
    Clock,
    as_utc,
    utc_now,
)
from inquiry_desk.intake.domain import Candidate, RelevanceAssessment
from inquiry_desk.lifecycle.domain import (
    ActivityRecord,
    EscalationNotice,
    Inquiry,
    LifecycleConfig,
    RebalanceReport,
    SweepReport,
)
from inquiry_desk.shared.config import IPipelineConfigProvider
from inquiry_desk.shared.infrastructure.logging import get_logger, log_latency
from inquiry_desk.shared.unit_of_work import IUnitOfWork
from inquiry_desk.workforce.application.services import WorkloadBalancer

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IInquiryRepository(ABC):
    """Interface for inquiry data access."""

    @abstractmethod
    async def get(self, inquiry_id: str) -> Optional[Inquiry]:
        """Get inquiry by ID (fresh read)."""

    @abstractmethod
    async def exists_by_reference(self, external_reference: str) -> bool:
        """Check if an inquiry exists for the external reference."""

    @abstractmethod
    async def add(self, inquiry: Inquiry) -> Inquiry:
        """
        Insert a new inquiry.

        Raises:
            DuplicateReferenceException: If the external reference is taken
        """

    @abstractmethod
    async def save(self, inquiry: Inquiry) -> Inquiry:
        """
        Write a transition guarded by `inquiry.version`.

        Bumps `inquiry.version` on success.

        Raises:
            TransitionConflictException: If the stored version moved on
        """

    @abstractmethod
    async def find_overdue(self, now: datetime, limit: int) -> List[Inquiry]:
        """Assigned inquiries whose deadline is before `now`, oldest deadline first."""

    @abstractmethod
    async def find_backlog(self, limit: int) -> List[Inquiry]:
        """Unassigned or escalated inquiries, oldest first."""

    @abstractmethod
    async def list(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Inquiry]:
        """List inquiries with filters, newest first."""

    @abstractmethod
    async def stats(self, now: datetime) -> dict:
        """Counts by status, priority and category, plus total and overdue."""

    @abstractmethod
    async def count_open_by_operator(self) -> Dict[str, int]:
        """Assigned/escalated inquiry counts keyed by operator id."""


class IActivityRepository(ABC):
    """Interface for the append-only activity trail."""

    @abstractmethod
    async def add(self, record: ActivityRecord) -> ActivityRecord:
        """Append one record."""

    @abstractmethod
    async def list_for_inquiry(self, inquiry_id: str, limit: int = 100) -> List[ActivityRecord]:
        """Activity for one inquiry, oldest first."""

    @abstractmethod
    async def recent(self, limit: int = 50) -> List[ActivityRecord]:
        """Most recent activity across all inquiries, newest first."""


# ========== Application Services ==========

class LifecycleService:
    """
    Service for inquiry creation, assignment and the read surface.

    Coordinates between the Inquiry state machine, the workload balancer and
    the activity trail.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        config_provider: IPipelineConfigProvider,
        clock: Clock = utc_now
    ):
        self._uow = uow
        self._config_provider = config_provider
        self._clock = clock

    def _config(self) -> LifecycleConfig:
        return self._config_provider.get_config().lifecycle

    def _balancer(self) -> WorkloadBalancer:
        return WorkloadBalancer(self._uow.operators, max_attempts=self._config().max_transition_retries)

    async def record_activity(
        self,
        inquiry_id: str,
        activity_type: ActivityType,
        description: str,
        now: datetime,
        operator_id: Optional[str] = None,
        actor: str = SYSTEM_ACTOR
    ) -> None:
        await self._uow.activities.add(ActivityRecord(
            inquiry_id=inquiry_id,
            type=activity_type,
            actor=actor,
            description=description,
            timestamp=now,
            operator_id=operator_id,
        ))

    # ---------- Reads ----------

    async def get_inquiry(self, inquiry_id: str) -> Inquiry:
        inquiry = await self._uow.inquiries.get(inquiry_id)
        if inquiry is None:
            raise ResourceNotFoundException("Inquiry", inquiry_id)
        return inquiry

    async def list_inquiries(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Inquiry]:
        return await self._uow.inquiries.list(filters, limit=limit, offset=offset)

    async def stats(self) -> dict:
        return await self._uow.inquiries.stats(self._clock())

    async def activity_for(self, inquiry_id: str, limit: int = 100) -> List[ActivityRecord]:
        await self.get_inquiry(inquiry_id)
        return await self._uow.activities.list_for_inquiry(inquiry_id, limit=limit)

    async def recent_activity(self, limit: int = 50) -> List[ActivityRecord]:
        return await self._uow.activities.recent(limit=limit)

    # ---------- Transitions ----------

    async def create_inquiry(
        self,
        candidate: Candidate,
        assessment: RelevanceAssessment,
        now: Optional[datetime] = None
    ) -> Inquiry:
        """
        Persist an admitted candidate and try to assign it straight away.

        Without an active operator the inquiry stays `unassigned` for the
        next rebalance.

        Raises:
            DuplicateReferenceException: If the external reference is taken
        """
        now = now or self._clock()
        config = self._config()

        inquiry = Inquiry(
            id=str(uuid4()),
            external_reference=candidate.external_reference,
            title=candidate.title,
            body=candidate.body,
            category=assessment.category,
            priority=assessment.priority,
            bandwidth_minutes=config.get_bandwidth(assessment.priority),
            created_at=now,
            updated_at=now,
            relevance_score=assessment.score,
        )
        inquiry = await self._uow.inquiries.add(inquiry)
        await self.record_activity(
            inquiry.id,
            ActivityType.CREATED,
            f"Inquiry created with relevance score {assessment.score}",
            now
        )

        try:
            async with self._uow.savepoint():
                inquiry = await self.assign_inquiry(inquiry, now)
        except (NoEligibleOperatorException, TransitionConflictException) as e:
            logger.warning(
                "Inquiry left in backlog",
                extra={"inquiry_id": inquiry.id, "reason": e.message}
            )

        return inquiry

    async def assign_inquiry(
        self,
        inquiry: Inquiry,
        now: datetime,
        operator_id: Optional[str] = None
    ) -> Inquiry:
        """
        Assign a loaded inquiry to the chosen operator, or to the balancer's pick.

        Callers wrap this in a savepoint: the operator stamp and the inquiry
        write succeed or fail together.

        Returns:
            The updated copy of the inquiry
        """
        if not inquiry.can_transition_to(InquiryStatus.ASSIGNED):
            raise InvalidTransitionException(inquiry.id, inquiry.status.value, InquiryStatus.ASSIGNED.value)

        balancer = self._balancer()
        if operator_id:
            operator = await balancer.claim(operator_id, now)
        else:
            operator = await balancer.select_operator(now)

        updated = replace(inquiry)
        activity = updated.assign(operator.id, now)
        await self._uow.inquiries.save(updated)

        verb = "Reassigned" if activity == ActivityType.REASSIGNED else "Assigned"
        await self.record_activity(
            updated.id,
            activity,
            f"{verb} to {operator.name}, deadline {updated.deadline.isoformat()}",
            now,
            operator_id=operator.id
        )
        logger.info(
            "Inquiry assigned",
            extra={
                "inquiry_id": updated.id,
                "operator_id": operator.id,
                "activity": activity.value,
                "deadline": updated.deadline.isoformat(),
            }
        )
        return updated

    async def assign(
        self,
        inquiry_id: str,
        operator_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Inquiry:
        """
        Manual (re)assignment, retried on conflicts with fresh state.

        Raises:
            ResourceNotFoundException: Unknown inquiry or operator
            InvalidTransitionException: Inquiry is replied or missed
            NoEligibleOperatorException: No active operator (balanced mode)
            TransitionConflictException: Retries exhausted
        """
        now = now or self._clock()
        attempts = self._config().max_transition_retries

        for attempt in range(attempts):
            inquiry = await self.get_inquiry(inquiry_id)
            try:
                async with self._uow.savepoint():
                    return await self.assign_inquiry(inquiry, now, operator_id)
            except TransitionConflictException:
                if attempt == attempts - 1:
                    raise
                logger.info(
                    "Assignment conflict, retrying",
                    extra={"inquiry_id": inquiry_id, "attempt": attempt + 1}
                )

        raise TransitionConflictException("Inquiry", inquiry_id)

    async def mark_replied(self, inquiry: Inquiry, operator_id: str, now: datetime) -> Inquiry:
        """
        Close a loaded inquiry with a reply.

        Raises:
            InvalidTransitionException: Not assigned/escalated
            TransitionConflictException: The inquiry changed since it was read
        """
        updated = replace(inquiry)
        updated.mark_replied(now)
        await self._uow.inquiries.save(updated)
        await self.record_activity(
            updated.id,
            ActivityType.REPLIED,
            "Reply recorded",
            now,
            operator_id=operator_id,
            actor=operator_id
        )
        return updated

    async def rebalance(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> RebalanceReport:
        """
        Assign unassigned and escalated inquiries, oldest first.

        Stops at the first NoEligibleOperatorException; the rest stays in the
        backlog. Idempotent.
        """
        now = now or self._clock()
        report = RebalanceReport()

        backlog = await self._uow.inquiries.find_backlog(limit or self._config().sweep_batch_size)
        report.scanned = len(backlog)

        for index, candidate in enumerate(backlog):
            try:
                async with self._uow.savepoint():
                    fresh = await self._uow.inquiries.get(candidate.id)
                    if fresh is None or fresh.status not in BACKLOG_STATUSES:
                        report.skipped += 1
                        continue
                    await self.assign_inquiry(fresh, now)
                report.assigned += 1
            except NoEligibleOperatorException:
                report.waiting = len(backlog) - index
                logger.warning("Backlog waiting for operators", extra={"waiting": report.waiting})
                break
            except TransitionConflictException:
                report.skipped += 1
            except ApplicationException as e:
                report.failed += 1
                report.errors.append(f"{candidate.id}: {e.message}")
                logger.error("Rebalance failed for inquiry", extra={"inquiry_id": candidate.id, "error": e.message})

        logger.info(
            "Rebalance complete",
            extra={
                "scanned": report.scanned,
                "assigned": report.assigned,
                "waiting": report.waiting,
                "skipped": report.skipped,
                "failed": report.failed,
            }
        )
        return report


class EscalationSweeper:
    """
    Periodic deadline check over persisted state.

    Each overdue inquiry is re-read and re-checked inside its own savepoint
    under the version guard, so a sweep that races another sweep, a reply or
    a manual assignment simply skips the inquiry. Re-running a sweep is a
    no-op until a new deadline lapses.
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
        self._config_provider = config_provider
        self._clock = clock

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        now = as_utc(now) or self._clock()
        config = self._config_provider.get_config().lifecycle
        report = SweepReport()

        overdue = await self._uow.inquiries.find_overdue(now, config.sweep_batch_size)
        report.scanned = len(overdue)

        with log_latency(logger, "escalation_sweep", batch_size=config.sweep_batch_size):
            for candidate in overdue:
                try:
                    async with self._uow.savepoint():
                        outcome, notice = await self._handle(candidate.id, now, config)
                except TransitionConflictException:
                    report.skipped += 1
                    continue
                except ApplicationException as e:
                    report.failed += 1
                    report.errors.append(f"{candidate.id}: {e.message}")
                    logger.error("Sweep failed for inquiry", extra={"inquiry_id": candidate.id, "error": e.message})
                    continue

                if outcome == "skipped":
                    report.skipped += 1
                elif outcome == "missed":
                    report.missed += 1
                else:
                    report.escalated += 1
                    if outcome == "reassigned":
                        report.reassigned += 1
                if notice is not None:
                    report.notices.append(notice)

        logger.info(
            "Escalation sweep complete",
            extra={
                "scanned": report.scanned,
                "escalated": report.escalated,
                "reassigned": report.reassigned,
                "missed": report.missed,
                "skipped": report.skipped,
                "failed": report.failed,
            }
        )
        return report

    async def _handle(
        self,
        inquiry_id: str,
        now: datetime,
        config: LifecycleConfig
    ) -> Tuple[str, Optional[EscalationNotice]]:
        fresh = await self._uow.inquiries.get(inquiry_id)
        if fresh is None or not fresh.is_overdue(now):
            return "skipped", None

        updated = replace(fresh)

        if config.should_give_up(updated.escalation_count):
            holder = updated.mark_missed(now)
            await self._uow.inquiries.save(updated)
            if holder:
                await self._uow.operators.record_missed(holder)
            await self._lifecycle.record_activity(
                updated.id,
                ActivityType.MISSED,
                f"Deadline missed after {updated.escalation_count} escalations, giving up",
                now,
                operator_id=holder
            )
            logger.warning("Inquiry missed", extra={"inquiry_id": updated.id, "operator_id": holder})
            return "missed", self._notice(updated, holder, None, missed=True)

        holder = updated.escalate(now)
        await self._uow.inquiries.save(updated)
        if holder:
            await self._uow.operators.record_missed(holder)
        await self._lifecycle.record_activity(
            updated.id,
            ActivityType.ESCALATED,
            f"Deadline passed without a reply (escalation {updated.escalation_count})",
            now,
            operator_id=holder
        )

        new_operator: Optional[str] = None
        try:
            async with self._uow.savepoint():
                reassigned = await self._lifecycle.assign_inquiry(updated, now)
            new_operator = reassigned.assigned_to
        except NoEligibleOperatorException:
            logger.warning("Escalated inquiry waiting for an operator", extra={"inquiry_id": updated.id})

        notice = self._notice(updated, holder, new_operator)
        return ("reassigned" if new_operator else "escalated"), notice

    @staticmethod
    def _notice(
        inquiry: Inquiry,
        previous: Optional[str],
        new: Optional[str],
        missed: bool = False
    ) -> EscalationNotice:
        return EscalationNotice(
            inquiry_id=inquiry.id,
            external_reference=inquiry.external_reference,
            title=inquiry.title,
            priority=inquiry.priority.value,
            escalation_count=inquiry.escalation_count,
            previous_operator=previous,
            new_operator=new,
            missed=missed,
        )
