"""
Scoring Application Services
============================

Reply submission, outcome revision and aggregate recovery.

A reply is written together with the inquiry's transition to `replied`.
Operator aggregates are updated afterwards in their own savepoint: if that
update fails the reply stays, and `recompute_aggregates` rebuilds the
numbers from reply history later.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import uuid4

from inquiry_desk.config import ActivityType, InquiryStatus, OutcomeSignal
from inquiry_desk.core import (
    AggregateUpdateException,
    ResourceNotFoundException,
    TransitionConflictException,
    ValidationException,
    Clock,
    as_utc,
    utc_now,
)
from inquiry_desk.lifecycle.application.services import LifecycleService
from inquiry_desk.lifecycle.domain import DeadlineCalculator, Inquiry
from inquiry_desk.scoring.domain import (
    AggregateCalculator,
    Reply,
    ReplyScore,
    ScoreCalculator,
    ScoringConfig,
)
from inquiry_desk.shared.config import IPipelineConfigProvider
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.shared.unit_of_work import IUnitOfWork
from inquiry_desk.workforce.domain import OperatorAggregates

logger = get_logger(__name__)

_ASSIGNMENT_ACTIVITIES = (ActivityType.ASSIGNED, ActivityType.REASSIGNED)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IReplyRepository(ABC):
    """Interface for reply data access."""

    @abstractmethod
    async def add(self, reply: Reply) -> Reply:
        """Persist a reply (flushed, so SQL aggregates can see it)."""

    @abstractmethod
    async def get(self, reply_id: str) -> Optional[Reply]:
        """Get reply by ID."""

    @abstractmethod
    async def list_for_operator(self, operator_id: str, limit: Optional[int] = None) -> List[Reply]:
        """Replies by one operator, newest first."""

    @abstractmethod
    async def list_for_inquiry(self, inquiry_id: str) -> List[Reply]:
        """Replies to one inquiry, oldest first."""

    @abstractmethod
    async def update_outcome(self, reply_id: str, signal: OutcomeSignal, score: ReplyScore) -> None:
        """Store a revised outcome signal and score."""


@dataclass
class ReplyResult:
    """A stored reply and whether the operator aggregates took it in."""
    reply: Reply
    aggregates_updated: bool


# ========== Application Services ==========

class ScoringService:
    """
    Service for scoring replies and maintaining operator aggregates.

    Coordinates between the scoring formula, the lifecycle transition and the
    operator repository.
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

    def _config(self) -> ScoringConfig:
        return self._config_provider.get_config().scoring

    async def _assignment_start(self, inquiry: Inquiry, operator_id: str) -> datetime:
        """When the replying operator last took the inquiry on."""
        if inquiry.assigned_to == operator_id and inquiry.assigned_at is not None:
            return inquiry.assigned_at

        history = await self._uow.activities.list_for_inquiry(inquiry.id)
        for record in reversed(history):
            if record.operator_id == operator_id and record.type in _ASSIGNMENT_ACTIVITIES:
                return record.timestamp
        return inquiry.assigned_at or inquiry.created_at

    @staticmethod
    def _timing(
        inquiry: Inquiry,
        operator_id: str,
        start: datetime,
        submitted_at: datetime
    ) -> Tuple[float, float]:
        """
        Returns:
            (reply_time_minutes, elapsed minutes used for the speed score)

        Only the current holder of an assigned inquiry is scored on speed; a
        reply from anyone else gets the floor. Reply time always counts from
        the replying operator's own assignment.
        """
        reply_time = DeadlineCalculator.elapsed_minutes(start, submitted_at)

        is_current_holder = (
            inquiry.status == InquiryStatus.ASSIGNED
            and inquiry.assigned_to == operator_id
        )
        if is_current_holder:
            return reply_time, reply_time
        return reply_time, float(inquiry.bandwidth_minutes)

    async def submit_reply(
        self,
        inquiry_id: str,
        operator_id: str,
        body: str,
        submitted_at: Optional[datetime] = None
    ) -> ReplyResult:
        """
        Score and store a reply, closing the inquiry.

        Raises:
            ValidationException: Blank body
            ResourceNotFoundException: Unknown inquiry or operator
            InvalidTransitionException: Inquiry not assigned/escalated
            TransitionConflictException: Retries exhausted
        """
        if not body or not body.strip():
            raise ValidationException("Reply body must not be blank")

        submitted_at = as_utc(submitted_at) or self._clock()
        attempts = self._config_provider.get_config().lifecycle.max_transition_retries
        reply: Optional[Reply] = None

        for attempt in range(attempts):
            inquiry = await self._lifecycle.get_inquiry(inquiry_id)
            operator = await self._uow.operators.get(operator_id)
            if operator is None:
                raise ResourceNotFoundException("Operator", operator_id)

            try:
                async with self._uow.savepoint():
                    reply = await self._write_reply(inquiry, operator.id, body, submitted_at)
                break
            except TransitionConflictException:
                if attempt == attempts - 1:
                    raise
                logger.info(
                    "Reply raced another transition, retrying",
                    extra={"inquiry_id": inquiry_id, "attempt": attempt + 1}
                )

        aggregates_updated = True
        try:
            async with self._uow.savepoint():
                await self._uow.operators.apply_reply(operator_id, reply.score.total)
        except AggregateUpdateException as e:
            aggregates_updated = False
            logger.error(
                "Operator aggregates not updated, recompute required",
                extra={"operator_id": operator_id, "reply_id": reply.id, "error": e.message}
            )

        logger.info(
            "Reply scored",
            extra={
                "inquiry_id": inquiry_id,
                "operator_id": operator_id,
                "reply_id": reply.id,
                **reply.score.to_dict(),
            }
        )
        return ReplyResult(reply=reply, aggregates_updated=aggregates_updated)

    async def _write_reply(
        self,
        inquiry: Inquiry,
        operator_id: str,
        body: str,
        submitted_at: datetime
    ) -> Reply:
        start = await self._assignment_start(inquiry, operator_id)
        reply_time, speed_elapsed = self._timing(inquiry, operator_id, start, submitted_at)
        score = ScoreCalculator.score(
            body,
            speed_elapsed,
            inquiry.bandwidth_minutes,
            self._config()
        )

        await self._lifecycle.mark_replied(inquiry, operator_id, submitted_at)

        reply = Reply(
            id=str(uuid4()),
            inquiry_id=inquiry.id,
            operator_id=operator_id,
            body=body,
            submitted_at=submitted_at,
            reply_time_minutes=reply_time,
            score=score,
        )
        return await self._uow.replies.add(reply)

    async def revise_outcome(self, reply_id: str, signal: OutcomeSignal) -> Reply:
        """
        Apply a downstream outcome signal; speed and quality are untouched.

        The operator's total_score moves by the difference in totals.
        """
        reply = await self._uow.replies.get(reply_id)
        if reply is None:
            raise ResourceNotFoundException("Reply", reply_id)

        new_score = ScoreCalculator.revise_outcome(reply.score, signal, self._config())
        delta = new_score.total - reply.score.total
        now = self._clock()

        await self._uow.replies.update_outcome(reply.id, signal, new_score)
        if delta:
            try:
                async with self._uow.savepoint():
                    await self._uow.operators.adjust_score(reply.operator_id, delta)
            except AggregateUpdateException as e:
                logger.error(
                    "Operator score not adjusted, recompute required",
                    extra={"operator_id": reply.operator_id, "reply_id": reply.id, "error": e.message}
                )

        await self._lifecycle.record_activity(
            reply.inquiry_id,
            ActivityType.OUTCOME_REVISED,
            f"Outcome revised to {signal.value} ({reply.score.outcome} -> {new_score.outcome})",
            now,
            operator_id=reply.operator_id
        )

        return replace(reply, score=new_score, outcome_signal=signal)

    async def replies_for_inquiry(self, inquiry_id: str) -> List[Reply]:
        await self._lifecycle.get_inquiry(inquiry_id)
        return await self._uow.replies.list_for_inquiry(inquiry_id)

    async def replies_for_operator(self, operator_id: str, limit: Optional[int] = None) -> List[Reply]:
        if await self._uow.operators.get(operator_id) is None:
            raise ResourceNotFoundException("Operator", operator_id)
        return await self._uow.replies.list_for_operator(operator_id, limit=limit)

    async def verify_aggregates(self, operator_id: str) -> Tuple[OperatorAggregates, OperatorAggregates]:
        """
        Returns:
            (stored aggregates, aggregates replayed from reply history)
        """
        operator = await self._uow.operators.get(operator_id)
        if operator is None:
            raise ResourceNotFoundException("Operator", operator_id)

        stored = OperatorAggregates(
            total_replied=operator.total_replied,
            total_score=operator.total_score,
            avg_reply_time=operator.avg_reply_time,
        )
        replies = await self._uow.replies.list_for_operator(operator_id)
        return stored, AggregateCalculator.replay(replies)

    async def recompute_aggregates(self, operator_id: str) -> Tuple[OperatorAggregates, OperatorAggregates]:
        """
        Rebuild reply-derived aggregates from history. total_missed is kept.

        Returns:
            (aggregates before, aggregates after)
        """
        stored, replayed = await self.verify_aggregates(operator_id)
        await self._uow.operators.replace_aggregates(operator_id, replayed)

        if not stored.matches(replayed):
            logger.warning(
                "Operator aggregates drifted, rebuilt from replies",
                extra={
                    "operator_id": operator_id,
                    "stored_total_score": stored.total_score,
                    "replayed_total_score": replayed.total_score,
                }
            )
        return stored, replayed
