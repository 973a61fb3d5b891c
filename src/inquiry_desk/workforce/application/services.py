"""
Workforce Application Services
==============================

Operator management and the workload balancer.

The balancer is the only writer of `last_assigned_at`. It never takes a
lock; it reads the least-recently-assigned active operator and stamps it
with a compare-and-set on the timestamp it read. Losing the race means
someone else just got that operator, so the next read picks the new
least-recently-assigned one.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from inquiry_desk.core import (
    DomainException,
    NoEligibleOperatorException,
    ResourceNotFoundException,
    TransitionConflictException,
    ValidationException,
    Clock,
    utc_now,
)
from inquiry_desk.shared.infrastructure.logging import get_logger
from inquiry_desk.workforce.domain import Operator, OperatorAggregates

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IOperatorRepository(ABC):
    """Interface for operator data access."""

    @abstractmethod
    async def get(self, operator_id: str) -> Optional[Operator]:
        """Get operator by ID (fresh read)."""

    @abstractmethod
    async def add(self, operator: Operator) -> Operator:
        """Persist a new operator."""

    @abstractmethod
    async def list(self, active_only: bool = False) -> List[Operator]:
        """List operators ordered by name."""

    @abstractmethod
    async def set_active(self, operator_id: str, active: bool) -> bool:
        """Toggle pool membership. Returns False if the operator doesn't exist."""

    @abstractmethod
    async def next_in_rotation(self) -> Optional[Operator]:
        """Active operator with the oldest last_assigned_at (never-assigned first, ties by id)."""

    @abstractmethod
    async def stamp_assignment(
        self,
        operator_id: str,
        expected_last_assigned_at: Optional[datetime],
        now: datetime
    ) -> bool:
        """
        Compare-and-set last_assigned_at.

        Returns:
            False if the stored value no longer equals the expected one
        """

    @abstractmethod
    async def record_missed(self, operator_id: str) -> None:
        """total_missed += 1."""

    @abstractmethod
    async def apply_reply(self, operator_id: str, reply_total: int) -> None:
        """total_replied += 1, total_score += reply_total, avg_reply_time recomputed in SQL."""

    @abstractmethod
    async def adjust_score(self, operator_id: str, delta: int) -> None:
        """total_score += delta (outcome revisions)."""

    @abstractmethod
    async def replace_aggregates(self, operator_id: str, aggregates: OperatorAggregates) -> None:
        """Overwrite the reply-derived aggregates."""

    @abstractmethod
    async def leaderboard(self, limit: int = 10) -> List[Operator]:
        """Active operators by total_score descending."""


# ========== Application Services ==========

class WorkloadBalancer:
    """
    Least-recently-assigned operator selection.

    Selection and stamping happen in the caller's transaction; callers wrap
    the whole assignment in a savepoint so a failed inquiry write also undoes
    the stamp.
    """

    def __init__(self, operator_repository: IOperatorRepository, max_attempts: int = 3):
        self._operators = operator_repository
        self._max_attempts = max_attempts

    async def select_operator(self, now: datetime) -> Operator:
        """
        Pick and stamp the next operator.

        Raises:
            NoEligibleOperatorException: If no operator is active
            TransitionConflictException: If every attempt lost the race
        """
        candidate: Optional[Operator] = None
        for attempt in range(self._max_attempts):
            candidate = await self._operators.next_in_rotation()
            if candidate is None:
                raise NoEligibleOperatorException()

            if await self._operators.stamp_assignment(candidate.id, candidate.last_assigned_at, now):
                candidate.last_assigned_at = now
                return candidate

            logger.info(
                "Lost operator stamp race, re-selecting",
                extra={"operator_id": candidate.id, "attempt": attempt + 1}
            )

        raise TransitionConflictException("Operator", candidate.id if candidate else "unknown")

    async def claim(self, operator_id: str, now: datetime) -> Operator:
        """
        Stamp a specific operator (manual assignment).

        Raises:
            ResourceNotFoundException: If the operator doesn't exist
            DomainException: If the operator is inactive
            TransitionConflictException: If every attempt lost the race
        """
        for attempt in range(self._max_attempts):
            operator = await self._operators.get(operator_id)
            if operator is None:
                raise ResourceNotFoundException("Operator", operator_id)
            if not operator.active:
                raise DomainException(
                    f"Operator {operator_id} is inactive",
                    {"operator_id": operator_id}
                )

            if await self._operators.stamp_assignment(operator.id, operator.last_assigned_at, now):
                operator.last_assigned_at = now
                return operator

            logger.info(
                "Lost operator stamp race, retrying claim",
                extra={"operator_id": operator_id, "attempt": attempt + 1}
            )

        raise TransitionConflictException("Operator", operator_id)


class OperatorService:
    """Operator administration and read models."""

    def __init__(self, uow, clock: Clock = utc_now):
        self._uow = uow
        self._clock = clock

    async def create_operator(self, name: str, email: Optional[str] = None, active: bool = True) -> Operator:
        if not name or not name.strip():
            raise ValidationException("Operator name must not be blank")

        operator = Operator(
            id=str(uuid4()),
            name=name.strip(),
            email=email,
            active=active,
            created_at=self._clock(),
        )
        operator = await self._uow.operators.add(operator)
        logger.info("Operator created", extra={"operator_id": operator.id, "active": active})
        return operator

    async def get_operator(self, operator_id: str) -> Operator:
        operator = await self._uow.operators.get(operator_id)
        if operator is None:
            raise ResourceNotFoundException("Operator", operator_id)
        return operator

    async def list_operators(self, active_only: bool = False) -> List[Operator]:
        return await self._uow.operators.list(active_only=active_only)

    async def set_active(self, operator_id: str, active: bool) -> Operator:
        """
        Join or leave the active pool.

        Inquiries already held by a deactivated operator stay with them until
        they reply or the deadline lapses.
        """
        if not await self._uow.operators.set_active(operator_id, active):
            raise ResourceNotFoundException("Operator", operator_id)
        logger.info("Operator pool membership changed", extra={"operator_id": operator_id, "active": active})
        return await self.get_operator(operator_id)

    async def leaderboard(self, limit: int = 10) -> List[Operator]:
        return await self._uow.operators.leaderboard(limit=limit)

    async def workload(self) -> List[Tuple[Operator, int]]:
        """Active operators with their count of open (assigned or escalated) inquiries."""
        operators = await self._uow.operators.list(active_only=True)
        counts: Dict[str, int] = await self._uow.inquiries.count_open_by_operator()
        return [(op, counts.get(op.id, 0)) for op in operators]
