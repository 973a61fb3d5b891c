"""
Lifecycle Domain Entities
=========================

The Inquiry entity owns its status, deadline and escalation count. Every
transition goes through a method on the entity so the invariants hold no
matter which process drives it:

- deadline == assigned_at + bandwidth_minutes after every (re)assignment
- status == assigned implies assigned_to is set
- escalation_count only grows, and only on a missed deadline
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from inquiry_desk.config import ActivityType, InquiryStatus, Priority
from inquiry_desk.core import InvalidTransitionException
from inquiry_desk.lifecycle.domain.value_objects import DeadlineCalculator


ALLOWED_TRANSITIONS: Dict[InquiryStatus, FrozenSet[InquiryStatus]] = {
    InquiryStatus.UNASSIGNED: frozenset({InquiryStatus.ASSIGNED}),
    InquiryStatus.ASSIGNED: frozenset({
        InquiryStatus.ASSIGNED,
        InquiryStatus.REPLIED,
        InquiryStatus.ESCALATED,
        InquiryStatus.MISSED,
    }),
    # A late reply against an escalated inquiry cancels the re-assignment
    InquiryStatus.ESCALATED: frozenset({InquiryStatus.ASSIGNED, InquiryStatus.REPLIED}),
    InquiryStatus.REPLIED: frozenset(),
    InquiryStatus.MISSED: frozenset(),
}


@dataclass
class Inquiry:
    """
    Inquiry entity.

    `version` is the optimistic guard: repositories only write a transition
    if the stored version still equals the version that was read.
    """

    id: str
    external_reference: str
    title: str
    body: str
    category: str
    priority: Priority
    bandwidth_minutes: int
    created_at: datetime
    updated_at: datetime

    relevance_score: int = 0
    status: InquiryStatus = InquiryStatus.UNASSIGNED
    assigned_to: Optional[str] = None
    assigned_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    escalation_count: int = 0
    replied_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        """Validate inquiry on initialization."""
        if self.bandwidth_minutes <= 0:
            raise ValueError("bandwidth_minutes must be positive")
        if self.status == InquiryStatus.ASSIGNED and not self.assigned_to:
            raise ValueError("assigned inquiry must have an operator")

    # ---------- Queries ----------

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self.status]

    def is_overdue(self, now: datetime) -> bool:
        """Assigned, unanswered, and past its deadline."""
        return (
            self.status == InquiryStatus.ASSIGNED
            and self.deadline is not None
            and now > self.deadline
        )

    def can_transition_to(self, target: InquiryStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    # ---------- Transitions ----------

    def _check(self, target: InquiryStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransitionException(self.id, self.status.value, target.value)

    def assign(self, operator_id: str, now: datetime) -> ActivityType:
        """
        Assign (or re-assign) to an operator and restart the deadline clock.

        Returns:
            The activity type to record (assigned or reassigned)
        """
        if not operator_id:
            raise ValueError("operator_id is required for assignment")
        self._check(InquiryStatus.ASSIGNED)

        activity = (
            ActivityType.REASSIGNED
            if self.assigned_to is not None
            else ActivityType.ASSIGNED
        )
        self.status = InquiryStatus.ASSIGNED
        self.assigned_to = operator_id
        self.assigned_at = now
        self.deadline = DeadlineCalculator.deadline_for(now, self.bandwidth_minutes)
        self.updated_at = now
        return activity

    def escalate(self, now: datetime) -> Optional[str]:
        """
        Record a missed deadline and hand the inquiry back to the balancer.

        The previous holder stays on `assigned_to` until the balancer picks
        the next operator.

        Returns:
            The operator who let the deadline lapse
        """
        self._check(InquiryStatus.ESCALATED)
        if not self.is_overdue(now):
            raise InvalidTransitionException(self.id, self.status.value, InquiryStatus.ESCALATED.value)

        self.status = InquiryStatus.ESCALATED
        self.escalation_count += 1
        self.updated_at = now
        return self.assigned_to

    def mark_missed(self, now: datetime) -> Optional[str]:
        """Give up on the inquiry after too many escalations (terminal)."""
        self._check(InquiryStatus.MISSED)
        if not self.is_overdue(now):
            raise InvalidTransitionException(self.id, self.status.value, InquiryStatus.MISSED.value)

        self.status = InquiryStatus.MISSED
        self.updated_at = now
        return self.assigned_to

    def mark_replied(self, now: datetime) -> None:
        """A reply was recorded (terminal for normal flow)."""
        self._check(InquiryStatus.REPLIED)
        self.status = InquiryStatus.REPLIED
        self.replied_at = now
        self.updated_at = now


@dataclass
class ActivityRecord:
    """Append-only audit entry for one lifecycle transition."""

    inquiry_id: str
    type: ActivityType
    actor: str
    description: str
    timestamp: datetime
    operator_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class EscalationNotice:
    """Something a human should hear about after the sweep commits."""

    inquiry_id: str
    external_reference: str
    title: str
    priority: str
    escalation_count: int
    previous_operator: Optional[str]
    new_operator: Optional[str] = None
    missed: bool = False


@dataclass
class SweepReport:
    """Result of one escalation sweep."""

    scanned: int = 0
    escalated: int = 0
    reassigned: int = 0
    missed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    notices: List[EscalationNotice] = field(default_factory=list)


@dataclass
class RebalanceReport:
    """Result of one rebalance pass over the backlog."""

    scanned: int = 0
    assigned: int = 0
    waiting: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
