"""
Workforce Domain Entities
=========================

Operators and their denormalized performance aggregates.

Aggregates are a rebuildable cache: `total_replied`, `total_score` and
`avg_reply_time` can always be recomputed from the operator's replies.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Operator:
    """A human operator who answers inquiries."""

    id: str
    name: str
    email: Optional[str]
    active: bool
    created_at: datetime

    # Aggregates
    total_replied: int = 0
    total_missed: int = 0
    total_score: int = 0
    avg_reply_time: float = 0.0

    # Fairness ordering for the balancer
    last_assigned_at: Optional[datetime] = None

    @property
    def handled(self) -> int:
        """Inquiries this operator either answered or let lapse."""
        return self.total_replied + self.total_missed

    @property
    def reply_rate(self) -> float:
        """Percentage of handled inquiries answered before being taken away."""
        if self.handled == 0:
            return 0.0
        return round(self.total_replied / self.handled * 100, 1)


@dataclass(frozen=True)
class OperatorAggregates:
    """Aggregate snapshot, either maintained incrementally or rebuilt by replay."""
    total_replied: int
    total_score: int
    avg_reply_time: float

    def matches(self, other: "OperatorAggregates", tolerance: float = 1e-6) -> bool:
        return (
            self.total_replied == other.total_replied
            and self.total_score == other.total_score
            and abs(self.avg_reply_time - other.avg_reply_time) <= tolerance
        )
