"""
Scoring Domain Entities
=======================

Replies and their score breakdown.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from inquiry_desk.config import OutcomeSignal


@dataclass(frozen=True)
class ReplyScore:
    """Sub-scores and the derived total. All four are persisted."""
    speed: int
    quality: int
    outcome: int
    total: int

    def to_dict(self) -> dict:
        return {
            "speed": self.speed,
            "quality": self.quality,
            "outcome": self.outcome,
            "total": self.total,
        }


@dataclass
class Reply:
    """
    Reply entity.

    `reply_time_minutes` is kept on the row so operator averages can be
    recomputed from history alone.
    """

    id: Optional[str]
    inquiry_id: str
    operator_id: str
    body: str
    submitted_at: datetime
    reply_time_minutes: float
    score: ReplyScore
    outcome_signal: Optional[OutcomeSignal] = None
