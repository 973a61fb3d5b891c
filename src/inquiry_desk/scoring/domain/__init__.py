"""
Scoring Domain Layer
====================

Contains:
- Entities: Reply, ReplyScore
- Value Objects: ScoringConfig, ScoreCalculator, AggregateCalculator
"""

from inquiry_desk.scoring.domain.entities import Reply, ReplyScore
from inquiry_desk.scoring.domain.value_objects import (
    ScoringConfig,
    ScoreCalculator,
    AggregateCalculator,
)

__all__ = [
    "Reply",
    "ReplyScore",
    "ScoringConfig",
    "ScoreCalculator",
    "AggregateCalculator",
]
