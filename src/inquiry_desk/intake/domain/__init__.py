"""
Intake Domain Layer
===================

Contains:
- Entities: Candidate, RelevanceAssessment, IngestionOutcome, IngestReport
- Value Objects: RelevanceVocabulary, RelevanceScorer

Pure Python business logic with no infrastructure dependencies.
"""

from inquiry_desk.intake.domain.entities import (
    Candidate,
    RelevanceAssessment,
    IngestionOutcome,
    IngestReport,
)
from inquiry_desk.intake.domain.value_objects import (
    RelevanceVocabulary,
    RelevanceScorer,
    CategoryRule,
    EngagementThresholds,
)

__all__ = [
    "Candidate",
    "RelevanceAssessment",
    "IngestionOutcome",
    "IngestReport",
    "RelevanceVocabulary",
    "RelevanceScorer",
    "CategoryRule",
    "EngagementThresholds",
]
