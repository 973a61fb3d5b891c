"""
Intake Application Layer
========================

Contains:
- Services: IntakeService, Deduplicator, RelevanceFilter
- DTOs: Candidate batch and assessment models
"""

from inquiry_desk.intake.application.dto import (
    CandidateDTO,
    CandidateBatchRequest,
    IngestResultItem,
    IngestResponse,
    AssessResponse,
)
from inquiry_desk.intake.application.services import (
    Deduplicator,
    RelevanceFilter,
    IntakeService,
)

__all__ = [
    # DTOs
    "CandidateDTO",
    "CandidateBatchRequest",
    "IngestResultItem",
    "IngestResponse",
    "AssessResponse",
    # Services
    "Deduplicator",
    "RelevanceFilter",
    "IntakeService",
]
