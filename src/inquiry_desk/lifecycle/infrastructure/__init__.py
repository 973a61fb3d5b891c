"""
Lifecycle Infrastructure Layer
==============================

Contains:
- Models: InquiryModel, ActivityModel
- Repositories: SQLAlchemyInquiryRepository, SQLAlchemyActivityRepository
- External: EscalationNotifier, SweepScheduler, CircuitBreaker
"""

from inquiry_desk.lifecycle.infrastructure.models import InquiryModel, ActivityModel
from inquiry_desk.lifecycle.infrastructure.repositories import (
    SQLAlchemyInquiryRepository,
    SQLAlchemyActivityRepository,
)
from inquiry_desk.lifecycle.infrastructure.external import (
    CircuitBreaker,
    EscalationNotifier,
    SweepScheduler,
)

__all__ = [
    "InquiryModel",
    "ActivityModel",
    "SQLAlchemyInquiryRepository",
    "SQLAlchemyActivityRepository",
    "CircuitBreaker",
    "EscalationNotifier",
    "SweepScheduler",
]
