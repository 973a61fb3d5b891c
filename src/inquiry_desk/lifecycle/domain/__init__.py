"""
Lifecycle Domain Layer
======================

Domain layer for the inquiry lifecycle state machine.

Contains:
- Entities: Inquiry (status, deadline, transitions), ActivityRecord,
  EscalationNotice, SweepReport, RebalanceReport
- Value Objects: LifecycleConfig, DeadlineCalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from inquiry_desk.lifecycle.domain.value_objects import DeadlineCalculator, LifecycleConfig
from inquiry_desk.lifecycle.domain.entities import (
    Inquiry,
    ActivityRecord,
    ALLOWED_TRANSITIONS,
    EscalationNotice,
    SweepReport,
    RebalanceReport,
)

__all__ = [
    "Inquiry",
    "ActivityRecord",
    "ALLOWED_TRANSITIONS",
    "EscalationNotice",
    "SweepReport",
    "RebalanceReport",
    "DeadlineCalculator",
    "LifecycleConfig",
]
