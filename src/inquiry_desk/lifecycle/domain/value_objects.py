"""
Lifecycle Value Objects
=======================

Immutable configuration and pure deadline arithmetic.
"""

from datetime import datetime, timedelta
from typing import Dict

from pydantic import BaseModel, Field, field_validator

from inquiry_desk.config import Priority


class DeadlineCalculator:
    """
    Pure functions for deadline calculations.

    All deadline logic in one place.
    """

    @staticmethod
    def deadline_for(assigned_at: datetime, bandwidth_minutes: int) -> datetime:
        """deadline = assigned_at + bandwidth."""
        return assigned_at + timedelta(minutes=bandwidth_minutes)

    @staticmethod
    def elapsed_minutes(start: datetime, end: datetime) -> float:
        """Minutes between two instants, never negative."""
        return max(0.0, (end - start).total_seconds() / 60)


class LifecycleConfig(BaseModel):
    """
    Lifecycle configuration loaded from the `lifecycle` section of the
    pipeline YAML.

    Effective bandwidth = per-priority override, else the default.
    """
    default_bandwidth_minutes: int = Field(default=240, ge=1)
    bandwidth_by_priority: Dict[str, int] = Field(
        default_factory=dict,
        description="Optional bandwidth overrides in minutes by priority"
    )
    max_escalations: int = Field(
        default=3,
        ge=0,
        description="Overdue inquiries that already escalated this often are marked missed"
    )
    sweep_batch_size: int = Field(default=100, ge=1)
    max_transition_retries: int = Field(default=3, ge=1)

    @field_validator("bandwidth_by_priority")
    @classmethod
    def validate_bandwidth(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Only known priorities with positive bandwidth."""
        allowed = {p.value for p in Priority}
        for priority, minutes in v.items():
            if priority not in allowed:
                raise ValueError(f"unknown priority '{priority}' in bandwidth_by_priority")
            if minutes <= 0:
                raise ValueError(f"bandwidth for '{priority}' must be positive")
        return v

    def get_bandwidth(self, priority: str) -> int:
        """
        Bandwidth in minutes for a priority.

        Example:
            bandwidth_by_priority = {"urgent": 60}
            get_bandwidth("urgent") -> 60
            get_bandwidth("normal") -> default_bandwidth_minutes
        """
        key = priority.value if isinstance(priority, Priority) else priority
        return self.bandwidth_by_priority.get(key, self.default_bandwidth_minutes)

    def should_give_up(self, escalation_count: int) -> bool:
        return escalation_count >= self.max_escalations
