"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Pipeline tuning (relevance vocabularies, lifecycle limits, scoring weights)
lives in a separate YAML file, see `inquiry_desk.infrastructure.pipeline`.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="inquiry-desk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/inquiries",
        description="Async SQLAlchemy connection URL (asyncpg or aiosqlite)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Pipeline ==========
    pipeline_config_path: Path = Field(
        default=Path("pipeline_config.yaml"),
        description="Path to the pipeline tuning YAML file"
    )
    sweep_interval_seconds: int = Field(
        default=300,
        description="Seconds between escalation sweeps (0 disables the scheduler)",
        ge=0
    )

    # ========== Escalation Webhook ==========
    escalation_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook URL (Slack-compatible) for escalation notifications"
    )
    escalation_channel: str = Field(
        default="#inquiry-escalations",
        description="Channel named in escalation notifications"
    )
    escalation_webhook_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "test", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class InquiryStatus(str, Enum):
    """Inquiry lifecycle statuses."""
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    REPLIED = "replied"
    ESCALATED = "escalated"
    MISSED = "missed"


class Priority(str, Enum):
    """Inquiry priority levels."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Category(str, Enum):
    """Categories derived from inquiry titles."""
    APPS = "Apps"
    THEMES = "Themes"
    SHIPPING = "Shipping"
    PAYMENTS = "Payments"
    PRODUCTS = "Products"
    ORDERS = "Orders"
    MARKETING = "Marketing"
    GENERAL = "General"


class ActivityType(str, Enum):
    """Audit trail entry types."""
    CREATED = "created"
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    ESCALATED = "escalated"
    MISSED = "missed"
    REPLIED = "replied"
    OUTCOME_REVISED = "outcome_revised"


class OutcomeSignal(str, Enum):
    """Downstream signals that revise a reply's outcome score."""
    RESOLVED = "resolved"
    THANKED = "thanked"
    NO_RESPONSE = "no_response"
    UNRESOLVED = "unresolved"


SYSTEM_ACTOR = "system"

# Statuses an operator is still accountable for (workload)
OPEN_STATUSES = [InquiryStatus.ASSIGNED, InquiryStatus.ESCALATED]
# Statuses waiting for the balancer
BACKLOG_STATUSES = [InquiryStatus.UNASSIGNED, InquiryStatus.ESCALATED]
