"""
Pipeline Configuration
======================

The tunable part of the pipeline, one section per bounded context:

    relevance:  vocabularies, points and thresholds for the intake filter
    lifecycle:  bandwidth, escalation limits, sweep batch size
    scoring:    speed/quality/outcome constants and weights

Services only see `IPipelineConfigProvider`; the YAML-backed, hot-reloading
implementation lives in `inquiry_desk.infrastructure.pipeline`.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from inquiry_desk.intake.domain import RelevanceVocabulary
from inquiry_desk.lifecycle.domain import LifecycleConfig
from inquiry_desk.scoring.domain import ScoringConfig


class PipelineConfig(BaseModel):
    """Complete pipeline configuration loaded from YAML."""
    relevance: RelevanceVocabulary = Field(default_factory=RelevanceVocabulary)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)


class IPipelineConfigProvider(ABC):
    """Interface for pipeline configuration access."""

    @abstractmethod
    def get_config(self) -> PipelineConfig:
        """Get current pipeline configuration."""


class StaticConfigProvider(IPipelineConfigProvider):
    """Fixed configuration, for scripts and tests."""

    def __init__(self, config: PipelineConfig | None = None):
        self._config = config or PipelineConfig()

    def get_config(self) -> PipelineConfig:
        return self._config
