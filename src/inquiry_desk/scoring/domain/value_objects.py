"""
Scoring Value Objects
=====================

Tunable scoring configuration and the pure functions that apply it.

The formula is intentionally simple and auditable; every constant is read
from the `scoring` section of the pipeline YAML.
"""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, model_validator

from inquiry_desk.config import OutcomeSignal
from inquiry_desk.scoring.domain.entities import Reply, ReplyScore
from inquiry_desk.workforce.domain import OperatorAggregates


DEFAULT_PLACEHOLDER_MARKERS = [
    "lorem ipsum", "todo", "tbd", "[insert", "placeholder", "xxx", "{{",
]


class ScoringConfig(BaseModel):
    """Scoring configuration loaded from YAML."""

    # Speed
    speed_max: int = Field(default=40, ge=1)
    speed_floor: int = Field(default=0, ge=0)
    speed_curve_exponent: float = Field(
        default=2.0,
        gt=0,
        description="1 = linear decay; >1 keeps early replies near the maximum"
    )

    # Quality
    min_length: int = Field(default=80, ge=1, description="Characters for full length points")
    max_length: int = Field(default=2000, ge=1, description="Above this, replies lose length points")
    length_points: int = Field(default=20, ge=0)
    overlong_length_points: int = Field(default=10, ge=0)
    clean_points: int = Field(default=10, ge=0, description="Awarded when no placeholder marker appears")
    placeholder_markers: List[str] = Field(default_factory=lambda: list(DEFAULT_PLACEHOLDER_MARKERS))

    # Outcome
    outcome_max: int = Field(default=30, ge=1)
    outcome_neutral: Optional[int] = Field(default=None, description="Defaults to half of outcome_max")
    outcome_by_signal: Dict[OutcomeSignal, int] = Field(
        default_factory=lambda: {
            OutcomeSignal.RESOLVED: 30,
            OutcomeSignal.THANKED: 25,
            OutcomeSignal.NO_RESPONSE: 15,
            OutcomeSignal.UNRESOLVED: 0,
        }
    )

    # Weights for the total
    speed_weight: float = Field(default=1.0, ge=0)
    quality_weight: float = Field(default=1.0, ge=0)
    outcome_weight: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def validate_bounds(self) -> "ScoringConfig":
        if self.speed_floor > self.speed_max:
            raise ValueError("speed_floor cannot exceed speed_max")
        if self.min_length > self.max_length:
            raise ValueError("min_length cannot exceed max_length")
        if self.overlong_length_points > self.length_points:
            raise ValueError("overlong_length_points cannot exceed length_points")
        for signal, value in self.outcome_by_signal.items():
            if not 0 <= value <= self.outcome_max:
                raise ValueError(f"outcome for '{signal.value}' must be within 0..{self.outcome_max}")
        if self.outcome_neutral is not None and not 0 <= self.outcome_neutral <= self.outcome_max:
            raise ValueError("outcome_neutral must be within 0..outcome_max")
        self.placeholder_markers = [m.lower() for m in self.placeholder_markers if m.strip()]
        return self

    @property
    def quality_max(self) -> int:
        return self.length_points + self.clean_points

    @property
    def neutral_outcome(self) -> int:
        if self.outcome_neutral is not None:
            return self.outcome_neutral
        return self.outcome_max // 2


class ScoreCalculator:
    """
    Pure functions for reply scoring.

    Stateless utility class - all scoring arithmetic in one place.
    """

    @staticmethod
    def speed(elapsed_minutes: float, bandwidth_minutes: int, config: ScoringConfig) -> int:
        """
        Monotonically decreasing in elapsed time; the floor once the
        bandwidth is used up (never negative).
        """
        if bandwidth_minutes <= 0:
            return config.speed_floor
        ratio = max(0.0, elapsed_minutes) / bandwidth_minutes
        if ratio >= 1:
            return config.speed_floor
        span = config.speed_max - config.speed_floor
        return int(round(config.speed_floor + span * (1 - ratio ** config.speed_curve_exponent)))

    @staticmethod
    def quality(body: str, config: ScoringConfig) -> int:
        """Length within the expected band plus absence of placeholder text."""
        text = body.strip()
        if not text:
            return 0

        length = len(text)
        if length < config.min_length:
            length_score = int(round(config.length_points * length / config.min_length))
        elif length <= config.max_length:
            length_score = config.length_points
        else:
            length_score = config.overlong_length_points

        lowered = text.lower()
        has_placeholder = any(marker in lowered for marker in config.placeholder_markers)
        clean_score = 0 if has_placeholder else config.clean_points

        return length_score + clean_score

    @staticmethod
    def outcome(signal: Optional[OutcomeSignal], config: ScoringConfig) -> int:
        """Neutral until a downstream signal exists."""
        if signal is None:
            return config.neutral_outcome
        return config.outcome_by_signal.get(signal, config.neutral_outcome)

    @staticmethod
    def total(speed: int, quality: int, outcome: int, config: ScoringConfig) -> int:
        return int(round(
            speed * config.speed_weight
            + quality * config.quality_weight
            + outcome * config.outcome_weight
        ))

    @staticmethod
    def score(
        body: str,
        elapsed_minutes: float,
        bandwidth_minutes: int,
        config: ScoringConfig,
        signal: Optional[OutcomeSignal] = None
    ) -> ReplyScore:
        speed = ScoreCalculator.speed(elapsed_minutes, bandwidth_minutes, config)
        quality = ScoreCalculator.quality(body, config)
        outcome = ScoreCalculator.outcome(signal, config)
        return ReplyScore(
            speed=speed,
            quality=quality,
            outcome=outcome,
            total=ScoreCalculator.total(speed, quality, outcome, config),
        )

    @staticmethod
    def revise_outcome(score: ReplyScore, signal: OutcomeSignal, config: ScoringConfig) -> ReplyScore:
        """New outcome and total; speed and quality are left untouched."""
        outcome = ScoreCalculator.outcome(signal, config)
        return ReplyScore(
            speed=score.speed,
            quality=score.quality,
            outcome=outcome,
            total=ScoreCalculator.total(score.speed, score.quality, outcome, config),
        )


class AggregateCalculator:
    """Rebuilds operator aggregates from reply history."""

    @staticmethod
    def replay(replies: Iterable[Reply]) -> OperatorAggregates:
        count = 0
        total_score = 0
        total_minutes = 0.0
        for reply in replies:
            count += 1
            total_score += reply.score.total
            total_minutes += reply.reply_time_minutes
        return OperatorAggregates(
            total_replied=count,
            total_score=total_score,
            avg_reply_time=(total_minutes / count) if count else 0.0,
        )
