"""
Intake Domain Entities
======================

Candidate records offered by the external content source and the result of
assessing them.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from inquiry_desk.config import Priority


@dataclass(frozen=True)
class Candidate:
    """
    A candidate inquiry as supplied by the scraping collaborator.

    Engagement metrics are counts on the source forum.
    """
    title: str
    external_reference: str
    body: str = ""
    views: int = 0
    replies: int = 0
    likes: int = 0

    def __post_init__(self):
        """Validate candidate on initialization."""
        if not self.title.strip():
            raise ValueError("title must not be blank")
        if not self.external_reference.strip():
            raise ValueError("external_reference must not be blank")
        if min(self.views, self.replies, self.likes) < 0:
            raise ValueError("engagement metrics cannot be negative")


@dataclass
class RelevanceAssessment:
    """Score, admit decision and classification for one candidate."""
    score: int
    admitted: bool
    category: str
    priority: Priority
    signals: List[str] = field(default_factory=list)


@dataclass
class IngestionOutcome:
    """What happened to one candidate during ingestion."""
    external_reference: str
    admitted: bool
    score: int
    category: str
    priority: Priority
    duplicate: bool = False
    inquiry_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def duplicate_of(cls, external_reference: str) -> "IngestionOutcome":
        """Duplicates are discarded before scoring, so no assessment exists."""
        return cls(
            external_reference=external_reference,
            admitted=False,
            score=0,
            category="",
            priority=Priority.NORMAL,
            duplicate=True,
        )


@dataclass
class IngestReport:
    """Per-item outcomes of one batch, with counters for logging."""
    outcomes: List[IngestionOutcome] = field(default_factory=list)

    @property
    def admitted(self) -> int:
        return sum(1 for o in self.outcomes if o.admitted and o.error is None)

    @property
    def rejected(self) -> int:
        return sum(1 for o in self.outcomes if not o.admitted and not o.duplicate and o.error is None)

    @property
    def duplicates(self) -> int:
        return sum(1 for o in self.outcomes if o.duplicate)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.error is not None)
