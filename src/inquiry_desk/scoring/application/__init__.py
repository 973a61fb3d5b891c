"""
Scoring Application Layer
=========================

Contains:
- Services: ScoringService
- DTOs: Reply request/response models
- Repository interface: IReplyRepository
"""

from inquiry_desk.scoring.application.dto import (
    ReplySubmitRequest,
    OutcomeRevisionRequest,
    ReplyScoreResponse,
    ReplyResponse,
    ReplySubmitResponse,
)
from inquiry_desk.scoring.application.services import (
    IReplyRepository,
    ReplyResult,
    ScoringService,
)

__all__ = [
    # DTOs
    "ReplySubmitRequest",
    "OutcomeRevisionRequest",
    "ReplyScoreResponse",
    "ReplyResponse",
    "ReplySubmitResponse",
    # Services
    "ReplyResult",
    "ScoringService",
    # Repository Interfaces
    "IReplyRepository",
]
