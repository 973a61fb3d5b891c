"""
Scoring Infrastructure Layer
============================

Contains:
- Models: ReplyModel
- Repositories: SQLAlchemyReplyRepository
"""

from inquiry_desk.scoring.infrastructure.models import ReplyModel
from inquiry_desk.scoring.infrastructure.repositories import SQLAlchemyReplyRepository

__all__ = [
    "ReplyModel",
    "SQLAlchemyReplyRepository",
]
