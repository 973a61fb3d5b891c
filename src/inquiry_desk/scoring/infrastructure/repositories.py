"""
Scoring Infrastructure Repositories
===================================

SQLAlchemy implementation of the reply repository.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_desk.config import OutcomeSignal
from inquiry_desk.core import RepositoryException
from inquiry_desk.scoring.application.services import IReplyRepository
from inquiry_desk.scoring.domain import Reply, ReplyScore
from inquiry_desk.scoring.infrastructure.models import ReplyModel


def _to_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _to_entity(model: ReplyModel) -> Reply:
    return Reply(
        id=str(model.id),
        inquiry_id=str(model.inquiry_id),
        operator_id=str(model.operator_id),
        body=model.body,
        submitted_at=model.submitted_at,
        reply_time_minutes=model.reply_time_minutes,
        score=ReplyScore(
            speed=model.speed_score,
            quality=model.quality_score,
            outcome=model.outcome_score,
            total=model.total_score,
        ),
        outcome_signal=OutcomeSignal(model.outcome_signal) if model.outcome_signal else None,
    )


class SQLAlchemyReplyRepository(IReplyRepository):
    """
    SQLAlchemy implementation of reply repository.

    Handles persistence of Reply entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, reply: Reply) -> Reply:
        model = ReplyModel(
            id=UUID(reply.id),
            inquiry_id=UUID(reply.inquiry_id),
            operator_id=UUID(reply.operator_id),
            body=reply.body,
            submitted_at=reply.submitted_at,
            reply_time_minutes=reply.reply_time_minutes,
            speed_score=reply.score.speed,
            quality_score=reply.score.quality,
            outcome_score=reply.score.outcome,
            total_score=reply.score.total,
            outcome_signal=reply.outcome_signal.value if reply.outcome_signal else None,
        )
        self._session.add(model)
        await self._session.flush()
        return reply

    async def get(self, reply_id: str) -> Optional[Reply]:
        reply_uuid = _to_uuid(reply_id)
        if reply_uuid is None:
            return None

        stmt = (
            select(ReplyModel)
            .where(ReplyModel.id == reply_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def list_for_operator(self, operator_id: str, limit: Optional[int] = None) -> List[Reply]:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            return []

        stmt = (
            select(ReplyModel)
            .where(ReplyModel.operator_id == operator_uuid)
            .order_by(ReplyModel.submitted_at.desc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def list_for_inquiry(self, inquiry_id: str) -> List[Reply]:
        inquiry_uuid = _to_uuid(inquiry_id)
        if inquiry_uuid is None:
            return []

        stmt = (
            select(ReplyModel)
            .where(ReplyModel.inquiry_id == inquiry_uuid)
            .order_by(ReplyModel.submitted_at.asc())
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def update_outcome(self, reply_id: str, signal: OutcomeSignal, score: ReplyScore) -> None:
        reply_uuid = _to_uuid(reply_id)
        if reply_uuid is None:
            raise RepositoryException(f"Invalid reply ID: {reply_id}")

        stmt = (
            update(ReplyModel)
            .where(ReplyModel.id == reply_uuid)
            .values(
                outcome_signal=signal.value,
                outcome_score=score.outcome,
                total_score=score.total,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise RepositoryException(f"Reply {reply_id} not found")
