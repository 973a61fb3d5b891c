"""
Workforce Infrastructure Repositories
=====================================

SQLAlchemy implementation of the operator repository.

Aggregate updates are expressed as SQL increments so concurrent replies
never overwrite each other's contribution.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_desk.core import AggregateUpdateException, RepositoryException, ValidationException
from inquiry_desk.workforce.application.services import IOperatorRepository
from inquiry_desk.workforce.domain import Operator, OperatorAggregates
from inquiry_desk.workforce.infrastructure.models import OperatorModel


def _to_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _to_entity(model: OperatorModel) -> Operator:
    return Operator(
        id=str(model.id),
        name=model.name,
        email=model.email,
        active=model.active,
        created_at=model.created_at,
        total_replied=model.total_replied,
        total_missed=model.total_missed,
        total_score=model.total_score,
        avg_reply_time=model.avg_reply_time,
        last_assigned_at=model.last_assigned_at,
    )


class SQLAlchemyOperatorRepository(IOperatorRepository):
    """
    SQLAlchemy implementation of operator repository.

    Reads use populate_existing so that rows changed by bulk UPDATEs in the
    same session are never served stale from the identity map.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, operator_id: str) -> Optional[Operator]:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            return None

        stmt = (
            select(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def add(self, operator: Operator) -> Operator:
        model = OperatorModel(
            id=UUID(operator.id),
            name=operator.name,
            email=operator.email,
            active=operator.active,
            created_at=operator.created_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as e:
            raise ValidationException(
                f"Operator email '{operator.email}' is already registered",
                {"email": operator.email}
            ) from e
        return _to_entity(model)

    async def list(self, active_only: bool = False) -> List[Operator]:
        stmt = select(OperatorModel).execution_options(populate_existing=True)
        if active_only:
            stmt = stmt.where(OperatorModel.active.is_(True))
        stmt = stmt.order_by(OperatorModel.name.asc(), OperatorModel.id.asc())

        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def set_active(self, operator_id: str, active: bool) -> bool:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            return False

        stmt = (
            update(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .values(active=active)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def next_in_rotation(self) -> Optional[Operator]:
        try:
            stmt = (
                select(OperatorModel)
                .where(OperatorModel.active.is_(True))
                .order_by(
                    OperatorModel.last_assigned_at.asc().nulls_first(),
                    OperatorModel.id.asc(),
                )
                .limit(1)
                .execution_options(populate_existing=True)
            )
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Operator rotation lookup failed: {e}") from e
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def stamp_assignment(
        self,
        operator_id: str,
        expected_last_assigned_at: Optional[datetime],
        now: datetime
    ) -> bool:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            return False

        if expected_last_assigned_at is None:
            guard = OperatorModel.last_assigned_at.is_(None)
        else:
            guard = OperatorModel.last_assigned_at == expected_last_assigned_at

        stmt = (
            update(OperatorModel)
            .where(
                OperatorModel.id == operator_uuid,
                OperatorModel.active.is_(True),
                guard,
            )
            .values(last_assigned_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def record_missed(self, operator_id: str) -> None:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            return

        stmt = (
            update(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .values(total_missed=OperatorModel.total_missed + 1)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)

    async def apply_reply(self, operator_id: str, reply_total: int) -> None:
        # Imported here: replies belong to the scoring context
        from inquiry_desk.scoring.infrastructure.models import ReplyModel

        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            raise AggregateUpdateException(operator_id, "invalid operator id")

        avg_reply_time = (
            select(func.coalesce(func.avg(ReplyModel.reply_time_minutes), 0.0))
            .where(ReplyModel.operator_id == operator_uuid)
            .scalar_subquery()
        )
        stmt = (
            update(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .values(
                total_replied=OperatorModel.total_replied + 1,
                total_score=OperatorModel.total_score + reply_total,
                avg_reply_time=avg_reply_time,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise AggregateUpdateException(operator_id, str(e)) from e
        if result.rowcount != 1:
            raise AggregateUpdateException(operator_id, "operator row not found")

    async def adjust_score(self, operator_id: str, delta: int) -> None:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            raise AggregateUpdateException(operator_id, "invalid operator id")

        stmt = (
            update(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .values(total_score=OperatorModel.total_score + delta)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise AggregateUpdateException(operator_id, str(e)) from e
        if result.rowcount != 1:
            raise AggregateUpdateException(operator_id, "operator row not found")

    async def replace_aggregates(self, operator_id: str, aggregates: OperatorAggregates) -> None:
        operator_uuid = _to_uuid(operator_id)
        if operator_uuid is None:
            raise AggregateUpdateException(operator_id, "invalid operator id")

        stmt = (
            update(OperatorModel)
            .where(OperatorModel.id == operator_uuid)
            .values(
                total_replied=aggregates.total_replied,
                total_score=aggregates.total_score,
                avg_reply_time=aggregates.avg_reply_time,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise AggregateUpdateException(operator_id, str(e)) from e
        if result.rowcount != 1:
            raise AggregateUpdateException(operator_id, "operator row not found")

    async def leaderboard(self, limit: int = 10) -> List[Operator]:
        stmt = (
            select(OperatorModel)
            .where(OperatorModel.active.is_(True))
            .order_by(OperatorModel.total_score.desc(), OperatorModel.name.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]
