"""
Lifecycle Infrastructure Repositories
=====================================

Concrete implementations of the inquiry and activity repositories using
SQLAlchemy.

Transitions are written with a single guarded UPDATE:

    UPDATE inquiries SET ..., version = :v + 1
    WHERE id = :id AND version = :v

A row count of zero means another writer got there first.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_desk.config import ActivityType, InquiryStatus, Priority, BACKLOG_STATUSES, OPEN_STATUSES
from inquiry_desk.core import DuplicateReferenceException, RepositoryException, TransitionConflictException
from inquiry_desk.lifecycle.application.services import IActivityRepository, IInquiryRepository
from inquiry_desk.lifecycle.domain import ActivityRecord, Inquiry
from inquiry_desk.lifecycle.infrastructure.models import ActivityModel, InquiryModel


def _to_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _to_entity(model: InquiryModel) -> Inquiry:
    return Inquiry(
        id=str(model.id),
        external_reference=model.external_reference,
        title=model.title,
        body=model.body,
        category=model.category,
        priority=Priority(model.priority),
        bandwidth_minutes=model.bandwidth_minutes,
        created_at=model.created_at,
        updated_at=model.updated_at,
        relevance_score=model.relevance_score,
        status=InquiryStatus(model.status),
        assigned_to=str(model.assigned_to) if model.assigned_to else None,
        assigned_at=model.assigned_at,
        deadline=model.deadline,
        escalation_count=model.escalation_count,
        replied_at=model.replied_at,
        version=model.version,
    )


class SQLAlchemyInquiryRepository(IInquiryRepository):
    """
    SQLAlchemy implementation of inquiry repository.

    Handles persistence of Inquiry entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, inquiry_id: str) -> Optional[Inquiry]:
        inquiry_uuid = _to_uuid(inquiry_id)
        if inquiry_uuid is None:
            return None

        stmt = (
            select(InquiryModel)
            .where(InquiryModel.id == inquiry_uuid)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def exists_by_reference(self, external_reference: str) -> bool:
        try:
            stmt = select(InquiryModel.id).where(InquiryModel.external_reference == external_reference)
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException(
                f"Duplicate lookup failed for {external_reference}: {e}",
                {"external_reference": external_reference}
            ) from e
        return result.scalar_one_or_none() is not None

    async def add(self, inquiry: Inquiry) -> Inquiry:
        model = InquiryModel(
            id=UUID(inquiry.id),
            external_reference=inquiry.external_reference,
            title=inquiry.title,
            body=inquiry.body,
            category=inquiry.category,
            priority=inquiry.priority.value,
            relevance_score=inquiry.relevance_score,
            status=inquiry.status.value,
            assigned_to=_to_uuid(inquiry.assigned_to),
            assigned_at=inquiry.assigned_at,
            bandwidth_minutes=inquiry.bandwidth_minutes,
            deadline=inquiry.deadline,
            escalation_count=inquiry.escalation_count,
            replied_at=inquiry.replied_at,
            version=inquiry.version,
            created_at=inquiry.created_at,
            updated_at=inquiry.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as e:
            raise DuplicateReferenceException(inquiry.external_reference) from e

        return inquiry

    async def save(self, inquiry: Inquiry) -> Inquiry:
        inquiry_uuid = _to_uuid(inquiry.id)
        if inquiry_uuid is None:
            raise RepositoryException(f"Invalid inquiry ID: {inquiry.id}")

        stmt = (
            update(InquiryModel)
            .where(
                InquiryModel.id == inquiry_uuid,
                InquiryModel.version == inquiry.version,
            )
            .values(
                status=inquiry.status.value,
                assigned_to=_to_uuid(inquiry.assigned_to),
                assigned_at=inquiry.assigned_at,
                deadline=inquiry.deadline,
                escalation_count=inquiry.escalation_count,
                replied_at=inquiry.replied_at,
                updated_at=inquiry.updated_at,
                version=inquiry.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise TransitionConflictException(
                "Inquiry",
                inquiry.id,
                {"expected_version": inquiry.version, "target_status": inquiry.status.value}
            )

        inquiry.version += 1
        return inquiry

    async def find_overdue(self, now: datetime, limit: int) -> List[Inquiry]:
        stmt = (
            select(InquiryModel)
            .where(
                InquiryModel.status == InquiryStatus.ASSIGNED.value,
                InquiryModel.deadline < now,
            )
            .order_by(InquiryModel.deadline.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def find_backlog(self, limit: int) -> List[Inquiry]:
        stmt = (
            select(InquiryModel)
            .where(InquiryModel.status.in_([s.value for s in BACKLOG_STATUSES]))
            .order_by(InquiryModel.created_at.asc(), InquiryModel.id.asc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def list(self, filters: dict, limit: int = 100, offset: int = 0) -> List[Inquiry]:
        stmt = select(InquiryModel).execution_options(populate_existing=True)

        conditions = []
        if filters.get("status"):
            status_filter = filters["status"]
            if isinstance(status_filter, (list, tuple)):
                conditions.append(InquiryModel.status.in_([str(s) for s in status_filter]))
            else:
                conditions.append(InquiryModel.status == status_filter)

        if filters.get("assigned_to"):
            operator_uuid = _to_uuid(filters["assigned_to"])
            if operator_uuid is None:
                return []
            conditions.append(InquiryModel.assigned_to == operator_uuid)

        if filters.get("category"):
            conditions.append(InquiryModel.category == filters["category"])

        if filters.get("priority"):
            conditions.append(InquiryModel.priority == filters["priority"])

        if conditions:
            stmt = stmt.where(*conditions)

        stmt = stmt.order_by(InquiryModel.created_at.desc(), InquiryModel.id.asc())
        stmt = stmt.limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return [_to_entity(m) for m in result.scalars().all()]

    async def _count_by(self, column) -> Dict[str, int]:
        stmt = select(column, func.count()).group_by(column)
        result = await self._session.execute(stmt)
        return {str(key): count for key, count in result.all()}

    async def stats(self, now: datetime) -> dict:
        by_status = await self._count_by(InquiryModel.status)
        by_priority = await self._count_by(InquiryModel.priority)
        by_category = await self._count_by(InquiryModel.category)

        overdue_stmt = select(func.count()).select_from(InquiryModel).where(
            InquiryModel.status == InquiryStatus.ASSIGNED.value,
            InquiryModel.deadline < now,
        )
        overdue = (await self._session.execute(overdue_stmt)).scalar_one()

        return {
            "total": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s.value, 0) for s in InquiryStatus},
            "by_priority": {p.value: by_priority.get(p.value, 0) for p in Priority},
            "by_category": by_category,
            "overdue": overdue,
        }

    async def count_open_by_operator(self) -> Dict[str, int]:
        stmt = (
            select(InquiryModel.assigned_to, func.count())
            .where(
                InquiryModel.status.in_([s.value for s in OPEN_STATUSES]),
                InquiryModel.assigned_to.is_not(None),
            )
            .group_by(InquiryModel.assigned_to)
        )
        result = await self._session.execute(stmt)
        return {str(operator_id): count for operator_id, count in result.all()}


class SQLAlchemyActivityRepository(IActivityRepository):
    """SQLAlchemy implementation of the activity trail (insert and read only)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: ActivityModel) -> ActivityRecord:
        return ActivityRecord(
            id=str(model.id),
            inquiry_id=str(model.inquiry_id),
            operator_id=str(model.operator_id) if model.operator_id else None,
            actor=model.actor,
            type=ActivityType(model.type),
            description=model.description,
            timestamp=model.timestamp,
        )

    async def add(self, record: ActivityRecord) -> ActivityRecord:
        model = ActivityModel(
            inquiry_id=UUID(record.inquiry_id),
            operator_id=_to_uuid(record.operator_id),
            actor=record.actor,
            type=record.type.value,
            description=record.description,
            timestamp=record.timestamp,
        )
        self._session.add(model)
        await self._session.flush()

        record.id = str(model.id)
        return record

    async def list_for_inquiry(self, inquiry_id: str, limit: int = 100) -> List[ActivityRecord]:
        inquiry_uuid = _to_uuid(inquiry_id)
        if inquiry_uuid is None:
            return []

        stmt = (
            select(ActivityModel)
            .where(ActivityModel.inquiry_id == inquiry_uuid)
            .order_by(ActivityModel.timestamp.asc(), ActivityModel.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def recent(self, limit: int = 50) -> List[ActivityRecord]:
        stmt = (
            select(ActivityModel)
            .order_by(ActivityModel.timestamp.desc(), ActivityModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]
