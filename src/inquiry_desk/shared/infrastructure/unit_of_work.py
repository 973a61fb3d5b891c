"""
SQLAlchemy Unit of Work
=======================

Binds the four SQLAlchemy repositories to one AsyncSession.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_desk.lifecycle.infrastructure.repositories import (
    SQLAlchemyActivityRepository,
    SQLAlchemyInquiryRepository,
)
from inquiry_desk.scoring.infrastructure.repositories import SQLAlchemyReplyRepository
from inquiry_desk.shared.unit_of_work import IUnitOfWork
from inquiry_desk.workforce.infrastructure.repositories import SQLAlchemyOperatorRepository


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over a single session.

    The session's outer transaction is owned by whoever created the session
    (`get_session` for requests, `get_session_context` for jobs); this class
    only adds savepoints.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.inquiries = SQLAlchemyInquiryRepository(session)
        self.activities = SQLAlchemyActivityRepository(session)
        self.operators = SQLAlchemyOperatorRepository(session)
        self.replies = SQLAlchemyReplyRepository(session)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self.session.begin_nested():
            yield

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
