"""
Unit of Work Interface
======================

One transaction, four repositories. Services that touch more than one
aggregate (an inquiry and its operator, a reply and its inquiry) take a unit
of work instead of individual repositories so that every write lands in the
same transaction.

`savepoint()` scopes one item of a batch: if the item raises, only its
writes are rolled back and the batch carries on.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncContextManager

if TYPE_CHECKING:
    from inquiry_desk.lifecycle.application.services import IActivityRepository, IInquiryRepository
    from inquiry_desk.scoring.application.services import IReplyRepository
    from inquiry_desk.workforce.application.services import IOperatorRepository


class IUnitOfWork(ABC):
    """Interface for transactional access to all repositories."""

    inquiries: "IInquiryRepository"
    activities: "IActivityRepository"
    operators: "IOperatorRepository"
    replies: "IReplyRepository"

    @abstractmethod
    def savepoint(self) -> AsyncContextManager[None]:
        """Nested transaction; rolled back alone when the block raises."""

    @abstractmethod
    async def commit(self) -> None:
        """Commit the outer transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Roll back the outer transaction."""
