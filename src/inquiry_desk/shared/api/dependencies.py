"""
Shared API Dependencies
=======================

FastAPI dependency providers shared by all module routers.

The pipeline config provider and the notifier are created in the lifespan
and kept on `app.state`; the clock is a dependency so tests can pin time
with `app.dependency_overrides`.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_desk.core import Clock, utc_now
from inquiry_desk.infrastructure.database import get_session
from inquiry_desk.lifecycle.application import EscalationSweeper, LifecycleService
from inquiry_desk.lifecycle.infrastructure import EscalationNotifier
from inquiry_desk.shared.config import IPipelineConfigProvider, StaticConfigProvider
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_clock() -> Clock:
    return utc_now


def get_config_provider(request: Request) -> IPipelineConfigProvider:
    provider = getattr(request.app.state, "config_manager", None)
    if provider is None:
        provider = StaticConfigProvider()
        request.app.state.config_manager = provider
    return provider


def get_notifier(request: Request) -> Optional[EscalationNotifier]:
    return getattr(request.app.state, "notifier", None)


async def get_uow(session: AsyncSession = Depends(get_session)) -> SQLAlchemyUnitOfWork:
    return SQLAlchemyUnitOfWork(session)


async def get_lifecycle_service(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    config_provider: IPipelineConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
) -> LifecycleService:
    """Get lifecycle service instance."""
    return LifecycleService(uow, config_provider, clock)


async def get_sweeper(
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    lifecycle_service: LifecycleService = Depends(get_lifecycle_service),
    config_provider: IPipelineConfigProvider = Depends(get_config_provider),
    clock: Clock = Depends(get_clock)
) -> EscalationSweeper:
    """Get escalation sweeper instance."""
    return EscalationSweeper(uow, lifecycle_service, config_provider, clock)
