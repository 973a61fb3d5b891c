"""
Shared fixtures: a throwaway SQLite database per test, services bound to
one session, and a clock the tests move by hand.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from inquiry_desk.config import Priority
from inquiry_desk.infrastructure.database import build_engine, build_session_maker, create_tables
from inquiry_desk.intake.application import IntakeService
from inquiry_desk.intake.domain import Candidate, RelevanceAssessment
from inquiry_desk.lifecycle.application import EscalationSweeper, LifecycleService
from inquiry_desk.scoring.application import ScoringService
from inquiry_desk.shared.config import PipelineConfig, StaticConfigProvider
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from inquiry_desk.workforce.application import OperatorService

T0 = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'inquiries.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def uow(session):
    return SQLAlchemyUnitOfWork(session)


@pytest.fixture
def pipeline_config():
    return PipelineConfig()


@pytest.fixture
def config_provider(pipeline_config):
    return StaticConfigProvider(pipeline_config)


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def lifecycle(uow, config_provider, clock):
    return LifecycleService(uow, config_provider, clock)


@pytest.fixture
def sweeper(uow, lifecycle, config_provider, clock):
    return EscalationSweeper(uow, lifecycle, config_provider, clock)


@pytest.fixture
def scoring(uow, lifecycle, config_provider, clock):
    return ScoringService(uow, lifecycle, config_provider, clock)


@pytest.fixture
def intake(uow, lifecycle, config_provider, clock):
    return IntakeService(uow, lifecycle, config_provider, clock)


@pytest.fixture
def operators(uow, clock):
    return OperatorService(uow, clock)


async def admit(
    lifecycle: LifecycleService,
    reference: str,
    now: datetime,
    title: str = "Need an app for shipping labels?",
    priority: Priority = Priority.NORMAL
):
    """Create an admitted inquiry without going through relevance scoring."""
    candidate = Candidate(title=title, external_reference=reference, body="")
    assessment = RelevanceAssessment(score=90, admitted=True, category="Apps", priority=priority)
    return await lifecycle.create_inquiry(candidate, assessment, now)
