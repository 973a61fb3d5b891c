"""
Tests for least-recently-assigned selection and the last_assigned_at
compare-and-set.
"""

from datetime import timedelta

import pytest

from inquiry_desk.core import DomainException, NoEligibleOperatorException, TransitionConflictException
from inquiry_desk.workforce.application import WorkloadBalancer
from inquiry_desk.workforce.infrastructure import SQLAlchemyOperatorRepository

from conftest import T0, admit


class RacingOperatorRepository(SQLAlchemyOperatorRepository):
    """
    Lets a competing request stamp the operator between our read and our
    compare-and-set, the interleaving two concurrent assignments produce.
    """

    def __init__(self, session, competitor_time, races: int = 1):
        super().__init__(session)
        self._competitor_time = competitor_time
        self._races_left = races
        self.stamp_calls = 0

    async def stamp_assignment(self, operator_id, expected_last_assigned_at, now):
        self.stamp_calls += 1
        if self._races_left:
            self._races_left -= 1
            won = await super().stamp_assignment(operator_id, expected_last_assigned_at, self._competitor_time)
            assert won
            self._competitor_time += timedelta(seconds=1)
        return await super().stamp_assignment(operator_id, expected_last_assigned_at, now)


class TestRotation:
    """Ordering of the operator pool."""

    @pytest.mark.asyncio
    async def test_never_assigned_operator_goes_first(self, uow, operators):
        """Operators with no assignment yet come before everyone else"""
        veteran = await operators.create_operator("Veteran")
        rookie = await operators.create_operator("Rookie")
        await uow.operators.stamp_assignment(veteran.id, None, T0)

        balancer = WorkloadBalancer(uow.operators)
        chosen = await balancer.select_operator(T0 + timedelta(minutes=1))

        assert chosen.id == rookie.id

    @pytest.mark.asyncio
    async def test_equal_stamps_break_ties_by_id(self, uow, operators):
        """Operators assigned at the same instant are taken in id order"""
        first = await operators.create_operator("First")
        second = await operators.create_operator("Second")
        for op in (first, second):
            assert await uow.operators.stamp_assignment(op.id, None, T0) is True
        lower, higher = sorted([first.id, second.id])

        assert (await uow.operators.next_in_rotation()).id == lower

        balancer = WorkloadBalancer(uow.operators)
        picks = [
            (await balancer.select_operator(T0 + timedelta(minutes=i))).id
            for i in (1, 2)
        ]

        assert picks == [lower, higher]

    @pytest.mark.asyncio
    async def test_never_assigned_operators_break_ties_by_id(self, uow, operators):
        """Among operators never assigned, the lowest id goes first"""
        created = [await operators.create_operator(name) for name in ("A", "B", "C")]

        chosen = await WorkloadBalancer(uow.operators).select_operator(T0)

        assert chosen.id == min(op.id for op in created)

    @pytest.mark.asyncio
    async def test_round_robin_over_three_operators(self, uow, operators):
        """Successive selections cycle through the pool"""
        created = [await operators.create_operator(name) for name in ("A", "B", "C")]
        balancer = WorkloadBalancer(uow.operators)

        picks = []
        for i in range(6):
            chosen = await balancer.select_operator(T0 + timedelta(minutes=i))
            picks.append(chosen.id)

        assert set(picks[:3]) == {op.id for op in created}
        assert picks[3:] == picks[:3]

    @pytest.mark.asyncio
    async def test_inactive_operators_are_skipped(self, uow, operators):
        """Leaving the pool removes an operator from rotation"""
        away = await operators.create_operator("Away")
        present = await operators.create_operator("Present")
        await operators.set_active(away.id, False)

        balancer = WorkloadBalancer(uow.operators)

        for i in range(2):
            chosen = await balancer.select_operator(T0 + timedelta(minutes=i))
            assert chosen.id == present.id

    @pytest.mark.asyncio
    async def test_empty_pool_raises(self, uow, operators):
        """No active operator is an explicit error"""
        solo = await operators.create_operator("Solo", active=False)

        with pytest.raises(NoEligibleOperatorException):
            await WorkloadBalancer(uow.operators).select_operator(T0)

        with pytest.raises(DomainException):
            await WorkloadBalancer(uow.operators).claim(solo.id, T0)


class TestCompareAndSet:
    """Concurrent stamping of last_assigned_at."""

    @pytest.mark.asyncio
    async def test_stale_stamp_is_rejected(self, uow, operators):
        """A stamp based on an outdated read does not overwrite"""
        op = await operators.create_operator("Solo")

        assert await uow.operators.stamp_assignment(op.id, None, T0) is True
        assert await uow.operators.stamp_assignment(op.id, None, T0 + timedelta(minutes=1)) is False

        stored = await uow.operators.get(op.id)
        assert stored.last_assigned_at == T0

    @pytest.mark.asyncio
    async def test_lost_race_with_single_operator(self, session, operators):
        """Both competing requests get the one operator, and both stamps land"""
        op = await operators.create_operator("Solo")
        competitor_time = T0
        now = T0 + timedelta(minutes=1)

        repository = RacingOperatorRepository(session, competitor_time)
        chosen = await WorkloadBalancer(repository).select_operator(now)

        assert chosen.id == op.id
        assert chosen.last_assigned_at == now
        assert repository.stamp_calls == 2

        stored = await repository.get(op.id)
        assert stored.last_assigned_at == now

    @pytest.mark.asyncio
    async def test_lost_race_moves_to_next_operator(self, session, operators):
        """The loser re-reads the rotation and takes the next operator"""
        first = await operators.create_operator("First")
        second = await operators.create_operator("Second")
        repository = RacingOperatorRepository(session, T0)
        await SQLAlchemyOperatorRepository(session).stamp_assignment(second.id, None, T0 - timedelta(hours=1))
        await SQLAlchemyOperatorRepository(session).stamp_assignment(first.id, None, T0 - timedelta(hours=2))

        chosen = await WorkloadBalancer(repository).select_operator(T0 + timedelta(minutes=1))

        assert chosen.id == second.id
        assert (await repository.get(first.id)).last_assigned_at == T0
        assert (await repository.get(second.id)).last_assigned_at == T0 + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, session, operators):
        """Losing every attempt surfaces a conflict"""
        await operators.create_operator("Contended")
        repository = RacingOperatorRepository(session, T0, races=3)

        with pytest.raises(TransitionConflictException):
            await WorkloadBalancer(repository, max_attempts=3).select_operator(T0 + timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_two_inquiries_one_operator(self, uow, lifecycle, operators, clock):
        """Two assignments against a single operator both succeed"""
        op = await operators.create_operator("Solo")

        first = await admit(lifecycle, "t/1", T0)
        second = await admit(lifecycle, "t/2", T0 + timedelta(seconds=1))

        assert first.assigned_to == op.id
        assert second.assigned_to == op.id
        stored = await uow.operators.get(op.id)
        assert stored.last_assigned_at == T0 + timedelta(seconds=1)
