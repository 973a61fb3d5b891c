"""
Tests for the inquiry state machine: assignment, escalation sweep,
rebalance and the version guard.
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from inquiry_desk.config import ActivityType, InquiryStatus, Priority
from inquiry_desk.core import InvalidTransitionException, TransitionConflictException
from inquiry_desk.lifecycle.application import EscalationSweeper, LifecycleService
from inquiry_desk.lifecycle.domain import Inquiry, LifecycleConfig
from inquiry_desk.shared.config import PipelineConfig, StaticConfigProvider
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork

from conftest import T0, admit


async def activity_types(lifecycle, inquiry_id):
    return [record.type for record in await lifecycle.activity_for(inquiry_id)]


class TestInquiryEntity:
    """Transition rules on the entity itself."""

    def _inquiry(self, **overrides) -> Inquiry:
        fields = dict(
            id="i-1",
            external_reference="t/1",
            title="Need a shipping app?",
            body="",
            category="Apps",
            priority=Priority.NORMAL,
            bandwidth_minutes=240,
            created_at=T0,
            updated_at=T0,
        )
        fields.update(overrides)
        return Inquiry(**fields)

    def test_deadline_follows_assignment(self):
        """deadline == assigned_at + bandwidth after every assignment"""
        inquiry = self._inquiry()

        assert inquiry.assign("op-1", T0) == ActivityType.ASSIGNED
        assert inquiry.deadline == T0 + timedelta(minutes=240)

        later = T0 + timedelta(minutes=90)
        assert inquiry.assign("op-2", later) == ActivityType.REASSIGNED
        assert inquiry.assigned_at == later
        assert inquiry.deadline == later + timedelta(minutes=240)

    def test_escalation_requires_lapsed_deadline(self):
        """An inquiry still inside its window cannot be escalated"""
        inquiry = self._inquiry()
        inquiry.assign("op-1", T0)

        with pytest.raises(InvalidTransitionException):
            inquiry.escalate(T0 + timedelta(minutes=240))

        assert inquiry.escalate(T0 + timedelta(minutes=241)) == "op-1"
        assert inquiry.escalation_count == 1

    def test_terminal_states(self):
        """Replied inquiries accept no further transitions"""
        inquiry = self._inquiry()
        inquiry.assign("op-1", T0)
        inquiry.mark_replied(T0 + timedelta(minutes=5))

        assert inquiry.is_terminal
        with pytest.raises(InvalidTransitionException):
            inquiry.assign("op-2", T0 + timedelta(minutes=10))

    def test_unassigned_cannot_be_replied(self):
        """A reply needs an assignment first"""
        with pytest.raises(InvalidTransitionException):
            self._inquiry().mark_replied(T0)

    def test_assigned_requires_operator(self):
        """status == assigned without an operator is rejected"""
        with pytest.raises(ValueError):
            self._inquiry(status=InquiryStatus.ASSIGNED)


class TestAssignment:
    """Creation and (re)assignment through the service."""

    @pytest.mark.asyncio
    async def test_created_inquiry_is_assigned(self, uow, lifecycle, operators):
        """Admission assigns immediately when an operator is active"""
        op = await operators.create_operator("Ana")

        inquiry = await admit(lifecycle, "t/1", T0)

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.ASSIGNED
        assert stored.assigned_to == op.id
        assert stored.assigned_at == T0
        assert stored.deadline == T0 + timedelta(minutes=240)
        assert stored.version == 1
        assert await activity_types(lifecycle, inquiry.id) == [ActivityType.CREATED, ActivityType.ASSIGNED]

    @pytest.mark.asyncio
    async def test_priority_bandwidth_override(self, uow, clock, operators):
        """Per-priority bandwidth replaces the default"""
        provider = StaticConfigProvider(PipelineConfig(
            lifecycle=LifecycleConfig(bandwidth_by_priority={"urgent": 60})
        ))
        lifecycle = LifecycleService(uow, provider, clock)
        await operators.create_operator("Ana")

        inquiry = await admit(lifecycle, "t/1", T0, priority=Priority.URGENT)

        assert inquiry.bandwidth_minutes == 60
        assert inquiry.deadline == T0 + timedelta(minutes=60)

    @pytest.mark.asyncio
    async def test_without_operators_inquiry_waits(self, uow, lifecycle, operators, clock):
        """No active operator leaves the inquiry unassigned until a rebalance"""
        inquiry = await admit(lifecycle, "t/1", T0)
        assert inquiry.status == InquiryStatus.UNASSIGNED

        empty = await lifecycle.rebalance(T0)
        assert empty.assigned == 0
        assert empty.waiting == 1

        op = await operators.create_operator("Ana")
        report = await lifecycle.rebalance(clock.advance(10))

        assert report.assigned == 1
        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.ASSIGNED
        assert stored.assigned_to == op.id
        assert stored.deadline == clock.now + timedelta(minutes=240)

        again = await lifecycle.rebalance(clock.advance(1))
        assert again.scanned == 0

    @pytest.mark.asyncio
    async def test_manual_reassignment(self, uow, lifecycle, operators, clock):
        """Naming an operator moves the inquiry and restarts the deadline"""
        first = await operators.create_operator("Ana")
        second = await operators.create_operator("Ben", active=True)
        inquiry = await admit(lifecycle, "t/1", T0)
        holder = inquiry.assigned_to
        target = second.id if holder == first.id else first.id

        now = clock.advance(30)
        updated = await lifecycle.assign(inquiry.id, target)

        assert updated.assigned_to == target
        assert updated.assigned_at == now
        assert updated.deadline == now + timedelta(minutes=240)
        assert (await activity_types(lifecycle, inquiry.id))[-1] == ActivityType.REASSIGNED

    @pytest.mark.asyncio
    async def test_replied_inquiry_cannot_be_reassigned(self, lifecycle, operators, clock):
        """Terminal inquiries reject assignment"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await lifecycle.mark_replied(inquiry, op.id, clock.advance(5))

        with pytest.raises(InvalidTransitionException):
            await lifecycle.assign(inquiry.id, op.id)


class TestEscalationSweep:
    """Deadline sweep behaviour."""

    @pytest.mark.asyncio
    async def test_sweep_escalates_and_reassigns(self, uow, lifecycle, sweeper, operators, clock):
        """241 minutes without a reply escalates once and hands the inquiry on"""
        await operators.create_operator("Ana")
        await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        previous = inquiry.assigned_to

        now = clock.advance(241)
        report = await sweeper.sweep()

        assert report.scanned == 1
        assert report.escalated == 1
        assert report.reassigned == 1

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.ASSIGNED
        assert stored.escalation_count == 1
        assert stored.assigned_to != previous
        assert stored.assigned_at == now
        assert stored.deadline == now + timedelta(minutes=240)

        missed_by = await uow.operators.get(previous)
        assert missed_by.total_missed == 1

        notice = report.notices[0]
        assert notice.previous_operator == previous
        assert notice.new_operator == stored.assigned_to
        assert notice.missed is False

        assert await activity_types(lifecycle, inquiry.id) == [
            ActivityType.CREATED,
            ActivityType.ASSIGNED,
            ActivityType.ESCALATED,
            ActivityType.REASSIGNED,
        ]

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, uow, lifecycle, sweeper, operators, clock):
        """A second sweep at the same instant changes nothing"""
        await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        clock.advance(241)

        await sweeper.sweep()
        after_first = await uow.inquiries.get(inquiry.id)
        second = await sweeper.sweep()
        after_second = await uow.inquiries.get(inquiry.id)

        assert second.scanned == 0
        assert second.escalated == 0
        assert after_second.escalation_count == 1
        assert after_second.version == after_first.version

    @pytest.mark.asyncio
    async def test_sweep_before_deadline_is_noop(self, uow, lifecycle, sweeper, operators, clock):
        """Nothing happens while the deadline has not passed"""
        await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        clock.advance(240)

        report = await sweeper.sweep()

        assert report.scanned == 0
        assert (await uow.inquiries.get(inquiry.id)).escalation_count == 0

    @pytest.mark.asyncio
    async def test_single_operator_gets_inquiry_back(self, uow, lifecycle, sweeper, operators, clock):
        """With one operator the escalated inquiry returns to them with a new deadline"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        now = clock.advance(241)
        await sweeper.sweep()

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.assigned_to == op.id
        assert stored.status == InquiryStatus.ASSIGNED
        assert stored.deadline == now + timedelta(minutes=240)

    @pytest.mark.asyncio
    async def test_missed_after_max_escalations(self, uow, operators, clock):
        """An inquiry that already hit the escalation ceiling is given up"""
        provider = StaticConfigProvider(PipelineConfig(lifecycle=LifecycleConfig(max_escalations=1)))
        lifecycle = LifecycleService(uow, provider, clock)
        sweeper = EscalationSweeper(uow, lifecycle, provider, clock)
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        clock.advance(241)
        first = await sweeper.sweep()
        clock.advance(241)
        second = await sweeper.sweep()

        assert first.escalated == 1
        assert second.missed == 1
        assert second.notices[0].missed is True

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.MISSED
        assert stored.escalation_count == 1
        assert (await uow.operators.get(op.id)).total_missed == 2

        third = await sweeper.sweep()
        assert third.scanned == 0

    @pytest.mark.asyncio
    async def test_escalated_inquiry_waits_for_operator(self, uow, lifecycle, sweeper, operators, clock):
        """Without an active operator the inquiry stays escalated until a rebalance"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await operators.set_active(op.id, False)

        clock.advance(241)
        report = await sweeper.sweep()

        assert report.escalated == 1
        assert report.reassigned == 0
        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.ESCALATED
        assert stored.assigned_to == op.id
        assert (await uow.inquiries.count_open_by_operator()) == {op.id: 1}

        newcomer = await operators.create_operator("Ben")
        rebalance = await lifecycle.rebalance(clock.advance(5))

        assert rebalance.assigned == 1
        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.ASSIGNED
        assert stored.assigned_to == newcomer.id
        assert stored.escalation_count == 1


class TestVersionGuard:
    """Optimistic concurrency across sessions."""

    @pytest.mark.asyncio
    async def test_stale_write_conflicts(self, uow, lifecycle, operators, session_maker, config_provider, clock):
        """A transition based on an outdated read is refused"""
        await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await uow.commit()

        async with session_maker() as session_a, session_maker() as session_b:
            uow_a = SQLAlchemyUnitOfWork(session_a)
            stale = await uow_a.inquiries.get(inquiry.id)
            await session_a.commit()

            winner = LifecycleService(SQLAlchemyUnitOfWork(session_b), config_provider, clock)
            await winner.assign(inquiry.id)
            await session_b.commit()

            loser = replace(stale)
            loser.mark_replied(clock.advance(5))
            with pytest.raises(TransitionConflictException):
                await uow_a.inquiries.save(loser)
            await session_a.rollback()

            current = await SQLAlchemyUnitOfWork(session_b).inquiries.get(inquiry.id)
            assert current.version == stale.version + 1
            assert current.status == InquiryStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_assign_retries_with_fresh_state(self, uow, lifecycle, operators, monkeypatch):
        """A manual assignment that loses its write re-reads and succeeds"""
        ana = await operators.create_operator("Ana")
        ben = await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        holder = inquiry.assigned_to
        other = ben.id if holder == ana.id else ana.id
        stale = await uow.inquiries.get(inquiry.id)
        await lifecycle.assign(inquiry.id, other, T0 + timedelta(minutes=5))

        reads = []
        real_get_inquiry = lifecycle.get_inquiry

        async def read_stale_once(inquiry_id):
            reads.append(inquiry_id)
            if len(reads) == 1:
                return stale
            return await real_get_inquiry(inquiry_id)

        monkeypatch.setattr(lifecycle, "get_inquiry", read_stale_once)

        now = T0 + timedelta(minutes=10)
        updated = await lifecycle.assign(inquiry.id, holder, now)

        assert len(reads) == 2
        assert updated.assigned_to == holder
        assert updated.version == stale.version + 2
        assert (await uow.operators.get(holder)).last_assigned_at == now
        assert await activity_types(lifecycle, inquiry.id) == [
            ActivityType.CREATED,
            ActivityType.ASSIGNED,
            ActivityType.REASSIGNED,
            ActivityType.REASSIGNED,
        ]

    @pytest.mark.asyncio
    async def test_assign_gives_up_after_retries(self, uow, lifecycle, operators, monkeypatch):
        """Conflicting on every attempt surfaces the conflict and stamps nobody"""
        ana = await operators.create_operator("Ana")
        ben = await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        holder = inquiry.assigned_to
        other = ben.id if holder == ana.id else ana.id
        stale = await uow.inquiries.get(inquiry.id)
        await lifecycle.assign(inquiry.id, other, T0 + timedelta(minutes=5))

        async def always_stale(inquiry_id):
            return stale

        monkeypatch.setattr(lifecycle, "get_inquiry", always_stale)

        with pytest.raises(TransitionConflictException):
            await lifecycle.assign(inquiry.id, holder, T0 + timedelta(minutes=10))

        assert (await uow.operators.get(holder)).last_assigned_at == T0
        assert (await uow.inquiries.get(inquiry.id)).assigned_to == other

    @pytest.mark.asyncio
    async def test_racing_sweeps_escalate_once(self, uow, lifecycle, sweeper, operators, monkeypatch):
        """A second sweep working from the pre-escalation read skips the inquiry"""
        await operators.create_operator("Ana")
        await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        first_holder = inquiry.assigned_to
        stale = await uow.inquiries.get(inquiry.id)
        now = T0 + timedelta(minutes=241)

        first = await sweeper.sweep(now)

        async def overdue_as_before(*args, **kwargs):
            return [stale]

        async def read_before_escalation(inquiry_id):
            return stale

        monkeypatch.setattr(uow.inquiries, "find_overdue", overdue_as_before)
        monkeypatch.setattr(uow.inquiries, "get", read_before_escalation)
        second = await sweeper.sweep(now)
        monkeypatch.undo()

        assert first.escalated == 1
        assert second.scanned == 1
        assert second.escalated == 0
        assert second.skipped == 1
        assert second.notices == []

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.escalation_count == 1
        assert stored.version == stale.version + 2
        assert (await uow.operators.get(first_holder)).total_missed == 1
        types = await activity_types(lifecycle, inquiry.id)
        assert types.count(ActivityType.ESCALATED) == 1


class TestReadSurface:
    """Aggregated views over inquiries."""

    @pytest.mark.asyncio
    async def test_stats_counts(self, lifecycle, operators, clock):
        """Stats group by status and count overdue assignments"""
        await operators.create_operator("Ana")
        await admit(lifecycle, "t/1", T0)
        await admit(lifecycle, "t/2", T0)
        clock.advance(300)

        stats = await lifecycle.stats()

        assert stats["total"] == 2
        assert stats["by_status"]["assigned"] == 2
        assert stats["by_priority"]["normal"] == 2
        assert stats["by_category"] == {"Apps": 2}
        assert stats["overdue"] == 2
