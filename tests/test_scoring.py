"""
Tests for reply scoring, outcome revision and operator aggregates.
"""

from datetime import timedelta

import pytest

from inquiry_desk.config import ActivityType, InquiryStatus, OutcomeSignal
from inquiry_desk.core import (
    AggregateUpdateException,
    InvalidTransitionException,
    ResourceNotFoundException,
    TransitionConflictException,
    ValidationException,
)
from inquiry_desk.scoring.domain import AggregateCalculator, ScoreCalculator, ScoringConfig

from conftest import T0, admit

GOOD_BODY = (
    "Recharge handles recurring billing at checkout and lets subscribers skip "
    "or swap boxes from the customer portal without contacting you."
)


@pytest.fixture
def scoring_config():
    return ScoringConfig()


class TestScoreCalculator:
    """Pure scoring arithmetic."""

    def test_speed_decays_to_floor(self, scoring_config):
        """Speed falls with elapsed time and stops at the floor"""
        early = ScoreCalculator.speed(30, 240, scoring_config)
        later = ScoreCalculator.speed(120, 240, scoring_config)

        assert early == 39
        assert later < early
        assert ScoreCalculator.speed(240, 240, scoring_config) == 0
        assert ScoreCalculator.speed(900, 240, scoring_config) == 0

    def test_speed_never_exceeds_maximum(self, scoring_config):
        """An instant reply earns exactly the maximum"""
        assert ScoreCalculator.speed(0, 240, scoring_config) == 40
        assert ScoreCalculator.speed(-5, 240, scoring_config) == 40

    def test_quality_length_and_placeholders(self, scoring_config):
        """Full length points plus clean points, minus placeholder text"""
        assert ScoreCalculator.quality(GOOD_BODY, scoring_config) == 30
        assert ScoreCalculator.quality(GOOD_BODY + " TODO: link", scoring_config) == 20
        assert ScoreCalculator.quality("   ", scoring_config) == 0
        assert ScoreCalculator.quality("Long answer. " * 200, scoring_config) == 20

    def test_short_reply_gets_partial_length_points(self, scoring_config):
        """Length points scale below the minimum length"""
        assert ScoreCalculator.quality("a" * 40, scoring_config) == 10 + 10

    def test_outcome_is_neutral_without_signal(self, scoring_config):
        """No downstream signal scores half of the outcome maximum"""
        assert ScoreCalculator.outcome(None, scoring_config) == 15
        assert ScoreCalculator.outcome(OutcomeSignal.RESOLVED, scoring_config) == 30
        assert ScoreCalculator.outcome(OutcomeSignal.UNRESOLVED, scoring_config) == 0

    def test_revise_outcome_keeps_speed_and_quality(self, scoring_config):
        """Only the outcome and the total move"""
        original = ScoreCalculator.score(GOOD_BODY, 30, 240, scoring_config)
        revised = ScoreCalculator.revise_outcome(original, OutcomeSignal.THANKED, scoring_config)

        assert (revised.speed, revised.quality) == (original.speed, original.quality)
        assert revised.outcome == 25
        assert revised.total == original.total + 10

    def test_weights_apply_to_total(self):
        """Component weights scale the total"""
        config = ScoringConfig(speed_weight=2.0, quality_weight=0.5, outcome_weight=0.0)

        assert ScoreCalculator.total(10, 20, 30, config) == 30

    def test_invalid_config_is_rejected(self):
        """Bounds that contradict each other fail validation"""
        with pytest.raises(ValueError):
            ScoringConfig(speed_floor=50, speed_max=40)

    def test_replay_of_no_replies(self):
        """An operator with no replies replays to zeros"""
        aggregates = AggregateCalculator.replay([])

        assert aggregates.total_replied == 0
        assert aggregates.total_score == 0
        assert aggregates.avg_reply_time == 0.0


class TestSubmitReply:
    """Reply submission against stored inquiries."""

    @pytest.mark.asyncio
    async def test_prompt_reply_scores_near_maximum(self, uow, lifecycle, scoring, operators):
        """A reply 30 minutes into a 240 minute window keeps most of the speed points"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        result = await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=30))

        assert result.aggregates_updated is True
        assert result.reply.score.speed == 39
        assert result.reply.score.quality == 30
        assert result.reply.score.outcome == 15
        assert result.reply.score.total == 84
        assert result.reply.reply_time_minutes == pytest.approx(30.0)

        stored_inquiry = await uow.inquiries.get(inquiry.id)
        assert stored_inquiry.status == InquiryStatus.REPLIED
        assert stored_inquiry.replied_at == T0 + timedelta(minutes=30)

        stored_operator = await uow.operators.get(op.id)
        assert stored_operator.total_replied == 1
        assert stored_operator.total_score == 84
        assert stored_operator.avg_reply_time == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_aggregates_match_replay(self, uow, lifecycle, scoring, operators):
        """Incremental aggregates equal a replay of the operator's replies"""
        op = await operators.create_operator("Ana")
        first = await admit(lifecycle, "t/1", T0)
        second = await admit(lifecycle, "t/2", T0 + timedelta(seconds=1))

        await scoring.submit_reply(first.id, op.id, GOOD_BODY, T0 + timedelta(minutes=30))
        await scoring.submit_reply(second.id, op.id, GOOD_BODY, T0 + timedelta(minutes=90, seconds=1))

        stored, replayed = await scoring.verify_aggregates(op.id)

        assert stored.matches(replayed)
        assert stored.total_replied == 2
        assert stored.avg_reply_time == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_late_reply_gets_speed_floor(self, lifecycle, scoring, operators):
        """Past the deadline the holder still replies, at the floor"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        result = await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=300))

        assert result.reply.score.speed == 0
        assert result.reply.score.total == 45

    @pytest.mark.asyncio
    async def test_previous_holder_gets_speed_floor(self, uow, lifecycle, sweeper, scoring, operators):
        """Replying after losing the inquiry to escalation scores no speed"""
        await operators.create_operator("Ana")
        await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        first_holder = inquiry.assigned_to

        await sweeper.sweep(T0 + timedelta(minutes=241))
        assert (await uow.inquiries.get(inquiry.id)).assigned_to != first_holder

        result = await scoring.submit_reply(inquiry.id, first_holder, GOOD_BODY, T0 + timedelta(minutes=250))

        assert result.reply.score.speed == 0
        assert result.reply.reply_time_minutes == pytest.approx(250.0)
        assert (await uow.operators.get(first_holder)).avg_reply_time == pytest.approx(250.0)
        assert (await uow.inquiries.get(inquiry.id)).status == InquiryStatus.REPLIED

    @pytest.mark.asyncio
    async def test_reply_to_escalated_inquiry(self, uow, lifecycle, sweeper, scoring, operators):
        """An escalated inquiry waiting for an operator can still be answered"""
        ana = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await operators.set_active(ana.id, False)

        await sweeper.sweep(T0 + timedelta(minutes=241))
        assert (await uow.inquiries.get(inquiry.id)).status == InquiryStatus.ESCALATED

        result = await scoring.submit_reply(inquiry.id, ana.id, GOOD_BODY, T0 + timedelta(minutes=245))

        assert result.reply.score.speed == 0
        assert (await uow.inquiries.get(inquiry.id)).status == InquiryStatus.REPLIED

    @pytest.mark.asyncio
    async def test_second_reply_is_rejected(self, uow, lifecycle, scoring, operators):
        """A replied inquiry is terminal"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=5))

        with pytest.raises(InvalidTransitionException):
            await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=6))

        assert len(await scoring.replies_for_inquiry(inquiry.id)) == 1
        assert (await uow.operators.get(op.id)).total_replied == 1

    @pytest.mark.asyncio
    async def test_blank_body_is_rejected(self, lifecycle, scoring, operators):
        """Whitespace is not a reply"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        with pytest.raises(ValidationException):
            await scoring.submit_reply(inquiry.id, op.id, "   \n", T0 + timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_unknown_operator(self, lifecycle, scoring, operators):
        """Replies need a known operator"""
        await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        with pytest.raises(ResourceNotFoundException):
            await scoring.submit_reply(inquiry.id, "00000000-0000-0000-0000-000000000000", GOOD_BODY)

    @pytest.mark.asyncio
    async def test_failed_aggregate_update_keeps_reply(self, uow, lifecycle, scoring, operators, monkeypatch):
        """The reply survives a failed aggregate update and recompute repairs it"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)

        async def broken_apply_reply(operator_id, reply_total):
            raise AggregateUpdateException(operator_id, "simulated")

        monkeypatch.setattr(uow.operators, "apply_reply", broken_apply_reply)
        result = await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=30))
        monkeypatch.undo()

        assert result.aggregates_updated is False
        assert len(await scoring.replies_for_inquiry(inquiry.id)) == 1
        assert (await uow.operators.get(op.id)).total_replied == 0

        before, after = await scoring.recompute_aggregates(op.id)

        assert not before.matches(after)
        stored = await uow.operators.get(op.id)
        assert stored.total_replied == 1
        assert stored.total_score == 84


class TestReplyRaces:
    """A reply that loses its write to a concurrent transition."""

    @pytest.mark.asyncio
    async def test_reply_retried_after_losing_to_sweep(self, uow, lifecycle, sweeper, scoring, operators, monkeypatch):
        """The reply is re-read and accepted against the swept inquiry"""
        await operators.create_operator("Ana")
        await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        first_holder = inquiry.assigned_to
        stale = await uow.inquiries.get(inquiry.id)

        await sweeper.sweep(T0 + timedelta(minutes=241))

        reads = []
        real_get_inquiry = lifecycle.get_inquiry

        async def read_stale_once(inquiry_id):
            reads.append(inquiry_id)
            if len(reads) == 1:
                return stale
            return await real_get_inquiry(inquiry_id)

        monkeypatch.setattr(lifecycle, "get_inquiry", read_stale_once)

        result = await scoring.submit_reply(inquiry.id, first_holder, GOOD_BODY, T0 + timedelta(minutes=245))

        assert len(reads) == 2
        assert result.reply.score.speed == 0
        assert result.aggregates_updated is True

        stored = await uow.inquiries.get(inquiry.id)
        assert stored.status == InquiryStatus.REPLIED
        assert stored.escalation_count == 1
        assert [r.id for r in await uow.replies.list_for_inquiry(inquiry.id)] == [result.reply.id]

    @pytest.mark.asyncio
    async def test_reply_gives_up_after_retries(self, uow, lifecycle, scoring, operators, monkeypatch):
        """A reply that conflicts on every attempt surfaces the conflict"""
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
            await scoring.submit_reply(inquiry.id, holder, GOOD_BODY, T0 + timedelta(minutes=10))

        assert await uow.replies.list_for_inquiry(inquiry.id) == []
        assert (await uow.operators.get(holder)).total_replied == 0
        assert (await uow.inquiries.get(inquiry.id)).assigned_to == other


class TestOutcomeRevision:
    """Downstream outcome signals."""

    @pytest.mark.asyncio
    async def test_resolved_moves_operator_score(self, uow, lifecycle, scoring, operators, clock):
        """Revision changes the outcome and total and shifts the operator score by the delta"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        result = await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=30))
        clock.advance(60)

        revised = await scoring.revise_outcome(result.reply.id, OutcomeSignal.RESOLVED)

        assert revised.score.speed == 39
        assert revised.score.quality == 30
        assert revised.score.outcome == 30
        assert revised.score.total == 99
        assert revised.outcome_signal == OutcomeSignal.RESOLVED

        assert (await uow.operators.get(op.id)).total_score == 99
        stored_reply = await uow.replies.get(result.reply.id)
        assert stored_reply.score.total == 99

        activity = await lifecycle.activity_for(inquiry.id)
        assert activity[-1].type == ActivityType.OUTCOME_REVISED

        stored, replayed = await scoring.verify_aggregates(op.id)
        assert stored.matches(replayed)

    @pytest.mark.asyncio
    async def test_unknown_reply(self, scoring):
        """Revising a missing reply is a not-found error"""
        with pytest.raises(ResourceNotFoundException):
            await scoring.revise_outcome("00000000-0000-0000-0000-000000000000", OutcomeSignal.THANKED)


class TestRecompute:
    """Rebuilding aggregates from reply history."""

    @pytest.mark.asyncio
    async def test_recompute_repairs_drift(self, uow, lifecycle, scoring, operators):
        """Drifted totals are replaced by the replayed values"""
        op = await operators.create_operator("Ana")
        inquiry = await admit(lifecycle, "t/1", T0)
        await scoring.submit_reply(inquiry.id, op.id, GOOD_BODY, T0 + timedelta(minutes=30))
        await uow.operators.adjust_score(op.id, 500)

        stored, replayed = await scoring.verify_aggregates(op.id)
        assert not stored.matches(replayed)

        before, after = await scoring.recompute_aggregates(op.id)

        assert before.total_score == 584
        assert after.total_score == 84
        assert (await uow.operators.get(op.id)).total_score == 84

    @pytest.mark.asyncio
    async def test_recompute_keeps_missed_count(self, uow, lifecycle, sweeper, scoring, operators):
        """total_missed is not derived from replies"""
        await operators.create_operator("Ana")
        await operators.create_operator("Ben")
        inquiry = await admit(lifecycle, "t/1", T0)
        await sweeper.sweep(T0 + timedelta(minutes=241))

        await scoring.recompute_aggregates(inquiry.assigned_to)

        assert (await uow.operators.get(inquiry.assigned_to)).total_missed == 1

    @pytest.mark.asyncio
    async def test_replies_for_operator_newest_first(self, lifecycle, scoring, operators):
        """Operator history is ordered newest first and honours the limit"""
        op = await operators.create_operator("Ana")
        first = await admit(lifecycle, "t/1", T0)
        second = await admit(lifecycle, "t/2", T0 + timedelta(seconds=1))
        await scoring.submit_reply(first.id, op.id, GOOD_BODY, T0 + timedelta(minutes=10))
        await scoring.submit_reply(second.id, op.id, GOOD_BODY, T0 + timedelta(minutes=20))

        replies = await scoring.replies_for_operator(op.id)
        latest = await scoring.replies_for_operator(op.id, limit=1)

        assert [r.inquiry_id for r in replies] == [second.id, first.id]
        assert [r.inquiry_id for r in latest] == [second.id]
