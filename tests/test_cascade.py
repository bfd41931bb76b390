"""
Tests for the completion cascade and the progress tracker behind it.

- Action, milestone and goal events with their point values
- Milestone status transitions and the one-off milestone bonus
- Avatar tier driven by average completion, not by points
- Idempotency and partial-failure behaviour
"""

from datetime import date

import pytest

from goalmentor.core.cascade import CompletionCascade
from goalmentor.core.models import (
    ACTION_COMPLETED,
    EVENT_ACTION,
    EVENT_GOAL,
    EVENT_MILESTONE,
    GOAL_COMPLETED,
    MILESTONE_COMPLETED,
    MILESTONE_IN_PROGRESS,
    ROLE_ASSISTANT,
    ProgressEvent,
    UserProgressState,
    utcnow,
)
from goalmentor.core.memory_store import InMemoryPlanRepository
from goalmentor.core.plan_context import PlanContextResolver
from goalmentor.core.progress import TONE_COMPLETE, TONE_EARLY
from goalmentor.core.session import SESSION_COMPLETED
from goalmentor.core.tracker import ProgressTracker

USER = "user-1"


@pytest.fixture
def cascade(plans, sessions, messages):
    return CompletionCascade(plans, sessions, messages)


async def _complete_current(resolver, cascade, goal_id):
    context = await resolver.resolve(USER, goal_id)
    return await cascade.complete_action(USER, context)


def _kinds(events):
    return [e.kind for e in events]


class TestCompleteAction:
    @pytest.mark.asyncio
    async def test_first_action(self, resolver, cascade, plans, sessions, messages, plan):
        result = await _complete_current(resolver, cascade, plan.goal.id)

        assert result.action.status == ACTION_COMPLETED
        assert _kinds(result.events) == [EVENT_ACTION]
        assert result.points == 5
        assert (await plans.get_milestone("m1")).status == MILESTONE_IN_PROGRESS
        assert result.next_action.id == "a2"
        assert result.completion_percent == 25
        assert result.tone == TONE_EARLY
        assert "Jog 1 km" in result.guidance

        session = await sessions.get(USER)
        assert session.action_id == "a2"
        assert session.focus_since is not None

        recent = await messages.get_recent_messages(USER, plan.goal.id, 1)
        assert recent[0].role == ROLE_ASSISTANT
        assert "Jog 1 km" in recent[0].content

    @pytest.mark.asyncio
    async def test_last_action_of_milestone(self, resolver, cascade, plans, plan):
        await _complete_current(resolver, cascade, plan.goal.id)
        result = await _complete_current(resolver, cascade, plan.goal.id)

        assert result.milestone_completed
        assert _kinds(result.events) == [EVENT_ACTION, EVENT_MILESTONE]
        assert result.points == 15
        assert (await plans.get_milestone("m1")).status == MILESTONE_COMPLETED
        assert result.next_milestone.id == "m2"
        assert result.next_action.id == "a3"

    @pytest.mark.asyncio
    async def test_full_plan_event_counts(self, resolver, cascade, plans, sessions, plan):
        """A 2x2 plan yields 4 action, 2 milestone and 1 goal events."""
        results = [await _complete_current(resolver, cascade, plan.goal.id) for _ in range(4)]

        events = await plans.list_progress_events(USER)
        assert _kinds(events).count(EVENT_ACTION) == 4
        assert _kinds(events).count(EVENT_MILESTONE) == 2
        assert _kinds(events).count(EVENT_GOAL) == 1

        last = results[-1]
        assert last.goal_completed
        assert last.completion_percent == 100
        assert last.tone == TONE_COMPLETE
        assert (await plans.get_goal(plan.goal.id)).status == GOAL_COMPLETED
        assert (await sessions.get(USER)).status == SESSION_COMPLETED

        state = await plans.get_user_progress(USER)
        assert state.total_progress == 4 * 5 + 2 * 10 + 20
        assert state.avatar_level == 5
        assert state.consistency_streak == 1

    @pytest.mark.asyncio
    async def test_avatar_follows_average_completion(self, resolver, cascade, plans, plan):
        levels = []
        for _ in range(3):
            result = await _complete_current(resolver, cascade, plan.goal.id)
            levels.append(result.user_state.avatar_level)
        # 25% -> sprout, 50% -> sapling, 75% -> tree
        assert levels == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_points_do_not_drive_avatar(self, resolver, cascade, plans, plan):
        plans.set_user_progress(USER, UserProgressState(total_progress=10_000))
        result = await _complete_current(resolver, cascade, plan.goal.id)
        assert result.user_state.total_progress == 10_005
        assert result.user_state.avatar_level == 2

    @pytest.mark.asyncio
    async def test_streak_resets_after_gap(self, resolver, cascade, plans, plan):
        plans.set_user_progress(
            USER, UserProgressState(consistency_streak=4, last_activity_date=date(2000, 1, 1))
        )
        result = await _complete_current(resolver, cascade, plan.goal.id)
        assert result.user_state.consistency_streak == 1
        assert result.user_state.last_activity_date == utcnow().date()

    @pytest.mark.asyncio
    async def test_already_completed_is_a_no_op(self, resolver, cascade, plans, plan):
        context = await resolver.resolve(USER, plan.goal.id)
        await cascade.complete_action(USER, context)
        again = await cascade.complete_action(USER, context)

        assert again.already_completed
        assert again.events == []
        assert len(await plans.list_progress_events(USER)) == 1

    @pytest.mark.asyncio
    async def test_vanished_action_aborts(self, resolver, cascade, plans, plan):
        context = await resolver.resolve(USER, plan.goal.id)
        plans.delete_action("a1")
        result = await cascade.complete_action(USER, context)
        assert result.aborted
        assert result.events == []
        assert await plans.list_progress_events(USER) == []
        assert (await plans.get_user_progress(USER)).total_progress == 0
        assert result.next_action is None
        assert (await plans.get_milestone("m1")).status != MILESTONE_COMPLETED


class FailingEventRepository(InMemoryPlanRepository):
    async def append_progress_event(self, event):
        raise RuntimeError("event store down")


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_event_failure_does_not_stop_cascade(self, sessions, messages):
        plans = FailingEventRepository()
        goal = plans.add_goal(USER, "Read more", goal_id="g2")
        milestone = plans.add_milestone(goal.id, "Start", 0, milestone_id="m")
        plans.add_action(milestone.id, "Read 10 pages", action_id="x1")
        plans.add_action(milestone.id, "Read 20 pages", action_id="x2")

        resolver = PlanContextResolver(plans, sessions)
        cascade = CompletionCascade(plans, sessions, messages)

        result = await _complete_current(resolver, cascade, goal.id)
        assert result.events == []
        assert (await plans.get_action("x1")).status == ACTION_COMPLETED
        assert result.next_action.id == "x2"
        assert (await sessions.get(USER)).action_id == "x2"


class TestCompleteMilestone:
    @pytest.mark.asyncio
    async def test_force_completes_without_events(self, cascade, plans, plan):
        milestone = await cascade.complete_milestone(USER, "m1")

        assert milestone.status == MILESTONE_COMPLETED
        assert (await plans.get_action("a1")).status == ACTION_COMPLETED
        assert (await plans.get_action("a2")).status == ACTION_COMPLETED
        assert (await plans.get_action("a1")).completed_at is not None
        assert await plans.list_progress_events(USER) == []
        # 50% average -> sapling
        assert (await plans.get_user_progress(USER)).avatar_level == 3

    @pytest.mark.asyncio
    async def test_unknown_milestone(self, cascade, plan):
        assert await cascade.complete_milestone(USER, "missing") is None

    @pytest.mark.asyncio
    async def test_other_users_milestone(self, cascade, plans, plan):
        assert await cascade.complete_milestone("intruder", "m1") is None
        assert (await plans.get_action("a1")).status != ACTION_COMPLETED


class TestTracker:
    @pytest.mark.asyncio
    async def test_average_over_active_goals_only(self, plans, plan):
        other = plans.add_goal(USER, "Paused goal", goal_id="g-paused", status="paused")
        m = plans.add_milestone(other.id, "Only", 0)
        plans.add_action(m.id, "Something")
        await plans.update_action_status("a1", ACTION_COMPLETED)

        tracker = ProgressTracker(plans)
        average, per_goal = await tracker.average_completion(USER)
        assert average == 25
        assert [(g.id, pct) for g, pct in per_goal] == [("g1", 25)]

    @pytest.mark.asyncio
    async def test_recalculate_avatar(self, plans, plan):
        for action_id in ("a1", "a2", "a3"):
            await plans.update_action_status(action_id, ACTION_COMPLETED)
        plans.set_user_progress(USER, UserProgressState(total_progress=40))

        state, average = await ProgressTracker(plans).recalculate_avatar(USER)
        assert average == 75
        assert (state.avatar_level, state.avatar_stage) == (4, "tree")
        assert state.total_progress == 40

    @pytest.mark.asyncio
    async def test_record_event_failure_returns_none(self):
        tracker = ProgressTracker(FailingEventRepository())
        event = ProgressEvent(user_id=USER, goal_id="g", kind=EVENT_ACTION, points=5)
        assert await tracker.record_event(event) is None
