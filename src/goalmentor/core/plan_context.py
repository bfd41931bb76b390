"""
Plan context resolution: which goal, milestone and action a turn is about.

The context is rebuilt on every turn from the plan repository. Only the
pointer to the item in focus survives between turns, in the session blob, so a
conversation resumes on the same action even if the plan is reordered.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .models import (
    ACTION_COMPLETED,
    ACTION_PENDING,
    GOAL_ACTIVE,
    MILESTONE_COMPLETED,
    Action,
    Goal,
    Milestone,
    utcnow,
)
from .progress import completion_percent
from .repository import PlanRepository
from .session import (
    SESSION_COMPLETED,
    SESSION_NO_PLAN,
    SESSION_NONE,
    ConversationSession,
    SessionStoreAdapter,
)

logger = logging.getLogger(__name__)

# Goal-less markers
NO_GOALS = "no_goals"
GOALS_WITHOUT_PLANS = "goals_without_plans"
GOAL_NOT_FOUND = "goal_not_found"


@dataclass
class ActionCounts:
    """Per-milestone action tallies."""
    total: int = 0
    completed: int = 0
    pending: int = 0


@dataclass
class PlanProgress:
    milestones_completed: int = 0
    total_milestones: int = 0
    actions_completed: int = 0
    total_actions: int = 0

    @property
    def percent(self) -> int:
        return completion_percent(self.actions_completed, self.total_actions)

    def to_dict(self) -> Dict[str, int]:
        return {
            "milestones_completed": self.milestones_completed,
            "total_milestones": self.total_milestones,
            "actions_completed": self.actions_completed,
            "total_actions": self.total_actions,
            "percent": self.percent,
        }


@dataclass
class PlanContext:
    """A goal with a plan, and the action currently in focus (None once the plan is done)."""
    goal: Goal
    milestones: List[Milestone]
    current_milestone: Optional[Milestone]
    current_action: Optional[Action]
    progress: PlanProgress
    action_counts: Dict[str, ActionCounts] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.current_action is None


@dataclass
class GoallessState:
    """No plan to talk about: drives onboarding guidance instead."""
    kind: str
    goals: List[Goal] = field(default_factory=list)


ResolvedContext = Union[PlanContext, GoallessState]


async def count_milestone_actions(
    plans: PlanRepository, milestone_id: str
) -> ActionCounts:
    total, completed, pending = await asyncio.gather(
        plans.count_actions(milestone_id),
        plans.count_actions(milestone_id, ACTION_COMPLETED),
        plans.count_actions(milestone_id, ACTION_PENDING),
    )
    return ActionCounts(total=total, completed=completed, pending=pending)


async def find_next_pending(
    plans: PlanRepository,
    milestones: List[Milestone],
    counts: Optional[Dict[str, ActionCounts]] = None,
) -> Tuple[Optional[Milestone], Optional[Action]]:
    """First pending action of the first milestone (in order) that still has one."""
    for milestone in milestones:
        if counts is not None and counts[milestone.id].pending == 0:
            continue
        pending = await plans.list_actions(milestone.id, ACTION_PENDING)
        if pending:
            return milestone, pending[0]
    return None, None


class PlanContextResolver:
    """Loads the plan a turn is about and keeps the session pointer in sync."""

    def __init__(self, plans: PlanRepository, sessions: SessionStoreAdapter):
        self.plans = plans
        self.sessions = sessions

    async def resolve(self, user_id: str, goal_id: Optional[str] = None) -> ResolvedContext:
        session = await self.sessions.get(user_id)

        if goal_id is not None:
            goal = await self.plans.get_active_goal(user_id, goal_id)
            if goal is None:
                logger.info(f"[PlanContext] Goal {goal_id} not found for user {user_id}")
                await self._clear_pointer(user_id, SESSION_NONE)
                return GoallessState(kind=GOAL_NOT_FOUND)
            milestones = await self.plans.list_milestones(goal.id)
            if not milestones:
                await self._clear_pointer(user_id, SESSION_NO_PLAN)
                return GoallessState(kind=GOALS_WITHOUT_PLANS, goals=[goal])
        else:
            selected = await self._select_goal(user_id, session)
            if isinstance(selected, GoallessState):
                status = SESSION_NONE if selected.kind == NO_GOALS else SESSION_NO_PLAN
                await self._clear_pointer(user_id, status)
                return selected
            goal, milestones = selected

        context = await self.load(goal, milestones, session)
        await self._persist_pointer(user_id, session, context)
        return context

    async def load(
        self,
        goal: Goal,
        milestones: Optional[List[Milestone]] = None,
        session: Optional[ConversationSession] = None,
    ) -> PlanContext:
        """Build the context for a goal without touching the session."""
        if milestones is None:
            milestones = await self.plans.list_milestones(goal.id)

        tallies = await asyncio.gather(
            *(count_milestone_actions(self.plans, m.id) for m in milestones)
        )
        counts = {m.id: c for m, c in zip(milestones, tallies)}

        progress = PlanProgress(
            milestones_completed=sum(1 for m in milestones if m.status == MILESTONE_COMPLETED),
            total_milestones=len(milestones),
            actions_completed=sum(c.completed for c in tallies),
            total_actions=sum(c.total for c in tallies),
        )

        current_milestone, current_action = await self._resume(session, goal, milestones)
        if current_action is None:
            current_milestone, current_action = await find_next_pending(
                self.plans, milestones, counts
            )

        return PlanContext(
            goal=goal,
            milestones=milestones,
            current_milestone=current_milestone,
            current_action=current_action,
            progress=progress,
            action_counts=counts,
        )

    async def _resume(
        self,
        session: Optional[ConversationSession],
        goal: Goal,
        milestones: List[Milestone],
    ) -> Tuple[Optional[Milestone], Optional[Action]]:
        """Keep the action the session points at, if it is still pending in this goal."""
        if session is None or session.goal_id != goal.id or not session.action_id:
            return None, None
        action = await self.plans.get_action(session.action_id)
        if action is None or action.status != ACTION_PENDING:
            return None, None
        for milestone in milestones:
            if milestone.id == action.milestone_id:
                return milestone, action
        return None, None

    async def _select_goal(
        self, user_id: str, session: ConversationSession
    ) -> Union[Tuple[Goal, List[Milestone]], GoallessState]:
        goals = await self.plans.list_goals(user_id)
        if not goals:
            return GoallessState(kind=NO_GOALS)

        # Active goals first, the session goal among them, otherwise newest first
        candidates = sorted(
            goals,
            key=lambda g: (g.status != GOAL_ACTIVE, g.id != session.goal_id),
        )
        for goal in candidates:
            milestones = await self.plans.list_milestones(goal.id)
            if milestones:
                return goal, milestones
        return GoallessState(kind=GOALS_WITHOUT_PLANS, goals=goals)

    async def _persist_pointer(
        self, user_id: str, session: ConversationSession, context: PlanContext
    ) -> None:
        if context.current_action is None:
            await self.sessions.update(
                user_id,
                goal_id=context.goal.id,
                milestone_id=None,
                action_id=None,
                status=SESSION_COMPLETED,
                pending_completion=None,
                focus_since=None,
                stage=None,
            )
            return

        fields = dict(
            goal_id=context.goal.id,
            milestone_id=context.current_milestone.id,
            action_id=context.current_action.id,
            status=None,
        )
        moved = (
            session.goal_id != context.goal.id
            or session.action_id != context.current_action.id
        )
        if moved:
            fields.update(focus_since=utcnow(), stage=None)
        elif session.focus_since is None:
            fields.update(focus_since=utcnow())
        await self.sessions.update(user_id, **fields)

    async def _clear_pointer(self, user_id: str, status: str) -> None:
        await self.sessions.update(
            user_id,
            goal_id=None,
            milestone_id=None,
            action_id=None,
            status=status,
            pending_completion=None,
            focus_since=None,
            stage=None,
        )
