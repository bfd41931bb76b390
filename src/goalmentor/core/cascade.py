"""
Completion cascade: what happens after the user confirms an action is done.

Steps, each safe to re-run from persisted state:
    1. action event (+ action marked completed)
    2. milestone pending → in_progress → completed, with a one-off milestone bonus
    3. next pending action across milestones, or a goal bonus when none is left
    4. streak, point total and avatar tier
    5. session pointer moved and a follow-up assistant message appended
    6. completion tone and the guidance handed to the language model

There is no transaction around these steps. A failed progress-event write is
logged and the cascade carries on; a subsequent turn re-resolves the plan and
converges.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple

from ..content.templates import (
    COMPLETION_GUIDANCE,
    GOAL_COMPLETE_MESSAGE,
    NEXT_ACTION_MESSAGE,
    NEXT_STEP_ACTION,
    NEXT_STEP_GOAL_DONE,
    NEXT_STEP_UNKNOWN,
    TONE_PHRASES,
)
from .config import EngineConfig
from .models import (
    ACTION_COMPLETED,
    ACTION_PENDING,
    EVENT_ACTION,
    EVENT_GOAL,
    EVENT_MILESTONE,
    GOAL_COMPLETED,
    MILESTONE_COMPLETED,
    MILESTONE_IN_PROGRESS,
    MILESTONE_PENDING,
    ROLE_ASSISTANT,
    Action,
    Goal,
    Milestone,
    ProgressEvent,
    UserProgressState,
    utcnow,
)
from .plan_context import PlanContext, count_milestone_actions, find_next_pending
from .progress import progress_tone
from .repository import MessageLog, PlanRepository
from .session import SESSION_COMPLETED, SessionStoreAdapter
from .tracker import ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """Outcome of one completion cascade."""
    action: Optional[Action] = None
    events: List[ProgressEvent] = field(default_factory=list)
    user_state: Optional[UserProgressState] = None
    avatar_evolved: bool = False
    milestone_completed: bool = False
    goal_completed: bool = False
    next_milestone: Optional[Milestone] = None
    next_action: Optional[Action] = None
    completion_percent: int = 0
    tone: str = ""
    guidance: str = ""
    already_completed: bool = False
    aborted: bool = False

    @property
    def points(self) -> int:
        return sum(e.points for e in self.events)


class CompletionCascade:
    def __init__(
        self,
        plans: PlanRepository,
        sessions: SessionStoreAdapter,
        messages: MessageLog,
        tracker: Optional[ProgressTracker] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.plans = plans
        self.sessions = sessions
        self.messages = messages
        self.tracker = tracker or ProgressTracker(plans)
        self.config = config or EngineConfig()

    async def complete_action(
        self,
        user_id: str,
        context: PlanContext,
        now: Optional[datetime] = None,
    ) -> CascadeResult:
        """Run the cascade for the action in focus of `context`."""
        now = now or utcnow()
        goal = context.goal
        milestone = context.current_milestone
        action = context.current_action
        if action is None:
            logger.warning(f"[Cascade] No action in focus for goal {goal.id}; nothing to complete")
            return CascadeResult(aborted=True, guidance=self._guidance(goal, "", 0, None, None, False))

        fresh = await self.plans.get_action(action.id)
        if fresh is not None and fresh.status == ACTION_COMPLETED:
            # A duplicate turn got here first
            logger.info(f"[Cascade] Action {action.id} already completed; not completing again")
            return await self._already_completed(goal, fresh)
        if fresh is None:
            logger.warning(f"[Cascade] Action {action.id} no longer exists; nothing to complete")
            return CascadeResult(
                action=action,
                aborted=True,
                guidance=self._guidance(goal, action.title, context.progress.percent, None, None, False),
            )

        result = CascadeResult(action=action)
        event = await self.tracker.record_event(ProgressEvent(
            user_id=user_id,
            goal_id=goal.id,
            milestone_id=milestone.id if milestone else None,
            action_id=action.id,
            kind=EVENT_ACTION,
            points=self.config.action_points,
            timestamp=now,
        ))
        if event is not None:
            result.events.append(event)

        updated = await self.plans.update_action_status(action.id, ACTION_COMPLETED, now)
        if updated is None:
            logger.warning(
                f"[Cascade] Action {action.id} vanished before completion; "
                f"skipping plan advancement"
            )
            result.aborted = True
            result.user_state, result.avatar_evolved = await self._apply_activity(
                user_id, result.events, now.date()
            )
            result.guidance = self._guidance(goal, action.title, context.progress.percent, None, None, False)
            return result
        result.action = updated

        if milestone is not None:
            result.milestone_completed = await self._advance_milestone(
                user_id, goal, milestone, now, result.events
            )

        milestones = await self.plans.list_milestones(goal.id)
        result.next_milestone, result.next_action = await find_next_pending(self.plans, milestones)

        if result.next_action is None:
            event = await self.tracker.record_event(ProgressEvent(
                user_id=user_id,
                goal_id=goal.id,
                kind=EVENT_GOAL,
                points=self.config.goal_points,
                timestamp=now,
            ))
            if event is not None:
                result.events.append(event)

        # Avatar is computed while the goal still counts as active (at 100% when done)
        result.user_state, result.avatar_evolved = await self._apply_activity(
            user_id, result.events, now.date()
        )

        if result.next_action is not None:
            await self._focus_next(user_id, goal, result.next_milestone, result.next_action, now)
        else:
            await self._finish_goal(user_id, goal, now)
            result.goal_completed = True

        result.completion_percent = await self.tracker.goal_percent(goal.id)
        result.tone = progress_tone(result.completion_percent)
        result.guidance = self._guidance(
            goal,
            action.title,
            result.completion_percent,
            result.next_milestone,
            result.next_action,
            result.goal_completed,
        )
        logger.info(
            f"[Cascade] {user_id} completed action {action.id}: "
            f"{result.points} points, goal at {result.completion_percent}%"
        )
        return result

    async def complete_milestone(
        self,
        user_id: str,
        milestone_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[Milestone]:
        """
        Mark a milestone completed by hand.

        Its open actions are force-completed (status and timestamp only, no
        progress events), then the avatar is resynced. Returns None when the
        milestone does not exist or belongs to someone else.
        """
        now = now or utcnow()
        milestone = await self.plans.get_milestone(milestone_id)
        if milestone is None:
            return None
        goal = await self.plans.get_goal(milestone.goal_id)
        if goal is None or goal.user_id != user_id:
            return None

        open_actions = await self.plans.list_actions(milestone_id, ACTION_PENDING)
        await asyncio.gather(*(
            self.plans.update_action_status(a.id, ACTION_COMPLETED, now) for a in open_actions
        ))
        updated = await self.plans.update_milestone_status(milestone_id, MILESTONE_COMPLETED, now)
        logger.info(
            f"[Cascade] Milestone {milestone_id} completed by hand; "
            f"{len(open_actions)} open action(s) closed"
        )
        await self.tracker.recalculate_avatar(user_id)
        return updated

    # ── Steps ───────────────────────────────────────────────────────────────

    async def _advance_milestone(
        self,
        user_id: str,
        goal: Goal,
        milestone: Milestone,
        now: datetime,
        events: List[ProgressEvent],
    ) -> bool:
        """Move the milestone along; True when this completion finished it."""
        current = await self.plans.get_milestone(milestone.id)
        if current is None:
            return False
        counts = await count_milestone_actions(self.plans, milestone.id)

        if counts.total > 0 and counts.completed == counts.total:
            if current.status == MILESTONE_COMPLETED:
                return False
            await self.plans.update_milestone_status(milestone.id, MILESTONE_COMPLETED, now)
            event = await self.tracker.record_event(ProgressEvent(
                user_id=user_id,
                goal_id=goal.id,
                milestone_id=milestone.id,
                kind=EVENT_MILESTONE,
                points=self.config.milestone_points,
                timestamp=now,
            ))
            if event is not None:
                events.append(event)
            return True

        if counts.completed > 0 and current.status == MILESTONE_PENDING:
            await self.plans.update_milestone_status(milestone.id, MILESTONE_IN_PROGRESS)
        return False

    async def _apply_activity(
        self, user_id: str, events: List[ProgressEvent], today: date
    ) -> Tuple[Optional[UserProgressState], bool]:
        try:
            return await self.tracker.apply_activity(
                user_id, sum(e.points for e in events), today
            )
        except Exception as e:
            logger.warning(f"[Cascade] Could not update progress state for {user_id}: {e}")
            return None, False

    async def _focus_next(
        self,
        user_id: str,
        goal: Goal,
        milestone: Milestone,
        action: Action,
        now: datetime,
    ) -> None:
        await self.sessions.update(
            user_id,
            goal_id=goal.id,
            milestone_id=milestone.id,
            action_id=action.id,
            status=None,
            pending_completion=None,
            focus_since=now,
            stage=None,
        )
        description = f"\n{action.description}" if action.description else ""
        await self.messages.append_message(
            user_id,
            goal.id,
            ROLE_ASSISTANT,
            NEXT_ACTION_MESSAGE.format(
                action_title=action.title,
                milestone_title=milestone.title,
                description=description,
            ),
        )

    async def _finish_goal(self, user_id: str, goal: Goal, now: datetime) -> None:
        await self.plans.update_goal_status(goal.id, GOAL_COMPLETED, now)
        await self.sessions.update(
            user_id,
            goal_id=goal.id,
            milestone_id=None,
            action_id=None,
            status=SESSION_COMPLETED,
            pending_completion=None,
            focus_since=None,
            stage=None,
        )
        await self.messages.append_message(
            user_id, goal.id, ROLE_ASSISTANT, GOAL_COMPLETE_MESSAGE.format(goal_title=goal.title)
        )
        logger.info(f"[Cascade] Goal {goal.id} completed for {user_id}")

    async def _already_completed(self, goal: Goal, action: Action) -> CascadeResult:
        milestones = await self.plans.list_milestones(goal.id)
        next_milestone, next_action = await find_next_pending(self.plans, milestones)
        percent = await self.tracker.goal_percent(goal.id)
        return CascadeResult(
            action=action,
            next_milestone=next_milestone,
            next_action=next_action,
            completion_percent=percent,
            tone=progress_tone(percent),
            guidance=self._guidance(
                goal, action.title, percent, next_milestone, next_action, next_action is None
            ),
            already_completed=True,
        )

    @staticmethod
    def _guidance(
        goal: Goal,
        action_title: str,
        percent: int,
        next_milestone: Optional[Milestone],
        next_action: Optional[Action],
        goal_completed: bool,
    ) -> str:
        if goal_completed:
            next_step = NEXT_STEP_GOAL_DONE.format(goal=goal.main_goal)
        elif next_action is not None:
            next_step = NEXT_STEP_ACTION.format(
                next_action_title=next_action.title,
                next_milestone_title=next_milestone.title if next_milestone else "",
            )
        else:
            next_step = NEXT_STEP_UNKNOWN
        return COMPLETION_GUIDANCE.format(
            action_title=action_title,
            tone_phrase=TONE_PHRASES[progress_tone(percent)],
            percent=percent,
            next_step=next_step,
        )
