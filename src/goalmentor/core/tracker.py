"""
ProgressTracker: reads completion aggregates and writes the user progress state.

Avatar tier is driven by the average completion percentage of the user's
active goals; the point total is a display counter and never sets the tier.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Optional, Tuple

from .models import GOAL_ACTIVE, Goal, ProgressEvent, UserProgressState
from .plan_context import count_milestone_actions
from .progress import average_completion_percent, avatar_for_percent, completion_percent, next_streak
from .repository import PlanRepository

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(self, plans: PlanRepository):
        self.plans = plans

    async def goal_counts(self, goal_id: str) -> Tuple[int, int]:
        """(completed, total) actions across every milestone of a goal."""
        milestones = await self.plans.list_milestones(goal_id)
        tallies = await asyncio.gather(
            *(count_milestone_actions(self.plans, m.id) for m in milestones)
        )
        return sum(t.completed for t in tallies), sum(t.total for t in tallies)

    async def goal_percent(self, goal_id: str) -> int:
        completed, total = await self.goal_counts(goal_id)
        return completion_percent(completed, total)

    async def average_completion(self, user_id: str) -> Tuple[int, List[Tuple[Goal, int]]]:
        """Average completion over active goals, plus each goal's own percentage."""
        goals = [g for g in await self.plans.list_goals(user_id) if g.status == GOAL_ACTIVE]
        if not goals:
            return 0, []
        counts = await asyncio.gather(*(self.goal_counts(g.id) for g in goals))
        per_goal = [(g, completion_percent(c, t)) for g, (c, t) in zip(goals, counts)]
        return average_completion_percent(counts), per_goal

    async def record_event(self, event: ProgressEvent) -> Optional[ProgressEvent]:
        """Append a progress event; a failed write is logged and reported as None."""
        try:
            return await self.plans.append_progress_event(event)
        except Exception as e:
            logger.warning(
                f"[Tracker] Could not record {event.kind} event for goal {event.goal_id}: {e}"
            )
            return None

    async def apply_activity(
        self, user_id: str, points: int, today: date
    ) -> Tuple[UserProgressState, bool]:
        """
        Fold one activity day and its points into the user progress state.

        Returns the new state and whether the avatar moved up a level.
        """
        previous = await self.plans.get_user_progress(user_id)
        average, _ = await self.average_completion(user_id)
        stages = await self.plans.list_avatar_stages()
        level, stage = avatar_for_percent(average, stages)

        state = previous.copy(
            total_progress=previous.total_progress + max(points, 0),
            consistency_streak=next_streak(
                today, previous.last_activity_date, previous.consistency_streak
            ),
            last_activity_date=today,
            avatar_level=level,
            avatar_stage=stage,
        )
        await self.plans.update_user_progress_state(user_id, state)
        return state, level > previous.avatar_level

    async def recalculate_avatar(self, user_id: str) -> Tuple[UserProgressState, int]:
        """Resync avatar level/stage with current goal completion (no points, no streak)."""
        previous = await self.plans.get_user_progress(user_id)
        average, _ = await self.average_completion(user_id)
        level, stage = avatar_for_percent(average, await self.plans.list_avatar_stages())
        state = previous.copy(avatar_level=level, avatar_stage=stage)
        await self.plans.update_user_progress_state(user_id, state)
        logger.info(f"[Tracker] Avatar for {user_id}: level {level} ({stage}) at {average}%")
        return state, average
