"""
In-memory collaborators for the mentor engine.

Used by the demo server and the test-suite. Each store keeps plain dicts keyed
by id; nothing survives a restart.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .models import (
    ACTION_PENDING,
    GOAL_ACTIVE,
    MILESTONE_PENDING,
    Action,
    AvatarStageThreshold,
    Goal,
    Message,
    Milestone,
    ProgressEvent,
    UserProgressState,
)
from .progress import DEFAULT_AVATAR_STAGES
from .session import merge_session_patch


_TICK = timedelta(microseconds=1)


def _new_id() -> str:
    return str(uuid.uuid4())[:8]


class InMemoryPlanRepository:
    """Goals, milestones, actions, progress events and user progress in memory."""

    def __init__(self, avatar_stages: Optional[List[AvatarStageThreshold]] = None):
        self._goals: Dict[str, Goal] = {}
        self._milestones: Dict[str, Milestone] = {}
        self._actions: Dict[str, Action] = {}
        self._events: List[ProgressEvent] = []
        self._users: Dict[str, UserProgressState] = {}
        self._avatar_stages = list(
            DEFAULT_AVATAR_STAGES if avatar_stages is None else avatar_stages
        )

    # ── Seeding ─────────────────────────────────────────────────────────────

    def add_goal(
        self,
        user_id: str,
        title: str,
        main_goal: Optional[str] = None,
        goal_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Goal:
        goal = Goal(
            id=goal_id or _new_id(),
            user_id=user_id,
            title=title,
            main_goal=main_goal or title,
            **kwargs,
        )
        self._goals[goal.id] = goal
        return goal

    def add_milestone(
        self,
        goal_id: str,
        title: str,
        order_index: int,
        milestone_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Milestone:
        milestone = Milestone(
            id=milestone_id or _new_id(),
            goal_id=goal_id,
            title=title,
            order_index=order_index,
            **kwargs,
        )
        self._milestones[milestone.id] = milestone
        return milestone

    def add_action(
        self,
        milestone_id: str,
        title: str,
        action_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Action:
        milestone = self._milestones[milestone_id]
        goal = self._goals[milestone.goal_id]
        action = Action(
            id=action_id or _new_id(),
            milestone_id=milestone_id,
            user_id=goal.user_id,
            title=title,
            **kwargs,
        )
        self._actions[action.id] = action
        return action

    def delete_action(self, action_id: str) -> None:
        """Soft-delete, the way the host store hides rows."""
        if action_id in self._actions:
            self._actions[action_id] = replace(self._actions[action_id], is_deleted=True)

    def set_user_progress(self, user_id: str, state: UserProgressState) -> None:
        self._users[user_id] = state

    # ── PlanRepository ──────────────────────────────────────────────────────

    async def list_goals(self, user_id: str) -> List[Goal]:
        goals = [g for g in self._goals.values() if g.user_id == user_id and not g.is_deleted]
        return sorted(goals, key=lambda g: g.created_at, reverse=True)

    async def get_active_goal(self, user_id: str, goal_id: Optional[str] = None) -> Optional[Goal]:
        if goal_id is not None:
            goal = self._goals.get(goal_id)
            if goal is None or goal.is_deleted or goal.user_id != user_id:
                return None
            return goal
        for goal in await self.list_goals(user_id):
            if goal.status == GOAL_ACTIVE:
                return goal
        return None

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        goal = self._goals.get(goal_id)
        return goal if goal is not None and not goal.is_deleted else None

    async def list_milestones(self, goal_id: str) -> List[Milestone]:
        milestones = [
            m for m in self._milestones.values() if m.goal_id == goal_id and not m.is_deleted
        ]
        return sorted(milestones, key=lambda m: m.order_index)

    async def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        milestone = self._milestones.get(milestone_id)
        return milestone if milestone is not None and not milestone.is_deleted else None

    async def list_actions(self, milestone_id: str, status: Optional[str] = None) -> List[Action]:
        actions = [
            a for a in self._actions.values()
            if a.milestone_id == milestone_id
            and not a.is_deleted
            and (status is None or a.status == status)
        ]
        return sorted(actions, key=lambda a: a.created_at)

    async def count_actions(self, milestone_id: str, status: Optional[str] = None) -> int:
        return len(await self.list_actions(milestone_id, status))

    async def get_action(self, action_id: str) -> Optional[Action]:
        action = self._actions.get(action_id)
        return action if action is not None and not action.is_deleted else None

    async def update_action_status(
        self, action_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Action]:
        action = await self.get_action(action_id)
        if action is None:
            return None
        updated = replace(
            action,
            status=status,
            completed_at=completed_at if status != ACTION_PENDING else None,
        )
        self._actions[action_id] = updated
        return updated

    async def update_milestone_status(
        self, milestone_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Milestone]:
        milestone = await self.get_milestone(milestone_id)
        if milestone is None:
            return None
        updated = replace(
            milestone,
            status=status,
            completed_at=completed_at if status != MILESTONE_PENDING else None,
        )
        self._milestones[milestone_id] = updated
        return updated

    async def update_goal_status(
        self, goal_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Goal]:
        goal = await self.get_goal(goal_id)
        if goal is None:
            return None
        updated = replace(goal, status=status, completed_at=completed_at)
        self._goals[goal_id] = updated
        return updated

    async def append_progress_event(self, event: ProgressEvent) -> ProgressEvent:
        self._events.append(event)
        return event

    async def list_progress_events(self, user_id: str) -> List[ProgressEvent]:
        return [e for e in reversed(self._events) if e.user_id == user_id]

    async def get_user_progress(self, user_id: str) -> UserProgressState:
        return self._users.get(user_id, UserProgressState())

    async def update_user_progress_state(self, user_id: str, state: UserProgressState) -> None:
        self._users[user_id] = state

    async def list_avatar_stages(self) -> List[AvatarStageThreshold]:
        return sorted(self._avatar_stages, key=lambda s: s.level)


class InMemorySessionStore:
    """Session blobs keyed by user id, merged with the tombstone rule."""

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}

    async def get_session(self, user_id: str) -> Dict[str, Any]:
        return dict(self._sessions.get(user_id, {}))

    async def put_session(self, user_id: str, partial: Dict[str, Any]) -> None:
        self._sessions[user_id] = merge_session_patch(self._sessions.get(user_id, {}), partial)

    def delete_session(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)


class InMemoryMessageLog:
    """Chat history per user and goal."""

    def __init__(self):
        self._messages: List[Message] = []

    async def append_message(
        self, user_id: str, goal_id: Optional[str], role: str, content: str
    ) -> Message:
        message = Message(user_id=user_id, role=role, content=content, goal_id=goal_id)
        if self._messages and message.created_at <= self._messages[-1].created_at:
            # Keep created_at strictly increasing so "newest first" is well-defined
            message = replace(message, created_at=self._messages[-1].created_at + _TICK)
        self._messages.append(message)
        return message

    async def get_recent_messages(
        self, user_id: str, goal_id: Optional[str], limit: int
    ) -> List[Message]:
        matching = [
            m for m in self._messages if m.user_id == user_id and m.goal_id == goal_id
        ]
        return list(reversed(matching))[:limit]

    async def clear_messages(self, user_id: str, goal_id: Optional[str]) -> int:
        before = len(self._messages)
        self._messages = [
            m for m in self._messages if not (m.user_id == user_id and m.goal_id == goal_id)
        ]
        return before - len(self._messages)

