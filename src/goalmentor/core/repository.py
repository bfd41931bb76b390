"""
Collaborator interfaces consumed by the engine.

The engine never talks to a database or a model vendor directly; the host
supplies objects satisfying these protocols. In-memory implementations live
in memory_store.py.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models import (
    Action,
    AvatarStageThreshold,
    Goal,
    Message,
    Milestone,
    ProgressEvent,
    UserProgressState,
)


class PlanRepository(Protocol):
    """Goals, milestones, actions and the progress ledger."""

    async def list_goals(self, user_id: str) -> List[Goal]:
        """Non-deleted goals of a user, newest first."""
        ...

    async def get_active_goal(self, user_id: str, goal_id: Optional[str] = None) -> Optional[Goal]:
        """The named goal if the user owns it, else the newest active goal."""
        ...

    async def get_goal(self, goal_id: str) -> Optional[Goal]: ...

    async def list_milestones(self, goal_id: str) -> List[Milestone]:
        """Non-deleted milestones ordered by order_index."""
        ...

    async def get_milestone(self, milestone_id: str) -> Optional[Milestone]: ...

    async def list_actions(self, milestone_id: str, status: Optional[str] = None) -> List[Action]:
        """Non-deleted actions ordered by created_at."""
        ...

    async def count_actions(self, milestone_id: str, status: Optional[str] = None) -> int: ...

    async def get_action(self, action_id: str) -> Optional[Action]: ...

    async def update_action_status(
        self, action_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Action]:
        """Returns the updated action, or None when it no longer exists."""
        ...

    async def update_milestone_status(
        self, milestone_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Milestone]: ...

    async def update_goal_status(
        self, goal_id: str, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[Goal]: ...

    async def append_progress_event(self, event: ProgressEvent) -> ProgressEvent: ...

    async def list_progress_events(self, user_id: str) -> List[ProgressEvent]:
        """Events newest first."""
        ...

    async def get_user_progress(self, user_id: str) -> UserProgressState: ...

    async def update_user_progress_state(self, user_id: str, state: UserProgressState) -> None: ...

    async def list_avatar_stages(self) -> List[AvatarStageThreshold]: ...


class SessionStore(Protocol):
    """Holds the session blob; put_session merges, None deletes a key."""

    async def get_session(self, user_id: str) -> Dict[str, Any]: ...

    async def put_session(self, user_id: str, partial: Dict[str, Any]) -> None: ...


class MessageLog(Protocol):
    async def append_message(
        self, user_id: str, goal_id: Optional[str], role: str, content: str
    ) -> Message: ...

    async def get_recent_messages(
        self, user_id: str, goal_id: Optional[str], limit: int
    ) -> List[Message]:
        """Most recent messages, newest first."""
        ...

    async def clear_messages(self, user_id: str, goal_id: Optional[str]) -> int: ...


class ChatModel(Protocol):
    """Opaque text completion."""

    async def complete(self, history: List[Dict[str, str]], system_prompt: str) -> str: ...
