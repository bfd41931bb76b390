"""
Plan and progress records shared by the orchestration engine.

Goals decompose into ordered milestones, milestones into actions. Progress
events are append-only; the user progress state is the gamified summary the
completion cascade keeps up to date.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

# Goal statuses
GOAL_ACTIVE = "active"
GOAL_COMPLETED = "completed"
GOAL_PAUSED = "paused"

# Milestone statuses
MILESTONE_PENDING = "pending"
MILESTONE_IN_PROGRESS = "in_progress"
MILESTONE_COMPLETED = "completed"

# Action statuses
ACTION_PENDING = "pending"
ACTION_COMPLETED = "completed"

# Progress event kinds
EVENT_ACTION = "action"
EVENT_MILESTONE = "milestone"
EVENT_GOAL = "goal"

# Message roles
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Goal:
    """A long-term user objective."""
    id: str
    user_id: str
    title: str
    main_goal: str
    description: Optional[str] = None
    status: str = GOAL_ACTIVE
    is_deleted: bool = False
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


@dataclass
class Milestone:
    """An ordered checkpoint within a goal."""
    id: str
    goal_id: str
    title: str
    order_index: int
    description: Optional[str] = None
    status: str = MILESTONE_PENDING
    is_deleted: bool = False
    completed_at: Optional[datetime] = None


@dataclass
class Action:
    """The smallest unit of work: one micro-action of a milestone."""
    id: str
    milestone_id: str
    user_id: str
    title: str
    description: Optional[str] = None
    status: str = ACTION_PENDING
    is_deleted: bool = False
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable record of earned progress."""
    user_id: str
    goal_id: str
    kind: str
    points: int
    milestone_id: Optional[str] = None
    action_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "goal_id": self.goal_id,
            "milestone_id": self.milestone_id,
            "action_id": self.action_id,
            "kind": self.kind,
            "points": self.points,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UserProgressState:
    """Gamified progress summary attached to a user."""
    total_progress: int = 0
    consistency_streak: int = 0
    last_activity_date: Optional[date] = None
    avatar_level: int = 1
    avatar_stage: str = "seed"

    def copy(self, **changes) -> "UserProgressState":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_progress": self.total_progress,
            "consistency_streak": self.consistency_streak,
            "last_activity_date": (
                self.last_activity_date.isoformat() if self.last_activity_date else None
            ),
            "avatar_level": self.avatar_level,
            "avatar_stage": self.avatar_stage,
        }


@dataclass(frozen=True)
class AvatarStageThreshold:
    """One avatar tier: reached once average completion hits min_completion_percent."""
    level: int
    stage_name: str
    min_completion_percent: int


@dataclass
class Message:
    """One chat message in a user's (optionally goal-scoped) conversation."""
    user_id: str
    role: str
    content: str
    goal_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_chat(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}
