"""
Per-user conversational session state.

The session is a small JSON blob the host keeps on the user record. It points
at the plan item in focus and holds the pending-completion handshake slot.
Writes are merge-patches in which a None value is a tombstone: the key is
deleted rather than stored as null.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from .models import utcnow

if TYPE_CHECKING:
    from .repository import SessionStore

# Session statuses (absence of a status means "in progress on an action")
SESSION_NONE = "none"
SESSION_NO_PLAN = "no_plan"
SESSION_COMPLETED = "completed"

# Python attribute name -> blob key
FIELD_KEYS = {
    "goal_id": "goalId",
    "milestone_id": "milestoneId",
    "action_id": "actionId",
    "status": "status",
    "pending_completion": "pendingCompletion",
    "focus_since": "focusSince",
    "stage": "stage",
}


def merge_session_patch(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Return current merged with patch; keys patched to None are removed."""
    merged = dict(current)
    for key, value in patch.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class PendingCompletion:
    """A completion awaiting the user's yes/no."""
    goal_id: str
    action_id: str

    def matches(self, goal_id: Optional[str], action_id: Optional[str]) -> bool:
        return self.goal_id == goal_id and self.action_id == action_id

    def to_dict(self) -> Dict[str, str]:
        return {"goalId": self.goal_id, "actionId": self.action_id}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PendingCompletion"]:
        if not data or not data.get("goalId") or not data.get("actionId"):
            return None
        return cls(goal_id=data["goalId"], action_id=data["actionId"])


@dataclass(frozen=True)
class ConversationSession:
    """Typed view of the session blob."""
    goal_id: Optional[str] = None
    milestone_id: Optional[str] = None
    action_id: Optional[str] = None
    status: Optional[str] = None
    pending_completion: Optional[PendingCompletion] = None
    focus_since: Optional[datetime] = None
    stage: Optional[str] = None
    last_updated: Optional[datetime] = None
    version: int = 0

    @property
    def in_progress(self) -> bool:
        return self.status is None and self.action_id is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "goalId": self.goal_id,
            "milestoneId": self.milestone_id,
            "actionId": self.action_id,
            "status": self.status,
            "pendingCompletion": (
                self.pending_completion.to_dict() if self.pending_completion else None
            ),
            "focusSince": self.focus_since.isoformat() if self.focus_since else None,
            "stage": self.stage,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "version": self.version,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConversationSession":
        data = data or {}
        return cls(
            goal_id=data.get("goalId"),
            milestone_id=data.get("milestoneId"),
            action_id=data.get("actionId"),
            status=data.get("status"),
            pending_completion=PendingCompletion.from_dict(data.get("pendingCompletion")),
            focus_since=_parse_time(data.get("focusSince")),
            stage=data.get("stage"),
            last_updated=_parse_time(data.get("lastUpdated")),
            version=int(data.get("version", 0)),
        )


def _serialize(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "pending_completion":
        return value.to_dict()
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def build_patch(**fields: Any) -> Dict[str, Any]:
    """Translate attribute-named fields into a blob patch (None stays a tombstone)."""
    patch: Dict[str, Any] = {}
    for name, value in fields.items():
        if name not in FIELD_KEYS:
            raise KeyError(f"Unknown session field: {name}")
        patch[FIELD_KEYS[name]] = _serialize(name, value)
    return patch


class SessionStoreAdapter:
    """
    Read-modify-write access to a user's ConversationSession.

    Every update stamps lastUpdated and bumps the version counter. Concurrent
    writers are not locked out; the last write wins.
    """

    def __init__(self, store: "SessionStore"):
        self.store = store

    async def get(self, user_id: str) -> ConversationSession:
        return ConversationSession.from_dict(await self.store.get_session(user_id))

    async def update(self, user_id: str, **fields: Any) -> ConversationSession:
        return await self.apply(user_id, build_patch(**fields))

    async def apply(self, user_id: str, patch: Dict[str, Any]) -> ConversationSession:
        """Write a blob-keyed patch, as produced by build_patch."""
        current = await self.store.get_session(user_id) or {}
        patch = dict(patch)
        patch["version"] = int(current.get("version", 0)) + 1
        patch["lastUpdated"] = utcnow().isoformat()
        await self.store.put_session(user_id, patch)
        return ConversationSession.from_dict(merge_session_patch(current, patch))
