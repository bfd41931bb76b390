"""
Pydantic request/response models for the goal mentor API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# REQUEST MODELS
# =============================================================================

class ChatRequest(BaseModel):
    """One user chat turn."""
    user_id: str = Field(..., description="Caller's user id (no auth in this host)")
    message: str = Field(..., description="User's text message")
    goal_id: Optional[str] = Field(None, description="Goal the conversation is about")
    user_name: Optional[str] = Field(None, description="Display name used in prompts")


class InitialMessageRequest(BaseModel):
    """Request the welcome message for a goal."""
    user_id: str
    user_name: Optional[str] = None


class UserRequest(BaseModel):
    """Body for endpoints that only need the caller."""
    user_id: str


class ClearChatRequest(BaseModel):
    """Delete a conversation's messages."""
    user_id: str
    goal_id: Optional[str] = None


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ProgressUpdate(BaseModel):
    """Progress state after a confirmed completion."""
    total_progress: int
    consistency_streak: int
    avatar_level: int
    avatar_stage: str
    avatar_evolved: bool = False
    points_earned: int = 0
    completion_percent: int = 0
    goal_completed: bool = False


class ChatResponse(BaseModel):
    """Response from one chat turn."""
    message: str
    goal_id: Optional[str] = None
    template: str
    stage: Optional[str] = None
    keyword: str
    awaiting_confirmation: bool = False
    progress_update: Optional[ProgressUpdate] = None


class InitialMessageResponse(BaseModel):
    message: str
    goal_id: str


class MilestoneResponse(BaseModel):
    id: str
    goal_id: str
    title: str
    status: str
    completed_at: Optional[str] = None


class AvatarResponse(BaseModel):
    avatar_level: int
    avatar_stage: str
    average_goal_progress: int


class GoalProgress(BaseModel):
    goal_id: str
    title: str
    progress: int


class ProgressResponse(BaseModel):
    """Progress overview for a user."""
    user_progress: Dict[str, Any]
    average_goal_progress: int
    goals: List[GoalProgress]
    events: List[Dict[str, Any]]


class ClearChatResponse(BaseModel):
    removed: int
