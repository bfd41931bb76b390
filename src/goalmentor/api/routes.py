"""
REST API routes for the goal mentor.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from ..core.config import EngineConfig
from ..core.engine import MentorEngine
from ..core.memory_store import InMemoryMessageLog, InMemoryPlanRepository, InMemorySessionStore
from ..llm.client import (
    LLMAPIError,
    LLMAuthError,
    LLMRateLimitError,
    LLMRegionError,
    LLMUnavailableError,
)
from ..llm.generator import MentorGenerator
from .schemas import (
    AvatarResponse,
    ChatRequest,
    ChatResponse,
    ClearChatRequest,
    ClearChatResponse,
    InitialMessageRequest,
    InitialMessageResponse,
    MilestoneResponse,
    ProgressResponse,
    ProgressUpdate,
    UserRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Global engine (in-memory stores unless one is installed by the host)
engine: Optional[MentorEngine] = None


def get_engine() -> MentorEngine:
    global engine
    if engine is None:
        engine = MentorEngine(
            InMemoryPlanRepository(),
            InMemorySessionStore(),
            InMemoryMessageLog(),
            MentorGenerator(),
            EngineConfig.from_env(),
        )
    return engine


def _llm_http_error(e: LLMAPIError) -> HTTPException:
    """Translate model failures into the status codes the client expects."""
    if isinstance(e, LLMAuthError):
        return HTTPException(500, "LLM API key not configured")
    if isinstance(e, LLMRateLimitError):
        return HTTPException(429, "The assistant is busy, please try again shortly")
    if isinstance(e, LLMRegionError):
        return HTTPException(403, "The language model is not available in your region")
    if isinstance(e, LLMUnavailableError):
        return HTTPException(502, "The language model is temporarily unavailable")
    return HTTPException(502, f"Language model error ({e.status_code})")


@router.get("/status")
async def status():
    """Check system status including LLM availability."""
    model = get_engine().model
    return {"llm_available": bool(getattr(model, "is_available", False))}


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Process one chat turn."""
    if not request.message or not request.message.strip():
        raise HTTPException(400, "Message is required")

    try:
        result = await get_engine().handle_turn(
            request.user_id,
            request.message,
            goal_id=request.goal_id,
            user_name=request.user_name,
        )
    except LLMAPIError as e:
        logger.error(f"[API] Chat turn failed for {request.user_id}: {e}")
        raise _llm_http_error(e)

    update = result.progress_update()
    return ChatResponse(
        message=result.reply,
        goal_id=result.goal_id,
        template=result.template,
        stage=result.stage,
        keyword=result.keyword.value,
        awaiting_confirmation=result.awaiting_confirmation,
        progress_update=ProgressUpdate(**update) if update else None,
    )


@router.post("/goals/{goal_id}/initial-message", response_model=InitialMessageResponse)
async def initial_message(goal_id: str, request: InitialMessageRequest):
    """Post the welcome message for a goal with a plan."""
    text = await get_engine().introduce_goal(request.user_id, goal_id, request.user_name)
    if text is None:
        raise HTTPException(404, f"Goal {goal_id} not found or has no plan")
    return InitialMessageResponse(message=text, goal_id=goal_id)


@router.post("/milestones/{milestone_id}/complete", response_model=MilestoneResponse)
async def complete_milestone(milestone_id: str, request: UserRequest):
    """Mark a milestone and its open actions completed."""
    milestone = await get_engine().complete_milestone(request.user_id, milestone_id)
    if milestone is None:
        raise HTTPException(404, f"Milestone {milestone_id} not found")
    return MilestoneResponse(
        id=milestone.id,
        goal_id=milestone.goal_id,
        title=milestone.title,
        status=milestone.status,
        completed_at=milestone.completed_at.isoformat() if milestone.completed_at else None,
    )


@router.post("/avatar/recalculate", response_model=AvatarResponse)
async def recalculate_avatar(request: UserRequest):
    """Resync the avatar with current goal completion."""
    state, average = await get_engine().recalculate_avatar(request.user_id)
    return AvatarResponse(
        avatar_level=state.avatar_level,
        avatar_stage=state.avatar_stage,
        average_goal_progress=average,
    )


@router.get("/progress/{user_id}", response_model=ProgressResponse)
async def progress(user_id: str):
    """Progress state, per-goal completion and the event history."""
    return ProgressResponse(**await get_engine().progress_overview(user_id))


@router.post("/chat/clear", response_model=ClearChatResponse)
async def clear_chat(request: ClearChatRequest):
    """Delete a conversation's messages."""
    removed = await get_engine().clear_conversation(request.user_id, request.goal_id)
    return ClearChatResponse(removed=removed)
