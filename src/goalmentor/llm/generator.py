"""
MentorGenerator: the language-model collaborator of the engine.

The engine decides WHAT the mentor should do this turn (the guidance); the
model only phrases it. build_system_prompt assembles the persona, the turn's
guidance and the user's plan/progress context into one system message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from ..content.templates import MENTOR_CORE_PROMPT
from ..core.models import UserProgressState
from ..core.plan_context import PlanContext
from .client import ChatClient, LLMUnavailableError

logger = logging.getLogger(__name__)


def build_system_prompt(
    guidance: Optional[str],
    stage: Optional[str] = None,
    user_name: Optional[str] = None,
    user_state: Optional[UserProgressState] = None,
    plan: Optional[PlanContext] = None,
    turn_count: Optional[int] = None,
) -> str:
    """
    Build the system prompt for one turn.

    The guidance for the turn comes first so it dominates the persona's
    general rules; the plan and progress context follow.
    """
    parts = [MENTOR_CORE_PROMPT]

    if guidance:
        parts.append("\n\n## Guidance for this turn")
        if stage:
            parts.append(f"\nConversation stage: {stage}")
        parts.append(f"\n{guidance}")

    parts.append("\n\n## User context")
    parts.append(f"\n  - Name: {user_name or 'there'}")
    if user_state is not None:
        parts.append(f"\n  - Progress points: {user_state.total_progress}")
        parts.append(f"\n  - Consistency streak: {user_state.consistency_streak} days")
        parts.append(f"\n  - Avatar: {user_state.avatar_stage} (level {user_state.avatar_level})")

    if plan is not None:
        progress = plan.progress
        parts.append("\n\n## Current plan")
        parts.append(f"\n  - Goal: \"{plan.goal.main_goal}\"")
        if plan.current_milestone is not None:
            parts.append(f"\n  - Current checkpoint: \"{plan.current_milestone.title}\"")
        if plan.current_action is not None:
            parts.append(f"\n  - Today's action: \"{plan.current_action.title}\"")
            if plan.current_action.description:
                parts.append(f"\n  - Action description: {plan.current_action.description}")
        parts.append(
            f"\n  - Checkpoints done: {progress.milestones_completed}/{progress.total_milestones}"
        )
        parts.append(
            f"\n  - Actions done: {progress.actions_completed}/{progress.total_actions} "
            f"({progress.percent}%)"
        )
        if turn_count is not None:
            parts.append(f"\n  - Conversation turns on this action: {turn_count}")

    return "".join(parts)


class MentorGenerator:
    """Async adapter over the blocking HTTP client."""

    def __init__(
        self,
        client: Optional[ChatClient] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        self.client = client or ChatClient()
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def is_available(self) -> bool:
        return self.client.is_available

    async def complete(self, history: List[Dict[str, str]], system_prompt: str) -> str:
        """One completion; LLMAPIError subclasses propagate to the caller."""
        messages = [{"role": "system", "content": system_prompt}] + list(history)
        reply = await asyncio.to_thread(
            self.client.chat_completion,
            messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        reply = reply.strip()
        if not reply:
            logger.warning("[MentorGenerator] Model returned an empty reply")
            raise LLMUnavailableError(502, "Empty completion")
        return reply
