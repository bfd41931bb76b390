"""
MentorEngine: one chat turn, end to end.

    message → plan context → intent → stage decision
            → [confirmed] completion cascade
            → scripted reply, or guidance + context → language model
            → assistant reply persisted

The engine holds no state between turns; everything that must survive lives
in the session blob and the stores. If the model call fails, no assistant
reply is written, but session and cascade writes already made are kept and
the next turn converges from them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..content.templates import (
    WELCOME_FIRST_ACTION,
    WELCOME_FIRST_CHECKPOINT,
    WELCOME_HEADER,
)
from ..llm.generator import build_system_prompt
from .cascade import CascadeResult, CompletionCascade
from .config import EngineConfig
from .intent import Confirmation, Keyword, classify
from .models import (
    EVENT_ACTION,
    ROLE_ASSISTANT,
    ROLE_USER,
    Milestone,
    ProgressEvent,
    UserProgressState,
    utcnow,
)
from .plan_context import PlanContext, PlanContextResolver, ResolvedContext
from .repository import ChatModel, MessageLog, PlanRepository, SessionStore
from .session import ConversationSession, SessionStoreAdapter
from .stage import DECISION_CONFIRMED, StageDecision, StageDirector
from .tracker import ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """What one turn produced, for the host to render."""
    reply: str
    keyword: Keyword
    confirmation: Confirmation
    decision: str
    template: str
    stage: Optional[str]
    turn_count: int
    goal_id: Optional[str]
    awaiting_confirmation: bool = False
    forwarded_to_model: bool = True
    cascade: Optional[CascadeResult] = None

    def progress_update(self) -> Optional[Dict[str, Any]]:
        if self.cascade is None or self.cascade.user_state is None:
            return None
        state = self.cascade.user_state
        return {
            "total_progress": state.total_progress,
            "consistency_streak": state.consistency_streak,
            "avatar_level": state.avatar_level,
            "avatar_stage": state.avatar_stage,
            "avatar_evolved": self.cascade.avatar_evolved,
            "points_earned": self.cascade.points,
            "completion_percent": self.cascade.completion_percent,
            "goal_completed": self.cascade.goal_completed,
        }


class MentorEngine:
    """
    Conversation & progress orchestration for the goal mentor.

    Usage:
        engine = MentorEngine(plans, session_store, message_log, MentorGenerator())
        result = await engine.handle_turn(user_id, "done", goal_id=goal_id)
        # result.reply → "Great! Just to confirm: have you completed ...?"
        result = await engine.handle_turn(user_id, "yes", goal_id=goal_id)
    """

    def __init__(
        self,
        plans: PlanRepository,
        session_store: SessionStore,
        messages: MessageLog,
        model: ChatModel,
        config: Optional[EngineConfig] = None,
    ):
        self.plans = plans
        self.messages = messages
        self.model = model
        self.config = config or EngineConfig()
        self.sessions = SessionStoreAdapter(session_store)
        self.resolver = PlanContextResolver(plans, self.sessions)
        self.director = StageDirector()
        self.tracker = ProgressTracker(plans)
        self.cascade = CompletionCascade(
            plans, self.sessions, messages, self.tracker, self.config
        )

    # ── Chat turn ───────────────────────────────────────────────────────────

    async def handle_turn(
        self,
        user_id: str,
        message: str,
        goal_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> TurnResult:
        text = (message or "").strip()
        if not text:
            raise ValueError("Message is required")

        context = await self.resolver.resolve(user_id, goal_id)
        session = await self.sessions.get(user_id)
        intent = classify(text, session.pending_completion)
        conversation_goal = context.goal.id if isinstance(context, PlanContext) else goal_id

        turn_count = await self._count_turns(user_id, conversation_goal, session)
        decision = self.director.decide(intent, session, context, turn_count)
        logger.info(
            f"[Engine] {user_id} turn {turn_count}: keyword={intent.keyword.value} "
            f"confirmation={intent.confirmation.value} → {decision.kind}/{decision.template}"
        )

        if decision.session_patch:
            session = await self.sessions.apply(user_id, decision.session_patch)
        if decision.log_attempt and isinstance(context, PlanContext):
            await self._log_attempt(user_id, context)

        await self.messages.append_message(user_id, conversation_goal, ROLE_USER, text)

        cascade = None
        if decision.kind == DECISION_CONFIRMED and isinstance(context, PlanContext):
            cascade = await self.cascade.complete_action(user_id, context)
            # Refresh so the prompt describes the plan after the cascade
            context = await self.resolver.resolve(user_id, context.goal.id)

        result = TurnResult(
            reply="",
            keyword=intent.keyword,
            confirmation=intent.confirmation,
            decision=decision.kind,
            template=decision.template,
            stage=decision.stage.value if decision.stage else None,
            turn_count=turn_count,
            goal_id=conversation_goal,
            awaiting_confirmation=decision.awaiting_confirmation,
            forwarded_to_model=decision.forward_to_model,
            cascade=cascade,
        )

        if not decision.forward_to_model:
            result.reply = decision.reply or ""
            await self.messages.append_message(
                user_id, conversation_goal, ROLE_ASSISTANT, result.reply
            )
            return result

        result.reply = await self._generate(
            user_id, conversation_goal, decision, cascade, context, turn_count, user_name
        )
        await self.messages.append_message(
            user_id, conversation_goal, ROLE_ASSISTANT, result.reply
        )
        return result

    async def _generate(
        self,
        user_id: str,
        goal_id: Optional[str],
        decision: StageDecision,
        cascade: Optional[CascadeResult],
        context: ResolvedContext,
        turn_count: int,
        user_name: Optional[str],
    ) -> str:
        guidance = cascade.guidance if cascade is not None else decision.guidance
        user_state = await self.plans.get_user_progress(user_id)
        prompt = build_system_prompt(
            guidance,
            stage=decision.stage.value if decision.stage else None,
            user_name=user_name,
            user_state=user_state,
            plan=context if isinstance(context, PlanContext) else None,
            turn_count=turn_count,
        )
        history = await self._history(user_id, goal_id)
        return await self.model.complete(history, prompt)

    async def _history(self, user_id: str, goal_id: Optional[str]) -> List[Dict[str, str]]:
        recent = await self.messages.get_recent_messages(
            user_id, goal_id, self.config.history_limit
        )
        return [m.to_chat() for m in reversed(recent)]

    async def _count_turns(
        self, user_id: str, goal_id: Optional[str], session: ConversationSession
    ) -> int:
        """Prior user messages since the current action came into focus."""
        recent = await self.messages.get_recent_messages(
            user_id, goal_id, self.config.turn_window
        )
        since = session.focus_since
        return sum(
            1 for m in recent
            if m.role == ROLE_USER and (since is None or m.created_at >= since)
        )

    async def _log_attempt(self, user_id: str, context: PlanContext) -> None:
        """Zero-point event recording an action the user couldn't do."""
        await self.tracker.record_event(ProgressEvent(
            user_id=user_id,
            goal_id=context.goal.id,
            milestone_id=context.current_milestone.id if context.current_milestone else None,
            action_id=context.current_action.id if context.current_action else None,
            kind=EVENT_ACTION,
            points=0,
        ))

    # ── Goal introduction & housekeeping ────────────────────────────────────

    async def introduce_goal(
        self, user_id: str, goal_id: str, user_name: Optional[str] = None
    ) -> Optional[str]:
        """
        Post the opening message for a goal that has a plan.

        Lists the checkpoints with their action counts and presents the action
        in focus. Returns None when the goal is unknown or has no plan yet.
        """
        context = await self.resolver.resolve(user_id, goal_id)
        if not isinstance(context, PlanContext):
            return None

        goal = context.goal
        milestone_count = len(context.milestones)
        action_count = context.progress.total_actions
        text = WELCOME_HEADER.format(
            user_name=user_name or "there",
            goal_title=goal.title,
            main_goal=goal.main_goal,
            milestone_count=milestone_count,
            milestone_plural="s" if milestone_count != 1 else "",
            action_count=action_count,
            action_plural="s" if action_count != 1 else "",
        )
        text += self._breakdown(context.milestones, context)

        action = context.current_action
        if action is not None:
            text += WELCOME_FIRST_ACTION.format(
                action_title=action.title,
                description=f"{action.description}\n\n" if action.description else "\n",
                milestone_title=context.current_milestone.title,
            )
        else:
            first = context.milestones[0]
            text += WELCOME_FIRST_CHECKPOINT.format(
                milestone_title=first.title,
                description=f"{first.description}\n" if first.description else "",
            )

        await self.messages.append_message(user_id, goal.id, ROLE_ASSISTANT, text)
        return text

    @staticmethod
    def _breakdown(milestones: List[Milestone], context: PlanContext) -> str:
        lines = ["📋 **Action Breakdown:**"]
        for milestone in milestones:
            n = context.action_counts[milestone.id].total
            lines.append(f"• {milestone.title}: {n} action{'s' if n != 1 else ''}")
        return "\n".join(lines) + "\n\n"

    async def clear_conversation(self, user_id: str, goal_id: Optional[str] = None) -> int:
        """Delete a conversation's messages and restart the stage pacing."""
        removed = await self.messages.clear_messages(user_id, goal_id)
        session = await self.sessions.get(user_id)
        await self.sessions.update(
            user_id,
            pending_completion=None,
            focus_since=utcnow() if session.action_id else None,
            stage=None,
        )
        logger.info(f"[Engine] Cleared {removed} message(s) for {user_id}")
        return removed

    async def complete_milestone(self, user_id: str, milestone_id: str) -> Optional[Milestone]:
        return await self.cascade.complete_milestone(user_id, milestone_id)

    async def recalculate_avatar(self, user_id: str):
        return await self.tracker.recalculate_avatar(user_id)

    async def progress_overview(self, user_id: str) -> Dict[str, Any]:
        state: UserProgressState = await self.plans.get_user_progress(user_id)
        average, per_goal = await self.tracker.average_completion(user_id)
        events = await self.plans.list_progress_events(user_id)
        return {
            "user_progress": state.to_dict(),
            "average_goal_progress": average,
            "goals": [
                {"goal_id": g.id, "title": g.title, "progress": pct} for g, pct in per_goal
            ],
            "events": [e.to_dict() for e in events],
        }
