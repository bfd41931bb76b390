"""
Conversation stage director.

Decides, for one turn, what the mentor does: ask for a completion
confirmation, honour a yes/no, react to a keyword, or pick stage guidance
paced by how long the current action has been discussed. The director is pure:
it returns a StageDecision, the engine carries it out.

Stages (per action in focus):
    initial (turns 0-1) → guiding (2-4) → checking (5-7) → evaluating (8+)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..content.templates import (
    ADJUST_GUIDANCE,
    CONFIRMATION_PROMPT,
    COULDNT_GUIDANCE,
    GOAL_NOT_FOUND_GUIDANCE,
    KEEP_WORKING_REPLY,
    NO_PLAN_GUIDANCE,
    ONBOARDING_GUIDANCE,
    PLAN_COMPLETE_GUIDANCE,
    STAGE_GUIDANCE,
    TEMPLATE_ADJUST,
    TEMPLATE_COMPLETED,
    TEMPLATE_CONFIRM,
    TEMPLATE_COULDNT,
    TEMPLATE_GOAL_NOT_FOUND,
    TEMPLATE_KEEP_WORKING,
    TEMPLATE_NO_PLAN,
    TEMPLATE_ONBOARDING,
    TEMPLATE_PLAN_COMPLETE,
)
from .intent import Confirmation, IntentResult, Keyword
from .plan_context import GOAL_NOT_FOUND, NO_GOALS, GoallessState, PlanContext, ResolvedContext
from .session import ConversationSession, PendingCompletion, build_patch

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    INITIAL = "initial"
    GUIDING = "guiding"
    CHECKING = "checking"
    EVALUATING = "evaluating"


STAGE_ORDER = [Stage.INITIAL, Stage.GUIDING, Stage.CHECKING, Stage.EVALUATING]

# Decision kinds
DECISION_GUIDANCE = "guidance"
DECISION_ASK_CONFIRMATION = "ask_confirmation"
DECISION_CONFIRMED = "confirmed"
DECISION_DECLINED = "declined"
DECISION_COULDNT = "couldnt"
DECISION_ADJUST = "adjust"


def stage_for_turn(turn_count: int) -> Stage:
    """Stage implied by the number of prior user messages about the current action."""
    if turn_count <= 1:
        return Stage.INITIAL
    if turn_count <= 4:
        return Stage.GUIDING
    if turn_count <= 7:
        return Stage.CHECKING
    return Stage.EVALUATING


def next_stage(state: Optional[Stage], turn_count: int) -> Stage:
    """Transition function; a stage never regresses while the action stays in focus."""
    target = stage_for_turn(turn_count)
    if state is None:
        return target
    return max(state, target, key=STAGE_ORDER.index)


def parse_stage(value: Optional[str]) -> Optional[Stage]:
    try:
        return Stage(value) if value else None
    except ValueError:
        return None


@dataclass
class StageDecision:
    """What the engine should do with this turn."""
    kind: str
    template: str
    stage: Optional[Stage] = None
    forward_to_model: bool = True
    reply: Optional[str] = None
    guidance: Optional[str] = None
    session_patch: Dict[str, Any] = field(default_factory=dict)
    log_attempt: bool = False
    stale_dropped: bool = False

    @property
    def awaiting_confirmation(self) -> bool:
        return self.kind == DECISION_ASK_CONFIRMATION


class StageDirector:
    """Maps (intent, pending confirmation, turn count, plan context) to a StageDecision."""

    def decide(
        self,
        intent: IntentResult,
        session: ConversationSession,
        context: ResolvedContext,
        turn_count: int,
    ) -> StageDecision:
        if isinstance(context, GoallessState):
            return self._goalless(context)
        if context.current_action is None:
            return StageDecision(
                kind=DECISION_GUIDANCE,
                template=TEMPLATE_PLAN_COMPLETE,
                guidance=PLAN_COMPLETE_GUIDANCE.format(goal=context.goal.main_goal),
            )

        values = self._values(context, turn_count)
        patch: Dict[str, Any] = {}
        pending = session.pending_completion
        stale = False

        if pending is not None and not pending.matches(context.goal.id, context.current_action.id):
            logger.info(
                f"[StageDirector] Dropping stale confirmation for action {pending.action_id}"
            )
            patch.update(build_patch(pending_completion=None))
            pending = None
            stale = True

        if pending is not None and intent.confirmation == Confirmation.YES:
            patch.update(build_patch(pending_completion=None))
            return StageDecision(
                kind=DECISION_CONFIRMED,
                template=TEMPLATE_COMPLETED,
                session_patch=patch,
                stale_dropped=stale,
            )

        if pending is not None and intent.confirmation == Confirmation.NO:
            patch.update(build_patch(pending_completion=None))
            return StageDecision(
                kind=DECISION_DECLINED,
                template=TEMPLATE_KEEP_WORKING,
                forward_to_model=False,
                reply=KEEP_WORKING_REPLY.format(**values),
                session_patch=patch,
                stale_dropped=stale,
            )

        if intent.keyword == Keyword.COMPLETED:
            slot = PendingCompletion(goal_id=context.goal.id, action_id=context.current_action.id)
            patch.update(build_patch(pending_completion=slot))
            return StageDecision(
                kind=DECISION_ASK_CONFIRMATION,
                template=TEMPLATE_CONFIRM,
                forward_to_model=False,
                reply=CONFIRMATION_PROMPT.format(**values),
                session_patch=patch,
                stale_dropped=stale,
            )

        if pending is not None and intent.keyword in (Keyword.COULDNT, Keyword.ADJUST):
            # The user answered the confirmation with something else; withdraw it
            patch.update(build_patch(pending_completion=None))

        if intent.keyword == Keyword.COULDNT:
            return StageDecision(
                kind=DECISION_COULDNT,
                template=TEMPLATE_COULDNT,
                guidance=COULDNT_GUIDANCE.format(**values),
                session_patch=patch,
                log_attempt=True,
                stale_dropped=stale,
            )

        if intent.keyword == Keyword.ADJUST:
            return StageDecision(
                kind=DECISION_ADJUST,
                template=TEMPLATE_ADJUST,
                guidance=ADJUST_GUIDANCE.format(**values),
                session_patch=patch,
                stale_dropped=stale,
            )

        stage = next_stage(parse_stage(session.stage), turn_count)
        if stage.value != session.stage:
            patch.update(build_patch(stage=stage.value))
        return StageDecision(
            kind=DECISION_GUIDANCE,
            template=stage.value,
            stage=stage,
            guidance=STAGE_GUIDANCE[stage.value].format(**values),
            session_patch=patch,
            stale_dropped=stale,
        )

    def _goalless(self, context: GoallessState) -> StageDecision:
        if context.kind == NO_GOALS:
            return StageDecision(
                kind=DECISION_GUIDANCE,
                template=TEMPLATE_ONBOARDING,
                guidance=ONBOARDING_GUIDANCE,
            )
        if context.kind == GOAL_NOT_FOUND:
            return StageDecision(
                kind=DECISION_GUIDANCE,
                template=TEMPLATE_GOAL_NOT_FOUND,
                guidance=GOAL_NOT_FOUND_GUIDANCE,
            )
        titles = ", ".join(f"\"{g.title}\"" for g in context.goals)
        return StageDecision(
            kind=DECISION_GUIDANCE,
            template=TEMPLATE_NO_PLAN,
            guidance=NO_PLAN_GUIDANCE.format(goal_titles=titles),
        )

    @staticmethod
    def _values(context: PlanContext, turn_count: int) -> Dict[str, Any]:
        action = context.current_action
        milestone = context.current_milestone
        return {
            "action_title": action.title,
            "action_description": action.description or "",
            "milestone_title": milestone.title if milestone else "",
            "goal": context.goal.main_goal,
            "turns": turn_count,
        }
