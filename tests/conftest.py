"""Shared fixtures: in-memory stores, a seeded 2x2 plan and a scripted chat model."""

from types import SimpleNamespace

import pytest

from goalmentor.core.engine import MentorEngine
from goalmentor.core.memory_store import (
    InMemoryMessageLog,
    InMemoryPlanRepository,
    InMemorySessionStore,
)
from goalmentor.core.plan_context import PlanContextResolver
from goalmentor.core.session import SessionStoreAdapter

USER = "user-1"


class FakeChatModel:
    """Records every call and answers with a fixed reply (or raises)."""

    def __init__(self, reply="Keep going!", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.is_available = True

    async def complete(self, history, system_prompt):
        self.calls.append({"history": list(history), "system_prompt": system_prompt})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def plans():
    return InMemoryPlanRepository()


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def messages():
    return InMemoryMessageLog()


@pytest.fixture
def model():
    return FakeChatModel()


@pytest.fixture
def sessions(session_store):
    return SessionStoreAdapter(session_store)


@pytest.fixture
def resolver(plans, sessions):
    return PlanContextResolver(plans, sessions)


@pytest.fixture
def plan(plans):
    """Goal G with milestones M1 (A1, A2) and M2 (A3, A4)."""
    goal = plans.add_goal(USER, "Run a 5K", main_goal="Run a 5K without stopping", goal_id="g1")
    m1 = plans.add_milestone(goal.id, "Build a base", 0, milestone_id="m1")
    m2 = plans.add_milestone(goal.id, "Go longer", 1, milestone_id="m2")
    a1 = plans.add_action(m1.id, "Walk 20 minutes", action_id="a1", description="Brisk pace.")
    a2 = plans.add_action(m1.id, "Jog 1 km", action_id="a2")
    a3 = plans.add_action(m2.id, "Jog 3 km", action_id="a3")
    a4 = plans.add_action(m2.id, "Run 5 km", action_id="a4")
    return SimpleNamespace(goal=goal, m1=m1, m2=m2, a1=a1, a2=a2, a3=a3, a4=a4)


@pytest.fixture
def engine(plans, session_store, messages, model):
    return MentorEngine(plans, session_store, messages, model)
