"""
Quick demo script: run the goal mentor locally with a seeded plan.

Usage:
    python scripts/run_demo.py
"""

import uvicorn

from goalmentor.api import routes
from goalmentor.api.app import app

DEMO_USER = "demo-user"


def seed_plan():
    """One goal, two checkpoints, two actions each."""
    plans = routes.get_engine().plans
    goal = plans.add_goal(DEMO_USER, "Run a 5K", main_goal="Run a 5K without stopping", goal_id="demo-goal")
    base = plans.add_milestone(goal.id, "Build a base", 0)
    plans.add_action(base.id, "Walk 20 minutes", description="Brisk pace, flat route.")
    plans.add_action(base.id, "Jog 1 km")
    longer = plans.add_milestone(goal.id, "Go longer", 1)
    plans.add_action(longer.id, "Jog 3 km")
    plans.add_action(longer.id, "Run 5 km")
    return goal


def main():
    goal = seed_plan()
    print("=" * 60)
    print("  Goal Mentor")
    print("=" * 60)
    print()
    print(f"Seeded user '{DEMO_USER}' with goal '{goal.id}'.")
    print("Starting server at http://localhost:8000")
    print()
    print("API docs: http://localhost:8000/docs")
    print("Press Ctrl+C to stop.")
    print()

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
