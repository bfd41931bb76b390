"""
Environment-driven configuration for the mentor engine.

Values come from the process environment, optionally seeded from the first
.env file found walking up from the working directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def load_dotenv() -> None:
    """Load .env file into os.environ (only vars not already set)."""
    for parent in [Path.cwd()] + list(Path(__file__).resolve().parents):
        env_path = parent / ".env"
        if env_path.exists():
            for line in env_path.read_text().splitlines():
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" in line:
                    key, value = line.split("=", 1)
                    key, value = key.strip(), value.strip()
                    if key and key not in os.environ:
                        os.environ[key] = value
            break  # only load the first .env found


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[Config] {name}={raw!r} is not an integer, using {default}")
        return default


@dataclass
class EngineConfig:
    """
    Point rewards and conversation windows.

    Environment variables:
        MENTOR_ACTION_POINTS — points for a confirmed action (default 5)
        MENTOR_MILESTONE_POINTS — bonus when a milestone's last action completes (10)
        MENTOR_GOAL_POINTS — bonus when the goal's last action completes (20)
        MENTOR_HISTORY_LIMIT — messages sent to the model per turn (10)
        MENTOR_TURN_WINDOW — recent messages scanned when counting turns (50)
    """

    action_points: int = 5
    milestone_points: int = 10
    goal_points: int = 20
    history_limit: int = 10
    turn_window: int = 50

    @classmethod
    def from_env(cls) -> "EngineConfig":
        load_dotenv()
        return cls(
            action_points=env_int("MENTOR_ACTION_POINTS", 5),
            milestone_points=env_int("MENTOR_MILESTONE_POINTS", 10),
            goal_points=env_int("MENTOR_GOAL_POINTS", 20),
            history_limit=env_int("MENTOR_HISTORY_LIMIT", 10),
            turn_window=env_int("MENTOR_TURN_WINDOW", 50),
        )
