"""
Progress arithmetic: completion percentages, tone, avatar tiers and streaks.

Pure functions. Percentages are integers in [0, 100] rounded half-up, so a
goal with 1 of 8 actions done is at 13%, not 12%.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import AvatarStageThreshold

TONE_STARTING = "starting"
TONE_EARLY = "early"
TONE_MID = "mid"
TONE_LATE = "late"
TONE_COMPLETE = "complete"

DEFAULT_AVATAR_STAGES: List[AvatarStageThreshold] = [
    AvatarStageThreshold(level=1, stage_name="seed", min_completion_percent=0),
    AvatarStageThreshold(level=2, stage_name="sprout", min_completion_percent=21),
    AvatarStageThreshold(level=3, stage_name="sapling", min_completion_percent=41),
    AvatarStageThreshold(level=4, stage_name="tree", min_completion_percent=61),
    AvatarStageThreshold(level=5, stage_name="oak", min_completion_percent=81),
]


def _round_half_up(x: np.ndarray) -> np.ndarray:
    return np.floor(x + 0.5)


def goal_percentages(counts: Sequence[Tuple[int, int]]) -> np.ndarray:
    """Per-goal completion percentages from (completed, total) pairs."""
    if len(counts) == 0:
        return np.zeros(0, dtype=np.int64)
    arr = np.asarray(counts, dtype=np.float64).reshape(-1, 2)
    completed, total = arr[:, 0], arr[:, 1]
    safe_total = np.where(total > 0, total, 1.0)
    pct = np.where(total > 0, _round_half_up(100.0 * completed / safe_total), 0.0)
    return np.clip(pct, 0, 100).astype(np.int64)


def completion_percent(completed: int, total: int) -> int:
    """round(100 * completed / total), or 0 for an empty plan."""
    return int(goal_percentages([(completed, total)])[0])


def average_completion_percent(counts: Sequence[Tuple[int, int]]) -> int:
    """
    Mean of the per-goal percentages, rounded half-up.

    Each goal contributes its own rounded percentage (0 for a goal without
    actions), so small goals weigh as much as large ones.
    """
    pct = goal_percentages(counts)
    if pct.size == 0:
        return 0
    return int(_round_half_up(np.mean(pct)))


def progress_tone(percent: int) -> str:
    """Qualitative stage of a goal used to pick celebratory language."""
    if percent >= 100:
        return TONE_COMPLETE
    if percent >= 67:
        return TONE_LATE
    if percent >= 34:
        return TONE_MID
    if percent > 0:
        return TONE_EARLY
    return TONE_STARTING


def avatar_for_percent(
    percent: int,
    thresholds: Optional[Sequence[AvatarStageThreshold]] = None,
) -> Tuple[int, str]:
    """
    Avatar (level, stage_name) for an average completion percentage.

    The highest tier whose min_completion_percent is <= percent wins, so a
    boundary value belongs to the upper band. Falls back to the lowest tier,
    or (1, "seed") when there is no table at all.
    """
    if thresholds is None:
        thresholds = DEFAULT_AVATAR_STAGES
    if not thresholds:
        return 1, "seed"
    ordered = sorted(thresholds, key=lambda t: (t.min_completion_percent, t.level))
    chosen = ordered[0]
    for stage in ordered:
        if percent >= stage.min_completion_percent:
            chosen = stage
        else:
            break
    return chosen.level, chosen.stage_name


def next_streak(today: date, last_activity: Optional[date], previous: int) -> int:
    """Consecutive-day streak after activity on `today`."""
    if last_activity == today:
        return previous
    if last_activity == today - timedelta(days=1):
        return previous + 1
    return 1
