"""Tests for the progress arithmetic: percentages, tone, avatar tiers, streaks."""

from datetime import date

import pytest

from goalmentor.core.models import AvatarStageThreshold
from goalmentor.core.progress import (
    TONE_COMPLETE,
    TONE_EARLY,
    TONE_LATE,
    TONE_MID,
    TONE_STARTING,
    average_completion_percent,
    avatar_for_percent,
    completion_percent,
    goal_percentages,
    next_streak,
    progress_tone,
)


class TestPercentages:
    def test_empty_plan_is_zero(self):
        assert completion_percent(0, 0) == 0

    def test_rounds_half_up(self):
        assert completion_percent(1, 8) == 13
        assert completion_percent(1, 3) == 33
        assert completion_percent(2, 3) == 67

    def test_full(self):
        assert completion_percent(4, 4) == 100

    def test_idempotent(self):
        """Same counts, same answer, every time."""
        assert {completion_percent(3, 7) for _ in range(5)} == {43}

    def test_goal_percentages_vector(self):
        assert goal_percentages([(1, 4), (0, 0), (2, 2)]).tolist() == [25, 0, 100]

    def test_average_of_goal_percentages(self):
        # 25% and 50% -> 37.5 -> 38
        assert average_completion_percent([(1, 4), (1, 2)]) == 38

    def test_average_without_goals(self):
        assert average_completion_percent([]) == 0

    def test_goal_without_actions_counts_as_zero(self):
        assert average_completion_percent([(2, 2), (0, 0)]) == 50


class TestTone:
    @pytest.mark.parametrize("percent,tone", [
        (0, TONE_STARTING),
        (1, TONE_EARLY),
        (33, TONE_EARLY),
        (34, TONE_MID),
        (66, TONE_MID),
        (67, TONE_LATE),
        (99, TONE_LATE),
        (100, TONE_COMPLETE),
    ])
    def test_bands(self, percent, tone):
        assert progress_tone(percent) == tone


class TestAvatar:
    @pytest.mark.parametrize("percent,level", [(0, 1), (20, 1), (21, 2), (40, 2), (41, 3), (61, 4), (81, 5), (100, 5)])
    def test_step_function(self, percent, level):
        assert avatar_for_percent(percent)[0] == level

    def test_stage_names(self):
        assert avatar_for_percent(0) == (1, "seed")
        assert avatar_for_percent(100) == (5, "oak")

    def test_custom_table(self):
        table = [
            AvatarStageThreshold(level=2, stage_name="bloom", min_completion_percent=50),
            AvatarStageThreshold(level=1, stage_name="bud", min_completion_percent=0),
        ]
        assert avatar_for_percent(49, table) == (1, "bud")
        assert avatar_for_percent(50, table) == (2, "bloom")

    def test_empty_table(self):
        assert avatar_for_percent(90, []) == (1, "seed")


class TestStreak:
    def test_first_activity(self):
        assert next_streak(date(2024, 5, 2), None, 0) == 1

    def test_consecutive_day(self):
        assert next_streak(date(2024, 5, 2), date(2024, 5, 1), 3) == 4

    def test_same_day_keeps_streak(self):
        assert next_streak(date(2024, 5, 2), date(2024, 5, 2), 3) == 3

    def test_gap_resets(self):
        assert next_streak(date(2024, 5, 5), date(2024, 5, 1), 9) == 1
