"""
Unit tests for the achievements module and the game configuration it reads.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotz.achievements import (
    build_achievement,
    completion_seconds,
    cookie_trifecta_status,
    derive_achievement,
)
from dotz.game_config import (
    COOKIE_TRIFECTA_SECONDS,
    DIFFICULTY_SETTINGS,
    get_all_difficulties,
    get_difficulty_settings,
    is_valid_grid_size,
)

START = datetime(2026, 10, 18, 9, 0, 0, tzinfo=timezone.utc)


class TestDeriveAchievement:
    """Tests for the Cookie Trifecta predicate."""

    def test_threshold_is_sixty_seconds(self):
        assert COOKIE_TRIFECTA_SECONDS == 60

    def test_at_threshold(self):
        assert derive_achievement(60, "Easy").cookie_trifecta is True

    def test_just_over_threshold(self):
        assert derive_achievement(61, "Easy").cookie_trifecta is False

    @pytest.mark.parametrize("difficulty", ["Easy", "Medium", "Hard"])
    def test_uniform_across_tiers(self, difficulty):
        assert derive_achievement(1, difficulty).cookie_trifecta is True
        assert derive_achievement(600, difficulty).cookie_trifecta is False

    @pytest.mark.parametrize("seconds", [0, -5, 1.5, True])
    def test_rejects_non_positive_or_non_integer(self, seconds):
        with pytest.raises(ValueError, match="positive integer"):
            derive_achievement(seconds, "Easy")

    def test_rejects_unknown_tier(self):
        with pytest.raises(ValueError, match="Unknown difficulty"):
            derive_achievement(30, "Expert")


class TestCompletionSeconds:
    """Tests for completion_seconds."""

    def test_floors_partial_seconds(self):
        assert completion_seconds(START, START + timedelta(seconds=60, milliseconds=900)) == 60

    def test_minimum_one_second(self):
        assert completion_seconds(START, START + timedelta(milliseconds=200)) == 1


class TestBuildAchievement:
    """Tests for build_achievement and cookie_trifecta_status."""

    def test_builds_record(self):
        achievement = build_achievement(7, 3, "Hard", 45, achieved_at=START, attempt_id=11)
        assert achievement.cookie_trifecta is True
        assert achievement.to_dict() == {
            "id": None,
            "user_id": 7,
            "puzzle_id": 3,
            "attempt_id": 11,
            "difficulty_level": "Hard",
            "completion_time": 45,
            "is_cookie_trifecta": True,
            "achieved_at": START.isoformat(),
        }

    def test_status_defaults_false(self):
        assert cookie_trifecta_status([]) == {"easy": False, "medium": False, "hard": False}

    def test_status_per_tier(self):
        achievements = [
            build_achievement(1, 1, "Easy", 200),
            build_achievement(1, 2, "Medium", 30),
            build_achievement(1, 3, "Hard", 90),
        ]
        assert cookie_trifecta_status(achievements) == {"easy": False, "medium": True, "hard": False}


class TestGameConfig:
    """Tests for difficulty settings and grid bounds."""

    def test_tiers_in_order(self):
        assert get_all_difficulties() == ["Easy", "Medium", "Hard"]

    def test_settings_copy(self):
        settings = get_difficulty_settings("Hard")
        settings["domino_count"] = 0
        assert DIFFICULTY_SETTINGS["Hard"]["domino_count"] == 8

    def test_unknown_tier(self):
        with pytest.raises(ValueError, match="Valid difficulties"):
            get_difficulty_settings("Brutal")

    def test_grid_size_bounds(self):
        assert is_valid_grid_size(3)
        assert is_valid_grid_size(10)
        assert not is_valid_grid_size(2)
        assert not is_valid_grid_size(11)
