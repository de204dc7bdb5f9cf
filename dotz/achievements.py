"""
Achievement derivation.

An achievement is recorded once, when an attempt completes. The Cookie
Trifecta flag is awarded for completing within COOKIE_TRIFECTA_SECONDS,
whatever the difficulty.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .game_config import COOKIE_TRIFECTA_SECONDS, DifficultyLevel, get_all_difficulties


@dataclass(frozen=True)
class AchievementOutcome:
    cookie_trifecta: bool


@dataclass(frozen=True)
class Achievement:
    user_id: int
    puzzle_id: int
    difficulty: DifficultyLevel
    completion_time_seconds: int
    cookie_trifecta: bool
    achieved_at: datetime
    achievement_id: Optional[int] = None
    attempt_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.achievement_id,
            "user_id": self.user_id,
            "puzzle_id": self.puzzle_id,
            "attempt_id": self.attempt_id,
            "difficulty_level": self.difficulty,
            "completion_time": self.completion_time_seconds,
            "is_cookie_trifecta": self.cookie_trifecta,
            "achieved_at": self.achieved_at.isoformat(),
        }


def derive_achievement(completion_time_seconds: int, difficulty: DifficultyLevel) -> AchievementOutcome:
    """
    Decide the achievement flags for a completed attempt.

    Args:
        completion_time_seconds: Whole seconds from first interaction to completion
        difficulty: Difficulty tier of the puzzle

    Returns:
        AchievementOutcome with the Cookie Trifecta flag

    Raises:
        ValueError: If the time is not a positive integer or the tier is unknown
    """
    if (
        not isinstance(completion_time_seconds, int)
        or isinstance(completion_time_seconds, bool)
        or completion_time_seconds <= 0
    ):
        raise ValueError(f"completion_time_seconds must be a positive integer, got {completion_time_seconds!r}")
    if difficulty not in get_all_difficulties():
        raise ValueError(f"Unknown difficulty: {difficulty}. Valid difficulties: {get_all_difficulties()}")

    return AchievementOutcome(cookie_trifecta=completion_time_seconds <= COOKIE_TRIFECTA_SECONDS)


def completion_seconds(started_at: datetime, completed_at: datetime) -> int:
    """Elapsed whole seconds between two timestamps, never less than 1."""
    elapsed = int((completed_at - started_at).total_seconds())
    return max(1, elapsed)


def build_achievement(
    user_id: int,
    puzzle_id: int,
    difficulty: DifficultyLevel,
    completion_time_seconds: int,
    achieved_at: Optional[datetime] = None,
    attempt_id: Optional[int] = None,
) -> Achievement:
    outcome = derive_achievement(completion_time_seconds, difficulty)
    return Achievement(
        user_id=user_id,
        puzzle_id=puzzle_id,
        difficulty=difficulty,
        completion_time_seconds=completion_time_seconds,
        cookie_trifecta=outcome.cookie_trifecta,
        achieved_at=achieved_at or datetime.now(timezone.utc),
        attempt_id=attempt_id,
    )


def cookie_trifecta_status(achievements: Iterable[Achievement]) -> Dict[str, bool]:
    """
    Per-tier Cookie Trifecta flags for one user's achievements.

    Returns:
        Dict with lower-case tier keys ("easy", "medium", "hard"), True when
        any achievement at that tier earned the trifecta
    """
    status = {tier.lower(): False for tier in get_all_difficulties()}
    for achievement in achievements:
        if achievement.cookie_trifecta:
            status[achievement.difficulty.lower()] = True
    return status
