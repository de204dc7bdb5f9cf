"""
In-memory persistence for puzzles, attempts and achievements.

Attempts store the tracker snapshot as a JSON blob (``attempt_data``) next to
the completion fields. Each attempt has its own lock; callers hold it across
a load / move / save sequence so duplicate requests for the same attempt are
applied one at a time.
"""

import json
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .achievements import Achievement
from .puzzle import Puzzle
from .puzzle_state import PuzzleStateTracker

logger = logging.getLogger(__name__)


class RecordNotFoundError(KeyError):
    """Raised when a puzzle, attempt or achievement id is unknown."""


class DuplicateAchievementError(ValueError):
    """Raised when an attempt already has its achievement recorded."""


def encode_board_state(tracker: PuzzleStateTracker) -> str:
    return json.dumps(tracker.snapshot(), sort_keys=True)


def decode_board_state(puzzle: Puzzle, blob: Optional[str]) -> PuzzleStateTracker:
    """Rebuild a tracker from an ``attempt_data`` blob; an empty blob is a fresh board."""
    if not blob:
        return PuzzleStateTracker(puzzle)
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ValueError(f"attempt_data is not valid JSON: {e}") from e
    return PuzzleStateTracker.from_snapshot(puzzle, data)


@dataclass(frozen=True)
class Attempt:
    attempt_id: int
    puzzle_id: int
    user_id: Optional[int]  # None for guest play
    attempt_data: str
    started_at: datetime
    is_completed: bool = False
    completion_time_seconds: Optional[int] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.attempt_id,
            "user_id": self.user_id,
            "puzzle_id": self.puzzle_id,
            "attempt_data": self.attempt_data,
            "is_completed": self.is_completed,
            "completion_time": self.completion_time_seconds,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class PuzzleRepository:
    def __init__(self):
        self._puzzles: Dict[int, Puzzle] = {}
        self._next_id = 1
        self._mutex = threading.Lock()

    def add(self, puzzle: Puzzle) -> Puzzle:
        with self._mutex:
            stored = puzzle.with_metadata(puzzle_id=self._next_id)
            self._puzzles[stored.puzzle_id] = stored
            self._next_id += 1
        logger.info(f"Stored puzzle {stored.puzzle_id} '{stored.title}' ({stored.difficulty})")
        return stored

    def get(self, puzzle_id: int) -> Puzzle:
        try:
            return self._puzzles[puzzle_id]
        except KeyError:
            raise RecordNotFoundError(f"Puzzle with id {puzzle_id} not found") from None

    def update(self, puzzle_id: int, **changes: Any) -> Puzzle:
        with self._mutex:
            updated = self.get(puzzle_id).with_metadata(**changes)
            self._puzzles[puzzle_id] = updated
        return updated

    def save(self, puzzle: Puzzle) -> Puzzle:
        """Replace a stored puzzle with an edited copy carrying the same id."""
        with self._mutex:
            self.get(puzzle.puzzle_id)
            self._puzzles[puzzle.puzzle_id] = puzzle
        logger.info(f"Updated puzzle {puzzle.puzzle_id} '{puzzle.title}'")
        return puzzle

    def delete(self, puzzle_id: int, creator_id: int) -> bool:
        """Delete a puzzle owned by ``creator_id``; False when no such puzzle belongs to them."""
        with self._mutex:
            puzzle = self._puzzles.get(puzzle_id)
            if puzzle is None or puzzle.creator_id != creator_id:
                return False
            del self._puzzles[puzzle_id]
        logger.info(f"Deleted puzzle {puzzle_id} (creator={creator_id})")
        return True

    def by_creator(self, creator_id: int) -> List[Puzzle]:
        """Puzzles authored by ``creator_id``, newest first, published or not."""
        return sorted(
            (p for p in self._puzzles.values() if p.creator_id == creator_id),
            key=lambda p: p.puzzle_id,
            reverse=True,
        )

    def published(self, difficulty: Optional[str] = None) -> List[Puzzle]:
        return [
            p for p in self._puzzles.values()
            if p.is_published and (difficulty is None or p.difficulty == difficulty)
        ]


class AttemptRepository:
    def __init__(self):
        self._attempts: Dict[int, Attempt] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._next_id = 1
        self._mutex = threading.Lock()

    def create(self, puzzle: Puzzle, user_id: Optional[int], started_at: datetime) -> Attempt:
        tracker = PuzzleStateTracker(puzzle)
        with self._mutex:
            attempt = Attempt(
                attempt_id=self._next_id,
                puzzle_id=puzzle.puzzle_id,
                user_id=user_id,
                attempt_data=encode_board_state(tracker),
                started_at=started_at,
            )
            self._attempts[attempt.attempt_id] = attempt
            self._locks[attempt.attempt_id] = threading.Lock()
            self._next_id += 1
        logger.info(f"Attempt {attempt.attempt_id} started on puzzle {puzzle.puzzle_id} (user={user_id})")
        return attempt

    def get(self, attempt_id: int) -> Attempt:
        try:
            return self._attempts[attempt_id]
        except KeyError:
            raise RecordNotFoundError(f"Puzzle attempt with id {attempt_id} not found") from None

    def lock_for(self, attempt_id: int) -> threading.Lock:
        self.get(attempt_id)
        return self._locks[attempt_id]

    def save(self, attempt: Attempt, **changes: Any) -> Attempt:
        current = self.get(attempt.attempt_id)
        if current.is_completed and changes.get("is_completed") is False:
            raise ValueError(f"Attempt {attempt.attempt_id} is completed and cannot be reopened")
        updated = replace(attempt, **changes)
        self._attempts[attempt.attempt_id] = updated
        return updated

    def for_user(self, user_id: int) -> List[Attempt]:
        return [a for a in self._attempts.values() if a.user_id == user_id]

    def for_puzzle(self, puzzle_id: int) -> List[Attempt]:
        return [a for a in self._attempts.values() if a.puzzle_id == puzzle_id]


class AchievementRepository:
    """Write-once achievement records, at most one per attempt."""

    def __init__(self):
        self._achievements: List[Achievement] = []
        self._by_attempt: Dict[int, Achievement] = {}
        self._mutex = threading.Lock()

    def add(self, achievement: Achievement) -> Achievement:
        with self._mutex:
            if achievement.attempt_id is not None and achievement.attempt_id in self._by_attempt:
                raise DuplicateAchievementError(
                    f"Attempt {achievement.attempt_id} already has an achievement"
                )
            stored = replace(achievement, achievement_id=len(self._achievements) + 1)
            self._achievements.append(stored)
            if stored.attempt_id is not None:
                self._by_attempt[stored.attempt_id] = stored
        logger.info(
            f"Achievement {stored.achievement_id} for user {stored.user_id}: "
            f"{stored.completion_time_seconds}s, cookie_trifecta={stored.cookie_trifecta}"
        )
        return stored

    def for_user(self, user_id: int, difficulty: Optional[str] = None) -> List[Achievement]:
        return [
            a for a in self._achievements
            if a.user_id == user_id and (difficulty is None or a.difficulty == difficulty)
        ]
