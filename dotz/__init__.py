"""
Dotz.fit puzzle core: condition evaluation, board state tracking and achievements.
"""

from .achievements import Achievement, AchievementOutcome, cookie_trifecta_status, derive_achievement
from .conditions import Condition, evaluate
from .puzzle import Domino, Grid, Puzzle, PuzzleDefinitionError, Region, load_puzzle_yaml
from .puzzle_state import AttemptPhase, BoardStatus, MoveResult, PlacementError, PuzzleStateTracker

__all__ = [
    "Achievement",
    "AchievementOutcome",
    "AttemptPhase",
    "BoardStatus",
    "Condition",
    "Domino",
    "Grid",
    "MoveResult",
    "PlacementError",
    "Puzzle",
    "PuzzleDefinitionError",
    "PuzzleStateTracker",
    "Region",
    "cookie_trifecta_status",
    "derive_achievement",
    "evaluate",
    "load_puzzle_yaml",
]
