"""
Centralized Game Configuration Module

This module defines the tunable game parameters for Dotz.fit puzzles: grid
size limits, per-difficulty domino generation settings, region colors used
by the puzzle builder and the Cookie Trifecta time threshold.

Difficulty tiers:
- Easy: few dominoes with low pip values
- Medium: more dominoes, pips up to 9
- Hard: most dominoes, pips up to 12

The Cookie Trifecta threshold is applied uniformly across tiers.
"""

from typing import Dict, List, Literal

# Type alias for difficulty tier
DifficultyLevel = Literal["Easy", "Medium", "Hard"]


# Grid bounds (inclusive) for both width and height
GRID_MIN_SIZE = 3
GRID_MAX_SIZE = 10

# Default grid size for a new puzzle in the builder
DEFAULT_GRID_SIZE = 4


# Domino generation settings per difficulty tier
DIFFICULTY_SETTINGS: Dict[str, Dict[str, int]] = {
    "Easy": {
        "domino_count": 4,
        "pip_min": 1,
        "pip_max": 6,
    },
    "Medium": {
        "domino_count": 6,
        "pip_min": 1,
        "pip_max": 9,
    },
    "Hard": {
        "domino_count": 8,
        "pip_min": 1,
        "pip_max": 12,
    },
}


# Completion time (seconds, inclusive) that earns the Cookie Trifecta
COOKIE_TRIFECTA_SECONDS = 60


# Region palette offered by the puzzle builder: color id -> display class
REGION_COLORS: Dict[str, str] = {
    "red": "bg-red-200 border-red-400",
    "blue": "bg-blue-200 border-blue-400",
    "green": "bg-green-200 border-green-400",
    "yellow": "bg-yellow-200 border-yellow-400",
    "purple": "bg-purple-200 border-purple-400",
    "orange": "bg-orange-200 border-orange-400",
    "pink": "bg-pink-200 border-pink-400",
    "cyan": "bg-cyan-200 border-cyan-400",
}


def get_difficulty_settings(difficulty: str) -> Dict[str, int]:
    """
    Get domino generation settings for a difficulty tier.

    Args:
        difficulty: Difficulty tier name (must be key in DIFFICULTY_SETTINGS)

    Returns:
        Dictionary with "domino_count", "pip_min" and "pip_max"

    Raises:
        ValueError: If difficulty is not in DIFFICULTY_SETTINGS
    """
    if difficulty not in DIFFICULTY_SETTINGS:
        raise ValueError(
            f"Unknown difficulty: {difficulty}. "
            f"Valid difficulties: {list(DIFFICULTY_SETTINGS.keys())}"
        )

    return DIFFICULTY_SETTINGS[difficulty].copy()


def get_all_difficulties() -> List[str]:
    """
    Get list of all difficulty tiers, easiest first.

    Returns:
        List of difficulty names
    """
    return list(DIFFICULTY_SETTINGS.keys())


def is_valid_grid_size(size: int) -> bool:
    """Check that a grid dimension lies within [GRID_MIN_SIZE, GRID_MAX_SIZE]."""
    return isinstance(size, int) and GRID_MIN_SIZE <= size <= GRID_MAX_SIZE
