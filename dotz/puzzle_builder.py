"""
Puzzle authoring.

PuzzleBuilder holds the short-lived state of a puzzle being designed: grid
size, regions painted cell by cell, a condition per region and a generated
domino set. It turns into an immutable Puzzle with ``build()``.

Painting follows last-assignment-wins: a painted cell leaves whatever region
it was in, and regions left without cells disappear.
"""

import logging
import random
from typing import Any, Dict, List, Optional

from .conditions import Condition, ConditionType, parse_condition
from .game_config import DEFAULT_GRID_SIZE, REGION_COLORS, DifficultyLevel, get_difficulty_settings
from .puzzle import Domino, Grid, Puzzle, PuzzleDefinitionError, Region

logger = logging.getLogger(__name__)


class PuzzleBuilder:
    def __init__(
        self,
        width: int = DEFAULT_GRID_SIZE,
        height: int = DEFAULT_GRID_SIZE,
        difficulty: DifficultyLevel = "Easy",
        title: str = "",
        description: Optional[str] = None,
    ):
        get_difficulty_settings(difficulty)
        self.grid = Grid(width=width, height=height)
        self.difficulty = difficulty
        self.title = title
        self.description = description
        # region id (a palette color) -> ordered cells
        self.regions: Dict[str, List[int]] = {}
        self.conditions: Dict[str, Condition] = {}
        self.dominoes: List[Domino] = []

    def resize(self, width: int, height: int) -> None:
        """Change the grid size; all regions and conditions are cleared."""
        self.grid = Grid(width=width, height=height)
        self.regions = {}
        self.conditions = {}

    def set_difficulty(self, difficulty: DifficultyLevel) -> None:
        get_difficulty_settings(difficulty)
        self.difficulty = difficulty

    def paint(self, cell: int, color: str) -> None:
        """Assign ``cell`` to the region of ``color``."""
        if color not in REGION_COLORS:
            raise ValueError(f"Unknown region color: {color}. Valid colors: {list(REGION_COLORS.keys())}")
        if not self.grid.contains(cell):
            raise ValueError(f"Cell {cell} is outside the {self.grid.width}x{self.grid.height} grid")

        self.erase(cell)
        self.regions.setdefault(color, []).append(cell)

    def erase(self, cell: int) -> None:
        """Remove ``cell`` from its region, dropping the region if it empties."""
        for region_id in list(self.regions):
            cells = self.regions[region_id]
            if cell in cells:
                cells.remove(cell)
            if not cells:
                del self.regions[region_id]
                self.conditions.pop(region_id, None)

    def region_of(self, cell: int) -> Optional[str]:
        for region_id, cells in self.regions.items():
            if cell in cells:
                return region_id
        return None

    def set_condition(self, region_id: str, condition_type: ConditionType, value: Any = None) -> Condition:
        """
        Attach a condition to a region.

        ``value`` may be the raw text typed by the author; it is ignored for
        equality conditions.
        """
        if region_id not in self.regions:
            raise ValueError(f"No region '{region_id}' on the board")
        condition = parse_condition({"type": condition_type, "value": value})
        self.conditions[region_id] = condition
        return condition

    def generate_dominoes(self, rng: Optional[random.Random] = None) -> List[Domino]:
        """Replace the domino set with a random one sized for the difficulty tier."""
        rng = rng or random.Random()
        settings = get_difficulty_settings(self.difficulty)
        self.dominoes = [
            Domino(
                id=f"domino-{i}",
                values=(
                    rng.randint(settings["pip_min"], settings["pip_max"]),
                    rng.randint(settings["pip_min"], settings["pip_max"]),
                ),
            )
            for i in range(settings["domino_count"])
        ]
        logger.debug(f"Generated {len(self.dominoes)} dominoes for {self.difficulty}")
        return self.dominoes

    def problems(self) -> List[str]:
        """Reasons the design is not ready to publish; empty when it is."""
        issues = []
        if not self.regions:
            issues.append("Please create at least one colored region")
        elif any(region_id not in self.conditions for region_id in self.regions):
            issues.append("Please set conditions for all regions")
        if not self.dominoes:
            issues.append("Please generate dominoes for testing")
        return issues

    def build(self, **metadata: Any) -> Puzzle:
        """
        Freeze the design into a Puzzle.

        Raises:
            PuzzleDefinitionError: If the design is incomplete
        """
        issues = self.problems()
        if issues:
            raise PuzzleDefinitionError("; ".join(issues))

        regions = tuple(
            Region(
                id=region_id,
                cells=tuple(cells),
                condition=self.conditions[region_id],
                color=REGION_COLORS[region_id],
            )
            for region_id, cells in self.regions.items()
        )
        metadata.setdefault("title", self.title)
        metadata.setdefault("description", self.description)
        return Puzzle(
            grid=self.grid,
            regions=regions,
            dominoes=tuple(self.dominoes),
            difficulty=self.difficulty,
            **metadata,
        )
