"""
Puzzle definition model and loaders.

A puzzle is read-only input to play: grid dimensions, regions (ordered cell
lists with one condition each), the domino set and a difficulty tier. Stored
puzzles keep their board, dominoes and conditions as JSON blobs; YAML files
use the same layout in a single document.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import yaml

from .conditions import Condition, parse_condition
from .game_config import (
    GRID_MAX_SIZE,
    GRID_MIN_SIZE,
    DifficultyLevel,
    get_all_difficulties,
    is_valid_grid_size,
)

logger = logging.getLogger(__name__)

Orientation = Literal["horizontal", "vertical"]
HORIZONTAL = "horizontal"
VERTICAL = "vertical"
ORIENTATIONS = (HORIZONTAL, VERTICAL)

CELL_ID_PREFIX = "cell-"

# Stored fields that define play; the rest is publication metadata
DEFINITION_FIELDS = ("grid_width", "grid_height", "board_data", "dominoes_data", "conditions_data")


class PuzzleDefinitionError(ValueError):
    """Raised when stored puzzle data cannot be turned into a playable puzzle."""


@dataclass(frozen=True)
class Grid:
    width: int
    height: int

    def __post_init__(self):
        if not is_valid_grid_size(self.width) or not is_valid_grid_size(self.height):
            raise PuzzleDefinitionError(
                f"Grid must be between {GRID_MIN_SIZE}x{GRID_MIN_SIZE} and "
                f"{GRID_MAX_SIZE}x{GRID_MAX_SIZE}, got {self.width}x{self.height}"
            )

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    def contains(self, cell: int) -> bool:
        return 0 <= cell < self.cell_count

    def cell_id(self, row: int, col: int) -> int:
        return row * self.width + col

    def row_col(self, cell: int) -> Tuple[int, int]:
        return divmod(cell, self.width)

    def neighbour(self, cell: int, orientation: Orientation) -> Optional[int]:
        """
        Second cell covered by a domino anchored at ``cell``.

        Horizontal dominoes extend to the right, vertical ones downwards.
        Returns None when that cell falls outside the grid (a horizontal
        domino never wraps onto the next row).
        """
        if not self.contains(cell):
            return None
        row, col = self.row_col(cell)
        if orientation == HORIZONTAL:
            if col + 1 >= self.width:
                return None
            return cell + 1
        if orientation == VERTICAL:
            if row + 1 >= self.height:
                return None
            return cell + self.width
        raise ValueError(f"Unknown orientation: {orientation}. Valid orientations: {list(ORIENTATIONS)}")


@dataclass(frozen=True)
class Region:
    id: str
    cells: Tuple[int, ...]  # authoring order; condition values are read in this order
    condition: Optional[Condition] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class Domino:
    id: str
    values: Tuple[int, int]

    @property
    def is_double(self) -> bool:
        return self.values[0] == self.values[1]


@dataclass(frozen=True)
class Puzzle:
    """Immutable puzzle definition plus the publication metadata stored with it."""
    grid: Grid
    regions: Tuple[Region, ...]
    dominoes: Tuple[Domino, ...]
    difficulty: DifficultyLevel = "Easy"

    # Publication metadata, not used during play
    puzzle_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    creator_id: Optional[int] = None
    is_published: bool = False
    is_daily_puzzle: bool = False
    daily_puzzle_date: Optional[date] = None
    solution_data: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def __post_init__(self):
        if self.difficulty not in get_all_difficulties():
            raise PuzzleDefinitionError(
                f"Unknown difficulty: {self.difficulty}. Valid difficulties: {get_all_difficulties()}"
            )
        if not self.regions:
            raise PuzzleDefinitionError("Puzzle must have at least one region")
        if not self.dominoes:
            raise PuzzleDefinitionError("Puzzle must have at least one domino")

        owner: Dict[int, str] = {}
        region_ids = set()
        for region in self.regions:
            if region.id in region_ids:
                raise PuzzleDefinitionError(f"Duplicate region id '{region.id}'")
            region_ids.add(region.id)
            if not region.cells:
                raise PuzzleDefinitionError(f"Region '{region.id}' has no cells")
            if region.condition is None:
                raise PuzzleDefinitionError(f"Region '{region.id}' has no condition")
            for cell in region.cells:
                if not self.grid.contains(cell):
                    raise PuzzleDefinitionError(
                        f"Region '{region.id}' cell {cell} is outside the "
                        f"{self.grid.width}x{self.grid.height} grid"
                    )
                if cell in owner:
                    raise PuzzleDefinitionError(
                        f"Cell {cell} belongs to both region '{owner[cell]}' and region '{region.id}'"
                    )
                owner[cell] = region.id

        domino_ids = set()
        for domino in self.dominoes:
            if domino.id in domino_ids:
                raise PuzzleDefinitionError(f"Duplicate domino id '{domino.id}'")
            domino_ids.add(domino.id)

    def region(self, region_id: str) -> Region:
        for region in self.regions:
            if region.id == region_id:
                return region
        raise KeyError(region_id)

    def domino(self, domino_id: str) -> Domino:
        for domino in self.dominoes:
            if domino.id == domino_id:
                return domino
        raise KeyError(domino_id)

    def with_metadata(self, **changes: Any) -> "Puzzle":
        return replace(self, **changes)

    def with_records(self, **changes: Any) -> "Puzzle":
        """
        Apply changes given in the stored row layout and re-validate the result.

        Changing the grid size, board, dominoes or conditions drops the stored
        solution unless a new ``solution_data`` is supplied with the change.

        Raises:
            PuzzleDefinitionError: If the changed puzzle is not playable
        """
        records = self.to_records()
        if "solution_data" not in changes and any(k in changes for k in DEFINITION_FIELDS):
            records["solution_data"] = None
        records.update(changes)
        return puzzle_from_records(**records)

    def to_records(self) -> Dict[str, Any]:
        """Flatten to the stored row layout (board/dominoes/conditions as JSON strings)."""
        board = {
            region.id: {"id": region.id, "color": region.color, "cells": [format_cell_id(c) for c in region.cells]}
            for region in self.regions
        }
        conditions = {region.id: region.condition.to_dict() for region in self.regions}
        dominoes = [{"id": d.id, "values": list(d.values)} for d in self.dominoes]
        return {
            "id": self.puzzle_id,
            "title": self.title,
            "description": self.description,
            "creator_id": self.creator_id,
            "difficulty_level": self.difficulty,
            "grid_width": self.grid.width,
            "grid_height": self.grid.height,
            "board_data": json.dumps(board),
            "dominoes_data": json.dumps(dominoes),
            "conditions_data": json.dumps(conditions),
            "solution_data": json.dumps(self.solution_data) if self.solution_data is not None else None,
            "is_published": self.is_published,
            "is_daily_puzzle": self.is_daily_puzzle,
            "daily_puzzle_date": self.daily_puzzle_date.isoformat() if self.daily_puzzle_date else None,
        }


# =============================================================================
# Loaders
# =============================================================================

def _load_blob(blob: Union[str, Dict, List, None], name: str) -> Any:
    if blob is None:
        raise PuzzleDefinitionError(f"Missing {name}")
    if isinstance(blob, str):
        try:
            return json.loads(blob)
        except json.JSONDecodeError as e:
            raise PuzzleDefinitionError(f"{name} is not valid JSON: {e}") from e
    return blob


def parse_cell_id(raw: Any) -> int:
    """
    Convert a stored cell id to a linear index.

    The creator stores cells as ``"cell-<index>"`` keys; plain integers and
    digit strings are accepted as well.
    """
    if isinstance(raw, bool):
        raise PuzzleDefinitionError(f"Invalid cell id: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith(CELL_ID_PREFIX):
            text = text[len(CELL_ID_PREFIX):]
        if text.isdigit():
            return int(text)
    raise PuzzleDefinitionError(f"Invalid cell id: {raw!r}")


def format_cell_id(cell: int) -> str:
    return f"{CELL_ID_PREFIX}{cell}"


def parse_dominoes(raw: List[Any]) -> Tuple[Domino, ...]:
    """Read ``[{"id", "values": [a, b]}]`` or bare ``[a, b]`` pairs."""
    dominoes: List[Domino] = []
    for index, entry in enumerate(raw):
        if isinstance(entry, dict):
            domino_id = str(entry.get("id", f"domino-{index}"))
            values = entry.get("values")
        else:
            domino_id = f"domino-{index}"
            values = entry
        if values is None or len(values) != 2:
            raise PuzzleDefinitionError(f"Domino {domino_id} must have exactly two pip values")
        try:
            pair = (int(values[0]), int(values[1]))
        except (TypeError, ValueError) as e:
            raise PuzzleDefinitionError(f"Domino {domino_id} has non-integer pips: {values!r}") from e
        dominoes.append(Domino(id=domino_id, values=pair))
    return tuple(dominoes)


def puzzle_from_records(
    grid_width: int,
    grid_height: int,
    board_data: Union[str, Dict[str, Any]],
    dominoes_data: Union[str, List[Any]],
    conditions_data: Union[str, Dict[str, Any], None] = None,
    difficulty_level: str = "Easy",
    **metadata: Any,
) -> Puzzle:
    """
    Build a Puzzle from the stored row layout.

    ``board_data`` maps region id to ``{"color", "cells"}``; a region may also
    carry its ``condition`` inline, which ``conditions_data`` overrides.

    Raises:
        PuzzleDefinitionError: If any blob is malformed or inconsistent
    """
    grid = Grid(width=int(grid_width), height=int(grid_height))
    board = _load_blob(board_data, "board_data")
    conditions = _load_blob(conditions_data, "conditions_data") if conditions_data is not None else {}
    tiles = _load_blob(dominoes_data, "dominoes_data")

    if not isinstance(board, dict):
        raise PuzzleDefinitionError("board_data must map region ids to regions")
    if not isinstance(conditions, dict):
        raise PuzzleDefinitionError("conditions_data must map region ids to conditions")
    if not isinstance(tiles, list):
        raise PuzzleDefinitionError("dominoes_data must be a list")

    regions: List[Region] = []
    for region_id, region_raw in board.items():
        region_raw = region_raw or {}
        cells = tuple(parse_cell_id(c) for c in region_raw.get("cells", []))
        cond_raw = conditions.get(region_id, region_raw.get("condition"))
        if cond_raw is None:
            raise PuzzleDefinitionError(f"Region '{region_id}' has no condition")
        try:
            condition = parse_condition(cond_raw)
        except ValueError as e:
            raise PuzzleDefinitionError(f"Region '{region_id}': {e}") from e
        regions.append(Region(
            id=str(region_id),
            cells=cells,
            condition=condition,
            color=region_raw.get("color"),
        ))

    for region_id in conditions:
        if region_id not in board:
            logger.warning(f"Condition for unknown region '{region_id}' ignored")

    solution = metadata.pop("solution_data", None)
    if isinstance(solution, str):
        solution = _load_blob(solution, "solution_data")
    daily = metadata.pop("daily_puzzle_date", None)
    if isinstance(daily, str):
        daily = date.fromisoformat(daily)
    if "id" in metadata:
        metadata["puzzle_id"] = metadata.pop("id")

    known = {"puzzle_id", "title", "description", "creator_id", "is_published", "is_daily_puzzle"}
    extra = {k: v for k, v in metadata.items() if k in known}

    return Puzzle(
        grid=grid,
        regions=tuple(regions),
        dominoes=parse_dominoes(tiles),
        difficulty=difficulty_level,
        solution_data=solution,
        daily_puzzle_date=daily,
        **extra,
    )


def puzzle_from_dict(data: Dict[str, Any]) -> Puzzle:
    """
    Build a Puzzle from a single nested document (the YAML file layout)::

        title: Two cells
        difficulty: Easy
        grid: {width: 3, height: 3}
        regions:
          red: {color: red, cells: [0, 1], condition: {type: sum, value: 7}}
        dominoes:
          - [3, 4]
    """
    try:
        grid = data["grid"]
        regions = data["regions"]
        dominoes = data["dominoes"]
    except KeyError as e:
        raise PuzzleDefinitionError(f"Missing required field {e}") from e

    return puzzle_from_records(
        grid_width=grid["width"],
        grid_height=grid["height"],
        board_data=regions,
        dominoes_data=dominoes,
        difficulty_level=data.get("difficulty", "Easy"),
        title=data.get("title", ""),
        description=data.get("description"),
    )


def load_puzzle_yaml(path: Union[str, Path]) -> Puzzle:
    """Load a puzzle definition from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise PuzzleDefinitionError(f"{path}: expected a mapping at top level")
    puzzle = puzzle_from_dict(data)
    logger.debug(f"Loaded puzzle '{puzzle.title}' from {path}")
    return puzzle
