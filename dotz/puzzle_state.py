"""
Puzzle State Tracker.

Owns the board state of a single attempt: which domino covers which cell,
each domino's orientation, and the attempt phase. Every move returns a
MoveResult; rejected moves are ordinary user-input outcomes and leave the
board untouched.

Phases:
- not_started: no successful move yet
- in_progress: at least one successful move
- completed: entered once, on the move that completes the puzzle; terminal
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .conditions import evaluate
from .puzzle import HORIZONTAL, ORIENTATIONS, VERTICAL, Domino, Orientation, Puzzle

logger = logging.getLogger(__name__)


class PlacementError(str, Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    CELL_OCCUPIED = "cell_occupied"
    ALREADY_PLACED = "already_placed"
    NOT_PLACED = "not_placed"
    UNKNOWN_DOMINO = "unknown_domino"
    ALREADY_COMPLETED = "already_completed"


ERROR_MESSAGES: Dict[PlacementError, str] = {
    PlacementError.OUT_OF_BOUNDS: "Domino would extend past the edge of the board",
    PlacementError.CELL_OCCUPIED: "Cell occupied",
    PlacementError.ALREADY_PLACED: "Domino is already on the board",
    PlacementError.NOT_PLACED: "Domino is not on the board",
    PlacementError.UNKNOWN_DOMINO: "Domino is not part of this puzzle",
    PlacementError.ALREADY_COMPLETED: "Puzzle is already complete",
}


class AttemptPhase(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class CellCover:
    domino_id: str
    value: int


@dataclass(frozen=True)
class BoardStatus:
    filled_regions: FrozenSet[str]
    violated_regions: FrozenSet[str]
    complete: bool


@dataclass
class MoveResult:
    """Result of a place/remove/rotate call."""
    success: bool
    error: Optional[PlacementError] = None
    message: Optional[str] = None
    just_completed: bool = False

    @classmethod
    def failed(cls, error: PlacementError) -> "MoveResult":
        return cls(success=False, error=error, message=ERROR_MESSAGES[error])


@dataclass
class _Placement:
    anchor: int
    orientation: Orientation
    cells: Tuple[int, int]


class PuzzleStateTracker:
    """Tracks domino placement for one attempt at one puzzle."""

    def __init__(self, puzzle: Puzzle):
        self.puzzle = puzzle
        self.board: Dict[int, CellCover] = {}
        self.phase = AttemptPhase.NOT_STARTED
        self._dominoes: Dict[str, Domino] = {d.id: d for d in puzzle.dominoes}
        self._orientation: Dict[str, str] = {d.id: HORIZONTAL for d in puzzle.dominoes}
        self._placements: Dict[str, _Placement] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_completed(self) -> bool:
        return self.phase == AttemptPhase.COMPLETED

    def orientation(self, domino_id: str) -> str:
        return self._orientation[domino_id]

    def is_placed(self, domino_id: str) -> bool:
        return domino_id in self._placements

    def placed_dominoes(self) -> List[str]:
        return list(self._placements)

    def region_values(self, region_id: str) -> List[int]:
        """Values of the covered cells of a region, in region cell order."""
        region = self.puzzle.region(region_id)
        return [self.board[c].value for c in region.cells if c in self.board]

    def status(self) -> BoardStatus:
        filled = set()
        violated = set()
        for region in self.puzzle.regions:
            if not all(c in self.board for c in region.cells):
                continue
            filled.add(region.id)
            values = [self.board[c].value for c in region.cells]
            if not evaluate(region.condition, values):
                violated.add(region.id)

        complete = (
            len(self._placements) == len(self._dominoes)
            and len(filled) == len(self.puzzle.regions)
            and not violated
        )
        return BoardStatus(
            filled_regions=frozenset(filled),
            violated_regions=frozenset(violated),
            complete=complete,
        )

    # -------------------------------------------------------------------------
    # Moves
    # -------------------------------------------------------------------------

    def place(self, domino_id: str, cell: int, orientation: Optional[Orientation] = None) -> MoveResult:
        """
        Place a domino with its first pip on ``cell``.

        The second pip goes on the right neighbour (horizontal) or the cell
        below (vertical). Without ``orientation`` the domino's current
        orientation is used.
        """
        if self.is_completed:
            return MoveResult.failed(PlacementError.ALREADY_COMPLETED)
        if domino_id not in self._dominoes:
            return MoveResult.failed(PlacementError.UNKNOWN_DOMINO)
        if orientation is not None and orientation not in ORIENTATIONS:
            raise ValueError(f"Unknown orientation: {orientation}. Valid orientations: {list(ORIENTATIONS)}")

        error = self._put(domino_id, cell, orientation or self._orientation[domino_id])
        if error is not None:
            logger.debug(f"place {domino_id} at {cell} rejected: {error.value}")
            return MoveResult.failed(error)
        return self._after_move()

    def remove(self, domino_id: str) -> MoveResult:
        """Take a domino off the board, uncovering both of its cells."""
        if self.is_completed:
            return MoveResult.failed(PlacementError.ALREADY_COMPLETED)
        if domino_id not in self._dominoes:
            return MoveResult.failed(PlacementError.UNKNOWN_DOMINO)
        if domino_id not in self._placements:
            return MoveResult.failed(PlacementError.NOT_PLACED)

        self._take(domino_id)
        return self._after_move()

    def rotate(self, domino_id: str) -> MoveResult:
        """
        Toggle a domino between horizontal and vertical.

        A placed domino is re-placed at the same anchor cell in the new
        orientation; if the new cells are unavailable the board is left as
        it was and the placement error is returned.
        """
        if self.is_completed:
            return MoveResult.failed(PlacementError.ALREADY_COMPLETED)
        if domino_id not in self._dominoes:
            return MoveResult.failed(PlacementError.UNKNOWN_DOMINO)

        current = self._orientation[domino_id]
        turned = VERTICAL if current == HORIZONTAL else HORIZONTAL

        placement = self._placements.get(domino_id)
        if placement is None:
            self._orientation[domino_id] = turned
            return self._after_move()

        self._take(domino_id)
        error = self._put(domino_id, placement.anchor, turned)
        if error is not None:
            restored = self._put(domino_id, placement.anchor, placement.orientation)
            if restored is not None:
                raise RuntimeError(f"Could not restore {domino_id} at {placement.anchor}: {restored.value}")
            logger.debug(f"rotate {domino_id} at {placement.anchor} rejected: {error.value}")
            return MoveResult.failed(error)
        return self._after_move()

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data copy of the board state, suitable for JSON encoding."""
        return {
            "phase": self.phase.value,
            "orientations": dict(self._orientation),
            "placements": {
                domino_id: {"cell": p.anchor, "orientation": p.orientation}
                for domino_id, p in self._placements.items()
            },
            "board": {
                str(cell): {"domino_id": cover.domino_id, "value": cover.value}
                for cell, cover in sorted(self.board.items())
            },
        }

    @classmethod
    def from_snapshot(cls, puzzle: Puzzle, data: Dict[str, Any]) -> "PuzzleStateTracker":
        """
        Rebuild a tracker from ``snapshot()`` output.

        Raises:
            ValueError: If the snapshot does not fit the puzzle
        """
        tracker = cls(puzzle)
        for domino_id, orientation in data.get("orientations", {}).items():
            if domino_id not in tracker._dominoes or orientation not in ORIENTATIONS:
                raise ValueError(f"Snapshot orientation for '{domino_id}' does not fit this puzzle")
            tracker._orientation[domino_id] = orientation
        for domino_id, p in data.get("placements", {}).items():
            if domino_id not in tracker._dominoes:
                raise ValueError(f"Snapshot places unknown domino '{domino_id}'")
            error = tracker._put(domino_id, int(p["cell"]), p["orientation"])
            if error is not None:
                raise ValueError(f"Snapshot placement of '{domino_id}' is invalid: {error.value}")
        tracker.phase = AttemptPhase(data.get("phase", AttemptPhase.NOT_STARTED.value))
        return tracker

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _put(self, domino_id: str, anchor: int, orientation: Orientation) -> Optional[PlacementError]:
        if domino_id in self._placements:
            return PlacementError.ALREADY_PLACED
        grid = self.puzzle.grid
        second = grid.neighbour(anchor, orientation)
        if second is None:
            return PlacementError.OUT_OF_BOUNDS
        if anchor in self.board or second in self.board:
            return PlacementError.CELL_OCCUPIED

        first_value, second_value = self._dominoes[domino_id].values
        self.board[anchor] = CellCover(domino_id=domino_id, value=first_value)
        self.board[second] = CellCover(domino_id=domino_id, value=second_value)
        self._placements[domino_id] = _Placement(anchor=anchor, orientation=orientation, cells=(anchor, second))
        self._orientation[domino_id] = orientation
        return None

    def _take(self, domino_id: str) -> _Placement:
        placement = self._placements.pop(domino_id)
        for cell in placement.cells:
            del self.board[cell]
        return placement

    def _after_move(self) -> MoveResult:
        if self.phase == AttemptPhase.NOT_STARTED:
            self.phase = AttemptPhase.IN_PROGRESS
        if self.status().complete:
            self.phase = AttemptPhase.COMPLETED
            logger.info(f"Puzzle {self.puzzle.puzzle_id} completed with {len(self._placements)} dominoes placed")
            return MoveResult(success=True, just_completed=True)
        return MoveResult(success=True)
