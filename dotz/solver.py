# solver.py
"""
Backtracking solver for Dotz.fit puzzles.

Used when publishing a puzzle, to check that the domino set can satisfy every
region and to store a reference solution. Dominoes keep their pip order: the
first pip sits on the anchor cell, the second on the right neighbour
(horizontal) or the cell below (vertical).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .conditions import Condition, evaluate
from .puzzle import HORIZONTAL, ORIENTATIONS, VERTICAL, Orientation, Puzzle, load_puzzle_yaml
from .puzzle_state import PuzzleStateTracker

logger = logging.getLogger(__name__)

Placement = Tuple[int, str]  # (anchor cell, orientation)


@dataclass
class SolveResult:
    solved: bool
    placements: Dict[str, Placement] = field(default_factory=dict)
    values: Dict[int, int] = field(default_factory=dict)
    nodes: int = 0

    def to_solution_data(self) -> Dict[str, Dict[str, object]]:
        return {
            domino_id: {"cell": cell, "orientation": orientation}
            for domino_id, (cell, orientation) in self.placements.items()
        }


def check_condition_partial(
    condition: Condition,
    values: Sequence[int],
    unfilled_count: int,
    pip_min: int,
    pip_max: int,
) -> bool:
    """Conservative partial checking: prune only when impossible."""
    if unfilled_count == 0:
        return evaluate(condition, values)
    if condition.type == "difference":
        return len(values) + unfilled_count == 2
    if not values:
        return True

    target = condition.target
    if condition.type == "equality":
        return all(v == values[0] for v in values)
    if condition.type == "greater_than":
        return all(v > target for v in values)
    if condition.type == "less_than":
        return all(v < target for v in values)
    if condition.type == "sum":
        s = sum(values)
        return s + unfilled_count * pip_min <= target <= s + unfilled_count * pip_max
    if condition.type == "product":
        if pip_min < 0:
            return True
        p = math.prod(values)
        if p == 0:
            return target == 0
        if pip_min == 0 and target == 0:
            return True
        return p * max(pip_min, 1) ** unfilled_count <= target <= p * pip_max ** unfilled_count

    raise ValueError(f"Unknown condition type: {condition.type}")


class _Search:
    def __init__(self, puzzle: Puzzle, max_nodes: Optional[int]):
        self.puzzle = puzzle
        self.grid = puzzle.grid
        self.max_nodes = max_nodes
        self.nodes = 0

        self.dominoes = list(puzzle.dominoes)
        pips = [v for d in self.dominoes for v in d.values]
        self.pip_min = min(pips)
        self.pip_max = max(pips)

        self.cell_region: Dict[int, str] = {}
        for region in puzzle.regions:
            for cell in region.cells:
                self.cell_region[cell] = region.id
        self.required: List[int] = sorted(self.cell_region)

        self.values: Dict[int, int] = {}
        self.used: List[bool] = [False] * len(self.dominoes)
        self.placements: Dict[str, Placement] = {}

    # placements that would cover `cell`: (anchor, orientation, other cell)
    def _covering(self, cell: int) -> List[Tuple[int, str, int]]:
        out = []
        for orientation in ORIENTATIONS:
            nb = self.grid.neighbour(cell, orientation)
            if nb is not None and nb not in self.values:
                out.append((cell, orientation, nb))
        row, col = self.grid.row_col(cell)
        if col > 0 and cell - 1 not in self.values:
            out.append((cell - 1, HORIZONTAL, cell))
        if row > 0 and cell - self.grid.width not in self.values:
            out.append((cell - self.grid.width, VERTICAL, cell))
        return out

    def _regions_ok(self, cells: Tuple[int, int]) -> bool:
        touched = {self.cell_region[c] for c in cells if c in self.cell_region}
        for region_id in touched:
            region = self.puzzle.region(region_id)
            filled = [self.values[c] for c in region.cells if c in self.values]
            unfilled = len(region.cells) - len(filled)
            if not check_condition_partial(region.condition, filled, unfilled, self.pip_min, self.pip_max):
                return False
        return True

    def _place(self, i: int, anchor: int, orientation: Orientation) -> Tuple[int, int]:
        second = self.grid.neighbour(anchor, orientation)
        a, b = self.dominoes[i].values
        self.values[anchor] = a
        self.values[second] = b
        self.used[i] = True
        self.placements[self.dominoes[i].id] = (anchor, orientation)
        return anchor, second

    def _undo(self, i: int, cells: Tuple[int, int]) -> None:
        for c in cells:
            del self.values[c]
        self.used[i] = False
        del self.placements[self.dominoes[i].id]

    def _budget_spent(self) -> bool:
        self.nodes += 1
        return self.max_nodes is not None and self.nodes > self.max_nodes

    def cover_regions(self) -> bool:
        open_cells = [c for c in self.required if c not in self.values]
        if not open_cells:
            return self.place_rest(0)
        if self._budget_spent():
            return False

        # MRV-ish: cell with fewest ways to be covered
        cell = min(open_cells, key=lambda c: len(self._covering(c)))
        for anchor, orientation, _ in self._covering(cell):
            tried: Set[Tuple[int, int]] = set()
            for i, domino in enumerate(self.dominoes):
                if self.used[i] or domino.values in tried:
                    continue
                tried.add(domino.values)
                cells = self._place(i, anchor, orientation)
                if self._regions_ok(cells) and self.cover_regions():
                    return True
                self._undo(i, cells)
        return False

    def place_rest(self, min_anchor: int) -> bool:
        """Place leftover dominoes on cells outside every region."""
        try:
            i = self.used.index(False)
        except ValueError:
            return True
        if self._budget_spent():
            return False

        for anchor in range(min_anchor, self.grid.cell_count):
            if anchor in self.values:
                continue
            for orientation in ORIENTATIONS:
                second = self.grid.neighbour(anchor, orientation)
                if second is None or second in self.values:
                    continue
                cells = self._place(i, anchor, orientation)
                if self.place_rest(anchor):
                    return True
                self._undo(i, cells)
        return False


def solve(puzzle: Puzzle, max_nodes: Optional[int] = 200_000) -> SolveResult:
    """
    Search for a placement of every domino that completes the puzzle.

    Args:
        puzzle: Puzzle to solve
        max_nodes: Search budget; None for unlimited

    Returns:
        SolveResult; ``solved`` is False when no solution exists or the budget ran out
    """
    search = _Search(puzzle, max_nodes)
    if 2 * len(puzzle.dominoes) < len(search.required):
        logger.warning(
            f"{len(puzzle.dominoes)} dominoes cannot cover {len(search.required)} region cells"
        )
        return SolveResult(solved=False)

    ok = search.cover_regions()
    if search.max_nodes is not None and search.nodes > search.max_nodes:
        logger.warning(f"Solver gave up after {search.nodes} nodes")
    logger.debug(f"Solver finished: solved={ok}, nodes={search.nodes}")

    if not ok:
        return SolveResult(solved=False, nodes=search.nodes)
    return SolveResult(
        solved=True,
        placements=dict(search.placements),
        values=dict(search.values),
        nodes=search.nodes,
    )


def apply_solution(puzzle: Puzzle, placements: Dict[str, Placement]) -> PuzzleStateTracker:
    """Replay placements on a fresh tracker."""
    tracker = PuzzleStateTracker(puzzle)
    for domino_id, (cell, orientation) in placements.items():
        result = tracker.place(domino_id, cell, orientation)
        if not result.success:
            raise ValueError(f"Placement of {domino_id} at {cell} failed: {result.message}")
    return tracker


def render_solution(puzzle: Puzzle, values: Dict[int, int]) -> str:
    grid = puzzle.grid
    out_lines = []
    for r in range(grid.height):
        row_chars = []
        for c in range(grid.width):
            v = values.get(grid.cell_id(r, c))
            row_chars.append(str(v) if v is not None else ".")
        out_lines.append(" ".join(f"{ch:>2}" for ch in row_chars))
    return "\n".join(out_lines)


def main():
    import argparse
    ap = argparse.ArgumentParser(description="Solve a Dotz.fit puzzle definition")
    ap.add_argument("yaml_file", help="Path to puzzle YAML")
    ap.add_argument("--max-nodes", type=int, default=200_000, help="Search budget (0 = unlimited)")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    puzzle = load_puzzle_yaml(args.yaml_file)
    result = solve(puzzle, max_nodes=args.max_nodes or None)

    if not result.solved:
        print("NO SOLUTION (check the region conditions and the domino list).")
        return

    print("SOLVED.\n")
    print(render_solution(puzzle, result.values))
    print()
    for domino_id, (cell, orientation) in result.placements.items():
        print(f"  {domino_id}: cell {cell} {orientation}")


if __name__ == "__main__":
    main()
