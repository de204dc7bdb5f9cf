import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotz.conditions import Condition
from dotz.puzzle import Domino, Grid, Puzzle, Region

SAMPLE_YAML = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "puzzles", "sample_easy.yaml")


def make_puzzle(dominoes, regions, width=3, height=3, difficulty="Easy", **metadata):
    """Build a Puzzle from (id, cells, condition) region tuples and pip pairs."""
    return Puzzle(
        grid=Grid(width=width, height=height),
        regions=tuple(Region(id=rid, cells=tuple(cells), condition=cond) for rid, cells, cond in regions),
        dominoes=tuple(Domino(id=f"domino-{i}", values=tuple(v)) for i, v in enumerate(dominoes)),
        difficulty=difficulty,
        **metadata,
    )


@pytest.fixture
def sum_seven_puzzle():
    """3x3 grid, region {0, 1} with sum 7, single domino (3, 4)."""
    return make_puzzle([(3, 4)], [("red", [0, 1], Condition(type="sum", target=7))])


@pytest.fixture
def two_domino_puzzle():
    """3x3 grid with two regions and two dominoes."""
    return make_puzzle(
        [(3, 4), (2, 2)],
        [
            ("red", [0, 1], Condition(type="sum", target=7)),
            ("blue", [3, 6], Condition(type="equality")),
        ],
    )


@pytest.fixture
def sample_yaml_path():
    return SAMPLE_YAML
