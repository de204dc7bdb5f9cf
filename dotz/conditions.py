"""
Region condition evaluation.

A region carries exactly one condition. Given the ordered values currently
occupying the region's cells, `evaluate` decides whether the condition holds.
It is a pure function: it never raises for any sequence of integers, and
callers decide when a region is ready to be judged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Optional, Sequence

ConditionType = Literal["sum", "product", "difference", "equality", "greater_than", "less_than"]

CONDITION_TYPES = ("sum", "product", "difference", "equality", "greater_than", "less_than")


@dataclass(frozen=True)
class Condition:
    type: ConditionType
    target: Optional[int] = None  # required for every type except "equality"

    def __post_init__(self):
        if self.type not in CONDITION_TYPES:
            raise ValueError(
                f"Unknown condition type: {self.type}. "
                f"Valid types: {list(CONDITION_TYPES)}"
            )
        if self.type == "equality":
            if self.target is not None:
                raise ValueError("equality condition does not take a target value")
        elif not isinstance(self.target, int) or isinstance(self.target, bool):
            raise ValueError(f"{self.type} condition requires an integer target, got {self.target!r}")

    def to_dict(self) -> Dict[str, Any]:
        if self.type == "equality":
            return {"type": self.type}
        return {"type": self.type, "value": self.target}


def parse_condition(data: Dict[str, Any]) -> Condition:
    """
    Build a Condition from its stored form ``{"type": ..., "value": ...}``.

    Numeric strings are accepted for the target, as authoring tools store the
    raw input. Any value given for an equality condition is ignored.

    Raises:
        ValueError: If the type is unknown or the target is not an integer
    """
    ctype = data.get("type")
    if ctype == "equality":
        return Condition(type="equality")

    raw = data.get("value", data.get("target"))
    if isinstance(raw, str):
        try:
            raw = int(raw.strip())
        except ValueError:
            raise ValueError(f"Condition target must be numeric, got {raw!r}") from None
    elif isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    return Condition(type=ctype, target=raw)


def _sum(values: Sequence[int], target: Optional[int]) -> bool:
    return sum(values) == target


def _product(values: Sequence[int], target: Optional[int]) -> bool:
    return math.prod(values) == target


def _difference(values: Sequence[int], target: Optional[int]) -> bool:
    # Only defined for exactly two values; anything else is not satisfied.
    if len(values) != 2:
        return False
    return abs(values[0] - values[1]) == target


def _equality(values: Sequence[int], target: Optional[int]) -> bool:
    return all(v == values[0] for v in values)


def _greater_than(values: Sequence[int], target: Optional[int]) -> bool:
    return all(v > target for v in values)


def _less_than(values: Sequence[int], target: Optional[int]) -> bool:
    return all(v < target for v in values)


_EVALUATORS: Dict[str, Callable[[Sequence[int], Optional[int]], bool]] = {
    "sum": _sum,
    "product": _product,
    "difference": _difference,
    "equality": _equality,
    "greater_than": _greater_than,
    "less_than": _less_than,
}


def evaluate(condition: Condition, values: Sequence[int]) -> bool:
    """
    Check whether ``values`` satisfy ``condition``.

    Args:
        condition: The region's condition
        values: Values in region cell order; may be empty

    Returns:
        True if the condition holds
    """
    return _EVALUATORS[condition.type](list(values), condition.target)


def describe(condition: Condition) -> str:
    """Short display text for a condition, e.g. ``Σ = 7`` or ``All Equal``."""
    if condition.type == "sum":
        return f"Σ = {condition.target}"
    if condition.type == "product":
        return f"Π = {condition.target}"
    if condition.type == "difference":
        return f"|a-b| = {condition.target}"
    if condition.type == "equality":
        return "All Equal"
    if condition.type == "greater_than":
        return f"> {condition.target}"
    return f"< {condition.target}"
