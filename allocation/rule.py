"""Allocation rules attached to tree nodes.

A rule says how much of its parent's input a node receives:
- Fixed: an absolute amount
- Percentage: a share (0-100) of the parent's full input
- Remainder: an even split of whatever the fixed/percentage siblings left
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Union


class RuleType(Enum):
    """Wire tags for allocation rules."""

    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"
    REMAINDER = "REMAINDER"


@dataclass(frozen=True)
class Fixed:
    value: float  # absolute amount

    @property
    def kind(self) -> RuleType:
        return RuleType.FIXED


@dataclass(frozen=True)
class Percentage:
    value: float  # 0-100, of the parent's full input

    @property
    def kind(self) -> RuleType:
        return RuleType.PERCENTAGE


@dataclass(frozen=True)
class Remainder:
    value: float = 0.0  # reserved weight, not used by the engine

    @property
    def kind(self) -> RuleType:
        return RuleType.REMAINDER


AllocationRule = Union[Fixed, Percentage, Remainder]

_RULE_CLASSES = {
    RuleType.FIXED: Fixed,
    RuleType.PERCENTAGE: Percentage,
    RuleType.REMAINDER: Remainder,
}


def make_rule(kind: RuleType | str, value: float = 0.0) -> AllocationRule:
    """Build a rule from its tag and value.

    Args:
        kind: RuleType or its wire string ("FIXED", "PERCENTAGE", "REMAINDER").
        value: Amount, percentage or reserved weight depending on the kind.

    Returns:
        The matching rule instance.

    Raises:
        ValueError: If the tag is not a known rule type.
    """
    return _RULE_CLASSES[RuleType(kind)](float(value))


def rule_to_dict(rule: AllocationRule) -> Dict[str, Any]:
    return {"type": rule.kind.value, "value": rule.value}


def describe_rule(rule: AllocationRule) -> str:
    """Short human-readable label for a rule."""
    if isinstance(rule, Fixed):
        return f"fixed {rule.value:,.2f}"
    if isinstance(rule, Percentage):
        return f"{rule.value:g}%"
    return "remainder"
