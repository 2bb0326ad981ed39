"""Phase-level calculation.

A phase's raw value is reduced by its pre-allocations before it reaches the
allocation tree. Percentage pre-allocations always refer to the raw phase
value, not to what the earlier deductions left.
"""
from __future__ import annotations

from typing import List, Tuple

from allocation.project import Phase, PreAllocation
from allocation.rule import Fixed
from engine.allocation_engine import CalculationMap, calculate_tree


def pre_allocation_amount(pre: PreAllocation, phase_value: float) -> float:
    if isinstance(pre.rule, Fixed):
        return pre.rule.value
    return phase_value * (pre.rule.value / 100)


def pre_allocation_amounts(phase: Phase) -> List[Tuple[PreAllocation, float]]:
    return [(pre, pre_allocation_amount(pre, phase.phase_value)) for pre in phase.pre_allocations]


def phase_rest_value(phase: Phase) -> float:
    """Amount left for the tree after every pre-allocation; may be negative."""
    return phase.phase_value - sum(amount for _, amount in pre_allocation_amounts(phase))


def calculate_phase(phase: Phase) -> CalculationMap:
    return calculate_tree(phase.root_node, phase_rest_value(phase))
