"""Allocation engine.

Cascades an input amount down an allocation tree. Each parent pays its
children in three passes:
1. Fixed children take their absolute amount
2. Percentage children take a share of the parent's full input
3. Remainder children split whatever is left evenly, positive or negative

Over-allocation and leftovers are reported as flags on the result, never
raised. The input tree is not modified and a fresh map is built per call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal

from allocation.node import AllocationNode
from allocation.rule import Fixed, Percentage, Remainder

EPSILON = 0.01  # currency units

PhaseStatus = Literal["error", "warning", "normal"]


@dataclass(frozen=True)
class CalculationResult:
    """Outcome of the allocation for a single node."""

    amount: float
    percent_of_parent: float  # 0-1 fraction
    is_error: bool
    is_warning: bool
    unallocated: float


CalculationMap = Dict[str, CalculationResult]


def _share(part: float, whole: float) -> float:
    return 0.0 if whole == 0 else part / whole


def _calculate(
    node: AllocationNode,
    input_amount: float,
    percent_of_parent: float,
    results: CalculationMap,
) -> None:
    # Parent goes in first so the map enumerates in pre-order; the entry is
    # overwritten in place once the children are paid.
    results[node.id] = CalculationResult(
        amount=input_amount,
        percent_of_parent=percent_of_parent,
        is_error=input_amount < -EPSILON,
        is_warning=False,
        unallocated=input_amount,
    )
    if not node.children:
        return

    fixed: List[AllocationNode] = []
    percent: List[AllocationNode] = []
    remainder: List[AllocationNode] = []
    for child in node.children:
        if isinstance(child.rule, Fixed):
            fixed.append(child)
        elif isinstance(child.rule, Percentage):
            percent.append(child)
        elif isinstance(child.rule, Remainder):
            remainder.append(child)
        else:
            raise TypeError(f"Unknown allocation rule on node {child.id}: {child.rule!r}")

    remaining = input_amount

    for child in fixed:
        allocated = child.rule.value
        remaining -= allocated
        _calculate(child, allocated, _share(allocated, input_amount), results)

    for child in percent:
        allocated = input_amount * (child.rule.value / 100)
        remaining -= allocated
        _calculate(child, allocated, 0.0 if input_amount == 0 else child.rule.value / 100, results)

    if remainder:
        per_node = remaining / len(remainder)
        for child in remainder:
            _calculate(child, per_node, _share(per_node, input_amount), results)
        unallocated = 0.0
    else:
        unallocated = remaining

    is_error = input_amount < -EPSILON or unallocated < -EPSILON
    results[node.id] = CalculationResult(
        amount=input_amount,
        percent_of_parent=percent_of_parent,
        is_error=is_error,
        is_warning=not is_error and unallocated > EPSILON,
        unallocated=unallocated,
    )


def calculate_tree(node: AllocationNode, input_amount: float) -> CalculationMap:
    """Compute every node's share of ``input_amount``.

    Args:
        node: Root of the (sub)tree. Its own rule is ignored.
        input_amount: Amount flowing into the root; may be negative.

    Returns:
        Mapping of node id to CalculationResult for the root and all
        descendants. The root's percent_of_parent is 0.
    """
    results: CalculationMap = {}
    _calculate(node, float(input_amount), 0.0, results)
    return results


def phase_status(results: CalculationMap) -> PhaseStatus:
    """Overall status of a computed tree: any error wins over any warning."""
    values = results.values()
    if any(r.is_error for r in values):
        return "error"
    if any(r.is_warning for r in values):
        return "warning"
    return "normal"
