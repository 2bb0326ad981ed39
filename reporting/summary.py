from __future__ import annotations
from typing import Dict, Any, List, Optional
from allocation.node import AllocationNode
from allocation.project import Phase
from allocation.rule import describe_rule
from engine.allocation_engine import EPSILON, CalculationMap, phase_status
from engine.phase_engine import calculate_phase, phase_rest_value, pre_allocation_amounts
from engine.tree_ops import count_leaves, count_nodes, iter_nodes

def phase_summary(phase: Phase, results: Optional[CalculationMap] = None) -> Dict[str, Any]:
    if results is None:
        results = calculate_phase(phase)
    nodes = list(iter_nodes(phase.root_node))
    return {
        "phase_value": phase.phase_value,
        "pre_allocations": [(pa.name or pa.id, amount) for pa, amount in pre_allocation_amounts(phase)],
        "input_amount": phase_rest_value(phase),
        "unallocated": results[phase.root_node.id].unallocated,
        "nodes": count_nodes(phase.root_node),
        "leaves": count_leaves(phase.root_node),
        "status": phase_status(results),
        "errors": [n.name or n.id for n in nodes if results[n.id].is_error],
        "warnings": [n.name or n.id for n in nodes if results[n.id].is_warning],
    }

def _flag(result) -> str:
    if result.is_error:
        return "  [ERROR]"
    if result.is_warning:
        return "  [WARN]"
    return ""

def render_tree(
    root: AllocationNode,
    results: CalculationMap,
    layouts: Optional[Dict[str, str]] = None,
    show_ids: bool = False,
) -> List[str]:
    """Indented text view of a computed tree.

    Children of nodes whose layout is "collapsed" are folded into a count.
    """
    layouts = layouts or {}
    lines: List[str] = []

    def walk(node: AllocationNode, depth: int, is_root: bool) -> None:
        r = results[node.id]
        label = node.name or "(root)"
        if show_ids:
            label = f"{label} <{node.id}>"
        rule = "" if is_root else f" ({describe_rule(node.rule)}, {r.percent_of_parent:.2%})"
        line = f"{'  ' * depth}{label}{rule}: {r.amount:,.2f}"
        if node.children and abs(r.unallocated) > EPSILON:
            line += f"  unallocated {r.unallocated:,.2f}"
        lines.append(line + _flag(r))
        if node.children and layouts.get(node.id) == "collapsed":
            lines.append(f"{'  ' * (depth + 1)}... {len(node.children)} collapsed")
            return
        for child in node.children:
            walk(child, depth + 1, False)

    walk(root, 0, True)
    return lines
