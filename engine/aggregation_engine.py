"""Cross-project rollup of leaf amounts.

Leaves are the people (or final cost centres) of a tree. The same leaf name
in different trees, phases or projects is treated as one person, and every
contributing leaf is kept as a source with its path for drill-down.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Tuple

from allocation.node import AllocationNode
from allocation.project import Phase, Project
from engine.allocation_engine import CalculationMap, calculate_tree
from engine.phase_engine import phase_rest_value

logger = logging.getLogger(__name__)

CalculateFn = Callable[[AllocationNode, float], CalculationMap]


@dataclass(frozen=True)
class StatSource:
    path: Tuple[str, ...]  # project, phase, interior node names; leaf excluded
    amount: float


@dataclass
class PersonStat:
    """Everything one leaf name receives across all trees."""

    name: str
    total_amount: float = 0.0
    sources: List[StatSource] = field(default_factory=list)


def aggregate_global_stats(
    projects: Iterable[Project],
    calculate_fn: CalculateFn = calculate_tree,
    input_fn: Callable[[Phase], float] = phase_rest_value,
) -> List[PersonStat]:
    """Roll leaf amounts up by leaf name over every project and phase.

    Args:
        projects: Projects to scan, in display order.
        calculate_fn: Allocation function, called once per phase tree.
        input_fn: Amount fed to a phase's tree. Defaults to the phase value
            after pre-allocations, the same amount the tree is shown with.
            The allocation editor's own people panel fed the raw phase
            value instead, ignoring pre-allocations; pass
            ``lambda ph: ph.phase_value`` to reproduce its totals.

    Returns:
        One PersonStat per distinct leaf name, sorted by total_amount
        descending. Ties keep first-seen order.
    """
    stats: Dict[str, PersonStat] = {}

    for project in projects:
        for phase in project.phases:
            results = calculate_fn(phase.root_node, input_fn(phase))

            stack: List[Tuple[AllocationNode, Tuple[str, ...]]] = [
                (phase.root_node, (project.name, phase.name))
            ]
            while stack:
                node, path = stack.pop()
                if node.children:
                    child_path = path + (node.name,)
                    stack.extend((c, child_path) for c in reversed(node.children))
                    continue

                result = results.get(node.id)
                if result is None:
                    logger.warning("No result for leaf %s (%s); skipped", node.id, node.name)
                    continue
                stat = stats.setdefault(node.name, PersonStat(name=node.name))
                stat.total_amount += result.amount
                stat.sources.append(StatSource(path=path, amount=result.amount))

    return sorted(stats.values(), key=lambda s: s.total_amount, reverse=True)
