"""Projects, phases and their view state.

A project groups phases; each phase owns one allocation tree, the raw value
that flows into it, the pre-allocations deducted before the tree sees that
value, and per-node layout state for whoever renders the tree.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Literal, Tuple, Union

from allocation.node import AllocationNode
from allocation.rule import Fixed, Percentage

NodeLayout = Literal["collapsed", "horizontal", "vertical"]

# collapsed -> vertical -> horizontal -> collapsed
_NEXT_LAYOUT: Dict[str, NodeLayout] = {
    "collapsed": "vertical",
    "vertical": "horizontal",
    "horizontal": "collapsed",
}

PreAllocationRule = Union[Fixed, Percentage]


@dataclass(frozen=True)
class PreAllocation:
    id: str
    name: str
    rule: PreAllocationRule


@dataclass(frozen=True)
class ProjectView:
    node_layouts: Dict[str, NodeLayout] = field(default_factory=dict)


@dataclass(frozen=True)
class Phase:
    id: str
    name: str
    phase_value: float
    root_node: AllocationNode
    pre_allocations: Tuple[PreAllocation, ...] = ()
    view: ProjectView = field(default_factory=ProjectView)


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    total_value: float
    phases: Tuple[Phase, ...] = ()

    def find_phase(self, key: str) -> Phase | None:
        """Look a phase up by id, then by name."""
        for ph in self.phases:
            if ph.id == key:
                return ph
        for ph in self.phases:
            if ph.name == key:
                return ph
        return None

    def with_phase(self, phase: Phase) -> Project:
        """Return a copy of the project with the phase of the same id replaced."""
        phases = tuple(phase if ph.id == phase.id else ph for ph in self.phases)
        return replace(self, phases=phases)

    def with_added_phase(self, phase: Phase) -> Project:
        return replace(self, phases=self.phases + (phase,))

    def without_phase(self, phase_id: str) -> Project:
        return replace(self, phases=tuple(ph for ph in self.phases if ph.id != phase_id))


def with_layouts(view: ProjectView, node_ids: Iterable[str], layout: NodeLayout) -> ProjectView:
    layouts = dict(view.node_layouts)
    for node_id in node_ids:
        layouts[node_id] = layout
    return ProjectView(node_layouts=layouts)


def without_layouts(view: ProjectView, node_ids: Iterable[str]) -> ProjectView:
    drop = set(node_ids)
    return ProjectView(node_layouts={k: v for k, v in view.node_layouts.items() if k not in drop})


def toggle_layout(view: ProjectView, node_id: str, default: NodeLayout = "vertical") -> ProjectView:
    """Advance a node's layout one step through the collapse/expand cycle."""
    current = view.node_layouts.get(node_id, default)
    return with_layouts(view, [node_id], _NEXT_LAYOUT[current])
