"""Project, phase and pre-allocation editing.

Same contract as tree_ops: helpers return a new value, never touch their
input, and hand the input back unchanged (same object) when the request
cannot be applied. Each such no-op is logged at DEBUG level.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Tuple

from allocation.node import AllocationNode
from allocation.project import NodeLayout, Phase, PreAllocation, PreAllocationRule, Project, ProjectView
from allocation.rule import Fixed, Percentage
from common.ids import IdFactory, new_id
from engine.tree_ops import clone_subtree

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "New project"
DEFAULT_PHASE_NAME = "Deposit"
DEFAULT_PRE_ALLOCATION_RULE = Percentage(10)


# --- construction -------------------------------------------------------------


def default_phase(
    name: str = DEFAULT_PHASE_NAME,
    layout: NodeLayout = "vertical",
    id_factory: IdFactory = new_id,
) -> Phase:
    """Empty phase: value 0, no pre-allocations, an unnamed FIXED 0 root."""
    phase_id = id_factory()
    root = AllocationNode(id=id_factory(), name="", rule=Fixed(0.0))
    return Phase(
        id=phase_id,
        name=name,
        phase_value=0.0,
        root_node=root,
        view=ProjectView(node_layouts={root.id: layout}),
    )


def default_project(
    name: str = DEFAULT_PROJECT_NAME,
    phase_name: str = DEFAULT_PHASE_NAME,
    layout: NodeLayout = "horizontal",
    id_factory: IdFactory = new_id,
) -> Project:
    project_id = id_factory()
    return Project(
        id=project_id,
        name=name,
        total_value=0.0,
        phases=(default_phase(phase_name, layout, id_factory),),
    )


def clone_phase(
    phase: Phase,
    name: Optional[str] = None,
    layout: NodeLayout = "vertical",
    id_factory: IdFactory = new_id,
) -> Phase:
    """Copy a phase with a fresh phase id and fresh node ids.

    Node layouts are reset to ``layout`` for every cloned node. Value and
    pre-allocations carry over unchanged.
    """
    root, ids = clone_subtree(phase.root_node, id_factory)
    return replace(
        phase,
        id=id_factory(),
        name=phase.name if name is None else name,
        root_node=root,
        view=ProjectView(node_layouts={node_id: layout for node_id in ids}),
    )


# --- project and phases -------------------------------------------------------


def rename_project(project: Project, name: str) -> Project:
    return replace(project, name=name)


def set_total_value(project: Project, value: float) -> Project:
    return replace(project, total_value=float(value))


def remove_phase(project: Project, phase_id: str) -> Project:
    """Drop a phase; a project always keeps at least one."""
    if all(ph.id != phase_id for ph in project.phases):
        logger.debug("remove_phase: %s not found", phase_id)
        return project
    if len(project.phases) <= 1:
        logger.debug("remove_phase: refusing to remove the last phase %s", phase_id)
        return project
    return project.without_phase(phase_id)


def _update_phase(project: Project, phase_id: str, **changes) -> Project:
    for ph in project.phases:
        if ph.id == phase_id:
            return project.with_phase(replace(ph, **changes))
    logger.debug("phase %s not found, project unchanged", phase_id)
    return project


def rename_phase(project: Project, phase_id: str, name: str) -> Project:
    return _update_phase(project, phase_id, name=name)


def set_phase_value(project: Project, phase_id: str, value: float) -> Project:
    return _update_phase(project, phase_id, phase_value=float(value))


# --- pre-allocations ----------------------------------------------------------


def _check_pre_allocation_rule(rule) -> None:
    if not isinstance(rule, (Fixed, Percentage)):
        raise TypeError(f"Pre-allocations take a fixed or percentage rule, not {rule!r}")


def add_pre_allocation(
    phase: Phase,
    name: str = "",
    rule: PreAllocationRule = DEFAULT_PRE_ALLOCATION_RULE,
    id_factory: IdFactory = new_id,
) -> Tuple[Phase, str]:
    """Append a pre-allocation; returns (new phase, its id)."""
    _check_pre_allocation_rule(rule)
    pa = PreAllocation(id=id_factory(), name=name, rule=rule)
    return replace(phase, pre_allocations=phase.pre_allocations + (pa,)), pa.id


def find_pre_allocation(phase: Phase, pa_id: str) -> Optional[PreAllocation]:
    for pa in phase.pre_allocations:
        if pa.id == pa_id:
            return pa
    return None


def remove_pre_allocation(phase: Phase, pa_id: str) -> Phase:
    if find_pre_allocation(phase, pa_id) is None:
        logger.debug("remove_pre_allocation: %s not found", pa_id)
        return phase
    return replace(phase, pre_allocations=tuple(pa for pa in phase.pre_allocations if pa.id != pa_id))


def _update_pre_allocation(phase: Phase, pa_id: str, **changes) -> Phase:
    if find_pre_allocation(phase, pa_id) is None:
        logger.debug("pre-allocation %s not found, phase unchanged", pa_id)
        return phase
    return replace(
        phase,
        pre_allocations=tuple(
            replace(pa, **changes) if pa.id == pa_id else pa for pa in phase.pre_allocations
        ),
    )


def rename_pre_allocation(phase: Phase, pa_id: str, name: str) -> Phase:
    return _update_pre_allocation(phase, pa_id, name=name)


def set_pre_allocation_rule(phase: Phase, pa_id: str, rule: PreAllocationRule) -> Phase:
    """Replace a pre-allocation's rule.

    Raises:
        TypeError: If ``rule`` is a remainder rule; pre-allocations are
            always fixed or percentage.
    """
    _check_pre_allocation_rule(rule)
    return _update_pre_allocation(phase, pa_id, rule=rule)
