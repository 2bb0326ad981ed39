"""Project files: JSON load/save with validation.

Files use the layout written by the allocation editor:

    {id, name, totalValue, phases: [{id, name, phaseValue,
     preAllocations: [{id, name, rule: {type, value}}],
     rootNode: {id, name, rule: {type, value}, children: [...]},
     view: {nodeLayouts: {nodeId: "collapsed"|"horizontal"|"vertical"}}}]}

Malformed input is rejected here with ProjectFormatError so the engine only
ever sees well-formed trees.
"""
from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

from pydantic import ValidationError

from allocation.node import AllocationNode
from allocation.project import NodeLayout, Phase, PreAllocation, Project, ProjectView
from allocation.rule import make_rule, rule_to_dict
from common.project_schema import NodeFile, PhaseFile, ProjectFile
from engine.tree_ops import iter_nodes

logger = logging.getLogger(__name__)


class ProjectFormatError(ValueError):
    """Raised when a project file does not match the expected layout."""


def _where(loc) -> str:
    """("phases", 0, "rootNode") -> "project.phases[0].rootNode"."""
    path = "project"
    for part in loc:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _describe(exc: ValidationError) -> str:
    return "; ".join(f"{_where(err['loc'])}: {err['msg']}" for err in exc.errors())


def _node(data: NodeFile) -> AllocationNode:
    return AllocationNode(
        id=data.id,
        name=data.name,
        rule=make_rule(data.rule.type, data.rule.value),
        children=tuple(_node(c) for c in data.children),
    )


def _phase(data: PhaseFile) -> Phase:
    return Phase(
        id=data.id,
        name=data.name,
        phase_value=float(data.phase_value),
        root_node=_node(data.root_node),
        pre_allocations=tuple(
            PreAllocation(id=pa.id, name=pa.name, rule=make_rule(pa.rule.type, pa.rule.value))
            for pa in data.pre_allocations
        ),
        view=ProjectView(node_layouts=dict(data.view.node_layouts)),
    )


def project_from_dict(data: Any) -> Project:
    """Validate and convert a decoded project file.

    Raises:
        ProjectFormatError: If any field is missing, mistyped or unknown, or a
            phase repeats a node id. The message names every offending path.
    """
    try:
        parsed = ProjectFile.model_validate(data)
    except ValidationError as e:
        raise ProjectFormatError(_describe(e)) from e
    return Project(
        id=parsed.id,
        name=parsed.name,
        total_value=float(parsed.total_value),
        phases=tuple(_phase(ph) for ph in parsed.phases),
    )


def recover_phase_view(phase: Phase, default_layout: NodeLayout = "vertical") -> Phase:
    """Give every node without a recorded layout the default one."""
    layouts = dict(phase.view.node_layouts)
    missing = [n.id for n in iter_nodes(phase.root_node) if n.id not in layouts]
    if not missing:
        return phase
    logger.debug("Phase %s: default layout for %d node(s)", phase.id, len(missing))
    for node_id in missing:
        layouts[node_id] = default_layout
    return replace(phase, view=ProjectView(node_layouts=layouts))


def _node_to_dict(node: AllocationNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "rule": rule_to_dict(node.rule),
        "children": [_node_to_dict(c) for c in node.children],
    }


def project_to_dict(project: Project) -> Dict[str, Any]:
    phases: List[Dict[str, Any]] = []
    for ph in project.phases:
        phases.append(
            {
                "id": ph.id,
                "name": ph.name,
                "phaseValue": ph.phase_value,
                "preAllocations": [
                    {"id": pa.id, "name": pa.name, "rule": rule_to_dict(pa.rule)}
                    for pa in ph.pre_allocations
                ],
                "rootNode": _node_to_dict(ph.root_node),
                "view": {"nodeLayouts": dict(ph.view.node_layouts)},
            }
        )
    return {
        "id": project.id,
        "name": project.name,
        "totalValue": project.total_value,
        "phases": phases,
    }


def load_project(path: str | Path, default_layout: NodeLayout = "vertical") -> Project:
    """Read, validate and view-recover a project file.

    Raises:
        ProjectFormatError: If the file is not valid JSON or not a project.
    """
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except UnicodeDecodeError as e:
            raise ProjectFormatError(f"{p}: not UTF-8 text ({e})") from e
        except json.JSONDecodeError as e:
            raise ProjectFormatError(f"{p}: invalid JSON ({e})") from e
    project = project_from_dict(data)
    logger.info("Loaded project %r from %s (%d phase(s))", project.name, p, len(project.phases))
    return replace(
        project,
        phases=tuple(recover_phase_view(ph, default_layout) for ph in project.phases),
    )


def save_project(project: Project, path: str | Path) -> None:
    p = Path(path)
    with p.open("w", encoding="utf-8") as f:
        json.dump(project_to_dict(project), f, indent=2, ensure_ascii=False)
        f.write("\n")
    logger.info("Saved project %r to %s", project.name, p)
