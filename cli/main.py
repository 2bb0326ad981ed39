"""Allocation calculator CLI.

Provides commands for:
- calc: Show how each phase's value cascades down its tree
- stats: Roll leaf amounts up by name across project files
- add / remove / move / rename / set-rule / copy: Edit a phase's tree
- layout: Cycle a node's collapse/expand layout
- new / project: Create a project file, rename it or set its total value
- phase add / clone / remove / rename / set-value: Manage a project's phases
- pre add / remove / set: Manage a phase's pre-allocations
"""
from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from allocation.project import Phase, Project, toggle_layout, with_layouts, without_layouts
from allocation.rule import RuleType, describe_rule, make_rule
from common.config_loader import DEFAULT_SETTINGS_PATH, Settings, load_settings
from common.project_io import ProjectFormatError, load_project, save_project
from engine.aggregation_engine import aggregate_global_stats
from engine.phase_engine import calculate_phase
from engine.project_ops import (
    DEFAULT_PHASE_NAME,
    DEFAULT_PRE_ALLOCATION_RULE,
    DEFAULT_PROJECT_NAME,
    add_pre_allocation,
    clone_phase,
    default_phase,
    default_project,
    find_pre_allocation,
    remove_phase,
    remove_pre_allocation,
    rename_phase,
    rename_pre_allocation,
    rename_project,
    set_phase_value,
    set_pre_allocation_rule,
    set_total_value,
)
from engine.tree_ops import (
    DropPosition,
    add_child,
    find_node,
    iter_nodes,
    move_node,
    paste_subtree,
    remove_node,
    rename_node,
    set_rule,
)
from reporting.people import format_path, people_frame, sources_frame
from reporting.summary import phase_summary, render_tree

logger = logging.getLogger(__name__)

PhaseEdit = Callable[[Phase, Settings], Tuple[Phase, str]]
ProjectEdit = Callable[[Project, Settings], Tuple[Project, str]]


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def select_phase(project: Project, key: Optional[str]) -> Phase:
    """Pick a phase by id or name; the first phase when no key is given."""
    if not project.phases:
        raise ProjectFormatError(f"Project {project.name!r} has no phases")
    if key is None:
        return project.phases[0]
    phase = project.find_phase(key)
    if phase is None:
        raise ProjectFormatError(f"No phase {key!r} in project {project.name!r}")
    return phase


def print_phase(phase: Phase, show_ids: bool = False) -> None:
    results = calculate_phase(phase)
    summary = phase_summary(phase, results)

    print(f"\nPhase: {phase.name or phase.id}")
    print("-" * 50)
    print(f"  Phase value:     {summary['phase_value']:>14,.2f}")
    for name, amount in summary["pre_allocations"]:
        print(f"  - {name:<14} {amount:>14,.2f}")
    print(f"  Allocated:       {summary['input_amount']:>14,.2f}")
    print(f"  Nodes/leaves:    {summary['nodes']}/{summary['leaves']}")
    print(f"  Status:          {summary['status']}")

    print()
    for line in render_tree(phase.root_node, results, phase.view.node_layouts, show_ids=show_ids):
        print("  " + line)

    if summary["errors"]:
        print("\nOver-allocated:")
        for name in summary["errors"]:
            print(f"  - {name}")
    if summary["warnings"]:
        print("\nNot fully allocated:")
        for name in summary["warnings"]:
            print(f"  - {name}")


def cmd_calc(args, settings: Settings) -> int:
    """Handle calc command: show computed allocation per phase."""
    project = load_project(args.file, settings.default_layout)

    print(f"Project: {project.name} (total value {project.total_value:,.2f})")
    print("=" * 50)

    phases = [select_phase(project, args.phase)] if args.phase else list(project.phases)
    for phase in phases:
        print_phase(phase, show_ids=args.ids)
    return 0


def cmd_stats(args, settings: Settings) -> int:
    """Handle stats command: people rollup across project files."""
    projects = [load_project(path, settings.default_layout) for path in args.files]
    stats = aggregate_global_stats(projects)

    if not stats:
        print("No leaf nodes found.")
        return 0

    people = people_frame(stats)
    print("People Summary")
    print("=" * 50)
    for row in people.itertuples(index=False):
        print(f"  {row.name or '(unnamed)':<20} {row.total_amount:>14,.2f}  {row.share:>7.2%}  ({row.sources} source(s))")
        if args.sources:
            for src in next(s for s in stats if s.name == row.name).sources:
                print(f"      {format_path(src.path):<40} {src.amount:>14,.2f}")

    if args.csv:
        sources_frame(stats).to_csv(args.csv, index=False)
        print(f"\nSources written to {args.csv}")
    return 0


def _edit_project(args, settings: Settings, edit: ProjectEdit) -> int:
    project = load_project(args.file, settings.default_layout)

    new_project, msg = edit(project, settings)
    if new_project is project:
        print(f"No change: {msg}")
        return 1

    out = args.output or args.file
    save_project(new_project, out)
    print(msg)
    print(f"\nSaved to {out}")
    return 0


def _edit(args, settings: Settings, edit: PhaseEdit) -> int:
    def edit_project(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = select_phase(project, args.phase)
        logger.debug("%s: editing phase %s of %s", args.cmd, phase.id, args.file)
        new_phase, msg = edit(phase, settings)
        if new_phase is phase:
            return project, msg
        return project.with_phase(new_phase), msg

    return _edit_project(args, settings, edit_project)


def _node_label(phase: Phase, node_id: str) -> str:
    node = find_node(phase.root_node, node_id)
    return node_id if node is None else (node.name or node_id)


def cmd_add(args, settings: Settings) -> int:
    """Handle add command: new leaf under a parent."""
    rule = make_rule(args.type, args.value) if args.type else settings.new_node_rule

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        root, new_id = add_child(phase.root_node, args.parent, args.name, rule=rule)
        if new_id is None:
            return phase, f"parent {args.parent} not found"
        view = with_layouts(phase.view, [new_id], settings.default_layout)
        return (
            replace(phase, root_node=root, view=view),
            f"Added {args.name!r} <{new_id}> under {_node_label(phase, args.parent)!r}",
        )

    return _edit(args, settings, edit)


def cmd_remove(args, settings: Settings) -> int:
    """Handle remove command: drop a subtree."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        node = find_node(phase.root_node, args.node)
        root = remove_node(phase.root_node, args.node)
        if root is phase.root_node:
            return phase, f"cannot remove {args.node} (root or not found)"
        view = without_layouts(phase.view, [n.id for n in iter_nodes(node)])
        return (
            replace(phase, root_node=root, view=view),
            f"Removed {node.name or node.id!r} and {sum(1 for _ in iter_nodes(node)) - 1} descendant(s)",
        )

    return _edit(args, settings, edit)


def cmd_move(args, settings: Settings) -> int:
    """Handle move command: reparent or reorder a subtree."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        root = move_node(phase.root_node, args.source, args.target, args.position)
        if root is phase.root_node:
            return phase, f"cannot move {args.source} {args.position} {args.target}"
        return (
            replace(phase, root_node=root),
            f"Moved {_node_label(phase, args.source)!r} {args.position} {_node_label(phase, args.target)!r}",
        )

    return _edit(args, settings, edit)


def cmd_rename(args, settings: Settings) -> int:
    """Handle rename command."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        root = rename_node(phase.root_node, args.node, args.name)
        if root is phase.root_node:
            return phase, f"cannot rename {args.node} (root or not found)"
        return (
            replace(phase, root_node=root),
            f"Renamed {_node_label(phase, args.node)!r} to {args.name!r}",
        )

    return _edit(args, settings, edit)


def cmd_set_rule(args, settings: Settings) -> int:
    """Handle set-rule command."""
    rule = make_rule(args.type, args.value)

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        root = set_rule(phase.root_node, args.node, rule)
        if root is phase.root_node:
            return phase, f"node {args.node} not found"
        return (
            replace(phase, root_node=root),
            f"Set rule of {_node_label(phase, args.node)!r} to {args.type} {args.value:g}",
        )

    return _edit(args, settings, edit)


def cmd_copy(args, settings: Settings) -> int:
    """Handle copy command: paste a fresh-id copy of a subtree under a target."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        node = find_node(phase.root_node, args.node)
        if node is None:
            return phase, f"node {args.node} not found"
        root, ids = paste_subtree(phase.root_node, args.target, node)
        if not ids:
            return phase, f"target {args.target} not found"
        view = with_layouts(phase.view, ids, settings.default_layout)
        return (
            replace(phase, root_node=root, view=view),
            f"Copied {node.name or node.id!r} ({len(ids)} node(s)) under {_node_label(phase, args.target)!r}",
        )

    return _edit(args, settings, edit)


def cmd_layout(args, settings: Settings) -> int:
    """Handle layout command: cycle collapsed -> vertical -> horizontal."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        if find_node(phase.root_node, args.node) is None:
            return phase, f"node {args.node} not found"
        view = toggle_layout(phase.view, args.node, settings.default_layout)
        return (
            replace(phase, view=view),
            f"Layout of {_node_label(phase, args.node)!r} is now {view.node_layouts[args.node]}",
        )

    return _edit(args, settings, edit)


def cmd_new(args, settings: Settings) -> int:
    """Handle new command: write an empty project file."""
    path = Path(args.file)
    if path.exists() and not args.force:
        print(f"Error: {path} already exists (use --force to overwrite)")
        return 1

    project = default_project(args.name, args.phase_name, settings.default_layout)
    if args.total is not None:
        project = set_total_value(project, args.total)
    save_project(project, path)

    phase = project.phases[0]
    print(f"Created project {project.name!r} <{project.id}>")
    print(f"  phase {phase.name!r} <{phase.id}>, root node <{phase.root_node.id}>")
    print(f"\nSaved to {path}")
    return 0


def cmd_project(args, settings: Settings) -> int:
    """Handle project command: rename the project or set its total value."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        new_project, changes = project, []
        if args.name is not None:
            new_project = rename_project(new_project, args.name)
            changes.append(f"name {args.name!r}")
        if args.total is not None:
            new_project = set_total_value(new_project, args.total)
            changes.append(f"total value {args.total:,.2f}")
        if not changes:
            return project, "give --name and/or --total"
        return new_project, "Set project " + " and ".join(changes)

    return _edit_project(args, settings, edit)


def cmd_phase_add(args, settings: Settings) -> int:
    """Handle phase add command: append an empty phase."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = default_phase(args.name, settings.default_layout)
        if args.value is not None:
            phase = replace(phase, phase_value=args.value)
        return (
            project.with_added_phase(phase),
            f"Added phase {phase.name!r} <{phase.id}>, root node <{phase.root_node.id}>",
        )

    return _edit_project(args, settings, edit)


def cmd_phase_clone(args, settings: Settings) -> int:
    """Handle phase clone command: append a fresh-id copy of a phase."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = select_phase(project, args.phase)
        clone = clone_phase(phase, args.name, settings.default_layout)
        return (
            project.with_added_phase(clone),
            f"Cloned phase {phase.name!r} as {clone.name!r} <{clone.id}>",
        )

    return _edit_project(args, settings, edit)


def cmd_phase_remove(args, settings: Settings) -> int:
    """Handle phase remove command."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = select_phase(project, args.phase)
        new_project = remove_phase(project, phase.id)
        if new_project is project:
            return project, f"cannot remove {phase.name!r}, the only phase"
        return new_project, f"Removed phase {phase.name!r}"

    return _edit_project(args, settings, edit)


def cmd_phase_rename(args, settings: Settings) -> int:
    """Handle phase rename command."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = select_phase(project, args.phase)
        return (
            rename_phase(project, phase.id, args.name),
            f"Renamed phase {phase.name!r} to {args.name!r}",
        )

    return _edit_project(args, settings, edit)


def cmd_phase_set_value(args, settings: Settings) -> int:
    """Handle phase set-value command."""

    def edit(project: Project, settings: Settings) -> Tuple[Project, str]:
        phase = select_phase(project, args.phase)
        return (
            set_phase_value(project, phase.id, args.value),
            f"Set value of phase {phase.name!r} to {args.value:,.2f}",
        )

    return _edit_project(args, settings, edit)


def cmd_pre_add(args, settings: Settings) -> int:
    """Handle pre add command: deduct a fixed or percentage amount up front."""
    rule = make_rule(args.type, args.value)

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        new_phase, pa_id = add_pre_allocation(phase, args.name, rule)
        return new_phase, f"Added pre-allocation {args.name!r} <{pa_id}> ({describe_rule(rule)})"

    return _edit(args, settings, edit)


def cmd_pre_remove(args, settings: Settings) -> int:
    """Handle pre remove command."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        new_phase = remove_pre_allocation(phase, args.id)
        if new_phase is phase:
            return phase, f"pre-allocation {args.id} not found"
        return new_phase, f"Removed pre-allocation {args.id}"

    return _edit(args, settings, edit)


def cmd_pre_set(args, settings: Settings) -> int:
    """Handle pre set command: change a pre-allocation's name, type or value."""

    def edit(phase: Phase, settings: Settings) -> Tuple[Phase, str]:
        pa = find_pre_allocation(phase, args.id)
        if pa is None:
            return phase, f"pre-allocation {args.id} not found"
        if args.name is None and args.type is None and args.value is None:
            return phase, "give --name, --type and/or --value"
        new_phase = phase
        if args.name is not None:
            new_phase = rename_pre_allocation(new_phase, pa.id, args.name)
        if args.type is not None or args.value is not None:
            # unset parts of the rule keep their current value
            rule = make_rule(
                args.type or pa.rule.kind,
                pa.rule.value if args.value is None else args.value,
            )
            new_phase = set_pre_allocation_rule(new_phase, pa.id, rule)
        updated = find_pre_allocation(new_phase, pa.id)
        return new_phase, f"Pre-allocation {updated.name!r} is now {describe_rule(updated.rule)}"

    return _edit(args, settings, edit)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    p = argparse.ArgumentParser(
        prog="cli.main",
        description="Allocation calculator CLI: cascade project value down allocation trees",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # Common arguments for all commands
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--settings", default=DEFAULT_SETTINGS_PATH, help="Settings file")
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    # Arguments for commands that edit one project file
    file_args = argparse.ArgumentParser(add_help=False, parents=[common])
    file_args.add_argument("file", help="Project JSON file")
    file_args.add_argument("--output", default=None, help="Write the result here instead of FILE")

    # ... and for those that work on one of its phases
    editing = argparse.ArgumentParser(add_help=False, parents=[file_args])
    editing.add_argument("--phase", default=None, help="Phase id or name (default: first phase)")

    rule_types = [t.value for t in RuleType]

    calc = sub.add_parser("calc", parents=[common], help="Show computed allocation")
    calc.add_argument("file", help="Project JSON file")
    calc.add_argument("--phase", default=None, help="Only this phase (id or name)")
    calc.add_argument("--ids", action="store_true", help="Show node ids")
    calc.set_defaults(func=cmd_calc)

    stats = sub.add_parser("stats", parents=[common], help="People rollup across projects")
    stats.add_argument("files", nargs="+", help="Project JSON files")
    stats.add_argument("--sources", action="store_true", help="List each contributing leaf")
    stats.add_argument("--csv", default=None, help="Write per-source rows to this CSV file")
    stats.set_defaults(func=cmd_stats)

    add = sub.add_parser("add", parents=[editing], help="Add a node")
    add.add_argument("--parent", required=True, help="Parent node id")
    add.add_argument("--name", required=True, help="Name of the new node")
    add.add_argument("--type", choices=rule_types, default=None, help="Rule type (default from settings)")
    add.add_argument("--value", type=float, default=0.0, help="Rule value")
    add.set_defaults(func=cmd_add)

    remove = sub.add_parser("remove", parents=[editing], help="Remove a node and its subtree")
    remove.add_argument("--node", required=True, help="Node id")
    remove.set_defaults(func=cmd_remove)

    move = sub.add_parser("move", parents=[editing], help="Move a subtree")
    move.add_argument("--source", required=True, help="Node id to move")
    move.add_argument("--target", required=True, help="Node id to move next to / into")
    move.add_argument(
        "--position",
        choices=[d.value for d in DropPosition],
        default="inside",
        help="inside (as last child), before or after the target",
    )
    move.set_defaults(func=cmd_move)

    rename = sub.add_parser("rename", parents=[editing], help="Rename a node")
    rename.add_argument("--node", required=True, help="Node id")
    rename.add_argument("--name", required=True, help="New name")
    rename.set_defaults(func=cmd_rename)

    set_rule_p = sub.add_parser("set-rule", parents=[editing], help="Change a node's rule")
    set_rule_p.add_argument("--node", required=True, help="Node id")
    set_rule_p.add_argument("--type", choices=rule_types, required=True, help="Rule type")
    set_rule_p.add_argument("--value", type=float, default=0.0, help="Amount or percentage")
    set_rule_p.set_defaults(func=cmd_set_rule)

    copy = sub.add_parser("copy", parents=[editing], help="Copy a subtree under another node")
    copy.add_argument("--node", required=True, help="Node id to copy")
    copy.add_argument("--target", required=True, help="New parent node id")
    copy.set_defaults(func=cmd_copy)

    layout = sub.add_parser("layout", parents=[editing], help="Cycle a node's layout")
    layout.add_argument("--node", required=True, help="Node id")
    layout.set_defaults(func=cmd_layout)

    new = sub.add_parser("new", parents=[common], help="Create an empty project file")
    new.add_argument("file", help="Project JSON file to create")
    new.add_argument("--name", default=DEFAULT_PROJECT_NAME, help="Project name")
    new.add_argument("--phase-name", default=DEFAULT_PHASE_NAME, help="Name of the first phase")
    new.add_argument("--total", type=float, default=None, help="Project total value")
    new.add_argument("--force", action="store_true", help="Overwrite an existing file")
    new.set_defaults(func=cmd_new)

    project_p = sub.add_parser("project", parents=[file_args], help="Rename a project or set its total value")
    project_p.add_argument("--name", default=None, help="New project name")
    project_p.add_argument("--total", type=float, default=None, help="New total value")
    project_p.set_defaults(func=cmd_project)

    phase_p = sub.add_parser("phase", help="Manage phases")
    phase_sub = phase_p.add_subparsers(dest="phase_cmd", required=True)

    phase_add = phase_sub.add_parser("add", parents=[file_args], help="Append an empty phase")
    phase_add.add_argument("--name", default=DEFAULT_PHASE_NAME, help="Phase name")
    phase_add.add_argument("--value", type=float, default=None, help="Phase value")
    phase_add.set_defaults(func=cmd_phase_add)

    phase_clone = phase_sub.add_parser("clone", parents=[editing], help="Append a copy of a phase")
    phase_clone.add_argument("--name", default=None, help="Name of the copy (default: same name)")
    phase_clone.set_defaults(func=cmd_phase_clone)

    phase_remove = phase_sub.add_parser("remove", parents=[editing], help="Remove a phase")
    phase_remove.set_defaults(func=cmd_phase_remove)

    phase_rename = phase_sub.add_parser("rename", parents=[editing], help="Rename a phase")
    phase_rename.add_argument("--name", required=True, help="New name")
    phase_rename.set_defaults(func=cmd_phase_rename)

    phase_value = phase_sub.add_parser("set-value", parents=[editing], help="Set a phase's value")
    phase_value.add_argument("--value", type=float, required=True, help="New phase value")
    phase_value.set_defaults(func=cmd_phase_set_value)

    pre_types = [RuleType.FIXED.value, RuleType.PERCENTAGE.value]
    pre_p = sub.add_parser("pre", help="Manage a phase's pre-allocations")
    pre_sub = pre_p.add_subparsers(dest="pre_cmd", required=True)

    pre_add = pre_sub.add_parser("add", parents=[editing], help="Add a pre-allocation")
    pre_add.add_argument("--name", default="", help="Pre-allocation name")
    pre_add.add_argument("--type", choices=pre_types, default=DEFAULT_PRE_ALLOCATION_RULE.kind.value, help="Rule type")
    pre_add.add_argument("--value", type=float, default=DEFAULT_PRE_ALLOCATION_RULE.value, help="Amount or percentage")
    pre_add.set_defaults(func=cmd_pre_add)

    pre_remove = pre_sub.add_parser("remove", parents=[editing], help="Remove a pre-allocation")
    pre_remove.add_argument("--id", required=True, help="Pre-allocation id")
    pre_remove.set_defaults(func=cmd_pre_remove)

    pre_set = pre_sub.add_parser("set", parents=[editing], help="Change a pre-allocation")
    pre_set.add_argument("--id", required=True, help="Pre-allocation id")
    pre_set.add_argument("--name", default=None, help="New name")
    pre_set.add_argument("--type", choices=pre_types, default=None, help="New rule type")
    pre_set.add_argument("--value", type=float, default=None, help="New amount or percentage")
    pre_set.set_defaults(func=cmd_pre_set)

    args = p.parse_args(argv)
    settings = load_settings(args.settings)
    configure_logging(settings, args.verbose)

    try:
        code = args.func(args, settings)
    except (ProjectFormatError, FileNotFoundError) as e:
        print(f"Error: {e}")
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
