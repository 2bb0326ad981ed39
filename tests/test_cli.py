"""Tests for the command-line interface."""
from __future__ import annotations

import json

import pandas as pd
import pytest

from cli.main import main
from common.project_io import load_project
from engine.tree_ops import find_node, find_parent


def write_project(path, name="Website", leaf_name="Ann", phase_value=1000):
    data = {
        "id": f"id-{name}",
        "name": name,
        "totalValue": phase_value,
        "phases": [
            {
                "id": "ph-1",
                "name": "Deposit",
                "phaseValue": phase_value,
                "preAllocations": [],
                "rootNode": {
                    "id": "root",
                    "name": "",
                    "rule": {"type": "FIXED", "value": 0},
                    "children": [
                        {
                            "id": "dev",
                            "name": "Development",
                            "rule": {"type": "PERCENTAGE", "value": 60},
                            "children": [
                                {"id": "ann", "name": leaf_name, "rule": {"type": "REMAINDER", "value": 0}, "children": []},
                            ],
                        },
                        {"id": "pm", "name": "Paula", "rule": {"type": "FIXED", "value": 300}, "children": []},
                    ],
                },
                "view": {"nodeLayouts": {}},
            }
        ],
    }
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def run(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


class TestHelp:
    def test_cli_main_help(self, capsys):
        """CLI should show help without error."""
        assert run(["--help"]) == 0
        out = capsys.readouterr().out
        assert "calc" in out and "stats" in out


class TestCalc:
    """Tests for the calc command."""

    def test_calc_prints_tree(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")

        assert run(["calc", str(path)]) == 0

        out = capsys.readouterr().out
        assert "Project: Website" in out
        assert "Development (60%, 60.00%): 600.00" in out
        assert "Paula (fixed 300.00, 30.00%): 300.00" in out
        assert "unallocated 100.00" in out
        assert "Status:          warning" in out

    def test_unknown_phase(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")
        assert run(["calc", str(path), "--phase", "Nope"]) == 1
        assert "Error: No phase 'Nope'" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert run(["calc", str(tmp_path / "nope.json")]) == 1
        assert "Error:" in capsys.readouterr().out


class TestStats:
    """Tests for the stats command."""

    def test_people_rollup_and_csv(self, tmp_path, capsys):
        p1 = write_project(tmp_path / "a.json", name="Alpha")
        p2 = write_project(tmp_path / "b.json", name="Beta", phase_value=500)
        csv = tmp_path / "sources.csv"

        assert run(["stats", str(p1), str(p2), "--sources", "--csv", str(csv)]) == 0

        out = capsys.readouterr().out
        assert "Ann" in out and "900.00" in out
        assert "Alpha / Deposit / Development" in out

        df = pd.read_csv(csv)
        assert list(df.columns) == ["name", "path", "amount"]
        assert len(df) == 4
        assert df[df["name"] == "Ann"]["amount"].sum() == pytest.approx(900)


class TestEditing:
    """Tests for commands that rewrite the project file."""

    def test_add_assigns_layout(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")

        assert run(["add", str(path), "--parent", "dev", "--name", "Dana", "--type", "FIXED", "--value", "50"]) == 0

        phase = load_project(path).phases[0]
        dev = find_node(phase.root_node, "dev")
        assert [c.name for c in dev.children] == ["Ann", "Dana"]
        new = dev.children[1]
        assert new.rule.value == 50
        assert phase.view.node_layouts[new.id] == "vertical"

    def test_move_into_descendant_reports_no_change(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")
        before = path.read_text(encoding="utf-8")

        assert run(["move", str(path), "--source", "dev", "--target", "ann"]) == 1

        assert "No change" in capsys.readouterr().out
        assert path.read_text(encoding="utf-8") == before

    def test_move_before(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["move", str(path), "--source", "pm", "--target", "ann", "--position", "before"]) == 0

        root = load_project(path).phases[0].root_node
        assert find_parent(root, "pm").id == "dev"
        assert [c.id for c in find_node(root, "dev").children] == ["pm", "ann"]

    def test_remove_to_output_file(self, tmp_path):
        path = write_project(tmp_path / "p.json")
        out = tmp_path / "out.json"

        assert run(["remove", str(path), "--node", "dev", "--output", str(out)]) == 0

        phase = load_project(out).phases[0]
        assert find_node(phase.root_node, "ann") is None
        assert "ann" not in phase.view.node_layouts
        # source file untouched
        assert find_node(load_project(path).phases[0].root_node, "ann") is not None

    def test_set_rule_and_rename(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["set-rule", str(path), "--node", "pm", "--type", "REMAINDER"]) == 0
        assert run(["rename", str(path), "--node", "pm", "--name", "Pauline"]) == 0

        pm = find_node(load_project(path).phases[0].root_node, "pm")
        assert pm.name == "Pauline"
        assert pm.rule.kind.value == "REMAINDER"

    def test_copy_subtree(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["copy", str(path), "--node", "dev", "--target", "pm"]) == 0

        phase = load_project(path).phases[0]
        copied = find_node(phase.root_node, "pm").children[0]
        assert copied.name == "Development"
        assert copied.id != "dev"
        assert copied.children[0].name == "Ann"
        assert copied.children[0].id != "ann"

    def test_layout_cycles(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")

        assert run(["layout", str(path), "--node", "dev"]) == 0

        assert load_project(path).phases[0].view.node_layouts["dev"] == "horizontal"
        assert "now horizontal" in capsys.readouterr().out

    def test_unreadable_file_is_reported(self, tmp_path, capsys):
        path = tmp_path / "p.json"
        path.write_bytes(b'{"id": "\xff\xfe"}')

        assert run(["calc", str(path)]) == 1

        assert "Error:" in capsys.readouterr().out


class TestProjectCommands:
    """Tests for creating projects and editing phases."""

    def test_new_project(self, tmp_path, capsys):
        path = tmp_path / "new.json"

        assert run(["new", str(path), "--name", "Shop", "--total", "5000"]) == 0

        project = load_project(path)
        assert project.name == "Shop"
        assert project.total_value == 5000
        phase = project.phases[0]
        assert phase.name == "Deposit"
        assert phase.root_node.children == ()
        assert f"root node <{phase.root_node.id}>" in capsys.readouterr().out

    def test_new_refuses_to_overwrite(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")
        before = path.read_text(encoding="utf-8")

        assert run(["new", str(path)]) == 1

        assert "already exists" in capsys.readouterr().out
        assert path.read_text(encoding="utf-8") == before

    def test_project_rename_and_total(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["project", str(path), "--name", "Shop", "--total", "2500"]) == 0

        project = load_project(path)
        assert (project.name, project.total_value) == ("Shop", 2500)

    def test_project_without_options(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")
        assert run(["project", str(path)]) == 1
        assert "No change" in capsys.readouterr().out

    def test_phase_add_rename_and_value(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["phase", "add", str(path), "--name", "Final"]) == 0
        assert run(["phase", "set-value", str(path), "--phase", "Final", "--value", "400"]) == 0
        assert run(["phase", "rename", str(path), "--phase", "Final", "--name", "Closing"]) == 0

        project = load_project(path)
        assert [ph.name for ph in project.phases] == ["Deposit", "Closing"]
        assert project.phases[1].phase_value == 400

    def test_phase_clone_and_remove(self, tmp_path):
        path = write_project(tmp_path / "p.json")

        assert run(["phase", "clone", str(path), "--phase", "Deposit", "--name", "Copy"]) == 0

        project = load_project(path)
        clone = project.phases[1]
        assert clone.name == "Copy"
        assert clone.id != "ph-1"
        assert [c.name for c in clone.root_node.children] == ["Development", "Paula"]
        assert find_node(clone.root_node, "dev") is None

        assert run(["phase", "remove", str(path), "--phase", "ph-1"]) == 0
        assert [ph.name for ph in load_project(path).phases] == ["Copy"]

    def test_only_phase_cannot_be_removed(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")

        assert run(["phase", "remove", str(path)]) == 1

        assert "only phase" in capsys.readouterr().out

    def test_pre_allocations(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")

        assert run(["pre", "add", str(path), "--name", "Tax", "--value", "10"]) == 0
        pa = load_project(path).phases[0].pre_allocations[0]
        assert (pa.name, pa.rule.kind.value, pa.rule.value) == ("Tax", "PERCENTAGE", 10)

        assert run(["pre", "set", str(path), "--id", pa.id, "--type", "FIXED"]) == 0
        pa = load_project(path).phases[0].pre_allocations[0]
        assert (pa.name, pa.rule.kind.value, pa.rule.value) == ("Tax", "FIXED", 10)

        capsys.readouterr()
        assert run(["calc", str(path)]) == 0
        assert "Allocated:               990.00" in capsys.readouterr().out

        assert run(["pre", "remove", str(path), "--id", pa.id]) == 0
        assert load_project(path).phases[0].pre_allocations == ()

    def test_pre_set_unknown_id(self, tmp_path, capsys):
        path = write_project(tmp_path / "p.json")
        assert run(["pre", "set", str(path), "--id", "nope", "--name", "X"]) == 1
        assert "not found" in capsys.readouterr().out
