"""Tests for project file loading, validation and view recovery."""
from __future__ import annotations

import copy
import json

import pytest

from allocation.project import ProjectView, toggle_layout, with_layouts, without_layouts
from allocation.rule import Fixed, Percentage, Remainder
from common.project_io import (
    ProjectFormatError,
    load_project,
    project_from_dict,
    project_to_dict,
    recover_phase_view,
    save_project,
)

PROJECT = {
    "id": "proj-1",
    "name": "Website",
    "totalValue": 10000,
    "phases": [
        {
            "id": "ph-1",
            "name": "Deposit",
            "phaseValue": 4000,
            "preAllocations": [
                {"id": "pa-1", "name": "Tax", "rule": {"type": "PERCENTAGE", "value": 6}},
            ],
            "rootNode": {
                "id": "root",
                "name": "",
                "rule": {"type": "FIXED", "value": 0},
                "children": [
                    {
                        "id": "dev",
                        "name": "Development",
                        "rule": {"type": "PERCENTAGE", "value": 70},
                        "children": [
                            {"id": "ann", "name": "Ann", "rule": {"type": "FIXED", "value": 1000}, "children": []},
                            {"id": "ben", "name": "Ben", "rule": {"type": "REMAINDER", "value": 0}, "children": []},
                        ],
                    },
                    {"id": "pm", "name": "Paula", "rule": {"type": "REMAINDER", "value": 0}, "children": []},
                ],
            },
            "view": {"nodeLayouts": {"root": "horizontal", "dev": "collapsed"}},
        }
    ],
}


def project_data() -> dict:
    return copy.deepcopy(PROJECT)


class TestProjectFromDict:
    """Tests for converting decoded JSON into a Project."""

    def test_valid_project(self):
        project = project_from_dict(project_data())

        assert project.name == "Website"
        assert project.total_value == 10000.0
        phase = project.phases[0]
        assert phase.phase_value == 4000.0
        assert phase.pre_allocations[0].rule == Percentage(6)
        dev = phase.root_node.children[0]
        assert dev.rule == Percentage(70)
        assert [c.rule for c in dev.children] == [Fixed(1000), Remainder()]
        assert phase.view.node_layouts == {"root": "horizontal", "dev": "collapsed"}

    def test_round_trip_preserves_layout(self):
        data = project_data()
        assert project_to_dict(project_from_dict(data)) == data

    @pytest.mark.parametrize(
        "mutate,match",
        [
            (lambda d: d.pop("name"), r"project\.name: Field required"),
            (lambda d: d.update(totalValue="lots"), r"project\.totalValue: Input should be a valid number"),
            (lambda d: d.update(totalValue=True), r"project\.totalValue: Input should be a valid number"),
            (lambda d: d["phases"][0]["rootNode"]["children"][0].update(rule={"type": "SHARE", "value": 1}), r"rootNode\.children\[0\]\.rule\.type"),
            (lambda d: d["phases"][0]["rootNode"]["children"][1].pop("children"), r"children\[1\]\.children: Field required"),
            (lambda d: d["phases"][0]["preAllocations"][0]["rule"].update(type="REMAINDER"), r"preAllocations\[0\]\.rule\.type: Input should be 'FIXED' or 'PERCENTAGE'"),
            (lambda d: d["phases"][0]["view"]["nodeLayouts"].update(dev="grid"), r"nodeLayouts\.dev"),
            (lambda d: d["phases"][0]["rootNode"]["children"][1].update(id="ann"), "duplicate node id 'ann'"),
            (lambda d: d.update(phases={}), r"project\.phases: Input should be a valid list"),
        ],
    )
    def test_malformed_input_rejected(self, mutate, match):
        data = project_data()
        mutate(data)
        with pytest.raises(ProjectFormatError, match=match):
            project_from_dict(data)

    def test_not_an_object(self):
        with pytest.raises(ProjectFormatError):
            project_from_dict([1, 2, 3])

    def test_every_bad_field_reported(self):
        data = project_data()
        data.pop("id")
        data["phases"][0]["phaseValue"] = "4000"

        with pytest.raises(ProjectFormatError) as exc:
            project_from_dict(data)

        message = str(exc.value)
        assert "project.id: Field required" in message
        assert "project.phases[0].phaseValue" in message

    def test_integer_amounts_accepted(self):
        project = project_from_dict(project_data())

        assert isinstance(project.total_value, float)
        assert isinstance(project.phases[0].phase_value, float)


class TestViewRecovery:
    """Tests for filling in missing node layouts."""

    def test_missing_layouts_get_default(self):
        phase = project_from_dict(project_data()).phases[0]

        recovered = recover_phase_view(phase, "vertical")

        assert recovered.view.node_layouts == {
            "root": "horizontal",
            "dev": "collapsed",
            "ann": "vertical",
            "ben": "vertical",
            "pm": "vertical",
        }
        # the loaded phase itself is untouched
        assert "ann" not in phase.view.node_layouts

    def test_complete_view_unchanged(self):
        phase = recover_phase_view(project_from_dict(project_data()).phases[0])
        assert recover_phase_view(phase) is phase

    def test_layout_helpers(self):
        view = ProjectView({"a": "collapsed"})
        assert toggle_layout(view, "a").node_layouts["a"] == "vertical"
        assert toggle_layout(toggle_layout(view, "a"), "a").node_layouts["a"] == "horizontal"
        assert toggle_layout(ProjectView({"a": "horizontal"}), "a").node_layouts["a"] == "collapsed"
        assert with_layouts(view, ["b", "c"], "vertical").node_layouts == {
            "a": "collapsed",
            "b": "vertical",
            "c": "vertical",
        }
        assert without_layouts(view, ["a"]).node_layouts == {}


class TestFiles:
    """Tests for reading and writing project files."""

    def test_load_recovers_view(self, tmp_path):
        path = tmp_path / "project.json"
        path.write_text(json.dumps(project_data()), encoding="utf-8")

        project = load_project(path, default_layout="horizontal")

        assert project.phases[0].view.node_layouts["ben"] == "horizontal"

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "out.json"
        project = load_project_from(tmp_path)

        save_project(project, path)

        assert load_project(path) == project

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ProjectFormatError, match="invalid JSON"):
            load_project(path)

    def test_not_utf8(self, tmp_path):
        path = tmp_path / "latin.json"
        path.write_bytes(b'{"id": "\xff\xfe"}')
        with pytest.raises(ProjectFormatError, match="not UTF-8"):
            load_project(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_project(tmp_path / "nope.json")


def load_project_from(tmp_path):
    path = tmp_path / "in.json"
    path.write_text(json.dumps(project_data()), encoding="utf-8")
    return load_project(path)
