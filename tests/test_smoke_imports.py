"""Smoke tests for module imports and settings."""
from __future__ import annotations

from pathlib import Path

SETTINGS = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"


def test_imports():
    """All main modules should be importable."""
    import cli.main
    import common.config_loader
    import common.ids
    import common.project_io
    import common.project_schema
    import allocation.node
    import allocation.project
    import allocation.rule
    import engine.aggregation_engine
    import engine.allocation_engine
    import engine.phase_engine
    import engine.project_ops
    import engine.tree_ops
    import reporting.people
    import reporting.summary


def test_settings_file():
    """Bundled settings should load with the documented defaults."""
    from allocation.rule import Percentage
    from common.config_loader import load_settings

    settings = load_settings(SETTINGS)

    assert settings.default_layout == "vertical"
    assert settings.new_node_rule == Percentage(10)
    assert settings.log_level == "WARNING"


def test_missing_settings_file_uses_defaults(tmp_path):
    from common.config_loader import load_settings

    settings = load_settings(tmp_path / "none.yaml")

    assert settings.raw == {}
    assert settings.default_layout == "vertical"


def test_settings_override(tmp_path):
    from allocation.rule import Fixed
    from common.config_loader import load_settings

    path = tmp_path / "settings.yaml"
    path.write_text(
        "view:\n  default_layout: collapsed\nediting:\n  new_node_rule: {type: FIXED, value: 25}\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.default_layout == "collapsed"
    assert settings.new_node_rule == Fixed(25)


def test_counter_ids_are_deterministic():
    from common.ids import counter_ids, new_id

    ids = counter_ids("n")
    assert [ids(), ids(), ids()] == ["n1", "n2", "n3"]
    assert new_id() != new_id()
