from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import yaml

from allocation.rule import AllocationRule, make_rule

DEFAULT_SETTINGS_PATH = "config/settings.yaml"

def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

@dataclass(frozen=True)
class Settings:
    raw: Dict[str, Any]

    @property
    def default_layout(self) -> str:
        return str(self.raw.get("view", {}).get("default_layout", "vertical"))

    @property
    def new_node_rule(self) -> AllocationRule:
        rule = self.raw.get("editing", {}).get("new_node_rule") or {}
        return make_rule(rule.get("type", "PERCENTAGE"), rule.get("value", 10))

    @property
    def log_level(self) -> str:
        return str(self.raw.get("logging", {}).get("level", "WARNING")).upper()

def load_settings(path: str | Path = DEFAULT_SETTINGS_PATH) -> Settings:
    """Load settings; a missing file means all defaults."""
    p = Path(path)
    if not p.exists():
        return Settings(raw={})
    return Settings(raw=load_yaml(p))
