from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from allocation.rule import AllocationRule, Fixed


@dataclass(frozen=True)
class AllocationNode:
    """One node of an allocation tree.

    Nodes are immutable; edits build a new tree that shares every untouched
    subtree with the old one (see engine.tree_ops). The root's own rule is
    never evaluated.
    """

    id: str
    name: str
    rule: AllocationRule = Fixed(0.0)
    children: Tuple[AllocationNode, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))

    @property
    def is_leaf(self) -> bool:
        return not self.children
