"""Pydantic models for the on-disk project layout.

These mirror the JSON written by the allocation editor field for field
(camelCase aliases included). They only validate; project_io maps them onto
the frozen domain dataclasses.
"""
from __future__ import annotations

from typing import Annotated, Dict, List, Literal

from pydantic import BaseModel, Field, model_validator

from allocation.project import NodeLayout

Text = Annotated[str, Field(strict=True)]
# strict: ints pass, bools and numeric strings do not
Number = Annotated[float, Field(strict=True)]


class RuleFile(BaseModel):
    type: Literal["FIXED", "PERCENTAGE", "REMAINDER"]
    value: Number


class PreAllocationRuleFile(BaseModel):
    type: Literal["FIXED", "PERCENTAGE"]
    value: Number


class NodeFile(BaseModel):
    id: Text
    name: Text
    rule: RuleFile
    children: List[NodeFile]


class PreAllocationFile(BaseModel):
    id: Text
    name: Text
    rule: PreAllocationRuleFile


class ViewFile(BaseModel):
    node_layouts: Dict[str, NodeLayout] = Field(alias="nodeLayouts")


class PhaseFile(BaseModel):
    id: Text
    name: Text
    phase_value: Number = Field(alias="phaseValue")
    pre_allocations: List[PreAllocationFile] = Field(alias="preAllocations")
    root_node: NodeFile = Field(alias="rootNode")
    view: ViewFile

    @model_validator(mode="after")
    def unique_node_ids(self) -> PhaseFile:
        seen = set()
        stack = [self.root_node]
        while stack:
            node = stack.pop()
            if node.id in seen:
                raise ValueError(f"duplicate node id {node.id!r}")
            seen.add(node.id)
            stack.extend(node.children)
        return self


class ProjectFile(BaseModel):
    id: Text
    name: Text
    total_value: Number = Field(alias="totalValue")
    phases: List[PhaseFile]
