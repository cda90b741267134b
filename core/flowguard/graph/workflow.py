"""
Graph documents - how node instances connect.

A graph maps node-instance ids to ``NodeInstance`` records: the registered
node type to run, its authored data fields, and per-slot lists of target
node ids. Two document shapes are accepted:

Flat form:
    {
        "id": "login",
        "nodes": {
            "1": {"type": "start", "outputs": {"output_1": ["2"]}},
            "2": {"type": "type_text", "data": {"selector": ".u", "text": "{{profile.username}}"}}
        }
    }

Editor (Drawflow) export:
    {"drawflow": {"Home": {"data": {
        "1": {"name": "start", "data": {}, "outputs": {"output_1": {"connections": [{"node": "2"}]}}},
        ...
    }}}}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from flowguard.graph.node import DEFAULT_OUTPUT_SLOT, START_NODE_TYPE

if TYPE_CHECKING:
    from flowguard.registry.node_registry import NodeRegistry

logger = logging.getLogger(__name__)


class NodeInstance(BaseModel):
    """One authored step in a graph."""

    id: str
    type: str = Field(description="Registered node type identifier")
    data: dict[str, Any] = Field(default_factory=dict, description="Authored input fields")
    outputs: dict[str, list[str]] = Field(
        default_factory=dict, description="Output slot -> ordered target node ids"
    )
    save_as: dict[str, str] = Field(
        default_factory=dict, description="Map node outputs into variables: {output_key: var}"
    )

    model_config = {"extra": "allow"}

    def targets(self, slot: str = DEFAULT_OUTPUT_SLOT) -> list[str]:
        return list(self.outputs.get(slot, []))


def _pop_save_as(raw: dict[str, Any], data: dict[str, Any]) -> dict[str, str]:
    embedded = data.pop("saveAs", None)
    save_as = raw.get("save_as") or raw.get("saveAs") or embedded or {}
    if not isinstance(save_as, dict):
        return {}
    return {str(k): str(v) for k, v in save_as.items()}


def _parse_flat_node(node_id: str, raw: dict[str, Any]) -> NodeInstance:
    data = dict(raw.get("data") or {})
    save_as = _pop_save_as(raw, data)
    outputs: dict[str, list[str]] = {}
    for slot, targets in (raw.get("outputs") or {}).items():
        if isinstance(targets, str):
            targets = [targets]
        outputs[str(slot)] = [str(t) for t in targets or []]
    return NodeInstance(
        id=str(node_id),
        type=str(raw.get("type") or raw.get("name") or ""),
        data=data,
        outputs=outputs,
        save_as=save_as,
    )


def _parse_drawflow_node(node_id: str, raw: dict[str, Any]) -> NodeInstance:
    data = dict(raw.get("data") or {})
    save_as = _pop_save_as(raw, data)
    outputs: dict[str, list[str]] = {}
    for slot, output in (raw.get("outputs") or {}).items():
        connections = (output or {}).get("connections") or []
        outputs[str(slot)] = [str(conn["node"]) for conn in connections if "node" in conn]
    return NodeInstance(
        id=str(node_id),
        type=str(raw.get("name") or raw.get("class") or ""),
        data=data,
        outputs=outputs,
        save_as=save_as,
    )


class GraphSpec(BaseModel):
    """A complete graph: node instances keyed by id, in authored order."""

    id: str = ""
    name: str = ""
    nodes: dict[str, NodeInstance] = Field(default_factory=dict)
    description: str = ""

    model_config = {"extra": "allow"}

    @classmethod
    def from_document(cls, document: dict[str, Any] | GraphSpec) -> GraphSpec:
        """Build a GraphSpec from either the flat form or a Drawflow export."""
        if isinstance(document, GraphSpec):
            return document

        graph_id = str(document.get("id", ""))
        name = str(document.get("name", ""))

        if "drawflow" in document:
            home = (document.get("drawflow") or {}).get("Home") or {}
            raw_nodes = home.get("data") or {}
            nodes = {
                str(node_id): _parse_drawflow_node(str(node_id), raw)
                for node_id, raw in raw_nodes.items()
            }
            return cls(id=graph_id, name=name, nodes=nodes)

        raw_nodes = document.get("nodes") or {}
        if isinstance(raw_nodes, list):
            raw_nodes = {str(raw["id"]): raw for raw in raw_nodes if "id" in raw}
        nodes = {
            str(node_id): _parse_flat_node(str(node_id), raw) for node_id, raw in raw_nodes.items()
        }
        return cls(
            id=graph_id,
            name=name,
            nodes=nodes,
            description=str(document.get("description", "")),
        )

    def get_node(self, node_id: str) -> NodeInstance | None:
        return self.nodes.get(node_id)

    def find_start_node(self) -> NodeInstance | None:
        """Return the first node of the reserved start type, if any."""
        for node in self.nodes.values():
            if node.type == START_NODE_TYPE:
                return node
        return None

    def validate(self, registry: NodeRegistry | None = None) -> list[str]:
        """Validate the graph structure. Returns a list of problems (empty if fine)."""
        errors = []

        starts = [n.id for n in self.nodes.values() if n.type == START_NODE_TYPE]
        if not starts:
            errors.append("Graph has no start node")
        elif len(starts) > 1:
            errors.append(f"Graph has multiple start nodes: {starts}")

        for node in self.nodes.values():
            if not node.type:
                errors.append(f"Node '{node.id}' has no type")
            elif registry is not None and node.type not in registry:
                errors.append(f"Node '{node.id}' uses unregistered type '{node.type}'")
            for slot, targets in node.outputs.items():
                for target in targets:
                    if target not in self.nodes:
                        errors.append(
                            f"Node '{node.id}' output '{slot}' references missing node '{target}'"
                        )

        # Unreachable nodes from the start node
        if len(starts) == 1:
            reachable: set[str] = set()
            to_visit = [starts[0]]
            while to_visit:
                current = to_visit.pop()
                if current in reachable or current not in self.nodes:
                    continue
                reachable.add(current)
                for targets in self.nodes[current].outputs.values():
                    to_visit.extend(targets)
            for node_id in self.nodes:
                if node_id not in reachable:
                    errors.append(f"Node '{node_id}' is unreachable from start")

        return errors
