"""Node type registration and the catalogue exported to graph editors."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from flowguard.graph.node import (
    START_SCHEMA,
    FunctionNode,
    NodeFunction,
    NodeProtocol,
    NodeSchema,
    StartNode,
)

logger = logging.getLogger(__name__)


@dataclass
class RegisteredNode:
    """A node schema with its implementation."""

    schema: NodeSchema
    implementation: NodeProtocol


class NodeRegistry:
    """
    Maps node-type identifiers to {schema, implementation}.

    Registration Order:
    1. The reserved ``start`` type (always present)
    2. Built-in nodes via loader.load_builtin_nodes()
    3. Manually registered nodes (re-registration overwrites)

    Example:
        registry = NodeRegistry()

        @registry.node(NodeSchema(id="noop", name="No-op", capabilities=[]))
        async def noop(inputs, ctx):
            return {}
    """

    def __init__(self):
        self._nodes: dict[str, RegisteredNode] = {}
        self.register(START_SCHEMA, StartNode())

    def register(
        self,
        schema: NodeSchema | dict[str, Any],
        implementation: NodeProtocol | NodeFunction,
    ) -> bool:
        """
        Register a node type.

        Schemas lacking an identifier or a capability set are rejected with
        a log line only; nothing is raised.

        Returns:
            True if the node type was stored
        """
        if isinstance(schema, dict):
            try:
                schema = NodeSchema.model_validate(schema)
            except ValidationError as e:
                logger.error(f"Rejected node schema {schema.get('id')!r}: {e}")
                return False

        if not schema.id:
            logger.error(f"Rejected node schema without id (name={schema.name!r})")
            return False
        if schema.capabilities is None:
            logger.error(f"Rejected node schema '{schema.id}': no capability set declared")
            return False

        if not isinstance(implementation, NodeProtocol):
            implementation = FunctionNode(implementation)

        if schema.id in self._nodes:
            logger.debug(f"Overwriting registered node type '{schema.id}'")
        self._nodes[schema.id] = RegisteredNode(schema=schema, implementation=implementation)
        return True

    def node(self, schema: NodeSchema | dict[str, Any]) -> Callable[[NodeFunction], NodeFunction]:
        """Decorator form of register() for plain node functions."""

        def decorator(func: NodeFunction) -> NodeFunction:
            self.register(schema, func)
            return func

        return decorator

    def get(self, node_type: str) -> RegisteredNode | None:
        return self._nodes.get(node_type)

    def node_types(self) -> list[str]:
        return list(self._nodes)

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def export_catalogue(self) -> list[dict[str, Any]]:
        """
        Read-only projection of every schema for an external editor.

        Sensitive input fields never carry their default: secrets must not
        reach a UI listing.
        """
        catalogue = []
        for entry in self._nodes.values():
            schema = entry.schema
            inputs = {}
            for name, spec in schema.inputs.items():
                field = spec.model_dump(mode="json")
                if spec.sensitive:
                    field.pop("default", None)
                inputs[name] = field
            catalogue.append(
                {
                    "id": schema.id,
                    "name": schema.name,
                    "description": schema.description,
                    "category": schema.category,
                    "risk_level": str(schema.risk_level),
                    "inputs": inputs,
                    "outputs": {k: v.model_dump(mode="json") for k, v in schema.outputs.items()},
                    "capabilities": list(schema.capabilities or []),
                }
            )
        return catalogue
