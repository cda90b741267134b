"""Node registry and built-in node loader."""

from flowguard.registry.loader import (
    BUILTIN_CATEGORIES,
    create_default_registry,
    load_builtin_nodes,
)
from flowguard.registry.node_registry import NodeRegistry, RegisteredNode

__all__ = [
    "BUILTIN_CATEGORIES",
    "NodeRegistry",
    "RegisteredNode",
    "create_default_registry",
    "load_builtin_nodes",
]
