"""Discovery and registration of the built-in node implementations.

Each category module exposes ``register_nodes(registry)``. The loader only
wires modules to the registry; it carries no policy logic of its own.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable

from flowguard.registry.node_registry import NodeRegistry

logger = logging.getLogger(__name__)

BUILTIN_CATEGORIES: dict[str, str] = {
    "session": "flowguard.nodes.session",
    "data": "flowguard.nodes.data",
    "network": "flowguard.nodes.network",
    "logic": "flowguard.nodes.logic",
    "interaction": "flowguard.nodes.interaction",
}


def load_builtin_nodes(registry: NodeRegistry, categories: Iterable[str] | None = None) -> int:
    """
    Register built-in nodes, category by category.

    A category that fails to import is logged and skipped so that one
    broken module does not take the whole catalogue down.

    Returns:
        Number of node types added to the registry
    """
    before = len(registry)
    for category in categories or BUILTIN_CATEGORIES:
        module_path = BUILTIN_CATEGORIES.get(category)
        if module_path is None:
            logger.warning(f"Unknown node category '{category}', skipping")
            continue
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            logger.error(f"Failed to load node category '{category}': {e}")
            continue

        register = getattr(module, "register_nodes", None)
        if register is None:
            logger.warning(f"Node module {module_path} has no register_nodes(), skipping")
            continue
        register(registry)

    added = len(registry) - before
    logger.info(f"Loaded {added} built-in node types")
    return added


def create_default_registry() -> NodeRegistry:
    """A registry holding the start node plus every built-in category."""
    registry = NodeRegistry()
    load_builtin_nodes(registry)
    return registry
