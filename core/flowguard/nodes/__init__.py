"""
Built-in node implementations, one module per category.

Each module exposes ``register_nodes(registry)``; see
flowguard.registry.loader for discovery.
"""
