"""Low-level interaction nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flowguard.graph.node import FieldSpec, FieldType, NodeSchema, OutputSpec

if TYPE_CHECKING:
    from flowguard.registry.node_registry import NodeRegistry
    from flowguard.runtime.run_store import RunContext

MODIFIER_KEYS = ["Shift", "Control", "Alt", "Meta"]


def register_nodes(registry: NodeRegistry) -> None:
    """Register interaction nodes with the registry."""

    @registry.node(
        NodeSchema(
            id="keyboard_action",
            name="Keyboard Action",
            description="Press a key, optionally with modifiers, e.g. Enter or Control+A.",
            category="Action",
            capabilities=["browser:basic"],
            resource_locks=["browser:tab"],
            inputs={
                "key": FieldSpec(required=True),
                "modifiers": FieldSpec(type=FieldType.ARRAY, default=[]),
                "repeat": FieldSpec(type=FieldType.NUMBER, default=1),
            },
            outputs={"executed": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def keyboard_action(inputs: dict[str, Any], ctx: RunContext) -> dict:
        modifiers = [m for m in inputs["modifiers"] or [] if m in MODIFIER_KEYS]
        combo = "+".join([*modifiers, str(inputs["key"])])
        session = ctx.require_session()
        for _ in range(max(1, int(inputs["repeat"]))):
            await session.press_key(combo)
        return {"executed": True}
