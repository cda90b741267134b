"""
Logic Nodes - branching, iteration and run variables.

``condition`` evaluates its expression only through the policy engine's safe
evaluator, against the run variables (never the secrets bag). ``loop_data``
and ``loop_count`` are loop nodes: the executor walks output_1 once per item,
then output_2. ``break_loop`` and ``continue_loop`` end the innermost loop or its
current iteration.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from flowguard.graph.node import (
    ALTERNATE_OUTPUT_SLOT,
    DEFAULT_OUTPUT_SLOT,
    FieldFormat,
    FieldSpec,
    FieldType,
    NodeResult,
    NodeSchema,
    OutputSpec,
)

if TYPE_CHECKING:
    from flowguard.registry.node_registry import NodeRegistry
    from flowguard.runtime.run_store import RunContext

logger = logging.getLogger(__name__)

CATEGORY = "Logic"
VARIABLE_NAME_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*"
MAX_LOOP_ITEMS = 10000
MAX_DELAY_MS = 300000
MASKED = "***MASKED***"
SENSITIVE_NAME_HINTS = ("password", "secret", "token", "key", "auth", "2fa", "otp")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def mask_variables(variables: dict[str, Any]) -> dict[str, Any]:
    """Copy of the variables with credential-looking names masked."""
    return {
        name: MASKED if any(hint in name.lower() for hint in SENSITIVE_NAME_HINTS) else value
        for name, value in variables.items()
    }


def register_nodes(registry: NodeRegistry) -> None:
    """Register logic nodes with the registry."""

    @registry.node(
        NodeSchema(
            id="condition",
            name="Condition",
            description="Evaluate an expression; true takes output_1, false takes output_2.",
            category=CATEGORY,
            capabilities=["logic:condition"],
            idempotent=True,
            inputs={
                "expression": FieldSpec(
                    required=True,
                    format=FieldFormat.EXPRESSION,
                    description="e.g. count > 3 and status == 'ok'",
                ),
            },
            outputs={"result": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def condition(inputs: dict[str, Any], ctx: RunContext) -> NodeResult:
        result = bool(ctx.policy.evaluate(inputs["expression"], ctx.variables))
        slot = DEFAULT_OUTPUT_SLOT if result else ALTERNATE_OUTPUT_SLOT
        return NodeResult(output={"result": result}, output_slot=slot)

    @registry.node(
        NodeSchema(
            id="loop_data",
            name="Loop Over Data",
            description="Run output_1 once per item, then continue on output_2.",
            category=CATEGORY,
            capabilities=["logic:loop"],
            is_loop=True,
            inputs={
                "items": FieldSpec(type=FieldType.ARRAY, required=True),
                "item_var": FieldSpec(default="item", pattern=VARIABLE_NAME_PATTERN),
                "index_var": FieldSpec(default="index", pattern=VARIABLE_NAME_PATTERN),
                "max_items": FieldSpec(type=FieldType.NUMBER, default=1000),
            },
            outputs={
                "items": OutputSpec(type=FieldType.ARRAY),
                "item_var": OutputSpec(type=FieldType.STRING),
                "index_var": OutputSpec(type=FieldType.STRING),
                "count": OutputSpec(type=FieldType.NUMBER),
            },
        )
    )
    async def loop_data(inputs: dict[str, Any], ctx: RunContext) -> dict:
        limit = max(0, min(int(inputs["max_items"]), MAX_LOOP_ITEMS))
        items = list(inputs["items"])
        if len(items) > limit:
            logger.warning(f"Loop truncated from {len(items)} to {limit} items")
            items = items[:limit]
        return {
            "items": items,
            "item_var": inputs["item_var"],
            "index_var": inputs["index_var"],
            "count": len(items),
        }

    @registry.node(
        NodeSchema(
            id="loop_count",
            name="Loop N Times",
            description="Run output_1 count times, then continue on output_2.",
            category=CATEGORY,
            capabilities=["logic:loop"],
            is_loop=True,
            inputs={
                "count": FieldSpec(type=FieldType.NUMBER, required=True),
                "index_var": FieldSpec(default="i", pattern=VARIABLE_NAME_PATTERN),
            },
            outputs={
                "items": OutputSpec(type=FieldType.ARRAY),
                "item_var": OutputSpec(type=FieldType.STRING),
                "index_var": OutputSpec(type=FieldType.STRING),
                "count": OutputSpec(type=FieldType.NUMBER),
            },
        )
    )
    async def loop_count(inputs: dict[str, Any], ctx: RunContext) -> dict:
        count = max(0, min(int(inputs["count"]), MAX_LOOP_ITEMS))
        # The counter itself is the item; the position goes to a private index
        return {
            "items": list(range(count)),
            "item_var": inputs["index_var"],
            "index_var": "_loop_index",
            "count": count,
        }

    @registry.node(
        NodeSchema(
            id="break_loop",
            name="Break Loop",
            description="Stop the innermost loop; the walk resumes on its output_2.",
            category=CATEGORY,
            capabilities=["logic:loop"],
            outputs={"broken": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def break_loop(inputs: dict[str, Any], ctx: RunContext) -> dict:
        ctx.break_loop = True
        return {"broken": True}

    @registry.node(
        NodeSchema(
            id="continue_loop",
            name="Continue Loop",
            description="Skip the rest of the current loop iteration.",
            category=CATEGORY,
            capabilities=["logic:loop"],
            outputs={"continued": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def continue_loop(inputs: dict[str, Any], ctx: RunContext) -> dict:
        ctx.continue_loop = True
        return {"continued": True}

    @registry.node(
        NodeSchema(
            id="set_variable",
            name="Set Variable",
            category=CATEGORY,
            capabilities=["logic:variables"],
            idempotent=True,
            inputs={
                "name": FieldSpec(required=True, pattern=VARIABLE_NAME_PATTERN),
                "value": FieldSpec(type=FieldType.ANY),
            },
            outputs={
                "name": OutputSpec(type=FieldType.STRING),
                "value": OutputSpec(type=FieldType.ANY),
            },
        )
    )
    async def set_variable(inputs: dict[str, Any], ctx: RunContext) -> dict:
        ctx.variables[inputs["name"]] = inputs.get("value")
        return {"name": inputs["name"], "value": inputs.get("value")}

    @registry.node(
        NodeSchema(
            id="delay",
            name="Delay",
            category=CATEGORY,
            capabilities=["logic:delay"],
            idempotent=True,
            inputs={"ms": FieldSpec(type=FieldType.NUMBER, default=1000)},
            outputs={"waited_ms": OutputSpec(type=FieldType.NUMBER)},
        )
    )
    async def delay(inputs: dict[str, Any], ctx: RunContext) -> dict:
        ms = max(0, min(inputs["ms"], MAX_DELAY_MS))
        await asyncio.sleep(ms / 1000)
        return {"waited_ms": ms}

    @registry.node(
        NodeSchema(
            id="log_debug",
            name="Debug Log",
            category="Debug",
            capabilities=["logic:debug"],
            idempotent=True,
            inputs={
                "message": FieldSpec(required=True),
                "level": FieldSpec(enum=list(LOG_LEVELS), default="info"),
                "include_variables": FieldSpec(type=FieldType.BOOLEAN, default=False),
                "mask_sensitive": FieldSpec(type=FieldType.BOOLEAN, default=True),
            },
            outputs={"logged": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def log_debug(inputs: dict[str, Any], ctx: RunContext) -> dict:
        message = str(inputs["message"])
        if inputs["include_variables"]:
            variables = ctx.variables
            if inputs["mask_sensitive"]:
                variables = mask_variables(variables)
            message = f"{message} | variables={variables}"
        logger.log(LOG_LEVELS[inputs["level"]], message, extra={"event": "log_debug"})
        return {"logged": True}
