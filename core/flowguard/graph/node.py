"""
Node Protocol - the contract every node type implements.

A node type is a NodeSchema (what it needs, what it produces, which
capabilities and resources it requires) paired with an implementation that
receives validated inputs plus the run context and returns a NodeResult.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from flowguard.runtime.run_store import RunContext

DEFAULT_OUTPUT_SLOT = "output_1"
ALTERNATE_OUTPUT_SLOT = "output_2"
START_NODE_TYPE = "start"


class RiskLevel(StrEnum):
    """Informational severity label; not enforced by the executor."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class FieldType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    ARRAY = "array"
    ANY = "any"


class FieldFormat(StrEnum):
    """Formats that route a field through a policy check before invocation."""

    URL = "url"  # egress fortress
    PATH = "path"  # filesystem sandbox, value replaced by the resolved path
    EXPRESSION = "expression"  # only ever evaluated by the safe evaluator


class FieldSpec(BaseModel):
    """Schema for a single node input."""

    type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None
    enum: list[Any] | None = None
    pattern: str | None = None
    sensitive: bool = False
    format: FieldFormat | None = None
    description: str = ""

    model_config = {"extra": "allow"}


class OutputSpec(BaseModel):
    """Schema for a single node output."""

    type: FieldType = FieldType.ANY
    sensitive: bool = False
    description: str = ""

    model_config = {"extra": "allow"}


class NodeSchema(BaseModel):
    """
    Declaration of a node type.

    Example:
        NodeSchema(
            id="db_delete",
            name="Database Delete",
            category="Data",
            risk_level=RiskLevel.CRITICAL,
            capabilities=["db:delete"],
            resource_locks=["db:global"],
            inputs={
                "table": FieldSpec(required=True, pattern=r"^[a-zA-Z0-9_]+$"),
                "where": FieldSpec(type=FieldType.JSON),
            },
            outputs={"affected_rows": OutputSpec(type=FieldType.NUMBER)},
            timeout_ms=10000,
        )
    """

    id: str = ""
    name: str = ""
    description: str = ""
    category: str = ""
    version: str = "1.0.0"
    risk_level: RiskLevel = RiskLevel.LOW
    capabilities: list[str] | None = Field(
        default=None, description="Capabilities the acting role must hold"
    )
    resource_locks: list[str] = Field(
        default_factory=list, description="Named shared resources, e.g. 'browser:tab'"
    )
    idempotent: bool = False
    inputs: dict[str, FieldSpec] = Field(default_factory=dict)
    outputs: dict[str, OutputSpec] = Field(default_factory=dict)
    timeout_ms: int | None = None
    is_loop: bool = Field(
        default=False,
        description="Loop nodes walk output_1 once per item, then output_2",
    )

    model_config = {"extra": "allow"}

    def sensitive_inputs(self) -> set[str]:
        return {name for name, spec in self.inputs.items() if spec.sensitive}


@dataclass
class NodeResult:
    """What a node implementation hands back to the executor."""

    output: dict[str, Any] = field(default_factory=dict)
    output_slot: str = DEFAULT_OUTPUT_SLOT

    @classmethod
    def coerce(cls, value: Any) -> NodeResult:
        """Accept a NodeResult, a plain output dict, or None."""
        if isinstance(value, NodeResult):
            return value
        if value is None:
            return cls()
        if isinstance(value, dict):
            return cls(output=value)
        return cls(output={"result": value})


@runtime_checkable
class NodeProtocol(Protocol):
    """Anything with an async execute(inputs, ctx) can back a node type."""

    async def execute(self, inputs: dict[str, Any], ctx: RunContext) -> NodeResult: ...


NodeFunction = Callable[[dict[str, Any], "RunContext"], Awaitable[Any] | Any]


class FunctionNode:
    """Adapts a plain (async or sync) function to NodeProtocol."""

    def __init__(self, func: NodeFunction):
        self.func = func
        self.__name__ = getattr(func, "__name__", "node")

    async def execute(self, inputs: dict[str, Any], ctx: RunContext) -> NodeResult:
        value = self.func(inputs, ctx)
        if inspect.isawaitable(value):
            value = await value
        return NodeResult.coerce(value)


class StartNode:
    """The policy-free entry point. Does nothing."""

    async def execute(self, inputs: dict[str, Any], ctx: RunContext) -> NodeResult:
        return NodeResult()


START_SCHEMA = NodeSchema(
    id=START_NODE_TYPE,
    name="Start",
    description="Entry point of every graph.",
    category="Logic",
    capabilities=[],
    idempotent=True,
)
