"""Graph structures: node schemas, the node contract, graph documents and the executor."""

from flowguard.graph.contract import resolve_variables, validate_inputs
from flowguard.graph.executor import ExecutionResult, GraphExecutor
from flowguard.graph.node import (
    ALTERNATE_OUTPUT_SLOT,
    DEFAULT_OUTPUT_SLOT,
    START_NODE_TYPE,
    FieldFormat,
    FieldSpec,
    FieldType,
    FunctionNode,
    NodeProtocol,
    NodeResult,
    NodeSchema,
    OutputSpec,
    RiskLevel,
)
from flowguard.graph.workflow import GraphSpec, NodeInstance

__all__ = [
    # Node
    "NodeSchema",
    "FieldSpec",
    "FieldType",
    "FieldFormat",
    "OutputSpec",
    "RiskLevel",
    "NodeResult",
    "NodeProtocol",
    "FunctionNode",
    "DEFAULT_OUTPUT_SLOT",
    "ALTERNATE_OUTPUT_SLOT",
    "START_NODE_TYPE",
    # Contract
    "validate_inputs",
    "resolve_variables",
    # Graph documents
    "GraphSpec",
    "NodeInstance",
    # Executor
    "GraphExecutor",
    "ExecutionResult",
]
