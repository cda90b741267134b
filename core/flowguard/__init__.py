"""
flowguard - run user-authored automation graphs under a security policy.

A graph is a set of node instances wired output-slot to node. The executor
walks it from the start node; before every privileged step the policy
engine checks the acting role's capabilities, outbound URLs, file paths,
expressions and sensitive-output mappings.

Example:
    from flowguard import GraphExecutor, PolicyEngine, create_default_registry

    executor = GraphExecutor(registry=create_default_registry(), policy=PolicyEngine())
    result = await executor.start_run(document, role="staff", session=session)
"""

from flowguard.config import SecurityConfig
from flowguard.errors import ErrorKind, FlowguardError
from flowguard.graph import ExecutionResult, GraphExecutor, GraphSpec, NodeResult, NodeSchema
from flowguard.interfaces import DataStoreHandle, QueryResult, SessionHandle
from flowguard.policy import PolicyEngine
from flowguard.registry import NodeRegistry, create_default_registry
from flowguard.runtime import RunContext, RunContextStore

__version__ = "0.1.0"

__all__ = [
    "SecurityConfig",
    "ErrorKind",
    "FlowguardError",
    "ExecutionResult",
    "GraphExecutor",
    "GraphSpec",
    "NodeResult",
    "NodeSchema",
    "DataStoreHandle",
    "QueryResult",
    "SessionHandle",
    "PolicyEngine",
    "NodeRegistry",
    "create_default_registry",
    "RunContext",
    "RunContextStore",
]
