"""Runtime state: run contexts and resource locks."""

from flowguard.runtime.locks import ResourceLockManager
from flowguard.runtime.run_store import (
    ExecutedNode,
    RunContext,
    RunContextStore,
    RunStatus,
)

__all__ = [
    "ExecutedNode",
    "ResourceLockManager",
    "RunContext",
    "RunContextStore",
    "RunStatus",
]
