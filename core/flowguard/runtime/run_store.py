"""
Run Context Store - tracks live executions by run id.

Each run gets its own RunContext (variables, secrets, role, handles). The
store is owned by an executor instance and injected into it, so tests and
multiple isolated executors in one process never share run state. No run
reads another run's context.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from flowguard.errors import NodeFailed

if TYPE_CHECKING:
    from flowguard.graph.node import NodeResult
    from flowguard.interfaces import DataStoreHandle, SessionHandle
    from flowguard.policy.engine import PolicyEngine

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    """Status of a run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ExecutedNode:
    """Trail entry for one executed node (outputs are not recorded)."""

    node_id: str
    node_type: str
    output_slot: str
    latency_ms: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class RunContext:
    """
    Per-execution mutable state for one graph walk.

    ``secrets`` is a separate bag: it is never copied into ``variables`` and
    never exposed to expression evaluation.
    """

    run_id: str
    role: str | None
    policy: PolicyEngine
    graph_id: str = ""
    variables: dict[str, Any] = field(default_factory=dict)
    secrets: dict[str, Any] = field(default_factory=dict)
    profile: dict[str, Any] = field(default_factory=dict)
    session: SessionHandle | None = None
    data_store: DataStoreHandle | None = None
    last_result: NodeResult | None = None
    status: RunStatus = RunStatus.IDLE
    current_node_id: str | None = None
    executed_nodes: list[ExecutedNode] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    break_loop: bool = False
    continue_loop: bool = False

    def require_session(self) -> SessionHandle:
        if self.session is None:
            raise NodeFailed("Session handle not available for this run")
        return self.session

    def require_data_store(self) -> DataStoreHandle:
        if self.data_store is None:
            raise NodeFailed("Data store not available for this run")
        return self.data_store

    @property
    def elapsed_ms(self) -> int:
        return int((time.time() - self.started_at) * 1000)


class RunContextStore:
    """
    Live runs keyed by id.

    Example:
        store = RunContextStore()
        ctx = store.create(role="staff", policy=policy)
        ...
        store.discard(ctx.run_id)
    """

    def __init__(self):
        self._runs: dict[str, RunContext] = {}

    def create(self, role: str | None, policy: PolicyEngine, **kwargs: Any) -> RunContext:
        run_id = uuid.uuid4().hex
        ctx = RunContext(run_id=run_id, role=role, policy=policy, **kwargs)
        self._runs[run_id] = ctx
        logger.debug(f"Registered run context: {run_id}")
        return ctx

    def get(self, run_id: str) -> RunContext | None:
        return self._runs.get(run_id)

    def discard(self, run_id: str) -> None:
        self._runs.pop(run_id, None)
        logger.debug(f"Discarded run context: {run_id}")

    def active_run_ids(self) -> list[str]:
        return list(self._runs)

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._runs
