"""
Graph Executor - runs user-authored graphs under the security policy.

The executor:
1. Takes a graph document, the acting role and the run's handles
2. Allocates a RunContext in its run store
3. Walks the graph depth-first from the start node, consulting the
   PolicyEngine before every privileged step
4. Discards the context and returns an ExecutionResult

State machine per run: Idle → Running(node) → {Running(next) | Completed | Failed}.
Many runs may be in flight at once; inside one run nodes never overlap.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from flowguard.errors import FlowguardError, InvalidType, NodeFailed, NodeTimeout
from flowguard.graph.contract import resolve_variables, validate_inputs
from flowguard.graph.node import (
    ALTERNATE_OUTPUT_SLOT,
    DEFAULT_OUTPUT_SLOT,
    START_NODE_TYPE,
    FieldFormat,
    NodeResult,
    NodeSchema,
    RiskLevel,
)
from flowguard.graph.workflow import GraphSpec, NodeInstance
from flowguard.interfaces import DataStoreHandle, SessionHandle
from flowguard.observability import set_trace_context
from flowguard.observability.logging import trace_context
from flowguard.policy.engine import PolicyEngine
from flowguard.runtime.locks import ResourceLockManager
from flowguard.runtime.run_store import ExecutedNode, RunContext, RunContextStore, RunStatus

if TYPE_CHECKING:
    from flowguard.registry.node_registry import NodeRegistry, RegisteredNode

DEFAULT_MAX_STEPS = 1000


@dataclass
class ExecutionResult:
    """Result of executing a graph."""

    run_id: str
    status: RunStatus
    error_kind: str | None = None
    error: str | None = None
    failed_node: str | None = None
    path: list[str] = field(default_factory=list)  # Node ids executed, in order
    variables: dict[str, Any] = field(default_factory=dict)
    last_result: dict[str, Any] = field(default_factory=dict)  # Non-sensitive outputs only
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": str(self.status),
            "error_kind": self.error_kind,
            "error": self.error,
            "failed_node": self.failed_node,
            "path": list(self.path),
            "variables": dict(self.variables),
            "last_result": dict(self.last_result),
            "duration_ms": self.duration_ms,
        }


class GraphExecutor:
    """
    Executes graphs.

    Example:
        executor = GraphExecutor(
            registry=create_default_registry(),
            policy=PolicyEngine(SecurityConfig()),
        )

        result = await executor.start_run(
            graph=document,
            role="staff",
            session=session,
            profile={"username": "alice"},
        )
    """

    def __init__(
        self,
        registry: NodeRegistry,
        policy: PolicyEngine | None = None,
        run_store: RunContextStore | None = None,
        lock_manager: ResourceLockManager | None = None,
        enforce_timeouts: bool = True,
        max_steps: int = DEFAULT_MAX_STEPS,
    ):
        """
        Initialize the executor.

        Args:
            registry: Node types available to graphs
            policy: Policy engine consulted before privileged steps
            run_store: Store for live run contexts (one per executor by default)
            lock_manager: Named resource locks (share one between executors
                that drive the same resources)
            enforce_timeouts: Race node calls against their declared timeout_ms
            max_steps: Node executions allowed per run before it is failed
        """
        self.registry = registry
        self.policy = policy or PolicyEngine()
        self.run_store = run_store or RunContextStore()
        self.locks = lock_manager or ResourceLockManager()
        self.enforce_timeouts = enforce_timeouts
        self.max_steps = max_steps
        self.logger = logging.getLogger(__name__)

    async def start_run(
        self,
        graph: GraphSpec | dict[str, Any],
        role: str | None,
        session: SessionHandle | None = None,
        profile: dict[str, Any] | None = None,
        secrets: dict[str, Any] | None = None,
        variables: dict[str, Any] | None = None,
        data_store: DataStoreHandle | None = None,
    ) -> ExecutionResult:
        """
        Execute a graph for a role.

        A document that cannot be parsed into a graph fails with InvalidType
        before any run context is allocated.

        Args:
            graph: GraphSpec or a graph document (flat or Drawflow)
            role: Acting role, looked up in the policy's role map
            session: Interactive session handle for session nodes
            profile: Profile bag, addressable as {{profile.*}}
            secrets: Secret bag, only resolvable into sensitive inputs
            variables: Initial run variables
            data_store: Data-store handle for data nodes

        Returns:
            ExecutionResult carrying status, error kind/message and the
            non-sensitive variables
        """
        try:
            graph = GraphSpec.from_document(graph)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            self.logger.error(f"✗ Rejected malformed graph document: {e}")
            return ExecutionResult(
                run_id=uuid.uuid4().hex,
                status=RunStatus.FAILED,
                error_kind=str(InvalidType.kind),
                error=f"Malformed graph document: {e}",
            )

        ctx = self.run_store.create(
            role,
            self.policy,
            graph_id=graph.id,
            variables=dict(variables or {}),
            secrets=dict(secrets or {}),
            profile=dict(profile or {}),
            session=session,
            data_store=data_store,
        )

        previous_trace = trace_context.get()
        set_trace_context(run_id=ctx.run_id, graph_id=graph.id, node_id=None, node_type=None)
        ctx.status = RunStatus.RUNNING
        self.logger.info(f"🚀 Starting run {ctx.run_id} of graph '{graph.id or graph.name}'")
        self.logger.info(f"   Role: {role}")

        try:
            start = graph.find_start_node()
            if start is None:
                self.logger.info("Graph has no start node, completing without work")
            else:
                await self.step(graph, start.id, ctx)

            ctx.status = RunStatus.COMPLETED
            self.logger.info(f"✓ Run complete: {len(ctx.executed_nodes)} steps")
            return self._result(ctx)

        except FlowguardError as e:
            ctx.status = RunStatus.FAILED
            self.logger.error(f"✗ Run failed at node '{ctx.current_node_id}': {e}")
            return self._result(ctx, error_kind=str(e.kind), error=e.message)

        except Exception as e:
            ctx.status = RunStatus.FAILED
            self.logger.exception(f"✗ Run failed unexpectedly at node '{ctx.current_node_id}'")
            return self._result(ctx, error_kind=str(NodeFailed.kind), error=str(e))

        finally:
            self.run_store.discard(ctx.run_id)
            trace_context.set(previous_trace)

    async def step(self, graph: GraphSpec, node_id: str, ctx: RunContext) -> None:
        """
        Execute a node and everything reachable from it, depth-first.

        Raises:
            FlowguardError: any policy, contract or node failure; it ends the run
        """
        await self._walk(graph, [node_id], ctx)

    async def _walk(
        self, graph: GraphSpec, node_ids: list[str], ctx: RunContext, in_loop: bool = False
    ) -> None:
        """
        Depth-first walk over an explicit stack of pending node ids.

        Successors are pushed in reverse so they run in declared order, each
        one's subgraph before its next sibling. Only loop bodies open a nested
        walk, so graph length never grows the call stack.
        """
        stack = list(reversed(node_ids))
        while stack:
            targets = await self._execute_node(graph, stack.pop(), ctx)

            if ctx.break_loop or ctx.continue_loop:
                if in_loop:
                    return
                self.logger.warning(
                    f"⚠ Loop control at node '{ctx.current_node_id}' outside any loop, ignoring"
                )
                ctx.break_loop = ctx.continue_loop = False

            stack.extend(reversed(targets))

    async def _execute_node(self, graph: GraphSpec, node_id: str, ctx: RunContext) -> list[str]:
        """Execute one node and return the ids to visit next."""
        node = graph.get_node(node_id)
        if node is None:
            self.logger.warning(f"⚠ Node '{node_id}' not found in graph, skipping")
            return []

        if len(ctx.executed_nodes) >= self.max_steps:
            raise NodeFailed(f"Step limit of {self.max_steps} exceeded (cycle in graph?)")

        ctx.current_node_id = node.id
        set_trace_context(node_id=node.id, node_type=node.type)

        entry = self.registry.get(node.type)
        if entry is None:
            # Registry/graph version skew: treat as a pass-through no-op
            self.logger.warning(f"⚠ Unregistered node type '{node.type}' (node {node.id}), skipping")
            return self._next(node, DEFAULT_OUTPUT_SLOT)

        schema = entry.schema
        self.logger.info(f"▶ {schema.name or schema.id} ({node.id})")

        if node.type == START_NODE_TYPE:
            inputs: dict[str, Any] = {}
        else:
            inputs = await self._prepare_inputs(node, schema, ctx)

        started = time.monotonic()
        result = await self._invoke(node, entry, inputs, ctx)
        latency_ms = int((time.monotonic() - started) * 1000)

        ctx.last_result = result
        ctx.executed_nodes.append(
            ExecutedNode(
                node_id=node.id,
                node_type=node.type,
                output_slot=result.output_slot,
                latency_ms=latency_ms,
            )
        )
        self._store_outputs(node, schema, result, ctx)
        self.logger.info(f"   ✓ {node.type} done in {latency_ms}ms → {result.output_slot}")

        if schema.is_loop:
            await self._run_loop(graph, node, schema, result, ctx)
            return self._next(node, ALTERNATE_OUTPUT_SLOT)

        return self._next(node, result.output_slot)

    def get_run_status(self, run_id: str) -> dict[str, Any] | None:
        """Live status of an in-flight run, or None once it has finished."""
        ctx = self.run_store.get(run_id)
        if ctx is None:
            return None
        return {
            "run_id": run_id,
            "status": str(ctx.status),
            "current_node_id": ctx.current_node_id,
            "executed_nodes": len(ctx.executed_nodes),
            "duration_ms": ctx.elapsed_ms,
        }

    async def _prepare_inputs(
        self, node: NodeInstance, schema: NodeSchema, ctx: RunContext
    ) -> dict[str, Any]:
        """Capabilities, variable resolution, validation, then format-driven checks."""
        self.policy.require_capabilities(ctx.role, schema.capabilities)

        if schema.risk_level != RiskLevel.LOW:
            self.logger.info(
                f"Audit: role '{ctx.role}' executing {schema.risk_level} node '{node.type}'",
                extra={"event": "node_audit", "role": ctx.role, "risk_level": str(schema.risk_level)},
            )

        inputs = resolve_variables(node.data, ctx, schema.sensitive_inputs())
        inputs = validate_inputs(inputs, schema)

        for name, spec in schema.inputs.items():
            value = inputs.get(name)
            if value is None or value == "" or spec.format is None:
                continue
            if spec.format == FieldFormat.URL:
                await self.policy.check_egress(str(value))
            elif spec.format == FieldFormat.PATH:
                inputs[name] = self.policy.resolve_path(str(value))

        return inputs

    async def _invoke(
        self,
        node: NodeInstance,
        entry: RegisteredNode,
        inputs: dict[str, Any],
        ctx: RunContext,
    ) -> NodeResult:
        """Run the implementation under its resource locks and declared timeout."""
        schema = entry.schema
        timeout = None
        if self.enforce_timeouts and schema.timeout_ms:
            timeout = schema.timeout_ms / 1000

        # Locks cover the invocation only, never the walk into successors
        async with self.locks.hold(schema.resource_locks):
            deadline = asyncio.timeout(timeout)
            try:
                async with deadline:
                    raw = await entry.implementation.execute(inputs, ctx)
            except FlowguardError:
                raise
            except TimeoutError as e:
                if deadline.expired():
                    raise NodeTimeout(
                        f"Node '{node.id}' ({node.type}) exceeded its {schema.timeout_ms}ms timeout"
                    ) from e
                raise NodeFailed(f"Node '{node.id}' ({node.type}) failed: {e!r}") from e
            except Exception as e:
                raise NodeFailed(f"Node '{node.id}' ({node.type}) failed: {e}") from e

        return NodeResult.coerce(raw)

    def _store_outputs(
        self, node: NodeInstance, schema: NodeSchema, result: NodeResult, ctx: RunContext
    ) -> None:
        """Copy mapped outputs into variables, through the sensitive guard."""
        for output_key, variable in node.save_as.items():
            self.policy.guard_mapping(schema, output_key, method="save_as")
            if output_key not in result.output:
                self.logger.warning(f"⚠ Node '{node.id}' produced no output '{output_key}'")
                continue
            ctx.variables[variable] = result.output[output_key]

    async def _run_loop(
        self,
        graph: GraphSpec,
        node: NodeInstance,
        schema: NodeSchema,
        result: NodeResult,
        ctx: RunContext,
    ) -> None:
        """Walk the body slot once per item; the caller continues on the done slot."""
        self.policy.guard_mapping(schema, "items", method="loop")
        items = result.output.get("items") or []
        item_var = result.output.get("item_var") or "item"
        index_var = result.output.get("index_var") or "index"
        body = self._next(node, DEFAULT_OUTPUT_SLOT)

        for index, item in enumerate(items):
            ctx.variables[item_var] = item
            ctx.variables[index_var] = index
            await self._walk(graph, body, ctx, in_loop=True)

            ctx.continue_loop = False
            if ctx.break_loop:
                ctx.break_loop = False
                self.logger.info(f"   ⏹ Loop {node.id} broken at index {index}")
                break

    def _next(self, node: NodeInstance, slot: str) -> list[str]:
        targets = node.targets(slot)
        if not targets:
            self.logger.debug(f"   → No connections on '{slot}' of node {node.id}")
        return targets

    def _result(
        self,
        ctx: RunContext,
        error_kind: str | None = None,
        error: str | None = None,
    ) -> ExecutionResult:
        last_result: dict[str, Any] = {}
        if ctx.last_result is not None and ctx.executed_nodes:
            entry = self.registry.get(ctx.executed_nodes[-1].node_type)
            sensitive = (
                {k for k, spec in entry.schema.outputs.items() if spec.sensitive} if entry else set()
            )
            last_result = {k: v for k, v in ctx.last_result.output.items() if k not in sensitive}

        return ExecutionResult(
            run_id=ctx.run_id,
            status=ctx.status,
            error_kind=error_kind,
            error=error,
            failed_node=ctx.current_node_id if error_kind else None,
            path=[e.node_id for e in ctx.executed_nodes],
            variables=dict(ctx.variables),
            last_result=last_result,
            duration_ms=ctx.elapsed_ms,
        )
