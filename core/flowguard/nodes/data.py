"""
Data Nodes - parameterized access to the relational data store.

Queries are only ever built from key/value objects. Table and column names
are checked against the identifier pattern before they are interpolated;
values always travel as ``?`` parameters. UPDATE and DELETE refuse to run
without a non-empty filter, whatever the acting role.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowguard.errors import InvalidType
from flowguard.graph.node import FieldSpec, FieldType, NodeSchema, OutputSpec, RiskLevel

if TYPE_CHECKING:
    from flowguard.policy.engine import PolicyEngine
    from flowguard.registry.node_registry import NodeRegistry
    from flowguard.runtime.run_store import RunContext

logger = logging.getLogger(__name__)

CATEGORY = "Data"
DB_LOCK = "db:global"
MAX_SELECT_LIMIT = 1000


def build_where(policy: PolicyEngine, where: dict[str, Any]) -> tuple[str, list[Any]]:
    """Turn {column: value} into an AND-ed equality clause and its parameters."""
    clauses = []
    params: list[Any] = []
    for column, value in where.items():
        policy.validate_identifier(column, "column")
        if value is None:
            clauses.append(f"{column} IS NULL")
        else:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " AND ".join(clauses), params


def _require_object(value: Any, name: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidType(f"Field '{name}' must be a JSON object of column: value")
    return value


def register_nodes(registry: NodeRegistry) -> None:
    """Register data-store nodes with the registry."""

    @registry.node(
        NodeSchema(
            id="db_select",
            name="Database Select",
            description="Read rows matching an equality filter.",
            category=CATEGORY,
            risk_level=RiskLevel.MEDIUM,
            capabilities=["db:read"],
            idempotent=True,
            inputs={
                "table": FieldSpec(required=True),
                "columns": FieldSpec(type=FieldType.ARRAY, default=[]),
                "where": FieldSpec(type=FieldType.JSON, default={}),
                "order_by": FieldSpec(),
                "descending": FieldSpec(type=FieldType.BOOLEAN, default=False),
                "limit": FieldSpec(type=FieldType.NUMBER, default=100),
            },
            outputs={
                "rows": OutputSpec(type=FieldType.ARRAY),
                "count": OutputSpec(type=FieldType.NUMBER),
            },
            timeout_ms=30000,
        )
    )
    async def db_select(inputs: dict[str, Any], ctx: RunContext) -> dict:
        policy = ctx.policy
        table = policy.validate_identifier(inputs["table"], "table")
        columns = [policy.validate_identifier(c, "column") for c in inputs["columns"] or []]

        query = f"SELECT {', '.join(columns) or '*'} FROM {table}"
        params: list[Any] = []
        where = _require_object(inputs["where"] or {}, "where")
        if where:
            clause, params = build_where(policy, where)
            query += f" WHERE {clause}"
        if inputs.get("order_by"):
            order_by = policy.validate_identifier(inputs["order_by"], "column")
            query += f" ORDER BY {order_by} {'DESC' if inputs['descending'] else 'ASC'}"

        limit = max(0, min(int(inputs["limit"]), MAX_SELECT_LIMIT))
        query += " LIMIT ?"
        params.append(limit)

        result = await ctx.require_data_store().execute(query, params)
        return {"rows": result.rows, "count": len(result.rows)}

    @registry.node(
        NodeSchema(
            id="db_write",
            name="Database Write",
            description="Insert a row, or update rows matching a non-empty filter.",
            category=CATEGORY,
            risk_level=RiskLevel.HIGH,
            capabilities=["db:write"],
            resource_locks=[DB_LOCK],
            inputs={
                "table": FieldSpec(required=True),
                "action": FieldSpec(enum=["insert", "update"], default="insert"),
                "data": FieldSpec(type=FieldType.JSON, required=True),
                "where": FieldSpec(type=FieldType.JSON, description="Filter for update"),
            },
            outputs={
                "success": OutputSpec(type=FieldType.BOOLEAN),
                "insert_id": OutputSpec(type=FieldType.NUMBER),
                "affected_rows": OutputSpec(type=FieldType.NUMBER),
            },
            timeout_ms=30000,
        )
    )
    async def db_write(inputs: dict[str, Any], ctx: RunContext) -> dict:
        policy = ctx.policy
        table = policy.validate_identifier(inputs["table"], "table")
        data = _require_object(inputs["data"], "data")
        if not data:
            raise InvalidType("Field 'data' must contain at least one column")
        columns = [policy.validate_identifier(c, "column") for c in data]

        if inputs["action"] == "update":
            where = policy.require_filter(inputs.get("where"), "UPDATE")
            clause, where_params = build_where(policy, _require_object(where, "where"))
            assignments = ", ".join(f"{c} = ?" for c in columns)
            query = f"UPDATE {table} SET {assignments} WHERE {clause}"
            params = list(data.values()) + where_params
        else:
            placeholders = ", ".join("?" for _ in columns)
            query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
            params = list(data.values())

        result = await ctx.require_data_store().execute(query, params)
        logger.info(f"{inputs['action']} on {table}: {result.affected_rows} rows")
        return {
            "success": True,
            "insert_id": result.last_insert_id or 0,
            "affected_rows": result.affected_rows,
        }

    @registry.node(
        NodeSchema(
            id="db_delete",
            name="Database Delete",
            description="Delete rows matching a non-empty filter.",
            category=CATEGORY,
            risk_level=RiskLevel.CRITICAL,
            capabilities=["db:delete"],
            resource_locks=[DB_LOCK],
            inputs={
                "table": FieldSpec(required=True),
                "where": FieldSpec(type=FieldType.JSON, description="Filter (always required)"),
            },
            outputs={
                "deleted": OutputSpec(type=FieldType.BOOLEAN),
                "affected_rows": OutputSpec(type=FieldType.NUMBER),
            },
            timeout_ms=30000,
        )
    )
    async def db_delete(inputs: dict[str, Any], ctx: RunContext) -> dict:
        policy = ctx.policy
        table = policy.validate_identifier(inputs["table"], "table")
        where = policy.require_filter(inputs.get("where"), "DELETE")
        clause, params = build_where(policy, _require_object(where, "where"))

        result = await ctx.require_data_store().execute(f"DELETE FROM {table} WHERE {clause}", params)
        logger.warning(f"Deleted {result.affected_rows} rows from {table}")
        return {"deleted": True, "affected_rows": result.affected_rows}
