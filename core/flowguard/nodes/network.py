"""
Network Nodes - outbound HTTP.

The url field carries the ``url`` format, so the executor has already passed
it through the egress fortress before the request is made. Redirects are
not followed: a redirect target never went through that check.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from flowguard.graph.node import (
    ALTERNATE_OUTPUT_SLOT,
    FieldFormat,
    FieldSpec,
    FieldType,
    NodeResult,
    NodeSchema,
    OutputSpec,
    RiskLevel,
)

if TYPE_CHECKING:
    from flowguard.registry.node_registry import NodeRegistry
    from flowguard.runtime.run_store import RunContext

logger = logging.getLogger(__name__)

HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def register_nodes(registry: NodeRegistry) -> None:
    """Register network nodes with the registry."""

    @registry.node(
        NodeSchema(
            id="http_request",
            name="HTTP Request",
            description="Call an external HTTP endpoint. Non-2xx responses take output_2.",
            category="Network",
            risk_level=RiskLevel.MEDIUM,
            capabilities=["network:external"],
            inputs={
                "url": FieldSpec(required=True, format=FieldFormat.URL),
                "method": FieldSpec(enum=HTTP_METHODS, default="GET"),
                "headers": FieldSpec(type=FieldType.JSON, default={}),
                "params": FieldSpec(type=FieldType.JSON, default={}),
                "body": FieldSpec(type=FieldType.ANY),
                "auth_token": FieldSpec(sensitive=True, description="Bearer token, e.g. {{secrets.API_TOKEN}}"),
                "timeout": FieldSpec(type=FieldType.NUMBER, default=30000),
            },
            outputs={
                "status": OutputSpec(type=FieldType.NUMBER),
                "ok": OutputSpec(type=FieldType.BOOLEAN),
                "body": OutputSpec(type=FieldType.ANY),
                "headers": OutputSpec(type=FieldType.JSON),
            },
            timeout_ms=60000,
        )
    )
    async def http_request(inputs: dict[str, Any], ctx: RunContext) -> NodeResult:
        headers = {str(k): str(v) for k, v in (inputs["headers"] or {}).items()}
        if inputs.get("auth_token"):
            headers["Authorization"] = f"Bearer {inputs['auth_token']}"

        body = inputs.get("body")
        request_kwargs: dict[str, Any] = {"headers": headers, "params": inputs["params"] or None}
        if isinstance(body, (dict, list)):
            request_kwargs["json"] = body
        elif body is not None:
            request_kwargs["content"] = str(body)

        async with httpx.AsyncClient(
            timeout=inputs["timeout"] / 1000, follow_redirects=False
        ) as client:
            response = await client.request(inputs["method"], inputs["url"], **request_kwargs)

        logger.info(f"{inputs['method']} {inputs['url']} → {response.status_code}")
        output = {
            "status": response.status_code,
            "ok": response.is_success,
            "body": _response_body(response),
            "headers": dict(response.headers),
        }
        if response.is_success:
            return NodeResult(output=output)
        return NodeResult(output=output, output_slot=ALTERNATE_OUTPUT_SLOT)
