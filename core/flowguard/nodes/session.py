"""
Session Nodes - drive the interactive session (a browser tab).

All of these hold the ``browser:tab`` resource lock so that two runs never
drive the same tab at once. ``open_url`` declares its url field with the
``url`` format, so the executor runs the egress check before navigation;
``upload_file`` declares its path with the ``path`` format and receives the
sandbox-resolved path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

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

CATEGORY = "Browser"
TAB_LOCK = "browser:tab"
WAIT_UNTIL = ["load", "domcontentloaded", "networkidle0", "networkidle2"]
ELEMENT_STATES = ["visible", "hidden", "attached", "detached"]


def _schema(id: str, name: str, **kwargs: Any) -> NodeSchema:
    kwargs.setdefault("capabilities", ["browser:basic"])
    kwargs.setdefault("resource_locks", [TAB_LOCK])
    return NodeSchema(id=id, name=name, category=CATEGORY, **kwargs)


def register_nodes(registry: NodeRegistry) -> None:
    """Register session nodes with the registry."""

    @registry.node(
        _schema(
            "open_url",
            "Open URL",
            description="Navigate the session to a URL.",
            inputs={
                "url": FieldSpec(required=True, format=FieldFormat.URL),
                "wait_until": FieldSpec(enum=WAIT_UNTIL, default="networkidle2"),
                "timeout": FieldSpec(type=FieldType.NUMBER, default=30000),
            },
            outputs={
                "success": OutputSpec(type=FieldType.BOOLEAN),
                "final_url": OutputSpec(type=FieldType.STRING),
                "status": OutputSpec(type=FieldType.NUMBER),
            },
            timeout_ms=60000,
        )
    )
    async def open_url(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        status = await session.navigate(
            inputs["url"], wait_until=inputs["wait_until"], timeout_ms=int(inputs["timeout"])
        )
        return {"success": True, "final_url": await session.current_url(), "status": status}

    @registry.node(
        _schema(
            "click_element",
            "Click Element",
            description="Click an element, optionally waiting for it first.",
            inputs={
                "selector": FieldSpec(required=True, description="CSS selector or XPath"),
                "wait_for_element": FieldSpec(type=FieldType.BOOLEAN, default=True),
                "wait_timeout": FieldSpec(type=FieldType.NUMBER, default=10000),
                "button": FieldSpec(enum=["left", "right", "middle"], default="left"),
                "click_count": FieldSpec(type=FieldType.NUMBER, default=1),
            },
            outputs={
                "clicked": OutputSpec(type=FieldType.BOOLEAN),
                "element_found": OutputSpec(type=FieldType.BOOLEAN),
            },
            timeout_ms=30000,
        )
    )
    async def click_element(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        selector = inputs["selector"]
        if inputs["wait_for_element"]:
            await session.wait_for_selector(selector, timeout_ms=int(inputs["wait_timeout"]))
        if await session.find_element(selector) is None:
            return {"clicked": False, "element_found": False}
        await session.click(selector, button=inputs["button"], click_count=int(inputs["click_count"]))
        return {"clicked": True, "element_found": True}

    @registry.node(
        _schema(
            "type_text",
            "Type Text",
            description="Type text into an input. Accepts {{secrets.*}} placeholders.",
            inputs={
                "selector": FieldSpec(required=True),
                "text": FieldSpec(required=True, sensitive=True),
                "clear_first": FieldSpec(type=FieldType.BOOLEAN, default=True),
                "delay": FieldSpec(type=FieldType.NUMBER, default=50, description="ms between keys"),
            },
            outputs={"typed": OutputSpec(type=FieldType.BOOLEAN)},
            timeout_ms=30000,
        )
    )
    async def type_text(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        await session.wait_for_selector(inputs["selector"])
        await session.type_text(
            inputs["selector"],
            str(inputs["text"]),
            delay_ms=int(inputs["delay"]),
            clear=inputs["clear_first"],
        )
        return {"typed": True}

    @registry.node(
        _schema(
            "wait_navigation",
            "Wait for Navigation",
            inputs={
                "wait_until": FieldSpec(enum=WAIT_UNTIL, default="networkidle2"),
                "timeout": FieldSpec(type=FieldType.NUMBER, default=30000),
            },
            outputs={
                "success": OutputSpec(type=FieldType.BOOLEAN),
                "url": OutputSpec(type=FieldType.STRING),
            },
        )
    )
    async def wait_navigation(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        await session.wait_for_navigation(wait_until=inputs["wait_until"], timeout_ms=int(inputs["timeout"]))
        return {"success": True, "url": await session.current_url()}

    @registry.node(
        _schema(
            "get_text",
            "Get Text",
            description="Read an element's text.",
            inputs={
                "selector": FieldSpec(required=True),
                "trim": FieldSpec(type=FieldType.BOOLEAN, default=True),
                "property": FieldSpec(enum=["innerText", "textContent", "value"], default="innerText"),
            },
            outputs={
                "text": OutputSpec(type=FieldType.STRING),
                "found": OutputSpec(type=FieldType.BOOLEAN),
            },
            idempotent=True,
        )
    )
    async def get_text(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        if await session.find_element(inputs["selector"]) is None:
            return {"text": "", "found": False}
        text = await session.read_text(inputs["selector"], prop=inputs["property"])
        if inputs["trim"]:
            text = text.strip()
        return {"text": text, "found": True}

    @registry.node(
        _schema(
            "element_exists",
            "Element Exists",
            inputs={
                "selector": FieldSpec(required=True),
                "timeout": FieldSpec(type=FieldType.NUMBER, default=0, description="0 = no wait"),
            },
            outputs={"exists": OutputSpec(type=FieldType.BOOLEAN)},
            idempotent=True,
        )
    )
    async def element_exists(inputs: dict[str, Any], ctx: RunContext) -> dict:
        """Branches: output_1 when the element exists, output_2 otherwise."""
        session = ctx.require_session()
        if inputs["timeout"] > 0:
            exists = await session.wait_for_selector(
                inputs["selector"], state="attached", timeout_ms=int(inputs["timeout"])
            )
        else:
            exists = await session.find_element(inputs["selector"]) is not None

        if exists:
            return {"exists": True}
        return NodeResult(output={"exists": False}, output_slot=ALTERNATE_OUTPUT_SLOT)

    @registry.node(
        _schema(
            "select_option",
            "Select Option",
            inputs={
                "selector": FieldSpec(required=True),
                "value": FieldSpec(required=True, description="Option value to select"),
            },
            outputs={
                "selected": OutputSpec(type=FieldType.BOOLEAN),
                "values": OutputSpec(type=FieldType.ARRAY),
            },
        )
    )
    async def select_option(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        values = await session.select_option(inputs["selector"], str(inputs["value"]))
        return {"selected": bool(values), "values": values}

    @registry.node(
        _schema(
            "upload_file",
            "Upload File",
            description="Attach a file from inside the sandbox roots to a file input.",
            risk_level=RiskLevel.MEDIUM,
            capabilities=["browser:advanced", "files:read"],
            inputs={
                "selector": FieldSpec(required=True),
                "path": FieldSpec(required=True, format=FieldFormat.PATH),
            },
            outputs={
                "uploaded": OutputSpec(type=FieldType.BOOLEAN),
                "path": OutputSpec(type=FieldType.STRING),
            },
            timeout_ms=60000,
        )
    )
    async def upload_file(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        # inputs["path"] has already been replaced by the sandbox-resolved path
        await session.upload_file(inputs["selector"], inputs["path"])
        return {"uploaded": True, "path": inputs["path"]}

    @registry.node(
        _schema(
            "wait_element",
            "Wait for Element",
            inputs={
                "selector": FieldSpec(required=True),
                "state": FieldSpec(enum=ELEMENT_STATES, default="visible"),
                "timeout": FieldSpec(type=FieldType.NUMBER, default=30000),
            },
            outputs={"found": OutputSpec(type=FieldType.BOOLEAN)},
        )
    )
    async def wait_element(inputs: dict[str, Any], ctx: RunContext) -> dict:
        session = ctx.require_session()
        found = await session.wait_for_selector(
            inputs["selector"], state=inputs["state"], timeout_ms=int(inputs["timeout"])
        )
        return {"found": bool(found)}
