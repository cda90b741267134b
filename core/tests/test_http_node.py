"""
Tests for the http_request node, against httpx.MockTransport.
"""

import json

import httpx
import pytest

from flowguard.errors import ErrorKind
from flowguard.graph import GraphExecutor, validate_inputs
from flowguard.graph.node import ALTERNATE_OUTPUT_SLOT
from flowguard.runtime import RunContext


@pytest.fixture
def mock_http(monkeypatch):
    """Route every AsyncClient the node opens through a recording MockTransport."""
    real_client = httpx.AsyncClient
    state = {"requests": [], "client_kwargs": [], "handler": None}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["handler"](request)

    def client_factory(**kwargs):
        state["client_kwargs"].append(kwargs)
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr("flowguard.nodes.network.httpx.AsyncClient", client_factory)
    return state


def request_graph(data, **extra):
    return {
        "id": "http",
        "nodes": {
            "1": {"type": "start", "outputs": {"output_1": ["req"]}},
            "req": {
                "type": "http_request",
                "data": data,
                "outputs": {"output_1": ["ok"], "output_2": ["failed"]},
                **extra,
            },
            "ok": {"type": "set_variable", "data": {"name": "branch", "value": "ok"}},
            "failed": {"type": "set_variable", "data": {"name": "branch", "value": "failed"}},
        },
    }


@pytest.fixture
def executor(registry, policy):
    return GraphExecutor(registry=registry, policy=policy)


class TestHttpRequest:
    @pytest.mark.asyncio
    async def test_get_json(self, executor, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(200, json={"users": [1, 2]})

        result = await executor.start_run(
            request_graph(
                {"url": "https://api.example.com/users", "params": {"page": 2}},
                save_as={"body": "payload", "status": "code"},
            ),
            role="admin",
        )

        assert result.success
        assert result.variables["branch"] == "ok"
        assert result.variables["payload"] == {"users": [1, 2]}
        assert result.variables["code"] == 200

        request = mock_http["requests"][0]
        assert request.method == "GET"
        assert request.url.params["page"] == "2"
        assert mock_http["client_kwargs"][0]["follow_redirects"] is False

    @pytest.mark.asyncio
    async def test_post_json_body_with_bearer_secret(self, executor, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(201, text="created")

        result = await executor.start_run(
            request_graph(
                {
                    "url": "https://api.example.com/items",
                    "method": "POST",
                    "body": {"name": "{{item}}"},
                    "auth_token": "{{secrets.API_TOKEN}}",
                }
            ),
            role="admin",
            variables={"item": "widget"},
            secrets={"API_TOKEN": "t0ken"},
        )

        assert result.success
        request = mock_http["requests"][0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"name": "widget"}
        assert request.headers["Authorization"] == "Bearer t0ken"
        assert "t0ken" not in json.dumps(result.to_dict(), default=str)

    @pytest.mark.asyncio
    async def test_error_status_takes_alternate_branch(self, executor, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(503, text="unavailable")

        result = await executor.start_run(
            request_graph({"url": "https://api.example.com/health"}), role="admin"
        )

        assert result.success
        assert result.variables["branch"] == "failed"

    @pytest.mark.asyncio
    async def test_redirect_is_not_followed(self, executor, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(
            302, headers={"Location": "http://169.254.169.254/latest/meta-data"}
        )

        result = await executor.start_run(
            request_graph({"url": "https://api.example.com/go"}, save_as={"status": "code"}),
            role="admin",
        )

        assert len(mock_http["requests"]) == 1
        assert result.variables["code"] == 302
        assert result.variables["branch"] == "failed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url,kind",
        [
            ("http://127.0.0.1:8080/admin", ErrorKind.EGRESS_DENYLIST),
            ("https://metadata.example.com/", ErrorKind.EGRESS_DNS_PRIVATE_IP),
            ("file:///etc/passwd", ErrorKind.EGRESS_PROTOCOL),
        ],
    )
    async def test_blocked_targets_never_reach_transport(self, executor, mock_http, url, kind):
        mock_http["handler"] = lambda request: httpx.Response(200)

        result = await executor.start_run(request_graph({"url": url}), role="admin")

        assert result.error_kind == kind
        assert mock_http["requests"] == []

    @pytest.mark.asyncio
    async def test_requires_network_external(self, executor, mock_http):
        result = await executor.start_run(
            request_graph({"url": "https://api.example.com/"}), role="manager"
        )

        assert result.error_kind == ErrorKind.ACCESS_DENIED
        assert "network:external" in result.error

    @pytest.mark.asyncio
    async def test_text_body_and_headers(self, registry, policy, mock_http):
        mock_http["handler"] = lambda request: httpx.Response(
            404, text="not here", headers={"X-Trace": "abc"}
        )
        entry = registry.get("http_request")
        inputs = validate_inputs(
            {"url": "https://api.example.com/missing", "method": "PUT", "body": "raw"},
            entry.schema,
        )

        result = await entry.implementation.execute(inputs, RunContext("r", "admin", policy))

        assert result.output_slot == ALTERNATE_OUTPUT_SLOT
        assert result.output["status"] == 404
        assert result.output["ok"] is False
        assert result.output["body"] == "not here"
        assert result.output["headers"]["x-trace"] == "abc"
        assert mock_http["requests"][0].content == b"raw"
