"""Shared fixtures: a sandboxed policy engine, a fake resolver and fake collaborators."""

import socket
from typing import Any

import pytest

from flowguard.config import DEFAULT_ALLOWED_SCHEMES, DEFAULT_ROLE_CAPABILITIES, SecurityConfig
from flowguard.interfaces import QueryResult
from flowguard.observability import clear_trace_context
from flowguard.policy import PolicyEngine
from flowguard.registry import create_default_registry

DNS_TABLE = {
    "public.example.com": ["93.184.216.34"],
    "api.example.com": ["93.184.216.35", "2606:2800:220:1::1"],
    "internal.example.com": ["10.0.0.5"],
    "rebind.example.com": ["93.184.216.36", "127.0.0.1"],
    "metadata.example.com": ["169.254.169.254"],
    "v6-local.example.com": ["fe80::1"],
}


async def fake_resolver(host: str) -> list[str]:
    if host not in DNS_TABLE:
        raise socket.gaierror(f"Name or service not known: {host}")
    return DNS_TABLE[host]


class FakeSession:
    """Records every call; elements listed in ``elements`` exist."""

    def __init__(self, elements: dict[str, str] | None = None, url: str = "about:blank"):
        self.elements = dict(elements or {})
        self.url = url
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def navigate(self, url, wait_until="load", timeout_ms=45000):
        self.calls.append(("navigate", (url, wait_until)))
        self.url = url
        return 200

    async def find_element(self, selector):
        self.calls.append(("find_element", (selector,)))
        return selector if selector in self.elements else None

    async def click(self, selector, button="left", click_count=1):
        self.calls.append(("click", (selector, button, click_count)))

    async def type_text(self, selector, text, delay_ms=50, clear=True):
        self.calls.append(("type_text", (selector, text)))

    async def wait_for_selector(self, selector, state="visible", timeout_ms=30000):
        self.calls.append(("wait_for_selector", (selector, state)))
        return selector in self.elements

    async def wait_for_navigation(self, wait_until="load", timeout_ms=30000):
        self.calls.append(("wait_for_navigation", (wait_until,)))

    async def current_url(self):
        return self.url

    async def read_text(self, selector, prop="innerText"):
        self.calls.append(("read_text", (selector, prop)))
        return self.elements.get(selector, "")

    async def select_option(self, selector, value):
        self.calls.append(("select_option", (selector, value)))
        return [value]

    async def upload_file(self, selector, path):
        self.calls.append(("upload_file", (selector, path)))

    async def press_key(self, key):
        self.calls.append(("press_key", (key,)))

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]


class FakeDataStore:
    """Records queries and returns a canned QueryResult."""

    def __init__(self, result: QueryResult | None = None):
        self.result = result or QueryResult()
        self.queries: list[tuple[str, list[Any]]] = []

    async def execute(self, query, params=()):
        self.queries.append((query, list(params)))
        return self.result


@pytest.fixture(autouse=True)
def _reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def sandbox_root(tmp_path):
    root = tmp_path / "artifacts"
    root.mkdir()
    return root


@pytest.fixture
def security_config(sandbox_root):
    return SecurityConfig(
        sandbox_roots=[str(sandbox_root)],
        default_root=str(sandbox_root),
        allowed_schemes=DEFAULT_ALLOWED_SCHEMES,
        role_capabilities={role: list(caps) for role, caps in DEFAULT_ROLE_CAPABILITIES.items()},
        dns_timeout_seconds=1.0,
    )


@pytest.fixture
def policy(security_config):
    return PolicyEngine(security_config, resolver=fake_resolver)


@pytest.fixture
def registry():
    return create_default_registry()


@pytest.fixture
def session():
    return FakeSession(elements={".u": "", "#go": "Go", "h1": "  Welcome  "})


@pytest.fixture
def data_store():
    return FakeDataStore()


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def data_store_factory():
    return FakeDataStore
