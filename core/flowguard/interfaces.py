"""
Collaborator interfaces.

The interactive session (a browser tab driven by some automation library)
and the relational data store live outside flowguard. Nodes only ever talk
to them through these protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SessionHandle(Protocol):
    """A live interactive session. Every method may block (await)."""

    async def navigate(self, url: str, wait_until: str = "load", timeout_ms: int = 45000) -> int:
        """Navigate and return the response status (0 if unknown)."""
        ...

    async def find_element(self, selector: str) -> Any | None: ...

    async def click(self, selector: str, button: str = "left", click_count: int = 1) -> None: ...

    async def type_text(
        self, selector: str, text: str, delay_ms: int = 50, clear: bool = True
    ) -> None: ...

    async def wait_for_selector(
        self, selector: str, state: str = "visible", timeout_ms: int = 30000
    ) -> bool: ...

    async def wait_for_navigation(self, wait_until: str = "load", timeout_ms: int = 30000) -> None: ...

    async def current_url(self) -> str: ...

    async def read_text(self, selector: str, prop: str = "innerText") -> str: ...

    async def select_option(self, selector: str, value: str) -> list[str]: ...

    async def upload_file(self, selector: str, path: str) -> None: ...

    async def press_key(self, key: str) -> None: ...


@dataclass
class QueryResult:
    """Row set plus write metadata from one parameterized query."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    affected_rows: int = 0
    last_insert_id: int | None = None


@runtime_checkable
class DataStoreHandle(Protocol):
    """Parameterized query execution. Query text never comes from graph authors."""

    async def execute(self, query: str, params: list[Any] | tuple[Any, ...] = ()) -> QueryResult: ...
