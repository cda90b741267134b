"""
SQLite data-store adapter.

Implements DataStoreHandle over the standard library's sqlite3. Queries run
in a worker thread (asyncio.to_thread) so a slow query only suspends the run
that issued it. Placeholders use the ``?`` (qmark) style the data nodes emit.
"""

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from flowguard.interfaces import QueryResult

logger = logging.getLogger(__name__)


class SQLiteDataStore:
    """
    One shared connection, serialised by a thread lock.

    Example:
        store = SQLiteDataStore("~/.flowguard/data.db")
        result = await store.execute("SELECT * FROM users WHERE id = ?", [1])
        store.close()
    """

    def __init__(self, path: str | Path = ":memory:"):
        self.path = str(path) if str(path) == ":memory:" else str(Path(path).expanduser())
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    async def execute(self, query: str, params: list[Any] | tuple[Any, ...] = ()) -> QueryResult:
        """Run one parameterized statement and commit."""

        def _execute() -> QueryResult:
            with self._lock:
                cursor = self._conn.execute(query, tuple(params))
                rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
                self._conn.commit()
                affected = cursor.rowcount if cursor.rowcount >= 0 else 0
                return QueryResult(rows=rows, affected_rows=affected, last_insert_id=cursor.lastrowid)

        try:
            return await asyncio.to_thread(_execute)
        except sqlite3.Error:
            logger.error(f"SQLite query failed: {query}")
            raise

    async def executescript(self, script: str) -> None:
        """Run trusted DDL (schema setup). Never fed from graph documents."""

        def _run() -> None:
            with self._lock:
                self._conn.executescript(script)

        await asyncio.to_thread(_run)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
