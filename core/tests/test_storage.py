"""Tests for the SQLite data-store adapter, alone and behind the data nodes."""

import sqlite3

import pytest
import pytest_asyncio

from flowguard.graph import GraphExecutor
from flowguard.interfaces import DataStoreHandle
from flowguard.storage import SQLiteDataStore

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    status TEXT
);
INSERT INTO users (name, status) VALUES ('alice', 'active');
INSERT INTO users (name, status) VALUES ('bob', 'inactive');
"""


@pytest_asyncio.fixture
async def store():
    store = SQLiteDataStore()
    await store.executescript(SCHEMA)
    yield store
    store.close()


class TestSQLiteDataStore:
    def test_satisfies_protocol(self):
        store = SQLiteDataStore()
        try:
            assert isinstance(store, DataStoreHandle)
        finally:
            store.close()

    @pytest.mark.asyncio
    async def test_select_returns_dict_rows(self, store):
        result = await store.execute("SELECT name FROM users WHERE status = ?", ["active"])

        assert result.rows == [{"name": "alice"}]

    @pytest.mark.asyncio
    async def test_insert_reports_id_and_rowcount(self, store):
        result = await store.execute("INSERT INTO users (name) VALUES (?)", ["carol"])

        assert result.affected_rows == 1
        assert result.last_insert_id == 3
        assert result.rows == []

    @pytest.mark.asyncio
    async def test_values_are_never_interpolated(self, store):
        hostile = "x'); DROP TABLE users; --"
        await store.execute("INSERT INTO users (name) VALUES (?)", [hostile])

        result = await store.execute("SELECT name FROM users WHERE name = ?", [hostile])
        assert result.rows == [{"name": hostile}]

    @pytest.mark.asyncio
    async def test_errors_propagate(self, store):
        with pytest.raises(sqlite3.OperationalError):
            await store.execute("SELECT * FROM missing_table")

    def test_file_backed(self, tmp_path):
        path = tmp_path / "data.db"
        store = SQLiteDataStore(path)
        store.close()
        assert path.exists()


class TestDataNodesAgainstSQLite:
    @pytest.mark.asyncio
    async def test_write_then_select(self, registry, policy, store):
        document = {
            "nodes": {
                "1": {"type": "start", "outputs": {"output_1": ["w"]}},
                "w": {
                    "type": "db_write",
                    "data": {"table": "users", "data": {"name": "{{new_name}}", "status": "active"}},
                    "save_as": {"insert_id": "new_id"},
                    "outputs": {"output_1": ["r"]},
                },
                "r": {
                    "type": "db_select",
                    "data": {"table": "users", "columns": ["name"], "where": {"status": "active"}, "order_by": "id"},
                    "save_as": {"rows": "active_users", "count": "active_count"},
                },
            }
        }

        result = await GraphExecutor(registry, policy).start_run(
            document, role="admin", data_store=store, variables={"new_name": "dave"}
        )

        assert result.success
        assert result.variables["new_id"] == 3
        assert result.variables["active_count"] == 2
        assert result.variables["active_users"] == [{"name": "alice"}, {"name": "dave"}]

    @pytest.mark.asyncio
    async def test_delete_removes_only_matching_rows(self, registry, policy, store):
        document = {
            "nodes": {
                "1": {"type": "start", "outputs": {"output_1": ["d"]}},
                "d": {"type": "db_delete", "data": {"table": "users", "where": {"status": "inactive"}}},
            }
        }

        result = await GraphExecutor(registry, policy).start_run(
            document, role="super_admin", data_store=store
        )

        remaining = await store.execute("SELECT name FROM users")
        assert result.last_result == {"deleted": True, "affected_rows": 1}
        assert remaining.rows == [{"name": "alice"}]
