"""Tests for the runtime state: RunContextStore and ResourceLockManager."""

import asyncio

import pytest

from flowguard.errors import NodeFailed
from flowguard.runtime import ResourceLockManager, RunContextStore, RunStatus


class TestRunContextStore:
    """Run contexts are created per run and never shared."""

    def test_create_and_discard(self, policy):
        store = RunContextStore()

        ctx = store.create("staff", policy, graph_id="g1", variables={"a": 1})

        assert ctx.run_id in store
        assert store.get(ctx.run_id) is ctx
        assert ctx.status == RunStatus.IDLE
        assert ctx.graph_id == "g1"
        assert ctx.variables == {"a": 1}
        assert ctx.secrets == {}

        store.discard(ctx.run_id)

        assert ctx.run_id not in store
        assert store.get(ctx.run_id) is None
        assert len(store) == 0

    def test_discard_unknown_is_noop(self):
        store = RunContextStore()
        store.discard("missing")
        assert len(store) == 0

    def test_run_ids_are_unique(self, policy):
        store = RunContextStore()
        ids = {store.create("staff", policy).run_id for _ in range(50)}

        assert len(ids) == 50
        assert sorted(store.active_run_ids()) == sorted(ids)

    def test_contexts_do_not_share_state(self, policy):
        store = RunContextStore()
        first = store.create("staff", policy)
        second = store.create("staff", policy)

        first.variables["x"] = 1
        first.secrets["password"] = "p"

        assert second.variables == {}
        assert second.secrets == {}

    def test_separate_stores_are_isolated(self, policy):
        a, b = RunContextStore(), RunContextStore()
        ctx = a.create("staff", policy)
        assert b.get(ctx.run_id) is None

    def test_missing_handles_raise(self, policy):
        ctx = RunContextStore().create("staff", policy)

        with pytest.raises(NodeFailed):
            ctx.require_session()
        with pytest.raises(NodeFailed):
            ctx.require_data_store()

    def test_elapsed_ms(self, policy):
        ctx = RunContextStore().create("staff", policy)
        ctx.started_at -= 1.5
        assert ctx.elapsed_ms >= 1500


class TestResourceLockManager:
    """Named locks serialise holders of the same token."""

    def test_same_token_same_lock(self):
        locks = ResourceLockManager()
        assert locks.get_lock("browser:tab") is locks.get_lock("browser:tab")
        assert locks.get_lock("browser:tab") is not locks.get_lock("db:global")

    @pytest.mark.asyncio
    async def test_hold_and_release(self):
        locks = ResourceLockManager()

        async with locks.hold(["db:global", "browser:tab"]):
            assert locks.is_locked("db:global")
            assert locks.is_locked("browser:tab")

        assert not locks.is_locked("db:global")
        assert not locks.is_locked("browser:tab")

    @pytest.mark.asyncio
    async def test_release_on_error(self):
        locks = ResourceLockManager()

        with pytest.raises(RuntimeError):
            async with locks.hold(["db:global"]):
                raise RuntimeError("boom")

        assert not locks.is_locked("db:global")

    @pytest.mark.asyncio
    async def test_duplicate_tokens(self):
        locks = ResourceLockManager()
        async with locks.hold(["db:global", "db:global"]):
            assert locks.is_locked("db:global")

    @pytest.mark.asyncio
    async def test_empty_token_list(self):
        locks = ResourceLockManager()
        async with locks.hold([]):
            pass
        assert not locks.is_locked("anything")

    @pytest.mark.asyncio
    async def test_serialises_holders(self):
        locks = ResourceLockManager()
        events = []

        async def worker(name):
            async with locks.hold(["browser:tab"]):
                events.append(f"{name}:in")
                await asyncio.sleep(0.01)
                events.append(f"{name}:out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a:in", "a:out", "b:in", "b:out"],
            ["b:in", "b:out", "a:in", "a:out"],
        )

    @pytest.mark.asyncio
    async def test_overlapping_sets_do_not_deadlock(self):
        locks = ResourceLockManager()

        async def worker(tokens):
            async with locks.hold(tokens):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(
            asyncio.gather(
                worker(["browser:tab", "db:global"]),
                worker(["db:global", "browser:tab"]),
            ),
            timeout=2,
        )
