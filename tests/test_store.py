"""
Tests for store.py - the in-process record store.
"""

import asyncio

import pytest

from snakeduel.store import MemoryRecordStore, join_path, paths_overlap, split_path


def run(coro):
    return asyncio.run(coro)


class TestPaths:
    def test_split_and_join(self):
        assert split_path("/rooms/ABC123/host/") == ["rooms", "ABC123", "host"]
        assert join_path("rooms", "ABC123", "guest") == "rooms/ABC123/guest"

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            split_path("/")

    def test_overlap(self):
        assert paths_overlap("rooms/A", "rooms/A/host/score")
        assert paths_overlap("rooms/A/host", "rooms")
        assert not paths_overlap("rooms/A", "rooms/B")


class TestMemoryRecordStore:
    def test_set_get_update_delete(self, store):
        async def scenario():
            await store.set("rooms/A", {"status": "waiting", "host": {"name": "Alice"}})
            await store.update("rooms/A", {"status": "ready", "host/ready": True})
            assert await store.get("rooms/A") == {
                "status": "ready", "host": {"name": "Alice", "ready": True},
            }
            await store.delete("rooms/A/host")
            assert await store.get("rooms/A/host") is None
            assert await store.get("rooms/A/status") == "ready"

        run(scenario())

    def test_delete_prunes_empty_parents(self, store):
        async def scenario():
            await store.set("rooms/A/guest/score", 10)
            await store.delete("rooms/A/guest/score")
            assert await store.get("rooms") is None

        run(scenario())

    def test_set_none_deletes(self, store):
        async def scenario():
            await store.set("rooms/A/x", 1)
            await store.set("rooms/A/x", None)
            assert await store.get("rooms/A") is None

        run(scenario())

    def test_snapshots_are_copies(self, store):
        async def scenario():
            value = {"score": 1}
            await store.set("rooms/A/host", value)
            value["score"] = 99
            snap = await store.get("rooms/A/host")
            snap["score"] = 42
            assert await store.get("rooms/A/host/score") == 1

        run(scenario())

    def test_subscribers_see_initial_and_related_writes(self, store):
        seen = []

        async def scenario():
            await store.set("rooms/A/status", "waiting")
            sub = await store.subscribe("rooms/A", seen.append)
            await store.set("rooms/A/host/score", 10)
            await store.set("rooms/B/status", "waiting")
            await store.delete("rooms")
            await sub.cancel()
            await sub.cancel()
            await store.set("rooms/A/status", "waiting")

        run(scenario())
        assert seen == [
            {"status": "waiting"},
            {"status": "waiting", "host": {"score": 10}},
            None,
        ]

    def test_failing_subscriber_does_not_break_writer(self, store):
        seen = []

        def broken(value):
            raise RuntimeError("boom")

        async def scenario():
            await store.subscribe("rooms/A", broken)
            await store.subscribe("rooms/A", seen.append)
            await store.set("rooms/A/status", "ready")

        run(scenario())
        assert seen[-1] == {"status": "ready"}

    def test_async_subscriber(self):
        store = MemoryRecordStore()
        seen = []

        async def collect(value):
            await asyncio.sleep(0)
            seen.append(value)

        async def scenario():
            await store.subscribe("rooms/A/host/score", collect)
            await store.set("rooms/A/host/score", 5)

        run(scenario())
        assert seen == [None, 5]
