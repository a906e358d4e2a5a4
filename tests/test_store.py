"""Tests for the key/value stores and the per-key write queue."""

import asyncio
import json

import pytest

from solvesync.services.errors import StorageError
from solvesync.services.store import JsonFileStore, KeyedWriteQueue, MemoryStore, build_store


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_get_returns_only_existing_keys(self):
        store = MemoryStore({"a": 1})
        assert await store.get(["a", "b"]) == {"a": 1}

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = MemoryStore()
        value = {"nested": [1]}
        await store.set({"k": value})
        value["nested"].append(2)
        assert (await store.get(["k"]))["k"] == {"nested": [1]}

    @pytest.mark.asyncio
    async def test_remove(self):
        store = MemoryStore({"a": 1, "b": 2})
        await store.remove(["a", "missing"])
        assert await store.get(["a", "b"]) == {"b": 2}


class TestJsonFileStore:
    @pytest.mark.asyncio
    async def test_round_trip_on_disk(self, tmp_path):
        path = tmp_path / "store.json"
        store = JsonFileStore(path)
        await store.set({"problem_data_x": {"name": "X"}})
        await store.remove(["nothing"])

        assert json.loads(path.read_text())["problem_data_x"] == {"name": "X"}
        assert await JsonFileStore(path).get(["problem_data_x"]) == {"problem_data_x": {"name": "X"}}

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            await JsonFileStore(path).get(["a"])

    def test_build_store(self, tmp_path):
        assert isinstance(build_store(None), MemoryStore)
        assert isinstance(build_store(tmp_path / "s.json"), JsonFileStore)


class SlowStore(MemoryStore):
    """Yields several times on each read to widen the race window."""

    async def get(self, keys):
        for _ in range(5):
            await asyncio.sleep(0)
        return await super().get(keys)


class TestKeyedWriteQueue:
    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self):
        queue = KeyedWriteQueue(SlowStore())

        def bump(record):
            record["count"] = record.get("count", 0) + 1
            return record

        await asyncio.gather(*[queue.update("k", bump) for _ in range(20)])
        assert (await queue.read("k"))["count"] == 20

    @pytest.mark.asyncio
    async def test_updates_apply_in_arrival_order(self):
        queue = KeyedWriteQueue(SlowStore())

        def append(tag):
            def mutate(record):
                record["order"] = record.get("order", []) + [tag]
                return record
            return mutate

        await asyncio.gather(*[queue.update("k", append(i)) for i in range(5)])
        assert (await queue.read("k"))["order"] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_async_mutator(self):
        queue = KeyedWriteQueue(MemoryStore({"k": {"a": 1}}))

        async def mutate(record):
            await asyncio.sleep(0)
            record["b"] = 2
            return record

        assert await queue.update("k", mutate) == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_failed_write_releases_lock(self):
        class FlakyStore(MemoryStore):
            fail = True

            async def set(self, items):
                if self.fail:
                    self.fail = False
                    raise OSError("boom")
                await super().set(items)

        queue = KeyedWriteQueue(FlakyStore())
        with pytest.raises(StorageError):
            await queue.update("k", lambda r: {**r, "x": 1})
        assert await queue.update("k", lambda r: {**r, "x": 2}) == {"x": 2}

    @pytest.mark.asyncio
    async def test_locks_are_released_once_idle(self):
        queue = KeyedWriteQueue(SlowStore())

        def bump(record):
            record["count"] = record.get("count", 0) + 1
            return record

        await asyncio.gather(*[queue.update(f"k{i % 3}", bump) for i in range(12)])
        await queue.read("k0")
        assert queue.active_keys == []

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self):
        class BrokenStore(MemoryStore):
            async def get(self, keys):
                raise OSError("disk gone")

        queue = KeyedWriteQueue(BrokenStore())
        with pytest.raises(StorageError):
            await queue.read("k")
        assert queue.active_keys == []

    @pytest.mark.asyncio
    async def test_discard_respects_predicate(self):
        store = MemoryStore({"code_data": {"problem_url": "a"}})
        queue = KeyedWriteQueue(store)

        assert not await queue.discard("code_data", lambda d: d["problem_url"] == "b")
        assert await store.get(["code_data"]) == {"code_data": {"problem_url": "a"}}
        assert await queue.discard("code_data", lambda d: d["problem_url"] == "a")
        assert await store.get(["code_data"]) == {}
        assert not await queue.discard("code_data")
