"""Tests for proof storage backends."""

import json
import os
import threading
from pathlib import Path

import pytest

from nutpouch.storage import JSONFileStorage, MemoryStorage


class TestMemoryStorage:
    @pytest.mark.asyncio
    async def test_initial_proofs(self, make_proofs):
        storage = MemoryStorage(make_proofs([1, 4]))

        assert storage.count == 2
        assert storage.balance == 5
        assert len(await storage.load()) == 2

    @pytest.mark.asyncio
    async def test_copies_on_save_and_load(self, make_proofs):
        proofs = make_proofs([2])
        storage = MemoryStorage()

        await storage.save(proofs)
        proofs[0]["amount"] = 999
        loaded = await storage.load()
        loaded[0]["amount"] = 500

        assert (await storage.load())[0]["amount"] == 2

    @pytest.mark.asyncio
    async def test_clear(self, make_proofs):
        storage = MemoryStorage(make_proofs([1, 2]))

        await storage.clear()

        assert await storage.load() == []
        assert storage.balance == 0


class TestJSONFileStorage:
    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path, make_proofs):
        path = tmp_path / "wallet" / "proofs.json"
        proofs = make_proofs([1, 2, 8])
        storage = JSONFileStorage(path)

        await storage.save(proofs)

        assert json.loads(path.read_text()) == proofs
        assert await JSONFileStorage(path).load() == proofs
        assert [p.name for p in path.parent.iterdir()] == ["proofs.json"]

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, tmp_path):
        assert await JSONFileStorage(tmp_path / "nope.json").load() == []

    @pytest.mark.asyncio
    async def test_malformed_file_loads_empty(self, tmp_path):
        path = tmp_path / "proofs.json"
        path.write_text("{not json")

        assert await JSONFileStorage(path).load() == []

    @pytest.mark.asyncio
    async def test_non_list_file_loads_empty(self, tmp_path):
        path = tmp_path / "proofs.json"
        path.write_text('{"proofs": []}')

        assert await JSONFileStorage(path).load() == []

    @pytest.mark.asyncio
    async def test_overwrite(self, tmp_path, make_proofs):
        storage = JSONFileStorage(tmp_path / "proofs.json")

        await storage.save(make_proofs([1, 2]))
        await storage.save(make_proofs([64]))

        assert [p["amount"] for p in await storage.load()] == [64]

    @pytest.mark.asyncio
    async def test_clear_removes_file(self, tmp_path, make_proofs):
        path = tmp_path / "proofs.json"
        storage = JSONFileStorage(path)
        await storage.save(make_proofs([1]))

        await storage.clear()
        await storage.clear()

        assert not path.exists()
        assert await storage.load() == []

    @pytest.mark.asyncio
    async def test_file_access_runs_off_the_event_loop(self, tmp_path, make_proofs, monkeypatch):
        loop_thread = threading.get_ident()
        threads = []
        real_replace = os.replace
        real_read_text = Path.read_text

        def replace(src, dst):
            threads.append(threading.get_ident())
            real_replace(src, dst)

        def read_text(self, *args, **kwargs):
            threads.append(threading.get_ident())
            return real_read_text(self, *args, **kwargs)

        monkeypatch.setattr("nutpouch.storage.os.replace", replace)
        monkeypatch.setattr(Path, "read_text", read_text)
        storage = JSONFileStorage(tmp_path / "proofs.json")

        await storage.save(make_proofs([4]))
        loaded = await storage.load()

        assert [p["amount"] for p in loaded] == [4]
        assert len(threads) == 2
        assert loop_thread not in threads
