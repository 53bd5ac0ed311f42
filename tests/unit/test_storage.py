"""
tests/unit/test_storage.py - Snapshot store tests.
"""

import json

import pytest

from core.exceptions import StorageError
from discovery.storage import JsonFileStore, MemoryStore


class TestJsonFileStore:

    def test_read_missing_returns_none(self, tmp_path):
        store = JsonFileStore(tmp_path)
        assert store.read("nothing") is None

    def test_write_then_read(self, tmp_path):
        store = JsonFileStore(tmp_path / "state")
        store.write("tradable-tokens", {"timestamp": 1.0, "assets": []})
        assert store.read("tradable-tokens") == {"timestamp": 1.0, "assets": []}
        assert (tmp_path / "state" / "tradable-tokens.json").exists()
        assert not (tmp_path / "state" / "tradable-tokens.json.tmp").exists()

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json")
        store = JsonFileStore(tmp_path)
        with pytest.raises(StorageError):
            store.read("broken")

    def test_non_object_raises(self, tmp_path):
        (tmp_path / "list.json").write_text(json.dumps([1, 2]))
        with pytest.raises(StorageError):
            JsonFileStore(tmp_path).read("list")


class TestMemoryStore:

    def test_values_are_copied(self):
        store = MemoryStore()
        data = {"assets": [1]}
        store.write("x", data)
        data["assets"].append(2)
        assert store.read("x") == {"assets": [1]}
        assert store.writes == 1
