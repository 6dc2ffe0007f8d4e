"""Tests for the object storage backends."""

from __future__ import annotations

from pathlib import Path

import pytest

from genforge.capabilities.storage import (
    LocalObjectStorage,
    MemoryObjectStorage,
    normalize_key,
)


class TestNormalizeKey:
    @pytest.mark.parametrize("key", ["", "/abs/key", "a/../b", "./a", "a\\b"])
    def test_rejects_unsafe_keys(self, key: str):
        with pytest.raises(ValueError):
            normalize_key(key)

    def test_collapses_duplicate_slashes(self):
        assert normalize_key("a//b/c") == "a/b/c"


class TestLocalObjectStorage:
    def test_put_get_exists(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        storage.put("ns/one/report.json", b"{}")
        assert storage.exists("ns/one/report.json")
        assert storage.get("ns/one/report.json") == b"{}"
        assert (tmp_dir / "objects" / "ns" / "one" / "report.json").is_file()

    def test_get_missing_raises_key_error(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        with pytest.raises(KeyError):
            storage.get("nope")

    def test_overwrite_replaces_content(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        storage.put("k", b"one")
        storage.put("k", b"two")
        assert storage.get("k") == b"two"

    def test_no_temp_files_left(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        storage.put("dir/k", b"data")
        assert [p.name for p in (tmp_dir / "objects" / "dir").iterdir()] == ["k"]

    def test_list_keys(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        storage.put("a/1", b"")
        storage.put("a/2", b"")
        storage.put("b/1", b"")
        assert storage.list_keys("a") == ["a/1", "a/2"]
        assert storage.list_keys() == ["a/1", "a/2", "b/1"]

    def test_traversal_rejected(self, tmp_dir: Path):
        storage = LocalObjectStorage(tmp_dir / "objects")
        with pytest.raises(ValueError):
            storage.put("../outside", b"x")


class TestMemoryObjectStorage:
    def test_put_get_location(self):
        storage = MemoryObjectStorage(uri_prefix="mem://bucket/")
        storage.put("x/y", b"data")
        assert storage.get("x/y") == b"data"
        assert storage.exists("x/y")
        assert storage.location("x/y") == "mem://bucket/x/y"

    def test_get_missing_raises_key_error(self):
        with pytest.raises(KeyError):
            MemoryObjectStorage().get("missing")
