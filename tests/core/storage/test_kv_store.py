"""Tests for the key-value storage backends and the checksum envelope."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from core.storage.kv_store import (
    ChecksummedStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    StorageCorruptedError,
    StorageQuotaExceededError,
    compute_checksum,
)

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Generator[SQLiteKeyValueStore]:
    store = SQLiteKeyValueStore(tmp_path / "data" / "kv.db")
    yield store
    store.close()


def test_memory_store_crud() -> None:
    store = MemoryKeyValueStore()
    store.set_item("a", "1")
    store.set_item("b", "2")

    assert store.get_item("a") == "1"
    assert store.get_item("missing") is None
    store.remove_item("a")
    store.remove_item("a")
    assert store.keys() == ["b"]


def test_memory_store_quota() -> None:
    store = MemoryKeyValueStore(quota_bytes=10)
    store.set_item("a", "12345")
    store.set_item("a", "1234567890")

    with pytest.raises(StorageQuotaExceededError):
        store.set_item("b", "1")


def test_sqlite_store_crud(sqlite_store: SQLiteKeyValueStore) -> None:
    sqlite_store.set_item("locale_preference", "zh")
    sqlite_store.set_item("locale_preference", "ja")
    sqlite_store.set_item("another", "x")

    assert sqlite_store.get_item("locale_preference") == "ja"
    assert sqlite_store.keys() == ["another", "locale_preference"]
    sqlite_store.remove_item("another")
    assert sqlite_store.get_item("another") is None


def test_sqlite_store_persists_across_connections(tmp_path: Path) -> None:
    db_path: Path = tmp_path / "kv.db"
    with SQLiteKeyValueStore(db_path) as first:
        first.set_item("k", "v")

    with SQLiteKeyValueStore(db_path) as second:
        assert second.get_item("k") == "v"


def test_sqlite_store_rejects_empty_path() -> None:
    with pytest.raises(RuntimeError, match="empty"):
        SQLiteKeyValueStore("  ")


def test_checksum_is_key_order_independent() -> None:
    assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})
    assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


def test_checksummed_store_round_trip() -> None:
    store = ChecksummedStore(MemoryKeyValueStore())
    payload = {"locale": "ja", "nested": {"text": "日本語"}}

    store.write("k", payload)

    assert store.read("k") == payload
    assert store.read("absent") is None
    assert store.keys() == ["k"]


def test_checksummed_store_detects_tampering() -> None:
    backend = MemoryKeyValueStore()
    store = ChecksummedStore(backend)
    store.write("k", {"locale": "en"})

    envelope = json.loads(backend.get_item("k") or "")
    envelope["payload"]["locale"] = "zh"
    backend.set_item("k", json.dumps(envelope))

    with pytest.raises(StorageCorruptedError, match="Checksum mismatch"):
        store.read("k")


@pytest.mark.parametrize("raw", ["{not json", '"plain string"', '{"payload": 1}'])
def test_checksummed_store_rejects_malformed_values(raw: str) -> None:
    backend = MemoryKeyValueStore()
    backend.set_item("k", raw)

    with pytest.raises(StorageCorruptedError):
        ChecksummedStore(backend).read("k")
