"""Tests for LRUCache.

Covers recency ordering, eviction, TTL expiry and snapshot persistence.
"""

from __future__ import annotations

import pytest

from core.cache.lru_cache import LRUCache
from core.storage.kv_store import ChecksummedStore, MemoryKeyValueStore
from models.cache_models import CacheStatistics


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now: int = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        LRUCache(0)


def test_get_returns_stored_value(clock: FakeClock) -> None:
    cache = LRUCache(3, clock=clock)
    cache.set("en", {"hello": "Hello"})

    assert cache.get("en") == {"hello": "Hello"}
    assert cache.get("zh") is None


def test_eviction_order_follows_recency(clock: FakeClock) -> None:
    """Accessing a key protects it from eviction; the least recently used goes first."""
    cache = LRUCache(2, clock=clock)
    cache.set("en", {"k": "en"})
    cache.set("zh", {"k": "zh"})
    assert cache.get("en") is not None

    cache.set("ja", {"k": "ja"})

    assert cache.keys() == ["en", "ja"]
    assert "zh" not in cache
    assert len(cache) == 2


def test_set_existing_key_replaces_and_refreshes(clock: FakeClock) -> None:
    cache = LRUCache(2, clock=clock)
    cache.set("en", {"v": 1})
    cache.set("zh", {"v": 1})
    cache.set("en", {"v": 2})

    assert cache.keys() == ["zh", "en"]
    assert cache.get("en") == {"v": 2}


def test_entries_expire_after_ttl(clock: FakeClock) -> None:
    cache = LRUCache(3, ttl_ms=1000, clock=clock)
    cache.set("en", {"k": "v"})

    clock.advance(1000)
    assert cache.has("en") is True

    clock.advance(1)
    assert cache.has("en") is False
    assert cache.get("en") is None
    assert len(cache) == 0


def test_zero_ttl_disables_expiry(clock: FakeClock) -> None:
    cache = LRUCache(3, ttl_ms=0, clock=clock)
    cache.set("en", {"k": "v"})
    clock.advance(10**9)

    assert cache.get("en") == {"k": "v"}


def test_has_does_not_touch_recency(clock: FakeClock) -> None:
    cache = LRUCache(2, clock=clock)
    cache.set("en", {})
    cache.set("zh", {})

    assert cache.has("en")
    cache.set("ja", {})

    assert cache.keys() == ["zh", "ja"]


def test_cleanup_expired_counts_removed(clock: FakeClock) -> None:
    cache = LRUCache(3, ttl_ms=100, clock=clock)
    cache.set("en", {})
    clock.advance(50)
    cache.set("zh", {})
    clock.advance(60)

    assert cache.cleanup_expired() == 1
    assert cache.keys() == ["zh"]


def test_delete_and_clear(clock: FakeClock) -> None:
    cache = LRUCache(3, clock=clock)
    cache.set("en", {})
    cache.set("zh", {})

    assert cache.delete("en") is True
    assert cache.delete("en") is False
    cache.clear()
    assert len(cache) == 0


def test_get_stats_reports_hits_and_utilization(clock: FakeClock) -> None:
    cache = LRUCache(4, clock=clock)
    cache.set("en", {})
    cache.set("zh", {})
    cache.get("en")
    cache.get("en")
    clock.advance(100)

    stats: CacheStatistics = cache.get_stats()

    assert stats.size == 2
    assert stats.max_size == 4
    assert stats.utilization == pytest.approx(0.5)
    assert stats.total_hits == 2
    assert stats.average_age_ms == pytest.approx(100.0)
    assert stats.keys == ["zh", "en"]
    assert stats.persistence_enabled is False


def test_snapshot_is_written_and_restored(clock: FakeClock) -> None:
    """A new cache over the same store hydrates the entries of the previous one."""
    store = ChecksummedStore(MemoryKeyValueStore())
    first = LRUCache(3, store=store, clock=clock)
    first.set("en", {"title": "Hello"})
    first.set("zh", {"title": "你好"})

    clock.advance(1000)
    second = LRUCache(3, store=store, clock=clock)

    assert second.keys() == ["en", "zh"]
    assert second.get("zh") == {"title": "你好"}
    assert second.persistence_enabled is True


def test_hydration_drops_entries_older_than_persisted_ttl(clock: FakeClock) -> None:
    store = ChecksummedStore(MemoryKeyValueStore())
    first = LRUCache(3, store=store, clock=clock)
    first.set("en", {})
    clock.advance(4 * 60_000)
    first.set("zh", {})

    clock.advance(2 * 60_000)
    second = LRUCache(3, store=store, persisted_ttl_ms=5 * 60_000, clock=clock)

    assert second.keys() == ["zh"]


def test_load_snapshot_skips_malformed_entries(clock: FakeClock) -> None:
    cache = LRUCache(3, clock=clock)
    snapshot = {
        "entries": [
            {"key": "en", "value": {"a": 1}, "insertedAt": clock.now},
            {"value": {"b": 2}},
            "garbage",
        ]
    }

    assert cache.load_snapshot(snapshot) == 1
    assert cache.keys() == ["en"]


def test_load_snapshot_respects_capacity(clock: FakeClock) -> None:
    cache = LRUCache(2, clock=clock)
    snapshot = {
        "entries": [{"key": key, "value": {}, "insertedAt": clock.now} for key in ("en", "zh", "ja")],
    }

    cache.load_snapshot(snapshot)

    assert cache.keys() == ["zh", "ja"]


def test_corrupted_snapshot_is_ignored(clock: FakeClock) -> None:
    backend = MemoryKeyValueStore()
    backend.set_item(LRUCache.SNAPSHOT_KEY, "{not json")

    cache = LRUCache(3, store=ChecksummedStore(backend), clock=clock)

    assert len(cache) == 0
    assert LRUCache.SNAPSHOT_KEY not in backend.keys()


def test_get_returns_the_cached_bundle_itself(clock: FakeClock) -> None:
    bundle: dict[str, str] = {"greeting": "Hello"}
    cache = LRUCache(3, clock=clock)
    cache.set("en", bundle)

    assert cache.get("en") is bundle
