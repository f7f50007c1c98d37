"""Bounded LRU cache of message bundles with TTL expiry and snapshot persistence."""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, Any, ClassVar

from core.storage.kv_store import StorageCorruptedError, StorageError
from models.cache_models import CacheEntry, CacheStatistics
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.storage.kv_store import ChecksummedStore
    from models.cache_models import MessageBundle

__all__: list[str] = ["LRUCache"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class LRUCache:
    """Least-recently-used cache keyed by locale code.

    Entries are kept in an ordered dict from least to most recently used; every hit moves the entry to the end
    and inserting past capacity evicts from the front. When a snapshot store is given, the cache hydrates from it
    on construction (dropping entries older than ``persisted_ttl_ms``) and writes a snapshot after every
    mutation. Snapshot failures are logged and otherwise ignored.

    Attributes:
        SNAPSHOT_KEY (ClassVar[str]): Storage key of the persisted snapshot.
    """

    SNAPSHOT_KEY: ClassVar[str] = "i18n_cache"

    def __init__(
        self,
        max_size: int = 10,
        *,
        ttl_ms: int = 300_000,
        store: ChecksummedStore | None = None,
        persisted_ttl_ms: int = 300_000,
        clock: Callable[[], int] = TimeUtils.now_ms,
    ) -> None:
        """Create the cache and hydrate it from ``store`` if given.

        Args:
            max_size (int): Capacity, at least 1.
            ttl_ms (int): Lifetime of an entry; 0 disables expiry.
            store (ChecksummedStore | None): Snapshot storage; None disables persistence.
            persisted_ttl_ms (int): Maximum age of a persisted entry accepted on hydration.
            clock (Callable[[], int]): Epoch-millisecond clock.

        Raises:
            ValueError: If ``max_size`` is less than 1.
        """
        if max_size < 1:
            msg: str = f"Cache capacity must be at least 1: {max_size}"
            raise ValueError(msg)

        self.max_size: int = max_size
        self.ttl_ms: int = ttl_ms
        self.persisted_ttl_ms: int = persisted_ttl_ms
        self.clock: Callable[[], int] = clock
        self._store: ChecksummedStore | None = store
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

        if self._store is not None:
            self._hydrate()

    @property
    def persistence_enabled(self) -> bool:
        return self._store is not None

    def get(self, key: str) -> MessageBundle | None:
        """Return the bundle and mark it most recently used; None when absent or expired.

        The stored bundle itself is returned, not a copy. Callers must treat it as read-only, since a change would
        reach every later reader and the next snapshot.
        """
        entry: CacheEntry | None = self._entries.get(key)
        if entry is None:
            return None

        now: int = self.clock()
        if entry.is_expired(now, self.ttl_ms):
            logger.debug("Cache entry '%s' expired", key)
            del self._entries[key]
            self.flush()
            return None

        entry.last_accessed = now
        entry.hits += 1
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: MessageBundle) -> None:
        """Insert or replace ``key`` as most recently used, evicting the least recently used past capacity."""
        now: int = self.clock()
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=now, last_accessed=now)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry '%s'", evicted)
        self.flush()

    def has(self, key: str) -> bool:
        """Return whether an unexpired entry exists, without touching its recency."""
        entry: CacheEntry | None = self._entries.get(key)
        return entry is not None and not entry.is_expired(self.clock(), self.ttl_ms)

    def delete(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self.flush()
        return True

    def clear(self) -> None:
        self._entries.clear()
        self.flush()

    def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now: int = self.clock()
        expired: list[str] = [key for key, entry in self._entries.items() if entry.is_expired(now, self.ttl_ms)]
        for key in expired:
            del self._entries[key]
        if expired:
            self.flush()
        return len(expired)

    def keys(self) -> list[str]:
        """Return the keys from least to most recently used."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def get_stats(self) -> CacheStatistics:
        now: int = self.clock()
        entries: list[CacheEntry] = list(self._entries.values())
        return CacheStatistics(
            size=len(entries),
            max_size=self.max_size,
            utilization=len(entries) / self.max_size,
            total_hits=sum(entry.hits for entry in entries),
            average_age_ms=sum(now - entry.inserted_at for entry in entries) / len(entries) if entries else 0.0,
            keys=self.keys(),
            persistence_enabled=self.persistence_enabled,
        )

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-compatible copy of the cache in LRU order."""
        return {
            "writtenAt": self.clock(),
            "entries": [
                {
                    "key": entry.key,
                    "value": entry.value,
                    "insertedAt": entry.inserted_at,
                    "lastAccessed": entry.last_accessed,
                    "hits": entry.hits,
                }
                for entry in self._entries.values()
            ],
        }

    def load_snapshot(self, snapshot: dict[str, Any], *, max_age_ms: int | None = None) -> int:
        """Merge the entries of ``snapshot`` into the cache.

        Args:
            snapshot (dict[str, Any]): Output of :meth:`snapshot`.
            max_age_ms (int | None): Entries inserted longer ago than this are skipped; None keeps all.

        Returns:
            int: Number of entries loaded.
        """
        now: int = self.clock()
        loaded: int = 0
        raw_entries: Any = snapshot.get("entries") if isinstance(snapshot, dict) else None
        for raw in raw_entries if isinstance(raw_entries, list) else []:
            try:
                entry = CacheEntry(
                    key=str(raw["key"]),
                    value=raw["value"],
                    inserted_at=int(raw["insertedAt"]),
                    last_accessed=int(raw.get("lastAccessed", raw["insertedAt"])),
                    hits=int(raw.get("hits", 0)),
                )
            except (KeyError, TypeError, ValueError, AttributeError) as err:
                logger.warning("Skipping malformed cache snapshot entry: %s", err)
                continue
            if max_age_ms is not None and now - entry.inserted_at > max_age_ms:
                continue
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            loaded += 1

        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
        return loaded

    def _hydrate(self) -> None:
        if self._store is None:
            return
        try:
            payload: Any = self._store.read(self.SNAPSHOT_KEY)
        except StorageCorruptedError as err:
            logger.warning("Discarding corrupted cache snapshot: %s", err)
            try:
                self._store.remove(self.SNAPSHOT_KEY)
            except StorageError as remove_err:
                logger.warning("Cannot remove corrupted cache snapshot: %s", remove_err)
            return
        except StorageError as err:
            logger.warning("Ignoring cache snapshot: %s", err)
            return
        if payload is None:
            return
        loaded: int = self.load_snapshot(payload, max_age_ms=self.persisted_ttl_ms)
        logger.info("Restored %d message bundles from the cache snapshot", loaded)

    def flush(self) -> None:
        """Write the snapshot now; failures are logged and ignored."""
        if self._store is None:
            return
        try:
            self._store.write(self.SNAPSHOT_KEY, self.snapshot())
        except StorageError as err:
            logger.debug("Cache snapshot not written: %s", err)
