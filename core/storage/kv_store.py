"""Durable key-value storage backends.

This module provides the :class:`KeyValueStore` capability used by the preference store and the cache snapshot,
an in-memory implementation, an SQLite3 implementation, and :class:`ChecksummedStore`, which wraps any backend
with JSON encoding plus a CRC32 checksum for corruption detection.
"""

from __future__ import annotations

import json
import sqlite3
import time
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging


__all__: list[str] = [
    "ChecksummedStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "StorageCorruptedError",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageUnavailableError",
    "compute_checksum",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class StorageError(Exception):
    """Base class for persistence failures."""


class StorageUnavailableError(StorageError):
    """The backend cannot be read or written."""


class StorageQuotaExceededError(StorageError):
    """The write would exceed the backend's capacity."""


class StorageCorruptedError(StorageError):
    """A stored value could not be decoded or failed its checksum."""


class KeyValueStore(ABC):
    """String-keyed, string-valued durable storage."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent.

        Raises:
            StorageUnavailableError: If the backend cannot be read.
        """

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageUnavailableError: If the backend cannot be written.
            StorageQuotaExceededError: If the backend is full.
        """

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``; absent keys are ignored."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return every stored key."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local storage, optionally capped at ``quota_bytes`` of UTF-8 encoded values."""

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota_bytes: int | None = quota_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota_bytes is not None:
            used: int = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
            if used + len(value.encode("utf-8")) > self._quota_bytes:
                msg: str = f"Storing '{key}' would exceed the {self._quota_bytes} byte quota"
                raise StorageQuotaExceededError(msg)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite3-backed key-value storage.

    The connection is opened lazily on first use, or explicitly through the context manager.

    Attributes:
        db_path (Path): Path to the SQLite database file.
        _connection (sqlite3.Connection | None): Active database connection.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store with the path to the database file.

        Args:
            db_path (str | Path): Path to the SQLite database file.

        Raises:
            RuntimeError: If the database path is empty.
        """
        if str(db_path).strip() == "":
            msg: str = "The database path is empty."
            raise RuntimeError(msg)

        self.db_path: Path = Path(db_path)
        self._connection: sqlite3.Connection | None = None
        logger.debug("Database path set to: %s", self.db_path)

    def __enter__(self) -> Self:
        self._initialize_database()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        self.close()

    def _initialize_database(self) -> None:
        """Open the connection and create the table if it does not exist.

        Raises:
            StorageUnavailableError: If the database cannot be opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
        except (OSError, sqlite3.Error) as err:
            self._connection = None
            msg: str = f"Cannot open storage database '{self.db_path}': {err}"
            raise StorageUnavailableError(msg) from err
        logger.debug("Database initialized successfully")

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._initialize_database()
        if self._connection is None:
            msg = "Database connection is not initialized."
            raise StorageUnavailableError(msg)
        return self._connection

    def get_item(self, key: str) -> str | None:
        try:
            row = self.connection.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as err:
            msg: str = f"Failed to read '{key}': {err}"
            raise StorageUnavailableError(msg) from err
        return None if row is None else row[0]

    def set_item(self, key: str, value: str) -> None:
        try:
            self.connection.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, time.time()),
            )
        except sqlite3.OperationalError as err:
            msg: str = f"Failed to write '{key}': {err}"
            if "full" in str(err).lower():
                raise StorageQuotaExceededError(msg) from err
            raise StorageUnavailableError(msg) from err
        except sqlite3.Error as err:
            msg = f"Failed to write '{key}': {err}"
            raise StorageUnavailableError(msg) from err

    def remove_item(self, key: str) -> None:
        try:
            self.connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as err:
            msg: str = f"Failed to delete '{key}': {err}"
            raise StorageUnavailableError(msg) from err

    def keys(self) -> list[str]:
        try:
            rows = self.connection.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as err:
            msg: str = f"Failed to list keys: {err}"
            raise StorageUnavailableError(msg) from err
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")


def compute_checksum(payload: Any) -> str:
    """Return the CRC32 (hex) of the canonical JSON encoding of ``payload``."""
    canonical: str = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return f"{zlib.crc32(canonical.encode('utf-8')):08x}"


class ChecksummedStore:
    """JSON values with a checksum envelope on top of a :class:`KeyValueStore`.

    Stored form: ``{"checksum": "<crc32>", "payload": <value>}``.
    """

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend: KeyValueStore = backend

    def read(self, key: str) -> Any | None:
        """Return the decoded payload, or None when the key is absent.

        Raises:
            StorageCorruptedError: If the value is not valid JSON or fails its checksum.
            StorageUnavailableError: If the backend cannot be read.
        """
        raw: str | None = self.backend.get_item(key)
        if raw is None:
            return None
        try:
            envelope: Any = json.loads(raw)
        except json.JSONDecodeError as err:
            msg: str = f"'{key}' is not valid JSON"
            raise StorageCorruptedError(msg) from err
        if not isinstance(envelope, dict) or "payload" not in envelope or "checksum" not in envelope:
            msg = f"'{key}' has no checksum envelope"
            raise StorageCorruptedError(msg)
        if compute_checksum(envelope["payload"]) != envelope["checksum"]:
            msg = f"Checksum mismatch for '{key}'"
            raise StorageCorruptedError(msg)
        return envelope["payload"]

    def write(self, key: str, payload: Any) -> None:
        """Encode and store ``payload``.

        Raises:
            StorageUnavailableError: If the backend cannot be written.
            StorageQuotaExceededError: If the backend is full.
        """
        envelope: dict[str, Any] = {"checksum": compute_checksum(payload), "payload": payload}
        self.backend.set_item(key, json.dumps(envelope, ensure_ascii=False))

    def remove(self, key: str) -> None:
        self.backend.remove_item(key)

    def keys(self) -> list[str]:
        return self.backend.keys()
