from core.storage.access_log import AccessLog
from core.storage.analytics import HistoryAnalytics
from core.storage.kv_store import (
    ChecksummedStore,
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    StorageCorruptedError,
    StorageError,
    StorageQuotaExceededError,
    StorageUnavailableError,
    compute_checksum,
)
from core.storage.maintenance import StoreMaintenance
from core.storage.manager import LocaleStorageManager
from core.storage.preference_store import PreferenceStore
from core.storage.validation import validate_entry, validate_preference, validate_record

__all__: list[str] = [
    "AccessLog",
    "ChecksummedStore",
    "HistoryAnalytics",
    "KeyValueStore",
    "LocaleStorageManager",
    "MemoryKeyValueStore",
    "PreferenceStore",
    "SQLiteKeyValueStore",
    "StorageCorruptedError",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageUnavailableError",
    "StoreMaintenance",
    "compute_checksum",
    "validate_entry",
    "validate_preference",
    "validate_record",
]
