"""Tests for LocaleStorageManager."""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.storage.kv_store import MemoryKeyValueStore, SQLiteKeyValueStore
from core.storage.manager import LocaleStorageManager
from models.config_models import StorageSettings
from models.locale_models import Locale, LocaleSource

if TYPE_CHECKING:
    from pathlib import Path


def test_from_settings_sqlite(tmp_path: Path) -> None:
    settings = StorageSettings(BACKEND="sqlite", DB_PATH=str(tmp_path / "locale.db"))

    manager: LocaleStorageManager = LocaleStorageManager.from_settings(settings)

    assert manager.persistent is True
    assert isinstance(manager.records.backend, SQLiteKeyValueStore)
    manager.set_user_override(Locale.ZH)
    manager.close()

    reopened: LocaleStorageManager = LocaleStorageManager.from_settings(settings)
    assert reopened.get_user_override() is Locale.ZH
    reopened.close()


def test_from_settings_memory() -> None:
    manager: LocaleStorageManager = LocaleStorageManager.from_settings(
        StorageSettings(BACKEND="memory", MAX_HISTORY_ENTRIES=3)
    )

    assert manager.persistent is True
    assert isinstance(manager.records.backend, MemoryKeyValueStore)
    assert manager.max_history_entries == 3


def test_from_settings_none_falls_back_to_memory() -> None:
    manager: LocaleStorageManager = LocaleStorageManager.from_settings(StorageSettings(BACKEND="none"))

    assert manager.persistent is False


def test_manager_delegates_maintenance_and_analytics() -> None:
    manager = LocaleStorageManager(MemoryKeyValueStore(), max_backups=1, clock=lambda: 1_700_000_000_000)
    manager.add_detection_record(Locale.JA, LocaleSource.GEO, 0.8)
    manager.add_detection_record(Locale.JA, LocaleSource.GEO, 0.8)

    assert manager.get_detection_stats().total_detections == 2
    assert manager.get_locale_group_stats()[0].key == "ja"
    assert manager.cleanup_duplicate_detections().success is True
    assert manager.get_detection_history().total_detections == 1

    created = manager.create_backup()
    assert created.success is True
    assert manager.list_backups() == [created.data]
    assert manager.validate_stored_data().is_valid
    assert manager.perform_maintenance().successful_operations == 4
