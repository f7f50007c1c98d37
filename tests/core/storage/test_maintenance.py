"""Tests for StoreMaintenance: cleanup, export/import, backups and maintenance runs."""

from __future__ import annotations

import pytest

from core.storage.kv_store import MemoryKeyValueStore
from core.storage.maintenance import StoreMaintenance
from core.storage.preference_store import PreferenceStore
from models.history_models import CleanupResult, MaintenanceOptions, MaintenanceRecommendation, MaintenanceReport
from models.locale_models import (
    DetectionRecord,
    Locale,
    LocaleDetectionHistory,
    LocaleSource,
    OperationResult,
    UserLocalePreference,
    ValidationResult,
)
from utils.time_utils import MS_PER_DAY

NOW: int = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = NOW) -> None:
        self.now: int = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> PreferenceStore:
    return PreferenceStore(MemoryKeyValueStore(), max_history_entries=500, clock=clock)


@pytest.fixture
def maintenance(store: PreferenceStore) -> StoreMaintenance:
    return StoreMaintenance(store, max_backups=2, retention_days=30)


def _seed(store: PreferenceStore, *timestamps: int, locale: Locale = Locale.EN) -> None:
    history: LocaleDetectionHistory = store.get_detection_history()
    records: list[DetectionRecord] = [
        *history.detections,
        *(
            DetectionRecord(locale=locale, source=LocaleSource.BROWSER, confidence=0.7, timestamp=ts)
            for ts in timestamps
        ),
    ]
    history.replace_detections(records, NOW)
    assert store.save_detection_history(history).success


def test_cleanup_expired_uses_retention(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 40 * MS_PER_DAY, NOW - 31 * MS_PER_DAY, NOW - MS_PER_DAY)

    result: OperationResult[CleanupResult] = maintenance.cleanup_expired_detections()

    assert result.success is True
    assert result.data == CleanupResult(cleaned_count=2, remaining_count=1)
    assert store.get_detection_history().total_detections == 1


def test_cleanup_expired_with_explicit_age(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 2 * MS_PER_DAY, NOW - 1000)

    result: OperationResult[CleanupResult] = maintenance.cleanup_expired_detections(MS_PER_DAY)

    assert result.data is not None
    assert result.data.cleaned_count == 1


def test_cleanup_with_nothing_to_do(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 1000)

    result: OperationResult[CleanupResult] = maintenance.cleanup_expired_detections()

    assert result.data == CleanupResult(cleaned_count=0, remaining_count=1)


def test_cleanup_duplicates_per_minute(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    minute_start: int = NOW - NOW % 60_000 - 60_000
    _seed(store, minute_start, minute_start + 10_000, minute_start + 59_999, minute_start + 60_000)
    _seed(store, minute_start + 5_000, locale=Locale.JA)

    result: OperationResult[CleanupResult] = maintenance.cleanup_duplicate_detections()

    assert result.data == CleanupResult(cleaned_count=2, remaining_count=3)


def test_cleanup_invalid_drops_future_records(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 1000, NOW + 10 * 60_000)

    result: OperationResult[CleanupResult] = maintenance.cleanup_invalid_detections()

    assert result.data is not None
    assert result.data.cleaned_count == 1


def test_limit_history_size(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 3000, NOW - 2000, NOW - 1000)

    assert maintenance.limit_history_size(2).data == CleanupResult(cleaned_count=1, remaining_count=2)
    assert [r.timestamp for r in store.get_detection_history().detections] == [NOW - 2000, NOW - 1000]
    assert maintenance.limit_history_size(-1).success is False
    assert maintenance.limit_history_size(0).data == CleanupResult(cleaned_count=2, remaining_count=0)


def test_export_import_history_round_trip(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    store.add_detection_record(Locale.ZH, LocaleSource.COMBINED, 0.85, {"timezone_locale": "zh"})
    store.add_detection_record(Locale.JA, LocaleSource.USER, 1.0)
    exported = maintenance.export_history()

    store.clear_detection_history()
    result: OperationResult[LocaleDetectionHistory] = maintenance.import_history(exported)

    assert result.success is True
    assert maintenance.export_history() == exported


def test_import_history_rejects_invalid_records(maintenance: StoreMaintenance) -> None:
    data = {
        "detections": [{"locale": "en", "source": "browser", "confidence": 2.0, "timestamp": NOW}],
        "lastUpdated": NOW,
        "totalDetections": 1,
    }

    result: OperationResult[LocaleDetectionHistory] = maintenance.import_history(data)

    assert result.success is False
    assert result.errors


def test_import_history_rejects_unknown_locale(maintenance: StoreMaintenance) -> None:
    data = {
        "detections": [{"locale": "fr", "source": "browser", "confidence": 0.5, "timestamp": NOW}],
        "lastUpdated": NOW,
        "totalDetections": 1,
    }

    assert maintenance.import_history(data).success is False


def test_export_import_data(store: PreferenceStore, maintenance: StoreMaintenance, clock: FakeClock) -> None:
    store.set_user_override(Locale.JA)
    store.add_detection_record(Locale.JA, LocaleSource.USER, 1.0)
    snapshot = maintenance.export_data()

    assert snapshot["version"] == "1.0.0"
    assert snapshot["exportedAt"] == clock()
    store.reset()

    assert maintenance.import_data(snapshot).success is True
    assert store.get_user_override() is Locale.JA
    preference: UserLocalePreference | None = store.get_user_preference()
    assert preference is not None
    assert preference.locale is Locale.JA
    assert store.get_detection_history().total_detections == 1


def test_import_data_rejects_tampered_snapshot(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    store.set_user_override(Locale.ZH)
    snapshot = maintenance.export_data()
    snapshot["data"]["override"] = "ja"

    result: OperationResult[None] = maintenance.import_data(snapshot)

    assert result.success is False
    assert result.error == "Snapshot checksum mismatch"
    assert store.get_user_override() is Locale.ZH


def test_import_data_rejects_unknown_version(maintenance: StoreMaintenance) -> None:
    snapshot = maintenance.export_data()
    snapshot["version"] = "2.0.0"

    assert maintenance.import_data(snapshot).success is False


def test_backups_are_pruned_and_restorable(
    store: PreferenceStore, maintenance: StoreMaintenance, clock: FakeClock
) -> None:
    keys: list[str] = []
    for locale in (Locale.EN, Locale.ZH, Locale.JA):
        store.set_user_override(locale)
        created: OperationResult[str] = maintenance.create_backup()
        assert created.success is True
        assert created.data is not None
        keys.append(created.data)
        clock.now += 1000

    assert keys[0] == f"locale_backup_{NOW}"
    assert maintenance.list_backups() == keys[1:]

    store.set_user_override(Locale.EN)
    assert maintenance.restore_from_backup().success is True
    assert store.get_user_override() is Locale.JA

    assert maintenance.restore_from_backup(keys[1]).success is True
    assert store.get_user_override() is Locale.ZH


def test_backup_keys_are_unique_within_one_millisecond(maintenance: StoreMaintenance) -> None:
    first: OperationResult[str] = maintenance.create_backup()
    second: OperationResult[str] = maintenance.create_backup()

    assert first.data != second.data
    assert len(maintenance.list_backups()) == 2


def test_restore_without_backups(maintenance: StoreMaintenance) -> None:
    result: OperationResult[None] = maintenance.restore_from_backup()

    assert result.success is False
    assert result.error == "No backup available"
    assert maintenance.restore_from_backup("locale_backup_1").success is False


def test_delete_backup(maintenance: StoreMaintenance) -> None:
    created: OperationResult[str] = maintenance.create_backup()
    assert created.data is not None

    assert maintenance.delete_backup(created.data).success is True
    assert maintenance.list_backups() == []
    assert maintenance.delete_backup("locale_preference").success is False


def test_validate_stored_data_flags_bad_preference(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    store.records.write(
        PreferenceStore.PREFERENCE_KEY,
        {"locale": "en", "source": "browser", "timestamp": NOW, "confidence": 3.0, "metadata": None},
    )
    _seed(store, NOW - 1000, NOW - 2000)

    report: ValidationResult = maintenance.validate_stored_data()

    assert any(error.startswith("preference:") for error in report.errors)
    assert any("chronological" in warning for warning in report.warnings)


def test_recommendations_for_healthy_store(maintenance: StoreMaintenance) -> None:
    recommendation: MaintenanceRecommendation = maintenance.get_maintenance_recommendations()

    assert recommendation.recommendations == []
    assert recommendation.priority == "low"


def test_recommendations_for_neglected_store(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    old: int = NOW - 60 * MS_PER_DAY
    _seed(store, *(old + i for i in range(60)))
    store.records.write(PreferenceStore.PREFERENCE_KEY, {"locale": "xx"})

    recommendation: MaintenanceRecommendation = maintenance.get_maintenance_recommendations()

    assert recommendation.priority == "high"
    assert any("expired" in text for text in recommendation.recommendations)
    assert any("duplicate" in text for text in recommendation.recommendations)
    assert any("stale" in text for text in recommendation.recommendations)


def test_perform_maintenance_runs_selected_steps(store: PreferenceStore, maintenance: StoreMaintenance) -> None:
    _seed(store, NOW - 40 * MS_PER_DAY, NOW - 2000, NOW - 1000)

    report: MaintenanceReport = maintenance.perform_maintenance(MaintenanceOptions(max_history_size=1))

    assert set(report.results) == {
        "cleanup_expired",
        "cleanup_duplicates",
        "cleanup_invalid",
        "limit_history_size",
        "validate_data",
    }
    assert report.total_operations == 5
    assert report.successful_operations == 5
    assert store.get_detection_history().total_detections == 1


def test_perform_maintenance_with_steps_disabled(maintenance: StoreMaintenance) -> None:
    options = MaintenanceOptions(
        cleanup_expired=False, cleanup_duplicates=False, cleanup_invalid=False, validate_data=False
    )

    report: MaintenanceReport = maintenance.perform_maintenance(options)

    assert report.total_operations == 0
    assert report.results == {}
