"""Facade exposing the whole preference store contract from one object."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from core.storage.access_log import AccessLog
from core.storage.analytics import HistoryAnalytics
from core.storage.kv_store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from core.storage.maintenance import StoreMaintenance
from core.storage.preference_store import PreferenceStore
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from models.config_models import StorageSettings
    from models.history_models import (
        CleanupResult,
        DetectionStats,
        DetectionTrends,
        GroupStats,
        HistoryInsights,
        MaintenanceOptions,
        MaintenanceRecommendation,
        MaintenanceReport,
    )
    from models.locale_models import LocaleDetectionHistory, OperationResult, ValidationResult

__all__: list[str] = ["LocaleStorageManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class LocaleStorageManager(PreferenceStore):
    """Preference store with maintenance and analytics attached.

    Args:
        kv_store (KeyValueStore | None): Durable backend; None keeps data in memory only.
        max_history_entries (int): History bound.
        max_backups (int): Number of backups kept.
        retention_days (int): Default age limit for history records.
        clock (Callable[[], int]): Epoch-millisecond clock.
    """

    def __init__(
        self,
        kv_store: KeyValueStore | None = None,
        *,
        max_history_entries: int = 100,
        max_backups: int = 5,
        retention_days: int = 30,
        clock: Callable[[], int] = TimeUtils.now_ms,
    ) -> None:
        super().__init__(kv_store, max_history_entries=max_history_entries, clock=clock, access_log=AccessLog())
        self.maintenance: StoreMaintenance = StoreMaintenance(
            self, max_backups=max_backups, retention_days=retention_days
        )
        self.analytics: HistoryAnalytics = HistoryAnalytics(self)

    @classmethod
    def from_settings(cls, settings: StorageSettings, *, clock: Callable[[], int] = TimeUtils.now_ms) -> Self:
        """Build the manager and its backend from the ``STORAGE`` configuration section."""
        backend: KeyValueStore | None = None
        match settings.BACKEND:
            case "sqlite":
                backend = SQLiteKeyValueStore(settings.DB_PATH)
            case "memory":
                backend = MemoryKeyValueStore()
            case _:
                backend = None
        logger.debug("Storage backend: %s", settings.BACKEND)
        return cls(
            backend,
            max_history_entries=settings.MAX_HISTORY_ENTRIES,
            max_backups=settings.MAX_BACKUPS,
            retention_days=settings.DETECTION_RETENTION_DAYS,
            clock=clock,
        )

    def close(self) -> None:
        self.records.backend.close()

    # Maintenance

    def cleanup_expired_detections(self, max_age_ms: int | None = None) -> OperationResult[CleanupResult]:
        return self.maintenance.cleanup_expired_detections(max_age_ms)

    def cleanup_duplicate_detections(self) -> OperationResult[CleanupResult]:
        return self.maintenance.cleanup_duplicate_detections()

    def cleanup_invalid_detections(self) -> OperationResult[CleanupResult]:
        return self.maintenance.cleanup_invalid_detections()

    def limit_history_size(self, max_size: int) -> OperationResult[CleanupResult]:
        return self.maintenance.limit_history_size(max_size)

    def export_history(self) -> dict[str, Any]:
        return self.maintenance.export_history()

    def import_history(self, data: dict[str, Any]) -> OperationResult[LocaleDetectionHistory]:
        return self.maintenance.import_history(data)

    def export_data(self) -> dict[str, Any]:
        return self.maintenance.export_data()

    def import_data(self, snapshot: dict[str, Any]) -> OperationResult[None]:
        return self.maintenance.import_data(snapshot)

    def create_backup(self) -> OperationResult[str]:
        return self.maintenance.create_backup()

    def list_backups(self) -> list[str]:
        return self.maintenance.list_backups()

    def restore_from_backup(self, key: str | None = None) -> OperationResult[None]:
        return self.maintenance.restore_from_backup(key)

    def delete_backup(self, key: str) -> OperationResult[None]:
        return self.maintenance.delete_backup(key)

    def validate_stored_data(self) -> ValidationResult:
        return self.maintenance.validate_stored_data()

    def get_maintenance_recommendations(self) -> MaintenanceRecommendation:
        return self.maintenance.get_maintenance_recommendations()

    def perform_maintenance(self, options: MaintenanceOptions | None = None) -> MaintenanceReport:
        return self.maintenance.perform_maintenance(options)

    # Analytics

    def get_detection_stats(self) -> DetectionStats:
        return self.analytics.get_detection_stats()

    def get_locale_group_stats(self) -> list[GroupStats]:
        return self.analytics.get_locale_group_stats()

    def get_source_group_stats(self) -> list[GroupStats]:
        return self.analytics.get_source_group_stats()

    def get_detection_trends(self, days: int = 7) -> DetectionTrends:
        return self.analytics.get_detection_trends(days)

    def generate_history_insights(self) -> HistoryInsights:
        return self.analytics.generate_history_insights()
