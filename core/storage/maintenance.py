"""Cleanup, export/import and backup operations over a :class:`PreferenceStore`."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, ClassVar

from core.storage.kv_store import StorageError, compute_checksum
from core.storage.preference_store import PreferenceStore
from core.storage.validation import validate_preference, validate_record
from models.history_models import CleanupResult, MaintenanceOptions, MaintenanceRecommendation, MaintenanceReport
from models.locale_models import (
    DetectionRecord,
    Locale,
    LocaleDetectionHistory,
    OperationResult,
    UserLocalePreference,
    ValidationResult,
)
from utils.logger_utils import LoggerUtils
from utils.time_utils import MS_PER_DAY, MS_PER_MINUTE

if TYPE_CHECKING:
    import logging

    from models.history_models import Priority

__all__: list[str] = ["StoreMaintenance"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_DECODE_ERRORS: tuple[type[Exception], ...] = (KeyError, TypeError, ValueError, AttributeError)
_PRIORITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2}


class StoreMaintenance:
    """Housekeeping for the detection history and whole-store snapshots.

    Args:
        store (PreferenceStore): Store to maintain.
        max_backups (int): Number of backups kept; older ones are pruned on each new backup.
        retention_days (int): Default age limit for history records.
    """

    EXPORT_VERSION: ClassVar[str] = "1.0.0"
    BACKUP_PREFIX: ClassVar[str] = "locale_backup_"
    EXPIRED_THRESHOLD: ClassVar[int] = 50
    DUPLICATE_THRESHOLD: ClassVar[int] = 10
    OVERSIZED_THRESHOLD: ClassVar[int] = 200

    def __init__(self, store: PreferenceStore, *, max_backups: int = 5, retention_days: int = 30) -> None:
        self.store: PreferenceStore = store
        self.max_backups: int = max_backups
        self.retention_ms: int = retention_days * MS_PER_DAY

    # ------------------------------------------------------------------
    # History cleanup
    # ------------------------------------------------------------------

    def cleanup_expired_detections(self, max_age_ms: int | None = None) -> OperationResult[CleanupResult]:
        """Drop records older than ``max_age_ms`` (default: the retention period)."""
        cutoff: int = self.store.clock() - (self.retention_ms if max_age_ms is None else max_age_ms)
        history: LocaleDetectionHistory = self.store.get_detection_history()
        kept: list[DetectionRecord] = [record for record in history.detections if record.timestamp >= cutoff]
        return self._apply("cleanup_expired", history, kept)

    def cleanup_duplicate_detections(self) -> OperationResult[CleanupResult]:
        """Keep only the first record per locale, source and minute."""
        history: LocaleDetectionHistory = self.store.get_detection_history()
        seen: set[tuple[str, str, int]] = set()
        kept: list[DetectionRecord] = []
        for record in history.detections:
            key: tuple[str, str, int] = self._duplicate_key(record)
            if key not in seen:
                seen.add(key)
                kept.append(record)
        return self._apply("cleanup_duplicates", history, kept)

    def cleanup_invalid_detections(self) -> OperationResult[CleanupResult]:
        now: int = self.store.clock()
        history: LocaleDetectionHistory = self.store.get_detection_history()
        kept: list[DetectionRecord] = [r for r in history.detections if validate_record(r, now).is_valid]
        return self._apply("cleanup_invalid", history, kept)

    def limit_history_size(self, max_size: int) -> OperationResult[CleanupResult]:
        """Keep the ``max_size`` newest records."""
        if max_size < 0:
            return OperationResult.fail(f"History size limit must not be negative: {max_size}")
        history: LocaleDetectionHistory = self.store.get_detection_history()
        kept: list[DetectionRecord] = history.detections[-max_size:] if max_size else []
        return self._apply("limit_history_size", history, kept)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_history(self) -> dict[str, Any]:
        """Return the history as a camelCase, JSON-compatible dict."""
        return self.store.get_detection_history().to_dict(encode_json=True)

    def import_history(self, data: dict[str, Any]) -> OperationResult[LocaleDetectionHistory]:
        """Replace the history with an exported one.

        Args:
            data (dict[str, Any]): Output of :meth:`export_history`.

        Returns:
            OperationResult[LocaleDetectionHistory]: The imported history, or the decode/validation failure.
        """
        decoded: OperationResult[LocaleDetectionHistory] = self._decode_history(data)
        if not decoded.success or decoded.data is None:
            return decoded
        return self.store.save_detection_history(decoded.data)

    def export_data(self) -> dict[str, Any]:
        """Return a versioned, checksummed snapshot of the preference, the override and the history."""
        preference: UserLocalePreference | None = self.store.get_user_preference()
        override: Locale | None = self.store.get_user_override()
        data: dict[str, Any] = {
            "preference": preference.to_dict(encode_json=True) if preference else None,
            "override": override.value if override else None,
            "history": self.export_history(),
        }
        return {
            "version": self.EXPORT_VERSION,
            "exportedAt": self.store.clock(),
            "checksum": compute_checksum(data),
            "data": data,
        }

    def import_data(self, snapshot: dict[str, Any]) -> OperationResult[None]:
        """Restore a snapshot produced by :meth:`export_data`.

        Nothing is written unless the version, the checksum and every part of the snapshot are valid.
        """
        if not isinstance(snapshot, dict) or not isinstance(snapshot.get("data"), dict):
            return OperationResult.fail("Malformed snapshot")
        if snapshot.get("version") != self.EXPORT_VERSION:
            return OperationResult.fail(f"Unsupported snapshot version: {snapshot.get('version')!r}")
        data: dict[str, Any] = snapshot["data"]
        if compute_checksum(data) != snapshot.get("checksum"):
            return OperationResult.fail("Snapshot checksum mismatch")

        preference: UserLocalePreference | None = None
        if data.get("preference") is not None:
            try:
                preference = UserLocalePreference.from_dict(data["preference"])
            except _DECODE_ERRORS as err:
                return OperationResult.fail(f"Invalid preference in snapshot: {err}")
            validation: ValidationResult = validate_preference(preference, self.store.clock())
            if not validation.is_valid:
                return OperationResult.fail("Invalid preference in snapshot", errors=validation.errors)

        override: Locale | None = Locale.parse(data.get("override"))
        if data.get("override") is not None and override is None:
            return OperationResult.fail(f"Invalid override in snapshot: {data.get('override')!r}")

        history: OperationResult[LocaleDetectionHistory] = self._decode_history(data.get("history") or {})
        if not history.success or history.data is None:
            return OperationResult.fail(history.error or "Invalid history in snapshot", errors=history.errors)

        errors: list[str] = []
        try:
            if override is None:
                self.store.records.remove(PreferenceStore.OVERRIDE_KEY)
            else:
                self.store.records.write(
                    PreferenceStore.OVERRIDE_KEY, {"locale": override.value, "timestamp": self.store.clock()}
                )
        except StorageError as err:
            errors.append(str(err))
        saved = self.store.save_user_preference(preference) if preference else self.store.clear_user_preference()
        if not saved.success:
            errors.append(saved.error or "preference write failed")
        history_saved = self.store.save_detection_history(history.data)
        if not history_saved.success:
            errors.append(history_saved.error or "history write failed")

        if errors:
            return OperationResult.fail("Snapshot import incomplete", errors=errors)
        logger.info("Imported snapshot with %d detection records", history.data.total_detections)
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def create_backup(self) -> OperationResult[str]:
        """Store a snapshot under ``locale_backup_<timestamp>`` and prune old backups.

        Returns:
            OperationResult[str]: The backup key.
        """
        try:
            existing: set[str] = set(self.list_backups())
            stamp: int = self.store.clock()
            while f"{self.BACKUP_PREFIX}{stamp}" in existing:
                stamp += 1
            key: str = f"{self.BACKUP_PREFIX}{stamp}"
            self.store.records.write(key, self.export_data())
        except StorageError as err:
            logger.warning("Backup failed: %s", err)
            return OperationResult.fail(str(err))

        logger.info("Created backup '%s'", key)
        self._prune_backups()
        return OperationResult.ok(key)

    def list_backups(self) -> list[str]:
        """Return the backup keys, oldest first.

        Raises:
            StorageError: If the backend cannot list its keys.
        """
        keys: list[str] = [
            key
            for key in self.store.records.keys()
            if key.startswith(self.BACKUP_PREFIX) and key.removeprefix(self.BACKUP_PREFIX).isdigit()
        ]
        return sorted(keys, key=lambda key: int(key.removeprefix(self.BACKUP_PREFIX)))

    def restore_from_backup(self, key: str | None = None) -> OperationResult[None]:
        """Restore ``key``, or the newest backup when ``key`` is None."""
        try:
            if key is None:
                backups: list[str] = self.list_backups()
                if not backups:
                    return OperationResult.fail("No backup available")
                key = backups[-1]
            snapshot: Any = self.store.records.read(key)
        except StorageError as err:
            return OperationResult.fail(f"Cannot read backup: {err}")
        if snapshot is None:
            return OperationResult.fail(f"Backup '{key}' does not exist")

        result: OperationResult[None] = self.import_data(snapshot)
        if result.success:
            logger.info("Restored backup '%s'", key)
        return result

    def delete_backup(self, key: str) -> OperationResult[None]:
        if not key.startswith(self.BACKUP_PREFIX):
            return OperationResult.fail(f"'{key}' is not a backup key")
        try:
            self.store.records.remove(key)
        except StorageError as err:
            return OperationResult.fail(str(err))
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # Diagnostics and maintenance
    # ------------------------------------------------------------------

    def validate_stored_data(self) -> ValidationResult:
        """Check the raw preference and every history record."""
        now: int = self.store.clock()
        report = ValidationResult()

        try:
            raw: Any = self.store.records.read(PreferenceStore.PREFERENCE_KEY)
        except StorageError as err:
            report.errors.append(f"preference: {err}")
            raw = None
        if raw is not None:
            try:
                check: ValidationResult = validate_preference(UserLocalePreference.from_dict(raw), now)
            except _DECODE_ERRORS as err:
                report.errors.append(f"preference: cannot decode ({err})")
            else:
                report.errors.extend(f"preference: {e}" for e in check.errors)
                report.warnings.extend(f"preference: {w}" for w in check.warnings)

        previous: int = 0
        for index, record in enumerate(self.store.get_detection_history().detections):
            check = validate_record(record, now)
            report.errors.extend(f"detection[{index}]: {e}" for e in check.errors)
            report.warnings.extend(f"detection[{index}]: {w}" for w in check.warnings)
            if record.timestamp < previous:
                report.warnings.append(f"detection[{index}]: out of chronological order")
            previous = max(previous, record.timestamp)
        return report

    def get_maintenance_recommendations(self) -> MaintenanceRecommendation:
        """Suggest maintenance steps from the current state of the store."""
        now: int = self.store.clock()
        detections: list[DetectionRecord] = self.store.get_detection_history().detections
        recommendations: list[str] = []
        priority: Priority = "low"

        def recommend(text: str, level: Priority) -> None:
            nonlocal priority
            recommendations.append(text)
            if _PRIORITY_RANK[level] > _PRIORITY_RANK[priority]:
                priority = level

        expired: int = sum(1 for record in detections if record.timestamp < now - self.retention_ms)
        if expired > self.EXPIRED_THRESHOLD:
            recommend(f"Remove {expired} expired detection records", "medium")

        duplicates: int = len(detections) - len({self._duplicate_key(record) for record in detections})
        if duplicates > self.DUPLICATE_THRESHOLD:
            recommend(f"Remove {duplicates} duplicate detection records", "medium")

        if any(error.startswith("preference:") for error in self.validate_stored_data().errors):
            recommend("The stored preference is invalid; reset it", "high")

        if len(detections) > self.OVERSIZED_THRESHOLD:
            recommend(f"Limit the history size ({len(detections)} records)", "medium")

        if detections and now - detections[-1].timestamp > self.retention_ms:
            recommend("No detection recorded within the retention period; the history is stale", "low")

        estimated: int = 10 + 20 * len(recommendations) + len(detections) // 10
        return MaintenanceRecommendation(
            recommendations=recommendations, priority=priority, estimated_time_ms=estimated
        )

    def perform_maintenance(self, options: MaintenanceOptions | None = None) -> MaintenanceReport:
        """Run the selected cleanup steps and report each outcome.

        Args:
            options (MaintenanceOptions | None): Steps to run; all cleanups by default.

        Returns:
            MaintenanceReport: Per-step results and the recommendation computed before the run.
        """
        options = options or MaintenanceOptions()
        started: float = time.perf_counter()
        recommendation: MaintenanceRecommendation = self.get_maintenance_recommendations()
        results: dict[str, OperationResult] = {}

        if options.cleanup_expired:
            results["cleanup_expired"] = self.cleanup_expired_detections(options.max_detection_age_ms)
        if options.cleanup_duplicates:
            results["cleanup_duplicates"] = self.cleanup_duplicate_detections()
        if options.cleanup_invalid:
            results["cleanup_invalid"] = self.cleanup_invalid_detections()
        if options.max_history_size is not None:
            results["limit_history_size"] = self.limit_history_size(options.max_history_size)
        if options.validate_data:
            validation: ValidationResult = self.validate_stored_data()
            results["validate_data"] = (
                OperationResult.ok(validation)
                if validation.is_valid
                else OperationResult.fail("Stored data is invalid", errors=validation.errors)
            )

        successful: int = sum(1 for result in results.values() if result.success)
        logger.info(
            "Maintenance finished: %d/%d operations succeeded in %.1f ms",
            successful,
            len(results),
            (time.perf_counter() - started) * 1000,
        )
        return MaintenanceReport(
            total_operations=len(results),
            successful_operations=successful,
            results=results,
            recommendation=recommendation,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _duplicate_key(record: DetectionRecord) -> tuple[str, str, int]:
        return record.locale.value, record.source.value, record.timestamp // MS_PER_MINUTE

    def _apply(
        self, operation: str, history: LocaleDetectionHistory, kept: list[DetectionRecord]
    ) -> OperationResult[CleanupResult]:
        cleaned: int = len(history.detections) - len(kept)
        if cleaned == 0:
            return OperationResult.ok(CleanupResult(cleaned_count=0, remaining_count=len(kept)))

        history.replace_detections(kept, self.store.clock())
        saved: OperationResult[LocaleDetectionHistory] = self.store.save_detection_history(history)
        if not saved.success:
            return OperationResult.fail(saved.error or f"{operation} failed")
        logger.info("%s removed %d detection records", operation, cleaned)
        return OperationResult.ok(CleanupResult(cleaned_count=cleaned, remaining_count=len(history.detections)))

    def _decode_history(self, data: dict[str, Any]) -> OperationResult[LocaleDetectionHistory]:
        try:
            history: LocaleDetectionHistory = LocaleDetectionHistory.from_dict(data)
        except _DECODE_ERRORS as err:
            return OperationResult.fail(f"Invalid history payload: {err}")

        now: int = self.store.clock()
        errors: list[str] = [
            f"detection[{index}]: {error}"
            for index, record in enumerate(history.detections)
            for error in validate_record(record, now).errors
        ]
        if errors:
            return OperationResult.fail("Invalid detection records", errors=errors)

        detections: list[DetectionRecord] = sorted(history.detections, key=lambda record: record.timestamp)
        history.replace_detections(detections, history.last_updated)
        return OperationResult.ok(history)

    def _prune_backups(self) -> None:
        try:
            backups: list[str] = self.list_backups()
            for key in backups[: max(len(backups) - self.max_backups, 0)]:
                self.store.records.remove(key)
                logger.debug("Pruned backup '%s'", key)
        except StorageError as err:
            logger.warning("Cannot prune backups: %s", err)
