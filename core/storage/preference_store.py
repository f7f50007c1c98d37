"""Durable locale preference, override and detection history.

The store owns three checksummed records in a :class:`KeyValueStore`: the current preference, the manual
override and the bounded detection history. Persistence failures (storage absent, quota exceeded, corrupted
values) never raise: mutations report them through :class:`OperationResult`, reads degrade to "nothing stored".
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any, ClassVar

from core.storage.access_log import AccessLog
from core.storage.kv_store import (
    ChecksummedStore,
    MemoryKeyValueStore,
    StorageCorruptedError,
    StorageError,
    StorageQuotaExceededError,
)
from core.storage.validation import validate_entry, validate_preference
from models.history_models import QueryResult
from models.locale_models import (
    DetectionRecord,
    Locale,
    LocaleDetectionHistory,
    LocaleSource,
    OperationResult,
    UserLocalePreference,
    ValidationResult,
)
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.storage.kv_store import KeyValueStore
    from models.history_models import DetectionQuery

__all__: list[str] = ["PreferenceStore"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_DECODE_ERRORS: tuple[type[Exception], ...] = (KeyError, TypeError, ValueError, AttributeError)


class PreferenceStore:
    """Keeper of the user's locale preference and detection history.

    Args:
        kv_store (KeyValueStore | None): Durable backend. None keeps everything in process memory only.
        max_history_entries (int): Maximum number of history records; the oldest are dropped first.
        clock (Callable[[], int]): Epoch-millisecond clock.
        access_log (AccessLog | None): Operation log shared with the analytics.

    Attributes:
        PREFERENCE_KEY (ClassVar[str]): Storage key of the current preference.
        OVERRIDE_KEY (ClassVar[str]): Storage key of the manual override.
        HISTORY_KEY (ClassVar[str]): Storage key of the detection history.
    """

    PREFERENCE_KEY: ClassVar[str] = "locale_preference"
    OVERRIDE_KEY: ClassVar[str] = "user_locale_override"
    HISTORY_KEY: ClassVar[str] = "locale_detection_history"

    def __init__(
        self,
        kv_store: KeyValueStore | None = None,
        *,
        max_history_entries: int = 100,
        clock: Callable[[], int] = TimeUtils.now_ms,
        access_log: AccessLog | None = None,
    ) -> None:
        self.persistent: bool = kv_store is not None
        if kv_store is None:
            logger.warning("No durable storage available; locale preferences will not persist")
            kv_store = MemoryKeyValueStore()
        self.records: ChecksummedStore = ChecksummedStore(kv_store)
        self.max_history_entries: int = max_history_entries
        self.clock: Callable[[], int] = clock
        self.access_log: AccessLog = access_log or AccessLog()

    # ------------------------------------------------------------------
    # Preference
    # ------------------------------------------------------------------

    def save_user_preference(self, preference: UserLocalePreference) -> OperationResult[UserLocalePreference]:
        """Replace the current preference.

        Args:
            preference (UserLocalePreference): New preference.

        Returns:
            OperationResult[UserLocalePreference]: The saved preference, or the validation/storage failure.
        """
        started: float = time.perf_counter()
        validation: ValidationResult = validate_preference(preference, self.clock())
        if not validation.is_valid:
            return self._finish(
                "save_preference",
                OperationResult.fail("Invalid preference", errors=validation.errors),
                started,
            )
        for warning in validation.warnings:
            logger.warning("Preference warning: %s", warning)

        preference = self._coerce_preference(preference)
        error: str | None = self._write(self.PREFERENCE_KEY, preference.to_dict(encode_json=True))
        result: OperationResult[UserLocalePreference] = (
            OperationResult.fail(error) if error else OperationResult.ok(preference)
        )
        return self._finish("save_preference", result, started)

    def get_user_preference(self) -> UserLocalePreference | None:
        """Return the current preference, or None if nothing valid is stored."""
        started: float = time.perf_counter()
        payload: Any = self._load(self.PREFERENCE_KEY)
        preference: UserLocalePreference | None = None
        if payload is not None:
            try:
                preference = UserLocalePreference.from_dict(payload)
            except _DECODE_ERRORS as err:
                self._discard(self.PREFERENCE_KEY, f"undecodable preference: {err}")
            else:
                validation: ValidationResult = validate_preference(preference, self.clock())
                if not validation.is_valid:
                    logger.warning("Ignoring invalid stored preference: %s", "; ".join(validation.errors))
                    preference = None
        self._track("get_preference", started, success=True)
        return preference

    def clear_user_preference(self) -> OperationResult[None]:
        started: float = time.perf_counter()
        error: str | None = self._remove(self.PREFERENCE_KEY)
        return self._finish("clear_preference", OperationResult.fail(error) if error else OperationResult.ok(), started)

    # ------------------------------------------------------------------
    # Override
    # ------------------------------------------------------------------

    def set_user_override(self, locale: Locale | str) -> OperationResult[Locale]:
        """Pin the locale chosen explicitly by the user.

        The override is stored under its own key and also saved as a ``user`` preference with confidence 1.0.

        Args:
            locale (Locale | str): Locale to pin.

        Returns:
            OperationResult[Locale]: The pinned locale, or the validation/storage failure.
        """
        started: float = time.perf_counter()
        parsed: Locale | None = locale if isinstance(locale, Locale) else Locale.parse(locale)
        if parsed is None:
            return self._finish(
                "set_override",
                OperationResult.fail("Invalid override", errors=[f"Unsupported locale: {locale!r}"]),
                started,
            )

        now: int = self.clock()
        previous: Any = self._load(self.OVERRIDE_KEY)
        error: str | None = self._write(self.OVERRIDE_KEY, {"locale": parsed.value, "timestamp": now})
        if error is None:
            preference = UserLocalePreference(
                locale=parsed,
                source=LocaleSource.USER,
                timestamp=now,
                confidence=1.0,
                metadata={"is_override": True},
            )
            error = self._write(self.PREFERENCE_KEY, preference.to_dict(encode_json=True))
            if error is not None:
                self._restore_override(previous)
        result: OperationResult[Locale] = OperationResult.fail(error) if error else OperationResult.ok(parsed)
        return self._finish("set_override", result, started)

    def get_user_override(self) -> Locale | None:
        started: float = time.perf_counter()
        payload: Any = self._load(self.OVERRIDE_KEY)
        override: Locale | None = None
        if isinstance(payload, dict):
            override = Locale.parse(payload.get("locale"))
            if override is None:
                self._discard(self.OVERRIDE_KEY, f"unsupported override {payload.get('locale')!r}")
        elif payload is not None:
            self._discard(self.OVERRIDE_KEY, "malformed override")
        self._track("get_override", started, success=True)
        return override

    def clear_user_override(self) -> OperationResult[None]:
        """Remove the override, and the preference it wrote if that is still current."""
        started: float = time.perf_counter()
        error: str | None = self._remove(self.OVERRIDE_KEY)
        preference: UserLocalePreference | None = self.get_user_preference()
        if error is None and preference is not None and (preference.metadata or {}).get("is_override"):
            error = self._remove(self.PREFERENCE_KEY)
        return self._finish("clear_override", OperationResult.fail(error) if error else OperationResult.ok(), started)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_detection_record(
        self,
        locale: Locale | str,
        source: LocaleSource | str,
        confidence: float,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult[DetectionRecord]:
        """Append a detection to the history.

        The record is stamped with the current time, clamped so timestamps never decrease. The oldest records
        are dropped once the history exceeds ``max_history_entries``.

        Args:
            locale (Locale | str): Detected locale.
            source (LocaleSource | str): Signal that produced it.
            confidence (float): Confidence in [0, 1].
            metadata (dict[str, Any] | None): Optional JSON-compatible context.

        Returns:
            OperationResult[DetectionRecord]: The appended record, or the validation/storage failure.
        """
        started: float = time.perf_counter()
        history: LocaleDetectionHistory = self.get_detection_history()
        now: int = self.clock()
        if history.detections:
            now = max(now, history.detections[-1].timestamp)

        validation: ValidationResult = validate_entry(
            locale=locale, source=source, confidence=confidence, timestamp=now, metadata=metadata, now=now
        )
        if not validation.is_valid:
            return self._finish(
                "add_detection",
                OperationResult.fail("Invalid detection record", errors=validation.errors),
                started,
            )

        record = DetectionRecord(
            locale=Locale(locale),
            source=LocaleSource(source),
            confidence=float(confidence),
            timestamp=now,
            metadata=metadata,
        )
        detections: list[DetectionRecord] = [*history.detections, record][-self.max_history_entries :]
        history.replace_detections(detections, now)
        saved: OperationResult[LocaleDetectionHistory] = self.save_detection_history(history)
        result: OperationResult[DetectionRecord] = (
            OperationResult.ok(record) if saved.success else OperationResult.fail(saved.error or "write failed")
        )
        return self._finish("add_detection", result, started)

    def get_detection_history(self) -> LocaleDetectionHistory:
        """Return the history; an absent or corrupted history reads as empty."""
        started: float = time.perf_counter()
        payload: Any = self._load(self.HISTORY_KEY)
        history = LocaleDetectionHistory()
        if payload is not None:
            try:
                history = LocaleDetectionHistory.from_dict(payload)
            except _DECODE_ERRORS as err:
                self._discard(self.HISTORY_KEY, f"undecodable history: {err}")
                history = LocaleDetectionHistory()
            else:
                history.total_detections = len(history.detections)
        self._track("get_history", started, success=True)
        return history

    def save_detection_history(self, history: LocaleDetectionHistory) -> OperationResult[LocaleDetectionHistory]:
        """Persist ``history`` as the whole detection log.

        When the backend reports its quota exceeded, the oldest half of the records is dropped and the write is
        retried once.
        """
        started: float = time.perf_counter()
        if len(history.detections) > self.max_history_entries:
            history.replace_detections(history.detections[-self.max_history_entries :], history.last_updated)
        try:
            self.records.write(self.HISTORY_KEY, history.to_dict(encode_json=True))
        except StorageQuotaExceededError as err:
            kept: list[DetectionRecord] = history.detections[len(history.detections) // 2 :]
            logger.warning("%s; trimming history to %d records", err, len(kept))
            history.replace_detections(kept, history.last_updated)
            error: str | None = self._write(self.HISTORY_KEY, history.to_dict(encode_json=True))
            if error:
                return self._finish("save_history", OperationResult.fail(error), started)
        except StorageError as err:
            return self._finish("save_history", OperationResult.fail(str(err)), started)
        return self._finish("save_history", OperationResult.ok(history), started)

    def get_recent_detections(self, limit: int = 10) -> list[DetectionRecord]:
        """Return up to ``limit`` records, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self.get_detection_history().detections[-limit:]))

    def query_detections(self, query: DetectionQuery) -> QueryResult:
        """Filter, sort and page the history.

        Args:
            query (DetectionQuery): Filter, sort and paging conditions.

        Returns:
            QueryResult: The page of records, the number of matches and whether more remain.
        """
        matches: list[DetectionRecord] = [
            record for record in self.get_detection_history().detections if self._matches(record, query)
        ]
        sort_keys: dict[str, Callable[[DetectionRecord], Any]] = {
            "timestamp": lambda r: r.timestamp,
            "confidence": lambda r: r.confidence,
            "locale": lambda r: r.locale.value,
            "source": lambda r: r.source.value,
        }
        matches.sort(key=sort_keys.get(query.sort_by, sort_keys["timestamp"]), reverse=query.sort_order == "desc")

        offset: int = max(query.offset, 0)
        end: int | None = None if query.limit is None else offset + max(query.limit, 0)
        page: list[DetectionRecord] = matches[offset:end]
        return QueryResult(records=page, total_count=len(matches), has_more=offset + len(page) < len(matches))

    def search_detections(self, term: str) -> list[DetectionRecord]:
        """Return records whose locale, source or metadata contains ``term`` (case-insensitive), oldest first."""
        needle: str = term.strip().lower()
        if not needle:
            return []
        found: list[DetectionRecord] = []
        for record in self.get_detection_history().detections:
            haystack: str = " ".join(
                (record.locale.value, record.source.value, json.dumps(record.metadata or {}, ensure_ascii=False))
            ).lower()
            if needle in haystack:
                found.append(record)
        return found

    def clear_detection_history(self) -> OperationResult[None]:
        started: float = time.perf_counter()
        error: str | None = self._remove(self.HISTORY_KEY)
        return self._finish("clear_history", OperationResult.fail(error) if error else OperationResult.ok(), started)

    def reset(self) -> OperationResult[None]:
        """Remove the preference, the override and the history."""
        started: float = time.perf_counter()
        errors: list[str] = [
            error
            for key in (self.PREFERENCE_KEY, self.OVERRIDE_KEY, self.HISTORY_KEY)
            if (error := self._remove(key)) is not None
        ]
        result: OperationResult[None] = (
            OperationResult.fail("Reset incomplete", errors=errors) if errors else OperationResult.ok()
        )
        return self._finish("reset", result, started)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _matches(record: DetectionRecord, query: DetectionQuery) -> bool:
        checks: list[bool] = [
            query.locale is None or record.locale == query.locale,
            query.source is None or record.source == query.source,
            query.start_time is None or record.timestamp >= query.start_time,
            query.end_time is None or record.timestamp <= query.end_time,
            query.min_confidence is None or record.confidence >= query.min_confidence,
            query.max_confidence is None or record.confidence <= query.max_confidence,
        ]
        return all(checks)

    @staticmethod
    def _coerce_preference(preference: UserLocalePreference) -> UserLocalePreference:
        return UserLocalePreference(
            locale=Locale(preference.locale),
            source=LocaleSource(preference.source),
            timestamp=preference.timestamp,
            confidence=float(preference.confidence),
            metadata=preference.metadata,
        )

    def _load(self, key: str) -> Any | None:
        try:
            return self.records.read(key)
        except StorageCorruptedError as err:
            self._discard(key, str(err))
        except StorageError as err:
            logger.warning("Cannot read '%s': %s", key, err)
        return None

    def _write(self, key: str, payload: Any) -> str | None:
        """Write ``payload``; return the error message on failure."""
        try:
            self.records.write(key, payload)
        except StorageError as err:
            return str(err)
        return None

    def _remove(self, key: str) -> str | None:
        try:
            self.records.remove(key)
        except StorageError as err:
            return str(err)
        return None

    def _restore_override(self, previous: Any) -> None:
        """Put back the override that was current before a half-finished ``set_user_override``."""
        error: str | None = (
            self._remove(self.OVERRIDE_KEY) if previous is None else self._write(self.OVERRIDE_KEY, previous)
        )
        if error:
            logger.error("Cannot roll back the override: %s", error)

    def _discard(self, key: str, reason: str) -> None:
        logger.warning("Discarding corrupted '%s': %s", key, reason)
        error: str | None = self._remove(key)
        if error:
            logger.warning("Cannot remove corrupted '%s': %s", key, error)

    def _track(self, operation: str, started: float, *, success: bool) -> None:
        self.access_log.record(
            operation,
            success=success,
            response_time_ms=(time.perf_counter() - started) * 1000,
            timestamp=self.clock(),
        )

    def _finish[T](self, operation: str, result: OperationResult[T], started: float) -> OperationResult[T]:
        result.timestamp = self.clock()
        result.response_time_ms = (time.perf_counter() - started) * 1000
        self.access_log.record(
            operation, success=result.success, response_time_ms=result.response_time_ms, timestamp=result.timestamp
        )
        if not result.success:
            logger.warning("%s failed: %s %s", operation, result.error, result.errors or "")
        return result
