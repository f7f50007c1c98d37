"""Validation rules for stored preferences and detection records."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any, Final

from models.locale_models import Locale, LocaleSource, ValidationResult
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    from models.locale_models import DetectionRecord, UserLocalePreference

__all__: list[str] = ["validate_entry", "validate_preference", "validate_record"]

# Timestamps slightly ahead of the local clock are tolerated (clock skew between writers).
FUTURE_TOLERANCE_MS: Final[int] = 60_000
USER_MIN_CONFIDENCE: Final[float] = 0.9
FALLBACK_MAX_CONFIDENCE: Final[float] = 0.3


def _is_member(enum_type: type[Locale] | type[LocaleSource], value: Any) -> bool:
    if isinstance(value, enum_type):
        return True
    return isinstance(value, str) and value in {member.value for member in enum_type}


def validate_entry(
    *, locale: Any, source: Any, confidence: Any, timestamp: Any, metadata: Any, now: int
) -> ValidationResult:
    """Check the fields shared by preferences and history records.

    Args:
        locale (Any): Must be a supported locale.
        source (Any): Must be a known source.
        confidence (Any): Number within [0, 1].
        timestamp (Any): Positive integer epoch milliseconds, not in the future.
        metadata (Any): None or a dict.
        now (int): Current epoch milliseconds.

    Returns:
        ValidationResult: Errors and warnings found.
    """
    result = ValidationResult()

    if not _is_member(Locale, locale):
        result.errors.append(f"Unsupported locale: {locale!r}")
    if not _is_member(LocaleSource, source):
        result.errors.append(f"Unknown source: {source!r}")

    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or math.isnan(confidence):
        result.errors.append(f"Confidence must be a number: {confidence!r}")
    elif not 0.0 <= confidence <= 1.0:
        result.errors.append(f"Confidence must lie in [0, 1]: {confidence}")
    elif source == LocaleSource.USER and confidence < USER_MIN_CONFIDENCE:
        result.warnings.append(f"User-selected locale has unusually low confidence: {confidence}")
    elif source == LocaleSource.FALLBACK and confidence > FALLBACK_MAX_CONFIDENCE:
        result.warnings.append(f"Fallback locale has suspiciously high confidence: {confidence}")

    if not TimeUtils.is_epoch_ms(timestamp):
        result.errors.append(f"Timestamp must be a positive integer in epoch milliseconds: {timestamp!r}")
    elif timestamp > now + FUTURE_TOLERANCE_MS:
        result.errors.append(f"Timestamp lies in the future: {timestamp}")

    if metadata is not None and not isinstance(metadata, dict):
        result.errors.append("Metadata must be a mapping")

    return result


def validate_preference(preference: UserLocalePreference, now: int) -> ValidationResult:
    return validate_entry(
        locale=preference.locale,
        source=preference.source,
        confidence=preference.confidence,
        timestamp=preference.timestamp,
        metadata=preference.metadata,
        now=now,
    )


def validate_record(record: DetectionRecord, now: int) -> ValidationResult:
    return validate_entry(
        locale=record.locale,
        source=record.source,
        confidence=record.confidence,
        timestamp=record.timestamp,
        metadata=record.metadata,
        now=now,
    )
