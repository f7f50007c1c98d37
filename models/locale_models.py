"""Data models for locale detection and locale preferences.

Defines the closed set of supported locales, the tagged detection sources, the immutable detection result
value object, and the JSON-serializable preference and history records kept by the preference store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__: list[str] = [
    "DETECTION_SOURCES",
    "DetectionRecord",
    "Locale",
    "LocaleDetectionHistory",
    "LocaleDetectionResult",
    "LocaleSource",
    "OperationResult",
    "UserLocalePreference",
    "ValidationResult",
]


class Locale(StrEnum):
    """Supported UI locales."""

    EN = "en"
    ZH = "zh"
    JA = "ja"

    @classmethod
    def parse(cls, code: str | None) -> Locale | None:
        """Return the member for an exact (case-insensitive) code, or None.

        Args:
            code (str | None): Locale code such as ``"zh"``.

        Returns:
            Locale | None: Matching member, or None for unknown or empty input.
        """
        if not code:
            return None
        try:
            return cls(code.strip().lower())
        except ValueError:
            return None

    @classmethod
    def normalize(cls, code: str | None, default: Locale) -> Locale:
        """Return the member for ``code`` or ``default`` when it is not a supported locale."""
        return cls.parse(code) or default


class LocaleSource(StrEnum):
    """Origin of a locale decision or of a stored preference."""

    USER = "user"
    USER_OVERRIDE = "user_override"
    STORED = "stored"
    GEO = "geo"
    BROWSER = "browser"
    TIMEZONE = "timezone"
    COMBINED = "combined"
    AUTO = "auto"
    DEFAULT = "default"
    FALLBACK = "fallback"


# Sources a detector may tag a LocaleDetectionResult with.
DETECTION_SOURCES: Final[frozenset[LocaleSource]] = frozenset(
    {
        LocaleSource.USER,
        LocaleSource.STORED,
        LocaleSource.GEO,
        LocaleSource.BROWSER,
        LocaleSource.TIMEZONE,
        LocaleSource.COMBINED,
        LocaleSource.DEFAULT,
    }
)


@dataclass(frozen=True)
class LocaleDetectionResult:
    """Outcome of one detection call.

    Attributes:
        locale (Locale): Chosen locale.
        source (LocaleSource): Signal (or fusion) that produced the decision.
        confidence (float): Trust in the decision, within [0, 1].
        details (Mapping[str, Any]): Read-only evidence record.
    """

    locale: Locale
    source: LocaleSource
    confidence: float
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            msg: str = f"Confidence must lie in [0, 1]: {self.confidence}"
            raise ValueError(msg)
        if self.source not in DETECTION_SOURCES:
            msg = f"'{self.source}' is not a detection source"
            raise ValueError(msg)
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class UserLocalePreference(DataClassJsonMixin):
    """The single current locale preference."""

    locale: Locale
    source: LocaleSource
    timestamp: int
    confidence: float
    metadata: dict[str, Any] | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class DetectionRecord(DataClassJsonMixin):
    """One entry of the detection history log."""

    locale: Locale
    source: LocaleSource
    confidence: float
    timestamp: int
    metadata: dict[str, Any] | None = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class LocaleDetectionHistory(DataClassJsonMixin):
    """Bounded, chronological detection log.

    ``total_detections`` always equals ``len(detections)``; use :meth:`replace_detections` to mutate.
    """

    detections: list[DetectionRecord] = field(default_factory=list)
    last_updated: int = 0
    total_detections: int = 0

    def replace_detections(self, detections: list[DetectionRecord], timestamp: int) -> None:
        self.detections = detections
        self.total_detections = len(detections)
        self.last_updated = timestamp


@dataclass
class OperationResult[T]:
    """Structured outcome of a storage operation; storage failures are reported here instead of raised.

    Attributes:
        success (bool): Whether the operation completed.
        data (T | None): Payload on success.
        error (str | None): Human-readable failure reason.
        errors (list[str]): Individual validation errors, if any.
        timestamp (int): Epoch milliseconds at completion.
        response_time_ms (float): Wall time spent in the operation.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)
    timestamp: int = 0
    response_time_ms: float = 0.0

    @classmethod
    def ok(cls, data: T | None = None, *, timestamp: int = 0) -> OperationResult[T]:
        return cls(success=True, data=data, timestamp=timestamp)

    @classmethod
    def fail(cls, error: str, *, errors: list[str] | None = None, timestamp: int = 0) -> OperationResult[T]:
        return cls(success=False, error=error, errors=list(errors or []), timestamp=timestamp)


@dataclass
class ValidationResult:
    """Validation verdict: errors reject the input, warnings only flag it."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors
