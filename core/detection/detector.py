"""Confidence-weighted locale detection.

:class:`LocaleDetector` fuses the stored preference, browser languages, timezone and geolocation into one
:class:`LocaleDetectionResult`. An explicit user override short-circuits fusion. Collector failures degrade to
unavailable readings; errors raised by the preference store propagate to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Literal, Protocol

from core.detection.collectors import SignalCollectors, SignalReading
from models.locale_models import Locale, LocaleDetectionResult, LocaleSource
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.detection.constants import ConfidenceWeights
    from models.locale_models import UserLocalePreference

__all__: list[str] = ["DetectionQuality", "LocaleDetector", "PreferenceReader"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type QualityLevel = Literal["high", "medium", "low"]


class PreferenceReader(Protocol):
    """Read side of the preference store used by the detector."""

    def get_user_override(self) -> Locale | None: ...

    def get_user_preference(self) -> UserLocalePreference | None: ...


@dataclass
class DetectionQuality:
    quality: QualityLevel
    reliability: float
    recommendations: list[str] = field(default_factory=list)


class LocaleDetector:
    """Resolves the locale for a visitor.

    The detector holds no state between calls; its result depends only on the preference store contents and the
    current environment signals.

    Args:
        store (PreferenceReader): Source of the user override and the stored preference.
        collectors (SignalCollectors): Environment signal collectors.
        detection_timeout (float): Upper bound in seconds on the asynchronous part of a detection.

    Attributes:
        HIGH_CONFIDENCE (ClassVar[float]): Lower bound of ``high`` detection quality.
        MEDIUM_CONFIDENCE (ClassVar[float]): Lower bound of ``medium`` detection quality.
    """

    HIGH_CONFIDENCE: ClassVar[float] = 0.8
    MEDIUM_CONFIDENCE: ClassVar[float] = 0.5

    def __init__(
        self, store: PreferenceReader, collectors: SignalCollectors, *, detection_timeout: float = 10.0
    ) -> None:
        self._store: PreferenceReader = store
        self._collectors: SignalCollectors = collectors
        self._detection_timeout: float = detection_timeout

    @property
    def default_locale(self) -> Locale:
        return self._collectors.default_locale

    @property
    def weights(self) -> ConfidenceWeights:
        return self._collectors.weights

    @property
    def collectors(self) -> SignalCollectors:
        return self._collectors

    def detect_from_browser(self) -> Locale:
        return self._collectors.detect_from_browser()

    def detect_from_timezone(self) -> Locale:
        return self._collectors.detect_from_timezone()

    async def detect_from_geolocation(self) -> Locale:
        return (await self._read_geolocation()).locale or self.default_locale

    async def detect_from_ip(self) -> Locale:
        return await self._collectors.detect_from_ip()

    async def detect_smart_locale(self) -> LocaleDetectionResult:
        """Detect the locale by weighted fusion of every available signal.

        A stored user override is returned as-is with source ``user``. Otherwise the stored preference, browser
        languages, timezone and geolocation readings are grouped by locale:

        * two or more agreeing signals give ``combined`` with the highest prior weight plus a consistency bonus
          (capped at 1.0);
        * a lone winner keeps its own source, its weight reduced in proportion to the share of dissenting signals;
        * no usable signal gives the default locale with the default confidence.

        Returns:
            LocaleDetectionResult: The fused decision.
        """
        override: Locale | None = self._store.get_user_override()
        if override is not None:
            logger.debug("User override '%s' short-circuits detection", override)
            return LocaleDetectionResult(
                locale=override,
                source=LocaleSource.USER,
                confidence=self.weights.user_override,
                details={"override": override.value},
            )

        readings: list[SignalReading] = [
            self._read_stored_preference(),
            self._collectors.read_browser(),
            self._collectors.read_timezone(),
        ]
        readings.append(await self._read_geolocation())
        result: LocaleDetectionResult = self._fuse(readings)
        logger.info(
            "Detected locale '%s' (source=%s, confidence=%.2f)", result.locale, result.source, result.confidence
        )
        return result

    async def detect_best_locale(self) -> LocaleDetectionResult:
        """Legacy waterfall: stored preference, override, geolocation, browser, then the default.

        Returns:
            LocaleDetectionResult: The first signal that yields a supported locale.
        """
        preference: UserLocalePreference | None = self._store.get_user_preference()
        if preference is not None:
            return LocaleDetectionResult(
                locale=preference.locale,
                source=LocaleSource.STORED,
                confidence=preference.confidence,
                details={"preference_source": preference.source.value, "timestamp": preference.timestamp},
            )

        override: Locale | None = self._store.get_user_override()
        if override is not None:
            return LocaleDetectionResult(
                locale=override,
                source=LocaleSource.USER,
                confidence=self.weights.user_override,
                details={"override": override.value},
            )

        for reading in (await self._read_geolocation(), self._collectors.read_browser()):
            if reading.locale is not None:
                return LocaleDetectionResult(
                    locale=reading.locale,
                    source=reading.source,
                    confidence=reading.weight,
                    details={"raw": reading.raw},
                )

        return self._default_result({})

    def detect_quick_locale(self) -> LocaleDetectionResult:
        """Synchronous detection without network access: override, stored preference, browser, timezone."""
        override: Locale | None = self._store.get_user_override()
        if override is not None:
            return LocaleDetectionResult(override, LocaleSource.USER, self.weights.user_override)

        for reading in (
            self._read_stored_preference(),
            self._collectors.read_browser(),
            self._collectors.read_timezone(),
        ):
            if reading.locale is not None:
                return LocaleDetectionResult(reading.locale, reading.source, reading.weight, {"raw": reading.raw})
        return self._default_result({})

    def get_detection_quality(self, result: LocaleDetectionResult) -> DetectionQuality:
        """Grade a detection result.

        Args:
            result (LocaleDetectionResult): Result to grade.

        Returns:
            DetectionQuality: Quality level, a reliability score in [0, 1] and follow-up recommendations.
        """
        quality: QualityLevel
        if result.confidence >= self.HIGH_CONFIDENCE:
            quality = "high"
        elif result.confidence >= self.MEDIUM_CONFIDENCE:
            quality = "medium"
        else:
            quality = "low"

        # Fused and explicit decisions are trusted at face value; single environment signals less so.
        if result.source in (LocaleSource.USER, LocaleSource.STORED, LocaleSource.COMBINED):
            reliability = result.confidence
        elif result.source is LocaleSource.DEFAULT:
            reliability = result.confidence * 0.5
        else:
            reliability = result.confidence * 0.9

        recommendations: list[str] = []
        if result.source is LocaleSource.DEFAULT:
            recommendations.append("No supported signal matched; offer an explicit language selector.")
        if quality == "low":
            recommendations.append("Confidence is low; ask the user to confirm the language.")
        if result.details.get("dissenting_sources"):
            recommendations.append("Signals disagree; storing the user's explicit choice would settle it.")
        if result.source not in (LocaleSource.USER, LocaleSource.STORED) and quality != "high":
            recommendations.append("Persist a user preference once the user picks a language.")

        return DetectionQuality(quality=quality, reliability=round(reliability, 3), recommendations=recommendations)

    def _read_stored_preference(self) -> SignalReading:
        source, weight = LocaleSource.STORED, self.weights.stored
        preference: UserLocalePreference | None = self._store.get_user_preference()
        if preference is None:
            return SignalReading(source, weight, reason="no stored preference")
        if preference.source in (LocaleSource.DEFAULT, LocaleSource.FALLBACK):
            # A stored fallback is not evidence about the user.
            return SignalReading(source, weight, raw=preference.locale.value, reason="stored fallback")
        return SignalReading(source, weight, locale=preference.locale, raw=preference.source.value)

    async def _read_geolocation(self) -> SignalReading:
        try:
            return await asyncio.wait_for(self._collectors.read_geolocation(), timeout=self._detection_timeout)
        except TimeoutError:
            logger.info("Geolocation exceeded the %.1fs detection timeout", self._detection_timeout)
            return SignalReading(LocaleSource.GEO, self.weights.geo, reason="detection timeout")

    def _fuse(self, readings: list[SignalReading]) -> LocaleDetectionResult:
        details: dict[str, Any] = {
            f"{reading.source.value}_locale": reading.locale.value if reading.locale else None for reading in readings
        }
        details["unavailable"] = {r.source.value: r.reason for r in readings if not r.available}

        available: list[SignalReading] = [r for r in readings if r.available]
        if not available:
            return self._default_result(details)

        groups: dict[Locale, list[SignalReading]] = {}
        for reading in available:
            if reading.locale is not None:
                groups.setdefault(reading.locale, []).append(reading)

        def score(group: list[SignalReading]) -> tuple[float, float]:
            bonus: float = self.weights.consistency_bonus if len(group) > 1 else 0.0
            return sum(r.weight for r in group) + bonus, max(r.weight for r in group)

        locale, winners = max(groups.items(), key=lambda item: score(item[1]))
        dissenters: list[SignalReading] = [r for r in available if r.locale is not locale]
        dissent_ratio: float = len(dissenters) / len(available)
        details["agreeing_sources"] = tuple(r.source.value for r in winners)
        details["dissenting_sources"] = tuple(r.source.value for r in dissenters)

        if len(winners) > 1:
            top_weight: float = max(r.weight for r in available)
            bonus: float = self.weights.consistency_bonus * (len(winners) - 1)
            bonus *= 1.0 - self.weights.disagreement_penalty * dissent_ratio
            confidence: float = min(1.0, top_weight + max(bonus, self.weights.min_consistency_bonus))
            return LocaleDetectionResult(locale, LocaleSource.COMBINED, round(confidence, 4), details)

        winner: SignalReading = winners[0]
        confidence = winner.weight * (1.0 - self.weights.disagreement_penalty * dissent_ratio)
        return LocaleDetectionResult(locale, winner.source, round(confidence, 4), details)

    def _default_result(self, details: dict[str, Any]) -> LocaleDetectionResult:
        return LocaleDetectionResult(self.default_locale, LocaleSource.DEFAULT, self.weights.default, details)
