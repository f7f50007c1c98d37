"""Tests for LocaleDetector.

Covers the override short-circuit, the confidence-weighted fusion of stored, browser, timezone and geolocation
signals, the legacy waterfall and the quality grading.
"""

from __future__ import annotations

import asyncio

import pytest

from core.detection.collectors import SignalCollectors
from core.detection.detector import DetectionQuality, LocaleDetector, PreferenceReader
from core.detection.interface import (
    GeolocationProvider,
    StaticGeolocationProvider,
    StaticLanguageSource,
    StaticTimezoneSource,
)
from core.storage.kv_store import MemoryKeyValueStore
from core.storage.preference_store import PreferenceStore
from models.locale_models import DETECTION_SOURCES, Locale, LocaleDetectionResult, LocaleSource, UserLocalePreference

NOW: int = 1_700_000_000_000


class NeverGeolocationProvider(GeolocationProvider):
    async def get_country_code(self) -> str | None:
        await asyncio.sleep(10)
        return "JP"


class BrokenPreferenceReader:
    """Preference reader whose override or preference lookup raises."""

    def __init__(self, *, broken: str) -> None:
        self.broken: str = broken

    def get_user_override(self) -> Locale | None:
        if self.broken == "override":
            msg = "override lookup failed"
            raise RuntimeError(msg)
        return None

    def get_user_preference(self) -> UserLocalePreference | None:
        if self.broken == "preference":
            msg = "preference lookup failed"
            raise RuntimeError(msg)
        return None


@pytest.fixture
def store() -> PreferenceStore:
    return PreferenceStore(MemoryKeyValueStore(), clock=lambda: NOW)


def _detector(
    store: PreferenceReader,
    *,
    languages: list[str] | None = None,
    timezone: str | None = None,
    country: str | None = None,
    default_locale: Locale = Locale.EN,
) -> LocaleDetector:
    collectors = SignalCollectors(
        default_locale=default_locale,
        language_source=StaticLanguageSource(languages) if languages is not None else None,
        timezone_source=StaticTimezoneSource(timezone) if timezone is not None else None,
        geolocation_provider=StaticGeolocationProvider(country) if country is not None else None,
    )
    return LocaleDetector(store, collectors)


def _store_preference(store: PreferenceStore, locale: Locale, source: LocaleSource, confidence: float) -> None:
    preference = UserLocalePreference(locale=locale, source=source, timestamp=NOW, confidence=confidence)
    assert store.save_user_preference(preference).success


@pytest.mark.asyncio
async def test_browser_and_timezone_agree(store: PreferenceStore) -> None:
    """Chinese browser and Shanghai timezone combine to zh with 0.85."""
    detector: LocaleDetector = _detector(store, languages=["zh-CN", "en"], timezone="Asia/Shanghai")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.ZH
    assert result.source is LocaleSource.COMBINED
    assert result.confidence == pytest.approx(0.85)
    assert result.details["browser_locale"] == "zh"
    assert result.details["timezone_locale"] == "zh"
    assert result.details["agreeing_sources"] == ("browser", "timezone")
    assert result.details["dissenting_sources"] == ()


@pytest.mark.asyncio
async def test_no_supported_signal_gives_default(store: PreferenceStore) -> None:
    """French browser in Paris falls back to the default locale with 0.3."""
    detector: LocaleDetector = _detector(store, languages=["fr-FR"], timezone="Europe/Paris")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.EN
    assert result.source is LocaleSource.DEFAULT
    assert result.confidence == pytest.approx(0.3)
    assert result.details["unavailable"]["browser"] == "no supported language"


@pytest.mark.asyncio
async def test_default_locale_is_configurable(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, default_locale=Locale.JA)

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.DEFAULT


@pytest.mark.asyncio
async def test_override_short_circuits(store: PreferenceStore) -> None:
    store.set_user_override(Locale.JA)
    detector: LocaleDetector = _detector(store, languages=["zh-CN"], timezone="Asia/Shanghai", country="CN")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.USER
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_lone_signal_keeps_its_source(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, languages=["ja"])

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.BROWSER
    assert result.confidence == pytest.approx(0.7)


@pytest.mark.asyncio
async def test_lone_winner_penalized_by_dissent(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, languages=["en-US"], timezone="Asia/Tokyo")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.EN
    assert result.source is LocaleSource.BROWSER
    assert result.confidence == pytest.approx(0.525)
    assert result.details["dissenting_sources"] == ("timezone",)


@pytest.mark.asyncio
async def test_majority_beats_single_signal(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, languages=["zh-CN"], timezone="Asia/Tokyo", country="JP")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.COMBINED
    assert result.confidence == pytest.approx(0.925)


@pytest.mark.asyncio
async def test_agreement_is_capped_at_one(store: PreferenceStore) -> None:
    _store_preference(store, Locale.ZH, LocaleSource.BROWSER, 0.7)
    detector: LocaleDetector = _detector(store, languages=["zh"], timezone="Asia/Shanghai", country="CN")

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.ZH
    assert result.source is LocaleSource.COMBINED
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_stored_preference_alone(store: PreferenceStore) -> None:
    _store_preference(store, Locale.JA, LocaleSource.COMBINED, 0.85)
    detector: LocaleDetector = _detector(store)

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.STORED
    assert result.confidence == pytest.approx(0.95)


@pytest.mark.asyncio
async def test_stored_default_is_not_evidence(store: PreferenceStore) -> None:
    _store_preference(store, Locale.JA, LocaleSource.DEFAULT, 0.3)
    detector: LocaleDetector = _detector(store, languages=["zh"])

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.ZH
    assert result.source is LocaleSource.BROWSER
    assert result.details["unavailable"]["stored"] == "stored fallback"


@pytest.mark.asyncio
async def test_slow_geolocation_respects_detection_timeout(store: PreferenceStore) -> None:
    collectors = SignalCollectors(
        default_locale=Locale.EN,
        language_source=StaticLanguageSource(["ja"]),
        geolocation_provider=NeverGeolocationProvider(),
        geolocation_timeout=30.0,
    )
    detector = LocaleDetector(store, collectors, detection_timeout=0.01)

    result: LocaleDetectionResult = await detector.detect_smart_locale()

    assert result.locale is Locale.JA
    assert result.details["unavailable"]["geo"] == "detection timeout"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("languages", "timezone", "country"),
    [
        (["zh-CN"], "Asia/Shanghai", None),
        (["fr"], "Europe/Paris", "FR"),
        (["en"], "Asia/Tokyo", "CN"),
        (["ja"], None, "JP"),
        ([], None, None),
    ],
)
async def test_results_are_well_formed_and_repeatable(
    store: PreferenceStore, languages: list[str], timezone: str | None, country: str | None
) -> None:
    detector: LocaleDetector = _detector(store, languages=languages, timezone=timezone, country=country)

    first: LocaleDetectionResult = await detector.detect_smart_locale()
    second: LocaleDetectionResult = await detector.detect_smart_locale()

    assert first == second
    assert first.locale in Locale
    assert first.source in DETECTION_SOURCES
    assert 0.0 <= first.confidence <= 1.0
    with pytest.raises(TypeError):
        first.details["extra"] = 1  # type: ignore[index]


@pytest.mark.asyncio
async def test_detect_best_locale_prefers_stored(store: PreferenceStore) -> None:
    _store_preference(store, Locale.ZH, LocaleSource.TIMEZONE, 0.6)
    detector: LocaleDetector = _detector(store, languages=["ja"], country="US")

    result: LocaleDetectionResult = await detector.detect_best_locale()

    assert result.locale is Locale.ZH
    assert result.source is LocaleSource.STORED
    assert result.confidence == pytest.approx(0.6)


@pytest.mark.asyncio
async def test_detect_best_locale_waterfall(store: PreferenceStore) -> None:
    geo_first: LocaleDetectionResult = await _detector(store, languages=["ja"], country="US").detect_best_locale()
    browser_next: LocaleDetectionResult = await _detector(store, languages=["ja"]).detect_best_locale()
    default_last: LocaleDetectionResult = await _detector(store).detect_best_locale()

    assert (geo_first.locale, geo_first.source) == (Locale.EN, LocaleSource.GEO)
    assert (browser_next.locale, browser_next.source) == (Locale.JA, LocaleSource.BROWSER)
    assert (default_last.locale, default_last.source) == (Locale.EN, LocaleSource.DEFAULT)


def test_detect_quick_locale(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, languages=["fr"], timezone="Asia/Tokyo", country="CN")

    result: LocaleDetectionResult = detector.detect_quick_locale()

    assert result.locale is Locale.JA
    assert result.source is LocaleSource.TIMEZONE


@pytest.mark.asyncio
async def test_single_signal_helpers(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store, languages=["zh-TW"], timezone="Asia/Tokyo", country="US")

    assert detector.detect_from_browser() is Locale.ZH
    assert detector.detect_from_timezone() is Locale.JA
    assert await detector.detect_from_geolocation() is Locale.EN
    assert await detector.detect_from_ip() is Locale.EN


def test_quality_of_combined_result(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store)
    result = LocaleDetectionResult(Locale.ZH, LocaleSource.COMBINED, 0.85)

    quality: DetectionQuality = detector.get_detection_quality(result)

    assert quality.quality == "high"
    assert quality.reliability == pytest.approx(0.85)
    assert quality.recommendations == []


def test_quality_of_default_result(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store)
    result = LocaleDetectionResult(Locale.EN, LocaleSource.DEFAULT, 0.3)

    quality: DetectionQuality = detector.get_detection_quality(result)

    assert quality.quality == "low"
    assert quality.reliability == pytest.approx(0.15)
    assert len(quality.recommendations) == 3


def test_quality_flags_disagreement(store: PreferenceStore) -> None:
    detector: LocaleDetector = _detector(store)
    result = LocaleDetectionResult(
        Locale.EN, LocaleSource.BROWSER, 0.525, {"dissenting_sources": ("timezone",)}
    )

    quality: DetectionQuality = detector.get_detection_quality(result)

    assert quality.quality == "medium"
    assert quality.reliability == pytest.approx(0.4725, abs=1e-3)
    assert any("disagree" in text for text in quality.recommendations)


@pytest.mark.asyncio
@pytest.mark.parametrize("broken", ["override", "preference"])
async def test_store_read_errors_propagate(broken: str) -> None:
    detector: LocaleDetector = _detector(
        BrokenPreferenceReader(broken=broken), languages=["zh-CN"], timezone="Asia/Shanghai"
    )

    with pytest.raises(RuntimeError, match="lookup failed"):
        await detector.detect_smart_locale()
    with pytest.raises(RuntimeError, match="lookup failed"):
        await detector.detect_best_locale()
    with pytest.raises(RuntimeError, match="lookup failed"):
        detector.detect_quick_locale()
