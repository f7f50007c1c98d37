"""Locale detection package.

Provides the signal collectors, their capability interfaces and the confidence-weighted detector.
"""

from __future__ import annotations

from core.detection.collectors import SignalCollectors, SignalReading
from core.detection.constants import ConfidenceWeights
from core.detection.detector import DetectionQuality, LocaleDetector
from core.detection.geolocation import IPGeolocationProvider, ReverseGeocodingProvider
from core.detection.interface import (
    AcceptLanguageSource,
    GeolocationPermissionError,
    GeolocationProvider,
    LanguageSource,
    SignalUnavailableError,
    StaticGeolocationProvider,
    StaticLanguageSource,
    StaticTimezoneSource,
    SystemLanguageSource,
    SystemTimezoneSource,
    TimezoneSource,
)

__all__: list[str] = [
    "AcceptLanguageSource",
    "ConfidenceWeights",
    "DetectionQuality",
    "GeolocationPermissionError",
    "GeolocationProvider",
    "IPGeolocationProvider",
    "LanguageSource",
    "LocaleDetector",
    "ReverseGeocodingProvider",
    "SignalCollectors",
    "SignalReading",
    "SignalUnavailableError",
    "StaticGeolocationProvider",
    "StaticLanguageSource",
    "StaticTimezoneSource",
    "SystemLanguageSource",
    "SystemTimezoneSource",
    "TimezoneSource",
]
