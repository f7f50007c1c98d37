"""Lookup tables and confidence policy for locale detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Self

from models.locale_models import Locale

if TYPE_CHECKING:
    from models.config_models import DetectionSettings

__all__: list[str] = [
    "COUNTRY_CODE_TO_LOCALE",
    "LANGUAGE_CODE_TO_LOCALE",
    "TIMEZONE_TO_LOCALE",
    "ConfidenceWeights",
]

LANGUAGE_CODE_TO_LOCALE: Final[dict[str, Locale]] = {
    "en": Locale.EN,
    "en-us": Locale.EN,
    "en-gb": Locale.EN,
    "en-au": Locale.EN,
    "en-ca": Locale.EN,
    "en-nz": Locale.EN,
    "en-ie": Locale.EN,
    "zh": Locale.ZH,
    "zh-cn": Locale.ZH,
    "zh-sg": Locale.ZH,
    "zh-tw": Locale.ZH,
    "zh-hk": Locale.ZH,
    "zh-mo": Locale.ZH,
    "zh-hans": Locale.ZH,
    "zh-hant": Locale.ZH,
    "ja": Locale.JA,
    "ja-jp": Locale.JA,
}

TIMEZONE_TO_LOCALE: Final[dict[str, Locale]] = {
    # zh
    "Asia/Shanghai": Locale.ZH,
    "Asia/Chongqing": Locale.ZH,
    "Asia/Harbin": Locale.ZH,
    "Asia/Urumqi": Locale.ZH,
    "Asia/Hong_Kong": Locale.ZH,
    "Asia/Macau": Locale.ZH,
    "Asia/Taipei": Locale.ZH,
    "PRC": Locale.ZH,
    # ja
    "Asia/Tokyo": Locale.JA,
    "Japan": Locale.JA,
    # en
    "America/New_York": Locale.EN,
    "America/Chicago": Locale.EN,
    "America/Denver": Locale.EN,
    "America/Phoenix": Locale.EN,
    "America/Los_Angeles": Locale.EN,
    "America/Anchorage": Locale.EN,
    "Pacific/Honolulu": Locale.EN,
    "America/Toronto": Locale.EN,
    "America/Vancouver": Locale.EN,
    "Europe/London": Locale.EN,
    "Europe/Dublin": Locale.EN,
    "Australia/Sydney": Locale.EN,
    "Australia/Melbourne": Locale.EN,
    "Australia/Perth": Locale.EN,
    "Pacific/Auckland": Locale.EN,
}

COUNTRY_CODE_TO_LOCALE: Final[dict[str, Locale]] = {
    "CN": Locale.ZH,
    "HK": Locale.ZH,
    "MO": Locale.ZH,
    "TW": Locale.ZH,
    "SG": Locale.ZH,
    "JP": Locale.JA,
    "US": Locale.EN,
    "GB": Locale.EN,
    "CA": Locale.EN,
    "AU": Locale.EN,
    "NZ": Locale.EN,
    "IE": Locale.EN,
}


@dataclass(frozen=True)
class ConfidenceWeights:
    """Prior weight per signal plus the fusion tuning knobs.

    Attributes:
        user_override (float): Weight of an explicit user override.
        stored (float): Weight of a previously stored preference.
        geo (float): Weight of a device geolocation reading.
        browser (float): Weight of the browser language list.
        timezone (float): Weight of the IANA timezone.
        default (float): Confidence reported for the default fallback.
        ip_factor (float): Multiplier applied to ``geo`` for IP-based geolocation.
        consistency_bonus (float): Boost per additional agreeing signal.
        min_consistency_bonus (float): Smallest boost an agreeing group ever receives.
        disagreement_penalty (float): Scale of the reduction applied for dissenting signals.
    """

    user_override: float = 1.0
    stored: float = 0.95
    geo: float = 0.8
    browser: float = 0.7
    timezone: float = 0.6
    default: float = 0.3
    ip_factor: float = 0.8
    consistency_bonus: float = 0.15
    min_consistency_bonus: float = 0.05
    disagreement_penalty: float = 0.5

    @property
    def ip(self) -> float:
        return self.geo * self.ip_factor

    @classmethod
    def from_settings(cls, settings: DetectionSettings) -> Self:
        return cls(
            user_override=settings.USER_OVERRIDE_WEIGHT,
            stored=settings.STORED_WEIGHT,
            geo=settings.GEO_WEIGHT,
            browser=settings.BROWSER_WEIGHT,
            timezone=settings.TIMEZONE_WEIGHT,
            default=settings.DEFAULT_WEIGHT,
            ip_factor=settings.IP_WEIGHT_FACTOR,
            consistency_bonus=settings.CONSISTENCY_BONUS,
            min_consistency_bonus=settings.MIN_CONSISTENCY_BONUS,
            disagreement_penalty=settings.DISAGREEMENT_PENALTY,
        )
