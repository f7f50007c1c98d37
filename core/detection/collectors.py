"""Signal collectors for locale detection.

Every collector fails soft: a missing capability, a denied permission, a network error or a timeout yields an
unavailable :class:`SignalReading` (and the ``detect_from_*`` helpers return the default locale) instead of
raising.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.detection.constants import (
    COUNTRY_CODE_TO_LOCALE,
    LANGUAGE_CODE_TO_LOCALE,
    TIMEZONE_TO_LOCALE,
    ConfidenceWeights,
)
from core.detection.interface import SignalUnavailableError
from handlers.async_comm import AsyncCommError
from models.locale_models import Locale, LocaleSource
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.detection.interface import GeolocationProvider, LanguageSource, TimezoneSource

__all__: list[str] = ["SignalCollectors", "SignalReading"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass(frozen=True)
class SignalReading:
    """Outcome of one collector.

    Attributes:
        source (LocaleSource): Signal the reading came from.
        weight (float): Prior weight of the signal.
        locale (Locale | None): Matched locale, None when the signal is unavailable or unsupported.
        raw (str | None): Raw evidence (language tag, timezone name, country code).
        reason (str | None): Why the reading is unavailable.
    """

    source: LocaleSource
    weight: float
    locale: Locale | None = None
    raw: str | None = None
    reason: str | None = None

    @property
    def available(self) -> bool:
        return self.locale is not None


class SignalCollectors:
    """Reads the environment signals through injected capabilities.

    Args:
        default_locale (Locale): Locale returned by the ``detect_from_*`` helpers when a signal fails.
        weights (ConfidenceWeights): Prior weights attached to the readings.
        language_source (LanguageSource | None): Browser language list.
        timezone_source (TimezoneSource | None): IANA timezone.
        geolocation_provider (GeolocationProvider | None): Device geolocation.
        ip_provider (GeolocationProvider | None): IP geolocation, also used when device geolocation fails.
        geolocation_timeout (float): Bound on the device geolocation call in seconds.
        network_timeout (float): Bound on the IP lookup in seconds.
    """

    def __init__(
        self,
        *,
        default_locale: Locale,
        weights: ConfidenceWeights | None = None,
        language_source: LanguageSource | None = None,
        timezone_source: TimezoneSource | None = None,
        geolocation_provider: GeolocationProvider | None = None,
        ip_provider: GeolocationProvider | None = None,
        geolocation_timeout: float = 5.0,
        network_timeout: float = 3.0,
    ) -> None:
        self.default_locale: Locale = default_locale
        self.weights: ConfidenceWeights = weights or ConfidenceWeights()
        self._language_source: LanguageSource | None = language_source
        self._timezone_source: TimezoneSource | None = timezone_source
        self._geolocation_provider: GeolocationProvider | None = geolocation_provider
        self._ip_provider: GeolocationProvider | None = ip_provider
        self._geolocation_timeout: float = geolocation_timeout
        self._network_timeout: float = network_timeout

    @staticmethod
    def match_language_tag(tag: str) -> Locale | None:
        """Map a language tag by exact code, then by its primary (two-letter) subtag.

        Args:
            tag (str): BCP 47 tag such as ``"zh-CN"`` or ``"en_US"``.

        Returns:
            Locale | None: Matching locale, None for unsupported tags.
        """
        normalized: str = tag.strip().replace("_", "-").lower()
        if not normalized:
            return None
        exact: Locale | None = LANGUAGE_CODE_TO_LOCALE.get(normalized)
        if exact is not None:
            return exact
        return LANGUAGE_CODE_TO_LOCALE.get(normalized.split("-")[0])

    def read_browser(self) -> SignalReading:
        source, weight = LocaleSource.BROWSER, self.weights.browser
        if self._language_source is None:
            return SignalReading(source, weight, reason="no language source")
        try:
            languages: list[str] = self._language_source.get_languages()
        except SignalUnavailableError as err:
            logger.debug("Browser languages unavailable: %s", err)
            return SignalReading(source, weight, reason=str(err))
        except Exception as err:  # noqa: BLE001
            logger.warning("Language source failed: %s", err)
            return SignalReading(source, weight, reason=str(err))

        for tag in languages:
            locale: Locale | None = self.match_language_tag(tag)
            if locale is not None:
                return SignalReading(source, weight, locale=locale, raw=tag)
        return SignalReading(source, weight, raw=",".join(languages), reason="no supported language")

    def read_timezone(self) -> SignalReading:
        source, weight = LocaleSource.TIMEZONE, self.weights.timezone
        if self._timezone_source is None:
            return SignalReading(source, weight, reason="no timezone source")
        try:
            timezone: str = self._timezone_source.get_timezone()
        except SignalUnavailableError as err:
            logger.debug("Timezone unavailable: %s", err)
            return SignalReading(source, weight, reason=str(err))
        except Exception as err:  # noqa: BLE001
            logger.warning("Timezone source failed: %s", err)
            return SignalReading(source, weight, reason=str(err))

        locale: Locale | None = TIMEZONE_TO_LOCALE.get(timezone)
        if locale is None:
            return SignalReading(source, weight, raw=timezone, reason="unmapped timezone")
        return SignalReading(source, weight, locale=locale, raw=timezone)

    async def read_geolocation(self) -> SignalReading:
        """Read device geolocation, falling back to the IP lookup when it yields nothing."""
        reading = SignalReading(LocaleSource.GEO, self.weights.geo, reason="no geolocation provider")
        if self._geolocation_provider is not None:
            reading = await self._read_country(
                self._geolocation_provider, self.weights.geo, self._geolocation_timeout, "geolocation"
            )
            if reading.available:
                return reading
        if self._ip_provider is not None:
            return await self.read_ip()
        return reading

    async def read_ip(self) -> SignalReading:
        if self._ip_provider is None:
            return SignalReading(LocaleSource.GEO, self.weights.ip, reason="no IP geolocation provider")
        return await self._read_country(self._ip_provider, self.weights.ip, self._network_timeout, "ip")

    async def _read_country(
        self, provider: GeolocationProvider, weight: float, timeout: float, label: str
    ) -> SignalReading:
        source = LocaleSource.GEO
        try:
            country_code: str | None = await asyncio.wait_for(provider.get_country_code(), timeout=timeout)
        except TimeoutError:
            logger.info("%s lookup timed out after %.1fs", label, timeout)
            return SignalReading(source, weight, reason=f"{label} timeout")
        except SignalUnavailableError as err:
            logger.debug("%s unavailable: %s", label, err)
            return SignalReading(source, weight, reason=str(err))
        except AsyncCommError as err:
            logger.info("%s lookup failed: %s", label, err)
            return SignalReading(source, weight, reason=str(err))
        except Exception as err:  # noqa: BLE001
            logger.warning("%s provider failed unexpectedly: %s", label, err)
            return SignalReading(source, weight, reason=str(err))

        if not country_code:
            return SignalReading(source, weight, reason=f"{label} returned no country")
        locale: Locale | None = COUNTRY_CODE_TO_LOCALE.get(country_code.upper())
        if locale is None:
            return SignalReading(source, weight, raw=country_code, reason="unmapped country")
        return SignalReading(source, weight, locale=locale, raw=country_code)

    def detect_from_browser(self) -> Locale:
        """Return the first supported browser language, or the default locale."""
        return self.read_browser().locale or self.default_locale

    def detect_from_timezone(self) -> Locale:
        """Return the locale mapped from the timezone, or the default locale."""
        return self.read_timezone().locale or self.default_locale

    async def detect_from_geolocation(self) -> Locale:
        """Return the locale of the device (or IP) country, or the default locale."""
        return (await self.read_geolocation()).locale or self.default_locale

    async def detect_from_ip(self) -> Locale:
        """Return the locale of the IP address country, or the default locale."""
        return (await self.read_ip()).locale or self.default_locale
