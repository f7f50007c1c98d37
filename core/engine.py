"""Locale engine.

Wires the configuration, the preference store, the locale detector and the message bundle cache together and
runs per-request locale negotiation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core.cache.loaders import BundleLoadError, HttpBundleLoader, JsonFileBundleLoader
from core.cache.manager import TranslationCacheManager
from core.detection.collectors import SignalCollectors
from core.detection.constants import ConfidenceWeights
from core.detection.detector import LocaleDetector
from core.detection.geolocation import IPGeolocationProvider
from core.detection.interface import AcceptLanguageSource, SystemLanguageSource, SystemTimezoneSource
from core.storage.manager import LocaleStorageManager
from handlers.async_comm import AsyncHttp
from models.locale_models import Locale
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from config.loader import Config
    from core.cache.loaders import BundleLoader
    from core.detection.interface import GeolocationProvider, LanguageSource, TimezoneSource
    from core.storage.kv_store import KeyValueStore
    from models.cache_models import MessageBundle
    from models.locale_models import LocaleDetectionResult


__all__: list[str] = ["LocaleEngine", "NegotiationResult"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass(frozen=True)
class NegotiationResult:
    """Outcome of one request negotiation.

    Attributes:
        detection (LocaleDetectionResult): The detection that chose the locale.
        locale (Locale): Locale whose messages were served; the default when the detected bundle failed to load.
        messages (MessageBundle): Message tree for ``locale``.
    """

    detection: LocaleDetectionResult
    locale: Locale
    messages: MessageBundle


class LocaleEngine:
    """Application-wide owner of the locale services.

    Build one engine at startup, call :meth:`component_load`, share it by reference, and call
    :meth:`component_teardown` on shutdown.

    Args:
        config (Config): Application configuration.
        language_source (LanguageSource | None): Default language signal; the process locale if None.
        timezone_source (TimezoneSource | None): Timezone signal; the system timezone if None.
        geolocation_provider (GeolocationProvider | None): Device geolocation, if the host has one.
        kv_store (KeyValueStore | None): Durable storage; built from ``STORAGE`` settings if None.
        bundle_loader (BundleLoader | None): Message source; built from ``CACHE`` settings if None.
        http (AsyncHttp | None): Shared HTTP client; the engine creates and owns one if None.
        clock (Callable[[], int]): Epoch-millisecond clock.
    """

    def __init__(
        self,
        config: Config,
        *,
        language_source: LanguageSource | None = None,
        timezone_source: TimezoneSource | None = None,
        geolocation_provider: GeolocationProvider | None = None,
        kv_store: KeyValueStore | None = None,
        bundle_loader: BundleLoader | None = None,
        http: AsyncHttp | None = None,
        clock: Callable[[], int] = TimeUtils.now_ms,
    ) -> None:
        logger.debug("Initialising %s", self.__class__.__name__)
        self.config: Config = config
        self.default_locale: Locale = Locale.normalize(config.LOCALE.DEFAULT_LOCALE, Locale.EN)
        self._owns_http: bool = http is None
        self.http: AsyncHttp = http or AsyncHttp()

        if kv_store is None:
            self.storage: LocaleStorageManager = LocaleStorageManager.from_settings(config.STORAGE, clock=clock)
        else:
            self.storage = LocaleStorageManager(
                kv_store,
                max_history_entries=config.STORAGE.MAX_HISTORY_ENTRIES,
                max_backups=config.STORAGE.MAX_BACKUPS,
                retention_days=config.STORAGE.DETECTION_RETENTION_DAYS,
                clock=clock,
            )

        detection = config.DETECTION
        self.weights: ConfidenceWeights = ConfidenceWeights.from_settings(detection)
        self._language_source: LanguageSource = language_source or SystemLanguageSource()
        self._timezone_source: TimezoneSource = timezone_source or SystemTimezoneSource()
        self._geolocation_provider: GeolocationProvider | None = (
            geolocation_provider if detection.ENABLE_GEOLOCATION else None
        )
        self._ip_provider: GeolocationProvider | None = None
        if detection.ENABLE_IP_LOOKUP and detection.IP_ENDPOINTS:
            self._ip_provider = IPGeolocationProvider(
                self.http, detection.IP_ENDPOINTS, timeout=detection.NETWORK_TIMEOUT
            )
        self.detector: LocaleDetector = self.create_detector()

        loader: BundleLoader = bundle_loader or self._default_loader()
        self.cache: TranslationCacheManager = TranslationCacheManager(
            config, loader, kv_store=self.storage.records.backend if self.storage.persistent else None, clock=clock
        )

    def create_detector(
        self, *, language_source: LanguageSource | None = None, timezone_source: TimezoneSource | None = None
    ) -> LocaleDetector:
        """Build a detector sharing the engine's store and providers, with per-request signal overrides."""
        collectors = SignalCollectors(
            default_locale=self.default_locale,
            weights=self.weights,
            language_source=language_source or self._language_source,
            timezone_source=timezone_source or self._timezone_source,
            geolocation_provider=self._geolocation_provider,
            ip_provider=self._ip_provider,
            geolocation_timeout=self.config.DETECTION.GEOLOCATION_TIMEOUT,
            network_timeout=self.config.DETECTION.NETWORK_TIMEOUT,
        )
        return LocaleDetector(self.storage, collectors, detection_timeout=self.config.DETECTION.DETECTION_TIMEOUT)

    async def component_load(self) -> None:
        logger.info("LocaleEngine initialization started")
        await self.cache.component_load()
        logger.info("LocaleEngine initialized (default locale '%s')", self.default_locale)

    async def component_teardown(self) -> None:
        logger.info("LocaleEngine shutdown started")
        await self.cache.component_teardown()
        self.storage.close()
        if self._owns_http:
            await self.http.close()
        logger.info("LocaleEngine shutdown completed")

    async def negotiate(self, *, accept_language: str | None = None) -> NegotiationResult:
        """Resolve the locale for one request and fetch its messages.

        The detection is recorded in the history only. The stored preference changes only through the storage
        manager (an explicit user choice), so each request is decided by its own signals.

        Args:
            accept_language (str | None): ``Accept-Language`` header of the request; the engine's language source
                is used when None.

        Returns:
            NegotiationResult: The detection and the messages served.

        Raises:
            BundleLoadError: If neither the detected nor the default bundle can be loaded.
        """
        detector: LocaleDetector = self.detector
        if accept_language is not None:
            detector = self.create_detector(language_source=AcceptLanguageSource(accept_language))
        detection: LocaleDetectionResult = await detector.detect_smart_locale()

        self.storage.add_detection_record(
            detection.locale, detection.source, detection.confidence, metadata=self._metadata(detection)
        )
        locale: Locale = detection.locale
        try:
            messages: MessageBundle = await self.cache.get_messages(locale)
        except BundleLoadError:
            if locale == self.default_locale:
                raise
            logger.warning("Serving '%s' messages instead of '%s'", self.default_locale, locale)
            locale = self.default_locale
            messages = await self.cache.get_messages(locale)
        return NegotiationResult(detection=detection, locale=locale, messages=messages)

    @staticmethod
    def _metadata(detection: LocaleDetectionResult) -> dict[str, Any]:
        return {key: list(value) if isinstance(value, tuple) else value for key, value in detection.details.items()}

    def _default_loader(self) -> BundleLoader:
        cache = self.config.CACHE
        if cache.MESSAGES_URL:
            return HttpBundleLoader(self.http, cache.MESSAGES_URL, timeout=cache.LOAD_TIMEOUT)
        return JsonFileBundleLoader(cache.MESSAGES_DIR)
