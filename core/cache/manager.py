# ruff: noqa: BLE001
"""Translation cache manager.

Serves message bundles from a bounded LRU cache, collapses concurrent loads of the same locale, collects usage
metrics, and optionally persists a snapshot of the cache to durable key-value storage.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, ClassVar

from core.cache.inflight_manager import InFlightManager
from core.cache.loaders import BundleLoadError
from core.cache.lru_cache import LRUCache
from core.cache.metrics import MetricsCollector
from core.storage.kv_store import ChecksummedStore
from models.cache_models import HealthCheckReport, OptimizationReport, PerformanceReport, PreloadState
from models.locale_models import Locale
from utils.logger_utils import LoggerUtils
from utils.time_utils import TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterable

    from config.loader import Config
    from core.cache.loaders import BundleLoader
    from core.storage.kv_store import KeyValueStore
    from models.cache_models import CacheMetrics, CacheStatistics, HealthStatus, MessageBundle

__all__: list[str] = ["TranslationCacheManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class TranslationCacheManager:
    """Manager for the message bundle cache.

    Attributes:
        MIN_HIT_RATE (ClassVar[float]): Hit rate below which the health check reports an issue.
        MAX_ERROR_RATE (ClassVar[float]): Error rate above which the health check reports an issue.
        MAX_LOAD_TIME_MS (ClassVar[float]): Average load time above which the health check reports an issue.
        MAX_UTILIZATION (ClassVar[float]): Utilization above which the health check reports an issue.
        OPTIMIZE_HIT_RATE (ClassVar[float]): Hit rate below which :meth:`optimize_cache` preloads every locale.
    """

    MIN_HIT_RATE: ClassVar[float] = 0.7
    MAX_ERROR_RATE: ClassVar[float] = 0.05
    CRITICAL_ERROR_RATE: ClassVar[float] = 0.2
    MAX_LOAD_TIME_MS: ClassVar[float] = 200.0
    MAX_UTILIZATION: ClassVar[float] = 0.9
    OPTIMIZE_HIT_RATE: ClassVar[float] = 0.8

    def __init__(
        self,
        config: Config,
        loader: BundleLoader,
        *,
        kv_store: KeyValueStore | None = None,
        clock: Callable[[], int] = TimeUtils.now_ms,
    ) -> None:
        """Initialize the cache manager.

        Args:
            config (Config): Application configuration; the ``CACHE`` and ``LOCALE`` sections are used.
            loader (BundleLoader): Source of message bundles.
            kv_store (KeyValueStore | None): Storage for the cache snapshot. Persistence is off without it or
                when ``CACHE.ENABLE_PERSISTENCE`` is false.
            clock (Callable[[], int]): Epoch-millisecond clock.
        """
        self.config: Config = config
        self.loader: BundleLoader = loader
        self.default_locale: Locale = Locale.normalize(config.LOCALE.DEFAULT_LOCALE, Locale.EN)
        self.load_timeout: float = config.CACHE.LOAD_TIMEOUT

        snapshot_store: ChecksummedStore | None = None
        if config.CACHE.ENABLE_PERSISTENCE and kv_store is not None:
            snapshot_store = ChecksummedStore(kv_store)
        self.cache: LRUCache = LRUCache(
            config.CACHE.MAX_SIZE,
            ttl_ms=int(config.CACHE.TTL * 1000),
            store=snapshot_store,
            persisted_ttl_ms=int(config.CACHE.PERSISTED_TTL * 1000),
            clock=clock,
        )
        self.metrics: MetricsCollector = MetricsCollector(locale.value for locale in Locale)
        self.inflight: InFlightManager = InFlightManager(timeout=self.load_timeout + 1.0)
        self._warmup_task: asyncio.Task[dict[str, bool]] | None = None
        self._preload_state: PreloadState = PreloadState()
        self._active_preloads: int = 0
        self._is_initialized: bool = False
        logger.debug("TranslationCacheManager instance created")

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def component_load(self) -> None:
        """Start warming the cache in the background."""
        logger.info("TranslationCacheManager initialization started")
        self.warmup_cache()
        self._is_initialized = True
        logger.info("TranslationCacheManager initialized successfully")

    async def component_teardown(self) -> None:
        """Cancel the warmup and any pending loads."""
        logger.info("TranslationCacheManager shutdown started")
        await self.stop_preloading()
        await self.inflight.component_teardown()
        self._is_initialized = False
        logger.info("TranslationCacheManager shutdown completed")

    # ------------------------------------------------------------------
    # Bundle access
    # ------------------------------------------------------------------

    async def get_messages(self, locale: Locale | str) -> MessageBundle:
        """Return the message bundle for ``locale``, loading it on a miss.

        Unsupported codes resolve to the default locale. Concurrent misses for the same locale share one load.

        Args:
            locale (Locale | str): Requested locale.

        Returns:
            MessageBundle: The cached bundle itself, shared with every other caller; treat it as read-only.

        Raises:
            BundleLoadError: If the bundle cannot be loaded in time, or the shared load it waited on was
                cancelled; the error is counted before it is raised.
        """
        key: str = self._cache_key(locale)
        self.metrics.record_request(key)

        cached: MessageBundle | None = self.cache.get(key)
        if cached is not None:
            self.metrics.record_hit()
            logger.debug("Cache hit: %s", key)
            return cached

        self.metrics.record_miss()
        logger.debug("Cache miss: %s", key)
        try:
            return await self._get_or_load(key)
        except Exception:
            self.metrics.record_error()
            raise

    async def preload_messages(self, locale: Locale | str) -> bool:
        """Load ``locale`` into the cache without touching the request metrics; failures are logged.

        Returns:
            bool: True if the bundle is cached afterwards.
        """
        key: str = self._cache_key(locale)
        if self.cache.has(key):
            return True
        try:
            await self._get_or_load(key)
        except Exception as err:
            logger.warning("Preloading '%s' failed: %s", key, err)
            return False
        return True

    async def preload_all_messages(self, locales: Iterable[Locale | str] | None = None) -> dict[str, bool]:
        """Preload several locales concurrently (every supported locale by default).

        Progress is reported by :meth:`get_preload_state`. A batch started while another one runs joins its
        progress instead of resetting it.

        Returns:
            dict[str, bool]: Preload outcome per locale.
        """
        keys: list[str] = list(dict.fromkeys(self._cache_key(code) for code in (locales or list(Locale))))
        if self._active_preloads == 0:
            self._preload_state = PreloadState()
        state: PreloadState = self._preload_state
        state.is_preloading = True
        state.total_locales += len(keys)
        self._active_preloads += 1
        try:
            outcomes: list[bool] = await asyncio.gather(*(self._tracked_preload(key, state) for key in keys))
        finally:
            self._active_preloads -= 1
            if self._active_preloads == 0:
                state.is_preloading = False
        logger.info("Preloaded %d/%d message bundles", sum(outcomes), len(keys))
        return dict(zip(keys, outcomes, strict=True))

    async def _tracked_preload(self, key: str, state: PreloadState) -> bool:
        ok: bool = await self.preload_messages(key)
        state.completed_locales += 1
        if not ok:
            state.errors.append(key)
        return ok

    async def smart_preload(self, limit: int = 3) -> dict[str, bool]:
        """Preload the ``limit`` most requested locales.

        Returns:
            dict[str, bool]: Preload outcome per locale; empty before any request was seen.
        """
        ranked: list[str] = [locale for locale, count in self.metrics.locale_usage.most_common(limit) if count > 0]
        if not ranked:
            logger.debug("No locale usage recorded; nothing to preload")
            return {}
        return await self.preload_all_messages(ranked)

    def warmup_cache(self) -> asyncio.Task[dict[str, bool]]:
        """Start preloading the default and the configured locales in the background and return at once.

        Must be called from a running event loop.
        """
        if self._warmup_task is not None and not self._warmup_task.done():
            return self._warmup_task
        locales: list[str] = [self.default_locale.value, *self.config.CACHE.PRELOAD_LOCALES]
        self._warmup_task = asyncio.create_task(self.preload_all_messages(locales), name="cache-warmup")
        logger.debug("Cache warmup started for %s", locales)
        return self._warmup_task

    @property
    def is_preloading(self) -> bool:
        return self._preload_state.is_preloading

    def get_preload_progress(self) -> float:
        """Return the progress of the current or last preload batch in percent."""
        return self._preload_state.progress

    def get_preload_state(self) -> PreloadState:
        return self._preload_state

    async def stop_preloading(self) -> bool:
        """Cancel the background warmup.

        Returns:
            bool: True if a running warmup was cancelled.
        """
        task: asyncio.Task[dict[str, bool]] | None = self._warmup_task
        self._warmup_task = None
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Cache warmup cancelled")
        return True

    async def batch_get_messages(self, locales: Iterable[Locale | str]) -> dict[str, MessageBundle]:
        """Fetch several locales concurrently; locales that fail to load are left out."""
        keys: list[str] = list(dict.fromkeys(self._cache_key(code) for code in locales))
        results: list[MessageBundle | BaseException] = await asyncio.gather(
            *(self.get_messages(key) for key in keys), return_exceptions=True
        )
        bundles: dict[str, MessageBundle] = {}
        for key, result in zip(keys, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Batch load of '%s' failed: %s", key, result)
                continue
            bundles[key] = result
        return bundles

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    def is_cached(self, locale: Locale | str) -> bool:
        parsed: Locale | None = locale if isinstance(locale, Locale) else Locale.parse(locale)
        return parsed is not None and self.cache.has(parsed.value)

    def get_cached_locales(self) -> list[str]:
        """Return the locales with an unexpired bundle, least recently used first."""
        return [key for key in self.cache.keys() if self.cache.has(key)]

    def delete_messages(self, locale: Locale | str) -> bool:
        """Drop the cached bundle of ``locale``.

        Returns:
            bool: True if a bundle was removed; False for an uncached or unsupported locale.
        """
        parsed: Locale | None = locale if isinstance(locale, Locale) else Locale.parse(locale)
        if parsed is None or not self.cache.delete(parsed.value):
            return False
        logger.info("Message bundle '%s' removed from the cache", parsed)
        return True

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Message bundle cache cleared")

    def reset_metrics(self) -> None:
        self.metrics.reset()

    def cleanup_expired(self) -> int:
        removed: int = self.cache.cleanup_expired()
        if removed:
            logger.info("Removed %d expired message bundles", removed)
        return removed

    async def optimize_cache(self) -> OptimizationReport:
        """Drop expired bundles, then preload every supported locale if the hit rate is below the target."""
        report = OptimizationReport(expired_removed=self.cleanup_expired())
        hit_rate: float = self.get_metrics().cache_hit_rate
        if hit_rate < self.OPTIMIZE_HIT_RATE:
            logger.info("Hit rate %.0f%% below target; preloading all locales", hit_rate * 100)
            report.preloaded = await self.preload_all_messages()
        return report

    def export_cache(self) -> dict[str, Any]:
        return self.cache.snapshot()

    def import_cache(self, snapshot: dict[str, Any]) -> int:
        """Load a snapshot from :meth:`export_cache`, skipping entries already past the cache TTL.

        Returns:
            int: Number of bundles imported.
        """
        loaded: int = self.cache.load_snapshot(snapshot, max_age_ms=self.cache.ttl_ms or None)
        self.cache.flush()
        logger.info("Imported %d message bundles", loaded)
        return loaded

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_cache_stats(self) -> CacheStatistics:
        return self.cache.get_stats()

    def get_metrics(self) -> CacheMetrics:
        return self.metrics.snapshot(self.get_cached_locales())

    def perform_health_check(self) -> HealthCheckReport:
        """Compare the current metrics with the health thresholds.

        Returns:
            HealthCheckReport: ``critical`` for a high error rate or three or more issues, ``warning`` for any
                other issue, otherwise ``healthy``.
        """
        metrics: CacheMetrics = self.get_metrics()
        stats: CacheStatistics = self.get_cache_stats()
        report = HealthCheckReport(status="healthy")

        if metrics.total_requests and metrics.cache_hit_rate < self.MIN_HIT_RATE:
            report.issues.append(f"Low cache hit rate ({metrics.cache_hit_rate:.0%})")
            report.recommendations.append("Preload frequently used locales or raise the cache TTL")
        if metrics.error_rate > self.MAX_ERROR_RATE:
            report.issues.append(f"High load error rate ({metrics.error_rate:.0%})")
            report.recommendations.append("Check the message bundle source")
        if metrics.load_time > self.MAX_LOAD_TIME_MS:
            report.issues.append(f"Slow bundle loads ({metrics.load_time:.0f} ms on average)")
            report.recommendations.append("Serve bundles from a faster source or warm the cache at startup")
        if stats.utilization > self.MAX_UTILIZATION:
            report.issues.append(f"Cache nearly full ({stats.utilization:.0%})")
            report.recommendations.append("Raise the cache capacity")

        status: HealthStatus = "healthy"
        if metrics.error_rate > self.CRITICAL_ERROR_RATE or len(report.issues) >= 3:
            status = "critical"
        elif report.issues:
            status = "warning"
        report.status = status
        if status != "healthy":
            logger.warning("Cache health %s: %s", status, "; ".join(report.issues))
        return report

    def get_performance_report(self) -> PerformanceReport:
        metrics: CacheMetrics = self.get_metrics()
        percentiles: dict[str, float] = self.metrics.percentiles()
        return PerformanceReport(
            grade=MetricsCollector.grade(metrics, percentiles["p95"]),
            percentiles=percentiles,
            metrics=metrics,
            sample_count=len(self.metrics.load_times),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cache_key(self, locale: Locale | str) -> str:
        parsed: Locale | None = locale if isinstance(locale, Locale) else Locale.parse(locale)
        if parsed is None:
            logger.debug("Unsupported locale %r, using '%s'", locale, self.default_locale)
            parsed = self.default_locale
        return parsed.value

    async def _get_or_load(self, key: str) -> MessageBundle:
        try:
            pending: MessageBundle | None = await self.inflight.mark_inflight_start(key)
        except TimeoutError as err:
            raise BundleLoadError(str(err)) from err
        if pending is not None:
            return pending

        try:
            bundle: MessageBundle = await self._produce(key)
        except asyncio.CancelledError:
            logger.info("Loading message bundle '%s' cancelled", key)
            self.inflight.abandon(key)
            raise
        except Exception as err:
            logger.error("Loading message bundle '%s' failed: %s", key, err)
            await self.inflight.store_inflight_exception(key, err)
            raise
        await self.inflight.store_inflight_result(key, bundle)
        return bundle

    async def _produce(self, key: str) -> MessageBundle:
        # A load for the same key may have completed while waiting for the in-flight lock.
        cached: MessageBundle | None = self.cache.get(key)
        if cached is not None:
            return cached

        started: float = time.perf_counter()
        bundle: MessageBundle = await self._load_bundle(key)
        elapsed_ms: float = (time.perf_counter() - started) * 1000
        self.metrics.record_load_time(elapsed_ms)
        self.cache.set(key, bundle)
        logger.debug("Loaded message bundle '%s' in %.1f ms", key, elapsed_ms)
        return bundle

    async def _load_bundle(self, key: str) -> MessageBundle:
        try:
            return await asyncio.wait_for(self.loader.load(key), timeout=self.load_timeout)
        except TimeoutError as err:
            msg: str = f"Loading '{key}' timed out after {self.load_timeout} s"
            raise BundleLoadError(msg) from err
