from __future__ import annotations

import math
from collections import Counter, deque
from typing import TYPE_CHECKING, ClassVar

from models.cache_models import CacheMetrics

if TYPE_CHECKING:
    from collections.abc import Iterable

    from models.cache_models import PerformanceGrade

__all__: list[str] = ["MetricsCollector"]


class MetricsCollector:
    """Counters fed by every ``get_messages`` call.

    Attributes:
        MAX_LOAD_SAMPLES (ClassVar[int]): Number of recent load durations kept for the average and percentiles.
        PERCENTILES (ClassVar[tuple[int, ...]]): Percentiles reported by :meth:`percentiles`.
    """

    MAX_LOAD_SAMPLES: ClassVar[int] = 100
    PERCENTILES: ClassVar[tuple[int, ...]] = (50, 90, 95, 99)

    def __init__(self, known_locales: Iterable[str]) -> None:
        self.known_locales: frozenset[str] = frozenset(known_locales)
        self.total_requests: int = 0
        self.cache_hits: int = 0
        self.cache_misses: int = 0
        self.errors: int = 0
        self.locale_usage: Counter[str] = Counter()
        self.load_times: deque[float] = deque(maxlen=self.MAX_LOAD_SAMPLES)

    def record_request(self, locale: str) -> None:
        self.total_requests += 1
        self.locale_usage[locale] += 1

    def record_hit(self) -> None:
        self.cache_hits += 1

    def record_miss(self) -> None:
        self.cache_misses += 1

    def record_error(self) -> None:
        self.errors += 1

    def record_load_time(self, elapsed_ms: float) -> None:
        self.load_times.append(elapsed_ms)

    def reset(self) -> None:
        self.total_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.errors = 0
        self.locale_usage.clear()
        self.load_times.clear()

    def snapshot(self, cached_locales: Iterable[str]) -> CacheMetrics:
        """Return the current metrics.

        Args:
            cached_locales (Iterable[str]): Locales currently held by the cache, for the coverage ratio.

        Returns:
            CacheMetrics: Rates are 0 when no request has been seen.
        """
        lookups: int = self.cache_hits + self.cache_misses
        covered: int = len(self.known_locales.intersection(cached_locales))
        return CacheMetrics(
            cache_hit_rate=self.cache_hits / lookups if lookups else 0.0,
            locale_usage=dict(self.locale_usage),
            translation_coverage=covered / len(self.known_locales) if self.known_locales else 0.0,
            load_time=sum(self.load_times) / len(self.load_times) if self.load_times else 0.0,
            error_rate=self.errors / self.total_requests if self.total_requests else 0.0,
            total_requests=self.total_requests,
            cache_hits=self.cache_hits,
            cache_misses=self.cache_misses,
            errors=self.errors,
        )

    def percentiles(self) -> dict[str, float]:
        """Nearest-rank percentiles of the recent load durations, keyed ``p50``, ``p90``, ``p95``, ``p99``."""
        samples: list[float] = sorted(self.load_times)
        if not samples:
            return {f"p{p}": 0.0 for p in self.PERCENTILES}
        return {f"p{p}": samples[max(math.ceil(p / 100 * len(samples)) - 1, 0)] for p in self.PERCENTILES}

    @staticmethod
    def grade(metrics: CacheMetrics, p95_ms: float) -> PerformanceGrade:
        score: int = 100
        if metrics.total_requests and metrics.cache_hit_rate < 0.7:
            score -= 20
        if metrics.error_rate > 0.05:
            score -= 30
        if metrics.load_time > 200:
            score -= 20
        if p95_ms > 500:
            score -= 10

        if score >= 90:
            return "A"
        if score >= 80:
            return "B"
        if score >= 70:
            return "C"
        if score >= 60:
            return "D"
        return "F"
