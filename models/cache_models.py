"""Models for the message bundle cache.

Defines the cache entry record, cache statistics, metrics snapshots and the health/performance reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

__all__: list[str] = [
    "CacheEntry",
    "CacheMetrics",
    "CacheStatistics",
    "HealthCheckReport",
    "MessageBundle",
    "OptimizationReport",
    "PerformanceReport",
    "PreloadState",
]

type MessageBundle = dict[str, Any]
type HealthStatus = Literal["healthy", "warning", "critical"]
type PerformanceGrade = Literal["A", "B", "C", "D", "F"]


@dataclass
class CacheEntry:
    """Cached message bundle.

    Attributes:
        key (str): Cache key (the locale code).
        value (MessageBundle): Loaded message tree.
        inserted_at (int): Epoch milliseconds when the entry was stored.
        last_accessed (int): Epoch milliseconds of the most recent hit.
        hits (int): Number of hits since insertion.
    """

    key: str
    value: MessageBundle
    inserted_at: int
    last_accessed: int
    hits: int = 0

    def is_expired(self, now: int, ttl_ms: int) -> bool:
        return ttl_ms > 0 and now - self.inserted_at > ttl_ms


@dataclass
class CacheStatistics:
    """Cache usage statistics.

    Attributes:
        size (int): Number of entries.
        max_size (int): Capacity.
        utilization (float): ``size / max_size``.
        total_hits (int): Hits summed over all live entries.
        average_age_ms (float): Mean age of the live entries.
        keys (list[str]): Keys from least to most recently used.
        persistence_enabled (bool): Whether snapshots are written to durable storage.
    """

    size: int = 0
    max_size: int = 0
    utilization: float = 0.0
    total_hits: int = 0
    average_age_ms: float = 0.0
    keys: list[str] = field(default_factory=list)
    persistence_enabled: bool = False


@dataclass
class CacheMetrics:
    """Snapshot of the running cache metrics.

    Attributes:
        cache_hit_rate (float): hits / (hits + misses), 0 without requests.
        locale_usage (dict[str, int]): Requests per locale.
        translation_coverage (float): Fraction of the supported locales currently cached.
        load_time (float): Average bundle load duration in milliseconds over the recent window.
        error_rate (float): Failed loads / requests, 0 without requests.
        total_requests (int): Requests seen.
        cache_hits (int): Hits seen.
        cache_misses (int): Misses seen.
        errors (int): Failed loads seen.
    """

    cache_hit_rate: float = 0.0
    locale_usage: dict[str, int] = field(default_factory=dict)
    translation_coverage: float = 0.0
    load_time: float = 0.0
    error_rate: float = 0.0
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0


@dataclass
class HealthCheckReport:
    status: HealthStatus
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class PerformanceReport:
    """Load time distribution and an overall grade."""

    grade: PerformanceGrade
    percentiles: dict[str, float]
    metrics: CacheMetrics
    sample_count: int


@dataclass
class PreloadState:
    """Progress of the running (or last) preload batch.

    Attributes:
        is_preloading (bool): Whether a preload batch is running.
        total_locales (int): Locales scheduled in the batch.
        completed_locales (int): Locales finished, successfully or not.
        errors (list[str]): Locales that failed to preload.
    """

    is_preloading: bool = False
    total_locales: int = 0
    completed_locales: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def progress(self) -> float:
        """Completed share of the batch in percent; 100 when nothing is scheduled."""
        if not self.total_locales:
            return 100.0
        return self.completed_locales / self.total_locales * 100


@dataclass
class OptimizationReport:
    expired_removed: int
    preloaded: dict[str, bool] = field(default_factory=dict)
