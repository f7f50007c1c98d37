"""Tests for MetricsCollector."""

from __future__ import annotations

import pytest

from core.cache.metrics import MetricsCollector
from models.cache_models import CacheMetrics


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector(["en", "zh", "ja"])


def test_empty_snapshot_has_zero_rates(collector: MetricsCollector) -> None:
    metrics: CacheMetrics = collector.snapshot([])

    assert metrics.cache_hit_rate == 0.0
    assert metrics.error_rate == 0.0
    assert metrics.load_time == 0.0
    assert metrics.translation_coverage == 0.0
    assert metrics.total_requests == 0


def test_snapshot_rates(collector: MetricsCollector) -> None:
    for locale in ("en", "en", "zh", "ja"):
        collector.record_request(locale)
    collector.record_hit()
    collector.record_miss()
    collector.record_miss()
    collector.record_miss()
    collector.record_error()
    collector.record_load_time(10.0)
    collector.record_load_time(30.0)

    metrics: CacheMetrics = collector.snapshot(["en", "zh"])

    assert metrics.cache_hit_rate == pytest.approx(0.25)
    assert metrics.error_rate == pytest.approx(0.25)
    assert metrics.load_time == pytest.approx(20.0)
    assert metrics.translation_coverage == pytest.approx(2 / 3)
    assert metrics.locale_usage == {"en": 2, "zh": 1, "ja": 1}


def test_coverage_ignores_unknown_locales(collector: MetricsCollector) -> None:
    assert collector.snapshot(["fr", "en"]).translation_coverage == pytest.approx(1 / 3)


def test_load_time_window_is_bounded(collector: MetricsCollector) -> None:
    for _ in range(MetricsCollector.MAX_LOAD_SAMPLES):
        collector.record_load_time(1000.0)
    for _ in range(MetricsCollector.MAX_LOAD_SAMPLES):
        collector.record_load_time(1.0)

    assert len(collector.load_times) == MetricsCollector.MAX_LOAD_SAMPLES
    assert collector.snapshot([]).load_time == pytest.approx(1.0)


def test_percentiles_nearest_rank(collector: MetricsCollector) -> None:
    for value in range(1, 101):
        collector.record_load_time(float(value))

    assert collector.percentiles() == {"p50": 50.0, "p90": 90.0, "p95": 95.0, "p99": 99.0}


def test_percentiles_without_samples(collector: MetricsCollector) -> None:
    assert collector.percentiles() == {"p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}


def test_reset_clears_everything(collector: MetricsCollector) -> None:
    collector.record_request("en")
    collector.record_hit()
    collector.record_load_time(5.0)

    collector.reset()

    assert collector.total_requests == 0
    assert collector.cache_hits == 0
    assert not collector.locale_usage
    assert not collector.load_times


@pytest.mark.parametrize(
    ("metrics", "p95", "expected"),
    [
        (CacheMetrics(), 0.0, "A"),
        (CacheMetrics(total_requests=10, cache_hit_rate=0.5), 0.0, "B"),
        (CacheMetrics(error_rate=0.1), 0.0, "C"),
        (CacheMetrics(total_requests=10, cache_hit_rate=0.5, error_rate=0.1), 0.0, "F"),
        (CacheMetrics(load_time=250.0), 600.0, "C"),
        (CacheMetrics(error_rate=0.1), 600.0, "D"),
    ],
)
def test_grade(metrics: CacheMetrics, p95: float, expected: str) -> None:
    assert MetricsCollector.grade(metrics, p95) == expected
