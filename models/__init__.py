"""Data models for the locale engine.

This package contains dataclass definitions for configuration, locale detection results, preference and history
records, history analytics, and the message bundle cache.
"""

from __future__ import annotations

from models.cache_models import (
    CacheEntry,
    CacheMetrics,
    CacheStatistics,
    HealthCheckReport,
    MessageBundle,
    OptimizationReport,
    PerformanceReport,
    PreloadState,
)
from models.config_models import Config
from models.history_models import (
    DetectionQuery,
    DetectionStats,
    DetectionTrends,
    GroupStats,
    HistoryInsights,
    MaintenanceOptions,
    MaintenanceRecommendation,
    MaintenanceReport,
    QueryResult,
)
from models.locale_models import (
    DetectionRecord,
    Locale,
    LocaleDetectionHistory,
    LocaleDetectionResult,
    LocaleSource,
    OperationResult,
    UserLocalePreference,
    ValidationResult,
)

__all__: list[str] = [
    "CacheEntry",
    "CacheMetrics",
    "CacheStatistics",
    "Config",
    "DetectionQuery",
    "DetectionRecord",
    "DetectionStats",
    "DetectionTrends",
    "GroupStats",
    "HealthCheckReport",
    "HistoryInsights",
    "Locale",
    "LocaleDetectionHistory",
    "LocaleDetectionResult",
    "LocaleSource",
    "MaintenanceOptions",
    "MaintenanceRecommendation",
    "MaintenanceReport",
    "MessageBundle",
    "OperationResult",
    "OptimizationReport",
    "PerformanceReport",
    "PreloadState",
    "QueryResult",
    "UserLocalePreference",
    "ValidationResult",
]
