"""Data models for detection history queries, analytics and maintenance.

These are plain result containers returned by the preference store; none of them is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from models.locale_models import DetectionRecord, Locale, LocaleSource, OperationResult

__all__: list[str] = [
    "AccessLogEntry",
    "CleanupResult",
    "DailyBucket",
    "DetectionQuery",
    "DetectionStats",
    "DetectionTrends",
    "GroupStats",
    "HistoryInsights",
    "MaintenanceOptions",
    "MaintenanceRecommendation",
    "MaintenanceReport",
    "QueryResult",
]

type SortField = Literal["timestamp", "confidence", "locale", "source"]
type SortOrder = Literal["asc", "desc"]
type Priority = Literal["low", "medium", "high"]
type TrendDirection = Literal["increasing", "decreasing", "stable"]


@dataclass
class DetectionQuery:
    """Filter, sort and paging conditions for history queries.

    Attributes:
        locale (Locale | None): Only records with this locale.
        source (LocaleSource | None): Only records with this source.
        start_time (int | None): Inclusive lower bound on the timestamp (epoch ms).
        end_time (int | None): Inclusive upper bound on the timestamp (epoch ms).
        min_confidence (float | None): Inclusive lower bound on confidence.
        max_confidence (float | None): Inclusive upper bound on confidence.
        sort_by (SortField): Field to sort by.
        sort_order (SortOrder): Sort direction.
        limit (int | None): Maximum number of records to return.
        offset (int): Number of matching records to skip.
    """

    locale: Locale | None = None
    source: LocaleSource | None = None
    start_time: int | None = None
    end_time: int | None = None
    min_confidence: float | None = None
    max_confidence: float | None = None
    sort_by: SortField = "timestamp"
    sort_order: SortOrder = "desc"
    limit: int | None = None
    offset: int = 0


@dataclass
class QueryResult:
    records: list[DetectionRecord]
    total_count: int
    has_more: bool


@dataclass
class CleanupResult:
    cleaned_count: int
    remaining_count: int


@dataclass
class DetectionStats:
    """Summary statistics over the detection history.

    Attributes:
        total_detections (int): Number of records.
        unique_locales (int): Distinct locales seen.
        unique_sources (int): Distinct sources seen.
        average_confidence (float): Mean confidence, 0 for an empty history.
        most_detected_locale (Locale | None): Most frequent locale.
        most_used_source (LocaleSource | None): Most frequent source.
        detections_per_day (float): Records per day across the covered time span.
        confidence_distribution (dict[str, int]): Counts for ``high`` (> 0.8), ``medium`` (>= 0.5) and ``low``.
        time_span_ms (int): Time between the oldest and the newest record.
    """

    total_detections: int = 0
    unique_locales: int = 0
    unique_sources: int = 0
    average_confidence: float = 0.0
    most_detected_locale: Locale | None = None
    most_used_source: LocaleSource | None = None
    detections_per_day: float = 0.0
    confidence_distribution: dict[str, int] = field(default_factory=lambda: {"high": 0, "medium": 0, "low": 0})
    time_span_ms: int = 0


@dataclass
class GroupStats:
    """Per-locale or per-source aggregate."""

    key: str
    count: int
    percentage: float
    average_confidence: float
    last_detection: int


@dataclass
class DailyBucket:
    date: str
    count: int
    average_confidence: float


@dataclass
class DetectionTrends:
    """Daily counts over a window with a naive linear projection.

    Attributes:
        daily (list[DailyBucket]): One bucket per UTC day, oldest first, empty days included.
        weekly_growth (float): Percentage change between the last two 7-day windows.
        trend_direction (TrendDirection): Direction of the slope over the last three days.
        slope (float): Detections per day change over the last three days.
        predictions (list[int]): Projected counts for the next three days.
    """

    daily: list[DailyBucket]
    weekly_growth: float
    trend_direction: TrendDirection
    slope: float
    predictions: list[int]


@dataclass
class HistoryInsights:
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    alerts: list[str] = field(default_factory=list)


@dataclass
class AccessLogEntry:
    """One store operation as seen by the access log."""

    operation: str
    success: bool
    response_time_ms: float
    timestamp: int


@dataclass
class MaintenanceOptions:
    """Steps run by ``perform_maintenance``.

    ``max_detection_age_ms`` of None uses the store's configured retention; ``max_history_size`` of None skips
    the size limit step.
    """

    cleanup_expired: bool = True
    max_detection_age_ms: int | None = None
    cleanup_duplicates: bool = True
    cleanup_invalid: bool = True
    validate_data: bool = True
    max_history_size: int | None = None


@dataclass
class MaintenanceRecommendation:
    recommendations: list[str]
    priority: Priority
    estimated_time_ms: int


@dataclass
class MaintenanceReport:
    total_operations: int
    successful_operations: int
    results: dict[str, OperationResult]
    recommendation: MaintenanceRecommendation
