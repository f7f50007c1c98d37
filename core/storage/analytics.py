"""Statistics, trends and rule-based insights over the detection history and the store access log."""

from __future__ import annotations

from collections import Counter, defaultdict
from statistics import fmean
from typing import TYPE_CHECKING, ClassVar

from models.history_models import DailyBucket, DetectionStats, DetectionTrends, GroupStats, HistoryInsights
from utils.logger_utils import LoggerUtils
from utils.time_utils import MS_PER_DAY, TimeUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.storage.preference_store import PreferenceStore
    from models.history_models import AccessLogEntry, TrendDirection
    from models.locale_models import DetectionRecord, Locale, LocaleSource

__all__: list[str] = ["HistoryAnalytics"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class HistoryAnalytics:
    """Read-only analytics for a :class:`PreferenceStore`.

    Attributes:
        HIGH_CONFIDENCE (ClassVar[float]): Records above this are counted as high confidence.
        MEDIUM_CONFIDENCE (ClassVar[float]): Records at or above this are counted as medium confidence.
        TREND_THRESHOLD (ClassVar[float]): Minimum absolute slope for a non-stable trend.
    """

    HIGH_CONFIDENCE: ClassVar[float] = 0.8
    MEDIUM_CONFIDENCE: ClassVar[float] = 0.5
    TREND_THRESHOLD: ClassVar[float] = 0.1
    PREDICTION_DAYS: ClassVar[int] = 3

    def __init__(self, store: PreferenceStore) -> None:
        self.store: PreferenceStore = store

    def get_detection_stats(self) -> DetectionStats:
        detections: list[DetectionRecord] = self.store.get_detection_history().detections
        if not detections:
            return DetectionStats()

        locales: Counter[Locale] = Counter(record.locale for record in detections)
        sources: Counter[LocaleSource] = Counter(record.source for record in detections)
        timestamps: list[int] = [record.timestamp for record in detections]
        time_span: int = max(timestamps) - min(timestamps)

        distribution: dict[str, int] = {"high": 0, "medium": 0, "low": 0}
        for record in detections:
            distribution[self._confidence_band(record.confidence)] += 1

        return DetectionStats(
            total_detections=len(detections),
            unique_locales=len(locales),
            unique_sources=len(sources),
            average_confidence=round(fmean(record.confidence for record in detections), 4),
            most_detected_locale=locales.most_common(1)[0][0],
            most_used_source=sources.most_common(1)[0][0],
            detections_per_day=round(len(detections) / max(time_span / MS_PER_DAY, 1.0), 4),
            confidence_distribution=distribution,
            time_span_ms=time_span,
        )

    def get_locale_group_stats(self) -> list[GroupStats]:
        """Aggregate the history per locale, most frequent first."""
        return self._group_stats(lambda record: record.locale.value)

    def get_source_group_stats(self) -> list[GroupStats]:
        """Aggregate the history per source, most frequent first."""
        return self._group_stats(lambda record: record.source.value)

    def get_detection_trends(self, days: int = 7) -> DetectionTrends:
        """Bucket the last ``days`` UTC days and project the next three.

        Args:
            days (int): Window length, at least 1.

        Returns:
            DetectionTrends: Daily buckets (empty days included), week-over-week growth, direction, slope and
                projections ``max(0, round(avg + slope * i))`` for i = 1..3.

        Raises:
            ValueError: If ``days`` is less than 1.
        """
        if days < 1:
            msg: str = f"Trend window must be at least one day: {days}"
            raise ValueError(msg)

        now: int = self.store.clock()
        detections: list[DetectionRecord] = self.store.get_detection_history().detections

        by_date: defaultdict[str, list[float]] = defaultdict(list)
        for record in detections:
            by_date[TimeUtils.to_iso_date(record.timestamp)].append(record.confidence)

        daily: list[DailyBucket] = []
        for offset in range(days - 1, -1, -1):
            date: str = TimeUtils.to_iso_date(now - offset * MS_PER_DAY)
            confidences: list[float] = by_date.get(date, [])
            daily.append(
                DailyBucket(
                    date=date,
                    count=len(confidences),
                    average_confidence=round(fmean(confidences), 4) if confidences else 0.0,
                )
            )

        week: int = 7 * MS_PER_DAY
        current: int = sum(1 for record in detections if now - week < record.timestamp <= now)
        previous: int = sum(1 for record in detections if now - 2 * week < record.timestamp <= now - week)
        if previous:
            weekly_growth: float = round((current - previous) / previous * 100, 2)
        else:
            weekly_growth = 100.0 if current else 0.0

        recent: list[int] = [bucket.count for bucket in daily[-3:]]
        slope: float = (recent[-1] - recent[0]) / (len(recent) - 1) if len(recent) > 1 else 0.0
        direction: TrendDirection = "stable"
        if slope > self.TREND_THRESHOLD:
            direction = "increasing"
        elif slope < -self.TREND_THRESHOLD:
            direction = "decreasing"
        average: float = fmean(recent)

        return DetectionTrends(
            daily=daily,
            weekly_growth=weekly_growth,
            trend_direction=direction,
            slope=slope,
            predictions=[max(0, round(average + slope * i)) for i in range(1, self.PREDICTION_DAYS + 1)],
        )

    def generate_history_insights(self) -> HistoryInsights:
        """Derive observations from the access log and the detection history."""
        result = HistoryInsights()
        entries: list[AccessLogEntry] = self.store.access_log.entries()
        if entries:
            self._access_insights(entries, result)
        else:
            result.insights.append("No store operations recorded yet")

        stats: DetectionStats = self.get_detection_stats()
        if stats.total_detections == 0:
            result.insights.append("No detection history yet")
            return result

        top_locale: GroupStats = self.get_locale_group_stats()[0]
        if top_locale.percentage > 70:
            result.insights.append(f"Most detections resolve to '{top_locale.key}' ({top_locale.percentage:.1f}%)")
        if stats.average_confidence < self.MEDIUM_CONFIDENCE:
            result.alerts.append(f"Low average detection confidence ({stats.average_confidence:.2f})")
            result.recommendations.append("Enable more detection signals or ask the user to choose a locale")
        if stats.unique_sources >= 3:
            result.insights.append(f"Detections come from {stats.unique_sources} different sources")
        elif stats.unique_sources == 1 and stats.total_detections >= 5:
            result.recommendations.append(f"Only '{stats.most_used_source}' contributes detections")
        return result

    def _access_insights(self, entries: list[AccessLogEntry], result: HistoryInsights) -> None:
        success_rate: float = sum(1 for entry in entries if entry.success) / len(entries) * 100
        if success_rate < 95:
            result.alerts.append(f"Low operation success rate ({success_rate:.1f}%)")
            result.recommendations.append("Check the storage backend for quota or availability problems")
        elif success_rate > 99:
            result.insights.append(f"Excellent operation success rate ({success_rate:.1f}%)")

        average_ms: float = fmean(entry.response_time_ms for entry in entries)
        if average_ms > 100:
            result.alerts.append(f"Slow store operations ({average_ms:.1f} ms on average)")
            result.recommendations.append("Reduce the history size or move to a faster storage backend")
        elif average_ms < 10:
            result.insights.append(f"Good response time ({average_ms:.1f} ms on average)")

        peak_hour: int = Counter(TimeUtils.to_hour(entry.timestamp) for entry in entries).most_common(1)[0][0]
        if 9 <= peak_hour <= 17:
            result.insights.append(f"Peak usage during working hours ({peak_hour}:00 UTC)")
        elif 18 <= peak_hour <= 23:
            result.insights.append(f"Peak usage in the evening ({peak_hour}:00 UTC)")
        else:
            result.insights.append(f"Peak usage at {peak_hour}:00 UTC")

        operation, count = Counter(entry.operation for entry in entries).most_common(1)[0]
        share: float = count / len(entries) * 100
        if share > 50:
            result.insights.append(f"'{operation}' dominates store traffic ({share:.1f}%)")

    def _group_stats(self, key_of: Callable[[DetectionRecord], str]) -> list[GroupStats]:
        detections: list[DetectionRecord] = self.store.get_detection_history().detections
        groups: defaultdict[str, list[DetectionRecord]] = defaultdict(list)
        for record in detections:
            groups[key_of(record)].append(record)

        stats: list[GroupStats] = [
            GroupStats(
                key=key,
                count=len(records),
                percentage=round(len(records) / len(detections) * 100, 2),
                average_confidence=round(fmean(record.confidence for record in records), 4),
                last_detection=max(record.timestamp for record in records),
            )
            for key, records in groups.items()
        ]
        return sorted(stats, key=lambda group: (-group.count, group.key))

    def _confidence_band(self, confidence: float) -> str:
        if confidence > self.HIGH_CONFIDENCE:
            return "high"
        if confidence >= self.MEDIUM_CONFIDENCE:
            return "medium"
        return "low"
