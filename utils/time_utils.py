from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Final

__all__: list[str] = ["MS_PER_DAY", "MS_PER_MINUTE", "TimeUtils"]

MS_PER_MINUTE: Final[int] = 60_000
MS_PER_DAY: Final[int] = 24 * 60 * MS_PER_MINUTE


class TimeUtils:
    """Epoch-millisecond helpers shared by the store and the cache."""

    @staticmethod
    def now_ms() -> int:
        """Return the current wall-clock time as integer epoch milliseconds."""
        return time.time_ns() // 1_000_000

    @staticmethod
    def to_datetime(timestamp_ms: int) -> datetime:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)

    @staticmethod
    def to_iso_date(timestamp_ms: int) -> str:
        """Return the UTC calendar date (``YYYY-MM-DD``) of an epoch-millisecond timestamp."""
        return TimeUtils.to_datetime(timestamp_ms).date().isoformat()

    @staticmethod
    def to_hour(timestamp_ms: int) -> int:
        return TimeUtils.to_datetime(timestamp_ms).hour

    @staticmethod
    def is_epoch_ms(value: object) -> bool:
        """Return True for a positive integer (bool excluded) usable as epoch milliseconds."""
        return isinstance(value, int) and not isinstance(value, bool) and value > 0
