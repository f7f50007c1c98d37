from __future__ import annotations

from collections import deque
from typing import ClassVar

from models.history_models import AccessLogEntry

__all__: list[str] = ["AccessLog"]


class AccessLog:
    """Bounded in-memory log of preference store operations, newest last."""

    MAX_ENTRIES: ClassVar[int] = 1000

    def __init__(self, max_entries: int | None = None) -> None:
        self._entries: deque[AccessLogEntry] = deque(maxlen=max_entries or self.MAX_ENTRIES)

    def record(self, operation: str, *, success: bool, response_time_ms: float, timestamp: int) -> None:
        self._entries.append(
            AccessLogEntry(
                operation=operation, success=success, response_time_ms=response_time_ms, timestamp=timestamp
            )
        )

    def entries(self) -> list[AccessLogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
