from __future__ import annotations

import time

import pytest

from utils.time_utils import MS_PER_DAY, MS_PER_MINUTE, TimeUtils

# 2023-11-14 22:13:20 UTC
NOW: int = 1_700_000_000_000


def test_constants() -> None:
    assert MS_PER_MINUTE == 60_000
    assert MS_PER_DAY == 86_400_000


def test_now_ms_tracks_wall_clock() -> None:
    before: int = int(time.time() * 1000)
    now: int = TimeUtils.now_ms()
    after: int = int(time.time() * 1000)

    assert before - 1 <= now <= after + 1


def test_calendar_helpers_use_utc() -> None:
    assert TimeUtils.to_iso_date(NOW) == "2023-11-14"
    assert TimeUtils.to_hour(NOW) == 22
    assert TimeUtils.to_iso_date(NOW + 2 * 3_600_000) == "2023-11-15"
    assert TimeUtils.to_datetime(NOW).tzinfo is not None


@pytest.mark.parametrize(
    ("value", "expected"),
    [(NOW, True), (1, True), (0, False), (-5, False), (True, False), (1.5, False), ("1700000000000", False)],
)
def test_is_epoch_ms(value: object, expected: bool) -> None:
    assert TimeUtils.is_epoch_ms(value) is expected
