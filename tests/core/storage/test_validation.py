"""Tests for preference and detection record validation."""

from __future__ import annotations

from typing import Any

import pytest

from core.storage.validation import validate_entry, validate_preference, validate_record
from models.locale_models import DetectionRecord, Locale, LocaleSource, UserLocalePreference, ValidationResult

NOW: int = 1_700_000_000_000


def _entry(**overrides: Any) -> ValidationResult:
    fields: dict[str, Any] = {
        "locale": "zh",
        "source": "browser",
        "confidence": 0.7,
        "timestamp": NOW,
        "metadata": None,
        "now": NOW,
    }
    fields.update(overrides)
    return validate_entry(**fields)


def test_valid_entry() -> None:
    result: ValidationResult = _entry()

    assert result.is_valid
    assert result.warnings == []


@pytest.mark.parametrize(
    ("overrides", "fragment"),
    [
        ({"locale": "fr"}, "Unsupported locale"),
        ({"source": "satellite"}, "Unknown source"),
        ({"confidence": 1.5}, "[0, 1]"),
        ({"confidence": -0.1}, "[0, 1]"),
        ({"confidence": float("nan")}, "must be a number"),
        ({"confidence": True}, "must be a number"),
        ({"timestamp": 0}, "positive integer"),
        ({"timestamp": 1.5}, "positive integer"),
        ({"timestamp": NOW + 60_001}, "future"),
        ({"metadata": ["x"]}, "Metadata"),
    ],
)
def test_invalid_entries(overrides: dict[str, Any], fragment: str) -> None:
    result: ValidationResult = _entry(**overrides)

    assert not result.is_valid
    assert any(fragment in error for error in result.errors)


def test_small_clock_skew_is_tolerated() -> None:
    assert _entry(timestamp=NOW + 60_000).is_valid


def test_low_confidence_user_source_warns() -> None:
    result: ValidationResult = _entry(source="user", confidence=0.5)

    assert result.is_valid
    assert len(result.warnings) == 1


def test_high_confidence_fallback_warns() -> None:
    result: ValidationResult = _entry(source=LocaleSource.FALLBACK, confidence=0.9)

    assert result.is_valid
    assert "Fallback" in result.warnings[0]


def test_validate_preference_and_record() -> None:
    preference = UserLocalePreference(locale=Locale.JA, source=LocaleSource.USER, timestamp=NOW, confidence=1.0)
    record = DetectionRecord(locale=Locale.EN, source=LocaleSource.GEO, confidence=0.8, timestamp=NOW)

    assert validate_preference(preference, NOW).is_valid
    assert validate_record(record, NOW).is_valid
