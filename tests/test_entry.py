from __future__ import annotations

from datetime import datetime

import pytest
from dateutil import tz

from glucotracker.entry import (
    HIGH_ADVICE,
    LOW_ADVICE,
    build_reading,
    emergency_advice,
    parse_value,
)
from glucotracker.errors import InvalidReading
from glucotracker.model import ReadingType

NOW = datetime(2025, 12, 15, 8, 0, tzinfo=tz.UTC)


def test_build_reading_cleans_optional_fields() -> None:
    reading = build_reading(
        " 95.5 ",
        "fasting",
        notes="  feeling good ",
        meal="",
        medication="   ",
        now=NOW,
    )
    assert reading.value == 95.5
    assert reading.type is ReadingType.FASTING
    assert reading.timestamp == NOW
    assert reading.notes == "feeling good"
    assert reading.meal is None
    assert reading.medication is None
    assert reading.id is None


def test_build_reading_keeps_unknown_type_text() -> None:
    reading = build_reading("120", "Post-Workout", now=NOW)
    assert reading.type is ReadingType.UNKNOWN
    assert reading.type_name == "Post-Workout"


def test_build_reading_matches_type_exactly_after_trimming() -> None:
    assert build_reading("120", "  fasting ", now=NOW).type is ReadingType.FASTING
    upper = build_reading("120", "FASTING", now=NOW)
    assert upper.type is ReadingType.UNKNOWN
    assert upper.type_name == "FASTING"
    assert build_reading("120", ReadingType.BEDTIME, now=NOW).raw_type is None


def test_build_reading_defaults_to_now() -> None:
    reading = build_reading(100, "random")
    assert reading.timestamp.tzinfo is not None


@pytest.mark.parametrize("value", ["", "  ", "abc", "nan", "inf", "0", "-5", None])
def test_invalid_values_are_rejected(value: str | None) -> None:
    with pytest.raises(InvalidReading):
        build_reading(value, "random", now=NOW)


@pytest.mark.parametrize("reading_type", [None, "", "   "])
def test_missing_type_is_rejected(reading_type: str | None) -> None:
    with pytest.raises(InvalidReading, match="type"):
        build_reading("100", reading_type, now=NOW)


def test_parse_value_accepts_numbers() -> None:
    assert parse_value(88) == 88.0
    assert parse_value("101.25") == 101.25


def test_emergency_advice_low_and_high() -> None:
    headline, steps = emergency_advice(55)
    assert "dangerously low" in headline
    assert steps == LOW_ADVICE
    headline, steps = emergency_advice(320)
    assert "dangerously high" in headline
    assert "320 mg/dL" in headline
    assert steps == HIGH_ADVICE
