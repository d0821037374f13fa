from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from glucotracker.insights import generate_insights
from glucotracker.model import InsightLevel, Reading, ReadingType


def _series(
    make_reading: Callable[..., Reading], values: list[float]
) -> list[Reading]:
    return [make_reading(v, hours=i) for i, v in enumerate(values)]


def test_empty_history_yields_placeholder() -> None:
    insights = generate_insights([])
    assert len(insights) == 1
    assert insights[0].title == "No readings yet"
    assert insights[0].level is InsightLevel.INFO


def test_average_and_latest_order(make_reading: Callable[..., Reading]) -> None:
    readings = _series(make_reading, [100, 110, 120])
    insights = generate_insights(readings)
    assert [i.title for i in insights] == ["Average glucose", "Latest reading"]
    assert insights[0].level is InsightLevel.INFO
    assert "110 mg/dL" in insights[0].description
    assert "120 mg/dL" in insights[1].description


def test_average_outside_normal_is_warning(
    make_reading: Callable[..., Reading],
) -> None:
    insights = generate_insights(_series(make_reading, [150, 150]))
    assert insights[0].level is InsightLevel.WARNING


def test_latest_critical_reading_is_critical(
    make_reading: Callable[..., Reading],
) -> None:
    readings = [make_reading(100, hours=0), make_reading(60, "fasting", hours=1)]
    insights = generate_insights(readings)
    assert insights[1].level is InsightLevel.CRITICAL


def test_latest_uses_its_own_type(make_reading: Callable[..., Reading]) -> None:
    # 130 is critical after fasting but only high in the default band.
    readings = [make_reading(130, ReadingType.FASTING)]
    assert generate_insights(readings)[1].level is InsightLevel.CRITICAL
    readings = [make_reading(130, ReadingType.BEDTIME)]
    assert generate_insights(readings)[1].level is InsightLevel.INFO


def test_five_readings_never_trend(make_reading: Callable[..., Reading]) -> None:
    insights = generate_insights(_series(make_reading, [80, 80, 200, 200, 200]))
    assert len(insights) == 2


def test_upward_trend(make_reading: Callable[..., Reading]) -> None:
    insights = generate_insights(_series(make_reading, [90, 90, 90, 150, 150, 150]))
    assert len(insights) == 3
    assert insights[2].level is InsightLevel.WARNING
    assert "upward" in insights[2].title.lower()


def test_downward_trend(make_reading: Callable[..., Reading]) -> None:
    insights = generate_insights(_series(make_reading, [90, 90, 90, 70, 70, 70]))
    assert insights[2].level is InsightLevel.INFO
    assert "downward" in insights[2].title.lower()


def test_small_change_has_no_trend(make_reading: Callable[..., Reading]) -> None:
    insights = generate_insights(_series(make_reading, [100, 100, 100, 110, 110, 110]))
    assert len(insights) == 2


def test_odd_count_second_half_is_larger(make_reading: Callable[..., Reading]) -> None:
    # halves: [100, 100, 100] and [100, 100, 100, 160] -> +15
    values = [100, 100, 100, 100, 100, 100, 160]
    insights = generate_insights(_series(make_reading, values))
    assert insights[-1].title == "Trending upward"


def test_out_of_order_input_matches_sorted(
    make_reading: Callable[..., Reading],
) -> None:
    ordered = _series(make_reading, [90, 95, 100, 140, 150, 160])
    shuffled = [ordered[3], ordered[5], ordered[0], ordered[4], ordered[1], ordered[2]]
    assert generate_insights(shuffled) == generate_insights(ordered)
    assert "160 mg/dL" in generate_insights(shuffled)[1].description


def test_equal_timestamps_keep_input_order(
    make_reading: Callable[..., Reading],
) -> None:
    first = make_reading(100)
    second = replace(first, value=115)
    assert "115 mg/dL" in generate_insights([first, second])[1].description
    assert "100 mg/dL" in generate_insights([second, first])[1].description


def test_generation_is_repeatable(make_reading: Callable[..., Reading]) -> None:
    readings = tuple(_series(make_reading, [120, 90, 180, 75, 130, 200]))
    assert generate_insights(readings) == generate_insights(readings)
