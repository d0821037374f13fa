"""Rule-based insights over a reading history."""

from __future__ import annotations

from collections.abc import Sequence

from glucotracker.model import Insight, InsightLevel, Reading, ReadingType, RiskLevel
from glucotracker.risk import classify

TREND_MIN_READINGS = 6
TREND_DELTA_MG_DL = 10.0

NO_READINGS_TITLE = "No readings yet"


def generate_insights(readings: Sequence[Reading]) -> list[Insight]:
    """Build insights for a reading history.

    The result is always ordered: average, most recent reading, then an
    optional trend insight when there are at least six readings and the
    halves differ by more than 10 mg/dL.

    Args:
        readings: Readings in any order. Not modified.

    Returns:
        List of insights (never empty).
    """
    if not readings:
        return [
            Insight(
                title=NO_READINGS_TITLE,
                description="Log your first reading to start seeing insights.",
                level=InsightLevel.INFO,
            )
        ]

    ordered = sorted(readings, key=lambda r: r.timestamp)
    values = [r.value for r in ordered]

    insights = [_average_insight(values), _latest_insight(ordered[-1])]
    trend = _trend_insight(values)
    if trend is not None:
        insights.append(trend)
    return insights


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _average_insight(values: Sequence[float]) -> Insight:
    avg = _mean(values)
    # An aggregate has no single type; the default band is used.
    risk = classify(avg, ReadingType.RANDOM)
    count = len(values)
    noun = "reading" if count == 1 else "readings"
    return Insight(
        title="Average glucose",
        description=(
            f"Your average across {count} {noun} is {avg:.0f} mg/dL "
            f"({risk.value})."
        ),
        level=(
            InsightLevel.INFO if risk is RiskLevel.NORMAL else InsightLevel.WARNING
        ),
    )


def _latest_insight(reading: Reading) -> Insight:
    risk = classify(reading.value, reading.type)
    return Insight(
        title="Latest reading",
        description=(
            f"Your most recent reading was {reading.value:g} mg/dL "
            f"({reading.type_name.replace('-', ' ')}), classified as {risk.value}."
        ),
        level=(
            InsightLevel.CRITICAL if risk is RiskLevel.CRITICAL else InsightLevel.INFO
        ),
    )


def _trend_insight(values: Sequence[float]) -> Insight | None:
    if len(values) < TREND_MIN_READINGS:
        return None
    split = len(values) // 2
    first_avg = _mean(values[:split])
    second_avg = _mean(values[split:])
    delta = second_avg - first_avg
    if abs(delta) <= TREND_DELTA_MG_DL:
        return None
    if delta > 0:
        return Insight(
            title="Trending upward",
            description=(
                f"Your recent readings average {second_avg:.0f} mg/dL, up from "
                f"{first_avg:.0f} mg/dL earlier."
            ),
            level=InsightLevel.WARNING,
        )
    return Insight(
        title="Trending downward",
        description=(
            f"Your recent readings average {second_avg:.0f} mg/dL, down from "
            f"{first_avg:.0f} mg/dL earlier."
        ),
        level=InsightLevel.INFO,
    )
