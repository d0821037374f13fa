"""Glucose risk bands (mg/dL) and their presentation colors."""

from __future__ import annotations

import math

from glucotracker.errors import InvalidReading
from glucotracker.model import ReadingType, RiskLevel

HYPO_THRESHOLD = 70.0
EXTREME_HYPER_THRESHOLD = 300.0
LOW_THRESHOLD = 80.0

# (normal upper bound, high upper bound), both inclusive.
_BANDS: dict[ReadingType, tuple[float, float]] = {
    ReadingType.FASTING: (100.0, 125.0),
    ReadingType.AFTER_MEAL: (140.0, 180.0),
}
_DEFAULT_BAND: tuple[float, float] = (120.0, 160.0)

_COLORS: dict[RiskLevel, tuple[float, float, float, float]] = {
    RiskLevel.LOW: (0.15, 0.39, 0.92, 1.0),
    RiskLevel.NORMAL: (0.09, 0.64, 0.29, 1.0),
    RiskLevel.HIGH: (0.79, 0.54, 0.02, 1.0),
    RiskLevel.CRITICAL: (0.86, 0.15, 0.15, 1.0),
}
_NEUTRAL_COLOR: tuple[float, float, float, float] = (0.29, 0.33, 0.39, 1.0)


def validate_value(value: object) -> float:
    """Return ``value`` as a finite float.

    Raises:
        InvalidReading: If the value is missing, non-numeric, NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        raise InvalidReading(f"Invalid glucose value: {value!r}")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidReading(f"Invalid glucose value: {value!r}") from exc
    if not math.isfinite(number):
        raise InvalidReading(f"Glucose value must be finite, got {value!r}")
    return number


def classify(value: object, reading_type: ReadingType | str) -> RiskLevel:
    """Classify a glucose value for the context it was measured in.

    Values below 70 or above 300 are critical whatever the type. Otherwise the
    fasting and after-meal bands apply to their types and every other type,
    unrecognised strings included, uses the default band.

    Args:
        value: Glucose in mg/dL.
        reading_type: ReadingType member or its string value.

    Returns:
        The risk level.

    Raises:
        InvalidReading: If ``value`` is not a finite number.
    """
    number = validate_value(value)
    if number < HYPO_THRESHOLD:
        return RiskLevel.CRITICAL
    if number > EXTREME_HYPER_THRESHOLD:
        return RiskLevel.CRITICAL

    normal_max, high_max = _BANDS.get(ReadingType.parse(reading_type), _DEFAULT_BAND)
    if number < LOW_THRESHOLD:
        return RiskLevel.LOW
    if number <= normal_max:
        return RiskLevel.NORMAL
    if number <= high_max:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def risk_color(level: RiskLevel | str | None) -> tuple[float, float, float, float]:
    """RGBA color for a risk level; grey for anything unrecognised."""
    if isinstance(level, str):
        try:
            level = RiskLevel(level)
        except ValueError:
            return _NEUTRAL_COLOR
    if level is None:
        return _NEUTRAL_COLOR
    return _COLORS.get(level, _NEUTRAL_COLOR)


def risk_label(level: RiskLevel) -> str:
    return level.value
