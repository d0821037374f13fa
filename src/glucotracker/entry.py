"""Validation of new readings entered by the user."""

from __future__ import annotations

from datetime import datetime

from dateutil import tz

from glucotracker.errors import InvalidReading
from glucotracker.model import Reading, ReadingType
from glucotracker.risk import HYPO_THRESHOLD, validate_value

_LOCAL_TZ = tz.tzlocal()

LOW_ADVICE: tuple[str, ...] = (
    "Consume 15g of fast-acting carbs (glucose tablets, juice)",
    "Wait 15 minutes and retest",
    "If still low, repeat treatment",
    "Contact your doctor if symptoms persist",
)

HIGH_ADVICE: tuple[str, ...] = (
    "Check for ketones if possible",
    "Drink water to stay hydrated",
    "Contact your healthcare provider immediately",
    "Consider emergency care if feeling unwell",
)


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def parse_value(value_text: str | float | None) -> float:
    """Parse a glucose value from form input.

    Raises:
        InvalidReading: If the value is empty, non-numeric, non-finite or <= 0.
    """
    if isinstance(value_text, str):
        value_text = value_text.strip()
        if not value_text:
            raise InvalidReading("A glucose value is required")
    number = validate_value(value_text)
    if number <= 0:
        raise InvalidReading(f"Glucose value must be positive, got {number:g}")
    return number


def build_reading(
    value_text: str | float | None,
    type_text: str | ReadingType | None,
    *,
    notes: str | None = None,
    meal: str | None = None,
    medication: str | None = None,
    now: datetime | None = None,
) -> Reading:
    """Build a new reading from form fields.

    Unrecognised type strings are kept as ``ReadingType.UNKNOWN``; only a
    missing type is rejected.

    Raises:
        InvalidReading: If the value is invalid or the type is missing.
    """
    value = parse_value(value_text)
    if type_text is None or not str(type_text).strip():
        raise InvalidReading("A reading type is required")
    if not isinstance(type_text, ReadingType):
        type_text = str(type_text).strip()
    reading_type = ReadingType.parse(type_text)
    raw_type = None
    if reading_type is ReadingType.UNKNOWN and not isinstance(type_text, ReadingType):
        raw_type = type_text
    return Reading(
        value=value,
        type=reading_type,
        timestamp=now or datetime.now(tz=_LOCAL_TZ),
        notes=_clean_text(notes),
        meal=_clean_text(meal),
        medication=_clean_text(medication),
        raw_type=raw_type,
    )


def emergency_advice(value: float) -> tuple[str, tuple[str, ...]]:
    """Headline and checklist shown after a critical reading."""
    if value < HYPO_THRESHOLD:
        return (
            f"Your blood sugar reading of {value:g} mg/dL is dangerously low.",
            LOW_ADVICE,
        )
    return (
        f"Your blood sugar reading of {value:g} mg/dL is dangerously high.",
        HIGH_ADVICE,
    )
