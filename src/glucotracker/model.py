"""Typed models for glucose readings, risk levels and insights."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ReadingType(str, Enum):
    """Context in which a reading was taken."""

    FASTING = "fasting"
    BEFORE_MEAL = "before-meal"
    AFTER_MEAL = "after-meal"
    BEDTIME = "bedtime"
    RANDOM = "random"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: object) -> ReadingType:
        """Map a raw value to a member; unrecognised values become UNKNOWN.

        Matching is exact: case or whitespace variants are unrecognised.
        """
        if isinstance(raw, ReadingType):
            return raw
        for member in cls:
            if member is not cls.UNKNOWN and member.value == raw:
                return member
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        """Human label, e.g. ``after meal``."""
        return self.value.replace("-", " ")


KNOWN_TYPES: tuple[ReadingType, ...] = tuple(
    t for t in ReadingType if t is not ReadingType.UNKNOWN
)


class RiskLevel(Enum):
    """Ordered risk category (low < normal < high < critical)."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_RISK_ORDER: tuple[RiskLevel, ...] = (
    RiskLevel.LOW,
    RiskLevel.NORMAL,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
)


class InsightLevel(str, Enum):
    """Severity of an insight."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Reading:
    """One glucose measurement event (timestamped).

    ``raw_type`` keeps the original type text when it did not match a known
    ``ReadingType`` so exports can render it unchanged.
    """

    value: float
    type: ReadingType
    timestamp: datetime
    notes: str | None = None
    meal: str | None = None
    medication: str | None = None
    id: str | None = None
    raw_type: str | None = None

    @property
    def type_name(self) -> str:
        """Type as stored/exported."""
        if self.type is ReadingType.UNKNOWN and self.raw_type is not None:
            return self.raw_type
        return self.type.value


@dataclass(frozen=True)
class Insight:
    """Human-readable observation derived from a reading history."""

    title: str
    description: str
    level: InsightLevel
