"""Personal blood-glucose tracker: readings, risk bands and insights."""

from __future__ import annotations

from glucotracker.insights import generate_insights
from glucotracker.model import (
    Insight,
    InsightLevel,
    Reading,
    ReadingType,
    RiskLevel,
)
from glucotracker.risk import classify

__all__ = [
    "Insight",
    "InsightLevel",
    "Reading",
    "ReadingType",
    "RiskLevel",
    "classify",
    "generate_insights",
]
