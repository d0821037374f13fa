"""Aggregation helpers for the dashboard (windows, quick stats, chart series)."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

import pandas as pd
from dateutil import tz

from glucotracker.model import KNOWN_TYPES, Reading, ReadingType
from glucotracker.risk import classify

_LOCAL_TZ = tz.tzlocal()

IN_RANGE_LOW = 80.0
IN_RANGE_HIGH = 140.0
RECENT_LIMIT = 5

FRAME_COLUMNS = [
    "id",
    "datetime",
    "date",
    "time",
    "glucose_mg_dl",
    "type",
    "risk",
    "notes",
    "meal",
    "medication",
]


class Window(str, Enum):
    """Time window used to filter readings for display."""

    TODAY = "today"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"
    LAST_7_DAYS = "last-7-days"
    LAST_30_DAYS = "last-30-days"


class ChartView(str, Enum):
    """Chart tab; each view maps to a calendar window."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def window(self) -> Window:
        return _VIEW_WINDOWS[self]


_VIEW_WINDOWS: dict[ChartView, Window] = {
    ChartView.DAILY: Window.TODAY,
    ChartView.WEEKLY: Window.THIS_WEEK,
    ChartView.MONTHLY: Window.THIS_MONTH,
}


@dataclass(frozen=True)
class QuickStats:
    """Summary of the last seven days."""

    total_readings: int
    overall_average: int | None
    in_range_percentage: int | None
    average_by_type: dict[ReadingType, int] = field(default_factory=dict)


def local_now() -> datetime:
    return datetime.now(tz=_LOCAL_TZ)


def round_half_up(value: float) -> int:
    """Round halves up (120.5 -> 121, 12.5 -> 13)."""
    return math.floor(value + 0.5)


def _localize(ts: datetime, zone: object) -> datetime:
    """Express ``ts`` in ``zone``; naive timestamps are taken as already local."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=zone)  # type: ignore[arg-type]
    return ts.astimezone(zone)  # type: ignore[arg-type]


def _week_start(day: date) -> date:
    # Weeks start on Sunday.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def in_window(ts: datetime, window: Window | str, now: datetime) -> bool:
    """Return whether ``ts`` falls inside ``window`` relative to ``now``."""
    window = Window(window)
    if now.tzinfo is None:
        now = now.replace(tzinfo=_LOCAL_TZ)
    local_ts = _localize(ts, now.tzinfo)
    if window is Window.LAST_7_DAYS:
        return local_ts > now - timedelta(days=7)
    if window is Window.LAST_30_DAYS:
        return local_ts > now - timedelta(days=30)

    day = local_ts.date()
    today = now.date()
    if window is Window.TODAY:
        return day == today
    if window is Window.THIS_WEEK:
        return _week_start(day) == _week_start(today)
    return (day.year, day.month) == (today.year, today.month)


def filter_by_window(
    readings: Sequence[Reading],
    window: Window | str,
    now: datetime | None = None,
) -> list[Reading]:
    """Readings inside ``window``, in input order.

    Args:
        readings: Readings to filter.
        window: Calendar (today/this-week/this-month) or rolling
            (last-7-days/last-30-days) window.
        now: Reference instant. Defaults to the local current time.

    Raises:
        ValueError: If ``window`` is not a known window name.
    """
    window = Window(window)
    ref = now or local_now()
    return [r for r in readings if in_window(r.timestamp, window, ref)]


def average_value(readings: Sequence[Reading]) -> float | None:
    if not readings:
        return None
    return sum(r.value for r in readings) / len(readings)


def average_in_range(
    readings: Sequence[Reading],
    low_inclusive: float = IN_RANGE_LOW,
    high_inclusive: float = IN_RANGE_HIGH,
) -> float | None:
    """Percentage (0-100) of readings within ``[low_inclusive, high_inclusive]``.

    Returns None when there are no readings.
    """
    if not readings:
        return None
    hits = sum(1 for r in readings if low_inclusive <= r.value <= high_inclusive)
    return hits / len(readings) * 100.0


def average_by_type(readings: Sequence[Reading]) -> dict[ReadingType, int]:
    """Rounded mean per reading type, only for the types present."""
    out: dict[ReadingType, int] = {}
    for reading_type in (*KNOWN_TYPES, ReadingType.UNKNOWN):
        values = [r.value for r in readings if r.type is reading_type]
        if values:
            out[reading_type] = round_half_up(sum(values) / len(values))
    return out


def quick_stats(readings: Sequence[Reading], now: datetime | None = None) -> QuickStats:
    """Stats shown on the dashboard header cards (last seven days)."""
    recent = filter_by_window(readings, Window.LAST_7_DAYS, now)
    avg = average_value(recent)
    pct = average_in_range(recent)
    return QuickStats(
        total_readings=len(readings),
        overall_average=round_half_up(avg) if avg is not None else None,
        in_range_percentage=round_half_up(pct) if pct is not None else None,
        average_by_type=average_by_type(recent),
    )


def recent_readings(
    readings: Sequence[Reading], limit: int = RECENT_LIMIT
) -> list[Reading]:
    """Newest ``limit`` readings, newest first."""
    ordered = sorted(readings, key=lambda r: r.timestamp, reverse=True)
    return ordered[:limit]


def readings_on_day(
    readings: Sequence[Reading], day: date, zone: object = _LOCAL_TZ
) -> list[Reading]:
    """Readings taken on ``day`` (in ``zone``), newest first."""
    same_day = [r for r in readings if _localize(r.timestamp, zone).date() == day]
    return sorted(same_day, key=lambda r: r.timestamp, reverse=True)


def days_with_readings(
    readings: Sequence[Reading], zone: object = _LOCAL_TZ
) -> set[date]:
    return {_localize(r.timestamp, zone).date() for r in readings}


def readings_to_frame(readings: Sequence[Reading]) -> pd.DataFrame:
    """Convert readings to a DataFrame sorted by datetime."""
    rows = [
        {
            "id": r.id,
            "datetime": r.timestamp,
            "date": r.timestamp.date(),
            "time": r.timestamp.time().replace(second=0, microsecond=0),
            "glucose_mg_dl": r.value,
            "type": r.type_name,
            "risk": classify(r.value, r.type).value,
            "notes": r.notes,
            "meal": r.meal,
            "medication": r.medication,
        }
        for r in readings
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if df.empty:
        return df
    return df.sort_values("datetime", kind="stable").reset_index(drop=True)


def daily_summary(frame: pd.DataFrame) -> pd.DataFrame:
    """Aggregate glucose by day (count/min/max/avg/in-range %)."""
    columns = [
        "date",
        "glucose_count",
        "glucose_min",
        "glucose_max",
        "glucose_avg",
        "in_range_pct",
    ]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    work = frame.assign(
        in_range=frame["glucose_mg_dl"].between(IN_RANGE_LOW, IN_RANGE_HIGH)
    )
    g = work.groupby("date", as_index=False).agg(
        glucose_count=("glucose_mg_dl", "count"),
        glucose_min=("glucose_mg_dl", "min"),
        glucose_max=("glucose_mg_dl", "max"),
        glucose_avg=("glucose_mg_dl", "mean"),
        in_range_pct=("in_range", "mean"),
    )
    g["glucose_avg"] = g["glucose_avg"].round(2)
    g["in_range_pct"] = (g["in_range_pct"] * 100).round(1)
    return g[columns].sort_values("date").reset_index(drop=True)


def chart_series(readings: Sequence[Reading], view: ChartView | str) -> pd.DataFrame:
    """Points for the trend chart, oldest first.

    The ``time`` label is ``HH:MM`` for the daily view and ``MM/DD`` otherwise.
    """
    view = ChartView(view)
    columns = ["time", "value", "type", "risk", "timestamp"]
    if not readings:
        return pd.DataFrame(columns=columns)
    fmt = "%H:%M" if view is ChartView.DAILY else "%m/%d"
    rows = [
        {
            "time": r.timestamp.strftime(fmt),
            "value": r.value,
            "type": r.type_name,
            "risk": classify(r.value, r.type).value,
            "timestamp": r.timestamp,
        }
        for r in readings
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)
