from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from dateutil import tz

from glucotracker.model import Reading, ReadingType
from glucotracker.storage import SQLiteStore

UTC = tz.UTC
BASE_TS = datetime(2025, 12, 15, 8, 0, tzinfo=UTC)


@pytest.fixture
def make_reading() -> Callable[..., Reading]:
    def _make(
        value: float,
        reading_type: ReadingType | str = ReadingType.RANDOM,
        *,
        hours: float = 0,
        **kwargs: object,
    ) -> Reading:
        return Reading(
            value=value,
            type=ReadingType.parse(reading_type),
            timestamp=BASE_TS + timedelta(hours=hours),
            **kwargs,  # type: ignore[arg-type]
        )

    return _make


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "glucotracker.sqlite3")
