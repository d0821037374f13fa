"""CSV export of the reading log and formatted Excel for a doctor visit."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter

from glucotracker.errors import ExportError
from glucotracker.model import Reading
from glucotracker.risk import risk_color
from glucotracker.stats import readings_to_frame

CSV_HEADER = "Date,Time,Value,Type,Notes,Meal,Medication"

_WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_EXCEL_COLUMNS: dict[str, str] = {
    "glucose_mg_dl": "Glucose (mg/dL)",
    "type": "Type",
    "risk": "Risk",
    "notes": "Notes",
    "meal": "Meal",
    "medication": "Medication",
}

# Header -> (column width, body number format).
_COLUMN_SPECS: dict[str, tuple[float, str | None]] = {
    "Day": (6, None),
    "Date / Time": (18, "yyyy-mm-dd hh:mm"),
    "Glucose (mg/dL)": (14, "0"),
    "Type": (12, None),
    "Risk": (10, None),
    "Notes": (28, None),
    "Meal": (22, None),
    "Medication": (18, None),
}


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the doctor sheet."""

    sheet_name: str = "Glucose log"
    freeze_header: bool = True


def format_value(value: float) -> str:
    """Render a glucose value without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _csv_row(reading: Reading, zone: Any | None) -> str:
    ts = reading.timestamp
    if zone is not None and ts.tzinfo is not None:
        ts = ts.astimezone(zone)
    return ",".join(
        [
            ts.strftime("%Y-%m-%d"),
            ts.strftime("%H:%M"),
            format_value(reading.value),
            reading.type_name,
            reading.notes or "",
            reading.meal or "",
            reading.medication or "",
        ]
    )


def readings_to_csv(readings: Sequence[Reading], zone: Any | None = None) -> str:
    """Serialize readings in the given order.

    Fields are joined with commas without quoting and lines with ``\\n``; there
    is no trailing newline.

    Args:
        readings: Readings to export.
        zone: Optional tzinfo to render dates/times in; defaults to each
            reading's own timezone.

    Raises:
        ExportError: If there is nothing to export.
    """
    if not readings:
        raise ExportError("No data to export. Please log some readings first.")
    return "\n".join([CSV_HEADER, *(_csv_row(r, zone) for r in readings)])


def export_filename(today: date) -> str:
    return f"glucotracker-export-{today:%Y-%m-%d}.csv"


def write_csv(
    readings: Sequence[Reading],
    out_dir: Path,
    *,
    today: date | None = None,
    zone: Any | None = None,
) -> Path:
    """Write the CSV export into ``out_dir`` and return its path."""
    content = readings_to_csv(readings, zone)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / export_filename(today or datetime.now().date())
    out_path.write_text(content, encoding="utf-8")
    return out_path


def _excel_frame(readings: Sequence[Reading]) -> pd.DataFrame:
    """Oldest-first rows with local wall-clock times (Excel has no timezones)."""
    frame = readings_to_frame(readings)
    stamps = list(frame["datetime"])
    out = pd.DataFrame(
        {
            "Day": [_WEEKDAYS[ts.weekday()] for ts in stamps],
            "Date / Time": [ts.replace(tzinfo=None) for ts in stamps],
        }
    )
    for column, header in _EXCEL_COLUMNS.items():
        out[header] = frame[column].to_numpy()
    return out


def write_doctor_xlsx(
    readings: Sequence[Reading], out_path: Path, layout: ExcelLayout
) -> None:
    """Write a formatted Excel file suitable for printing.

    Raises:
        ExportError: If there is nothing to export.
    """
    if not readings:
        raise ExportError("No data to export. Please log some readings first.")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    export_df = _excel_frame(readings)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        _format_sheet(writer.book[layout.sheet_name], layout)


def _risk_hex(risk: object) -> str:
    red, green, blue, _alpha = risk_color(str(risk) if risk is not None else None)
    return "".join(f"{round(c * 255):02X}" for c in (red, green, blue))


def _format_sheet(ws: Any, layout: ExcelLayout | None = None) -> None:
    """Style the sheet in one pass over its columns.

    Known headers get their width and number format; risk cells are colored
    like the dashboard.
    """
    layout = layout or ExcelLayout()
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for idx, header_cell in enumerate(ws[1], start=1):
        header = str(header_cell.value)
        width, number_format = _COLUMN_SPECS.get(header, (None, None))
        letter = get_column_letter(idx)
        if width is not None:
            ws.column_dimensions[letter].width = width
        for cell in ws[letter]:
            cell.border = border
            cell.alignment = center
            if cell.row == 1:
                cell.font = Font(bold=True)
                continue
            if number_format is not None:
                cell.number_format = number_format
            if header == "Risk":
                cell.font = Font(bold=True, color=_risk_hex(cell.value))

    if layout.freeze_header:
        ws.freeze_panes = "A2"
