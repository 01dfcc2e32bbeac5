"""Run-history recap: totals, weekly rollups and an Excel export."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from . import config
from .models import Run
from .utils import format_duration, format_pace

LOGGER = logging.getLogger(__name__)

RUNS_SHEET = "Runs"
WEEKLY_SHEET = "Weekly"
SUMMARY_SHEET = "Summary"

RUN_COLUMNS = [
    "Date",
    "Route",
    "Type",
    "Distance (km)",
    "Duration",
    "Pace (min/km)",
    "Avg Speed (km/h)",
    "Cadence (spm)",
    "Calories",
]

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(patternType="solid", fgColor="FF9BD770")
HEADER_BORDER = Border(
    left=Side(style="thin", color="000000"),
    right=Side(style="thin", color="000000"),
    top=Side(style="thin", color="000000"),
    bottom=Side(style="thin", color="000000"),
)

PathInput = str | Path | PathLike[str]


@dataclass(frozen=True, slots=True)
class RecapSummary:
    run_count: int
    total_distance: float  # km
    total_duration: int  # seconds
    average_pace: float  # min/km, mean of per-run paces
    total_calories: int
    recommended_bpm: Optional[int] = None


def recommended_bpm(cadence: Optional[float]) -> Optional[int]:
    """Music tempo suggestion derived from a run's cadence."""

    if cadence is None or cadence <= 0:
        return None
    return int(math.floor(cadence * config.RECOMMENDED_BPM_FACTOR))


def build_recap(runs: Sequence[Run]) -> RecapSummary:
    """Totals across ``runs``; the newest run (first) drives the BPM hint."""

    if not runs:
        return RecapSummary(0, 0.0, 0, 0.0, 0)
    return RecapSummary(
        run_count=len(runs),
        total_distance=sum(run.distance for run in runs),
        total_duration=sum(run.duration for run in runs),
        average_pace=sum(run.pace for run in runs) / len(runs),
        total_calories=sum(run.calories for run in runs),
        recommended_bpm=recommended_bpm(runs[0].cadence),
    )


def runs_dataframe(runs: Sequence[Run]) -> pd.DataFrame:
    rows = [
        {
            "Date": run.date,
            "Route": run.route or "",
            "Type": run.type,
            "Distance (km)": run.distance,
            "Duration": format_duration(run.duration),
            "Pace (min/km)": format_pace(run.pace),
            "Avg Speed (km/h)": run.avg_speed,
            "Cadence (spm)": run.cadence,
            "Calories": run.calories,
        }
        for run in runs
    ]
    return pd.DataFrame(rows, columns=RUN_COLUMNS)


def weekly_totals(runs: Sequence[Run]) -> pd.DataFrame:
    """Distance, time and calories per ISO week (weeks starting Monday)."""

    columns = ["Week", "Runs", "Distance (km)", "Duration (s)", "Calories"]
    if not runs:
        return pd.DataFrame(columns=columns)
    frame = pd.DataFrame(
        {
            "date": pd.to_datetime([run.date for run in runs], errors="coerce"),
            "distance": [run.distance for run in runs],
            "duration": [run.duration for run in runs],
            "calories": [run.calories for run in runs],
        }
    ).dropna(subset=["date"])
    if frame.empty:
        return pd.DataFrame(columns=columns)
    frame["week"] = frame["date"].dt.to_period("W-SUN").dt.start_time.dt.date
    grouped = (
        frame.groupby("week")
        .agg(
            runs=("distance", "size"),
            distance=("distance", "sum"),
            duration=("duration", "sum"),
            calories=("calories", "sum"),
        )
        .reset_index()
        .sort_values("week")
    )
    grouped["distance"] = grouped["distance"].round(2)
    grouped.columns = columns
    return grouped


def _summary_dataframe(summary: RecapSummary) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Metric": [
                "Runs",
                "Total Distance (km)",
                "Total Time",
                "Average Pace (min/km)",
                "Total Calories",
                "Recommended BPM",
            ],
            "Value": [
                summary.run_count,
                round(summary.total_distance, 2),
                format_duration(summary.total_duration),
                format_pace(summary.average_pace),
                summary.total_calories,
                summary.recommended_bpm if summary.recommended_bpm is not None else "",
            ],
        }
    )


def _style_header_row(ws: Worksheet, row_idx: int = 1) -> None:
    for col_idx in range(1, ws.max_column + 1):
        cell = ws.cell(row=row_idx, column=col_idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER


def _autosize(ws: Worksheet) -> None:
    if not config.EXCEL_AUTOSIZE_COLUMNS:
        return
    for col_cells in ws.columns:
        max_len = 0
        col_letter = getattr(col_cells[0], "column_letter", None)
        for cell in col_cells:
            if cell.value is None:
                continue
            max_len = max(max_len, len(str(cell.value)))
        width = min(
            config.EXCEL_AUTOSIZE_MAX_WIDTH,
            max(config.EXCEL_AUTOSIZE_MIN_WIDTH, max_len + config.EXCEL_AUTOSIZE_PADDING),
        )
        if col_letter:
            ws.column_dimensions[col_letter].width = width


def write_run_history(filepath: PathInput, runs: Sequence[Run]) -> Path:
    """Write Summary, Runs and Weekly sheets to an ``.xlsx`` workbook."""

    path = Path(filepath)
    sheets = {
        SUMMARY_SHEET: _summary_dataframe(build_recap(runs)),
        RUNS_SHEET: runs_dataframe(runs),
        WEEKLY_SHEET: weekly_totals(runs),
    }
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)
            ws = writer.sheets[name]
            _style_header_row(ws)
            _autosize(ws)
    LOGGER.info("Wrote recap for %d runs to %s", len(runs), path)
    return path


__all__ = [
    "RecapSummary",
    "build_recap",
    "recommended_bpm",
    "runs_dataframe",
    "weekly_totals",
    "write_run_history",
]
