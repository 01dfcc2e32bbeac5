import pytest
from openpyxl import load_workbook

from campus_run.models import Run
from campus_run.recap import (
    build_recap,
    recommended_bpm,
    runs_dataframe,
    weekly_totals,
    write_run_history,
)


def _runs():
    return [
        Run(id="3", date="2024-01-17", duration=1800, distance=6.0, pace=5.0, calories=390, cadence=200),
        Run(id="2", date="2024-01-15", duration=1500, distance=5.0, pace=5.0, calories=325, cadence=165),
        Run(id="1", date="2024-01-10", duration=1200, distance=3.0, pace=6.5, calories=195),
    ]


def test_build_recap_totals():
    summary = build_recap(_runs())
    assert summary.run_count == 3
    assert summary.total_distance == pytest.approx(14.0)
    assert summary.total_duration == 4500
    assert summary.average_pace == pytest.approx((5.0 + 5.0 + 6.5) / 3)
    assert summary.total_calories == 910
    assert summary.recommended_bpm == 140


def test_build_recap_empty():
    summary = build_recap([])
    assert summary.run_count == 0
    assert summary.average_pace == 0.0
    assert summary.recommended_bpm is None


def test_recommended_bpm_requires_cadence():
    assert recommended_bpm(None) is None
    assert recommended_bpm(0) is None
    assert recommended_bpm(100) == 70


def test_runs_dataframe_formats_columns():
    df = runs_dataframe(_runs())
    assert list(df["Duration"]) == ["30:00", "25:00", "20:00"]
    assert list(df["Pace (min/km)"]) == ["5:00", "5:00", "6:30"]


def test_weekly_totals_group_by_monday_weeks():
    weekly = weekly_totals(_runs())
    assert list(weekly["Runs"]) == [1, 2]
    assert list(weekly["Distance (km)"]) == [3.0, 11.0]
    assert str(weekly["Week"].iloc[1]) == "2024-01-15"
    assert weekly_totals([]).empty


def test_write_run_history_creates_styled_workbook(tmp_path):
    path = write_run_history(tmp_path / "recap.xlsx", _runs())
    wb = load_workbook(path)
    assert wb.sheetnames == ["Summary", "Runs", "Weekly"]
    runs_ws = wb["Runs"]
    assert runs_ws["A1"].value == "Date"
    assert runs_ws["A1"].font.bold
    assert runs_ws.max_row == 4
    summary_ws = wb["Summary"]
    values = {row[0]: row[1] for row in summary_ws.iter_rows(min_row=2, values_only=True)}
    assert values["Total Distance (km)"] == 14.0
    assert values["Total Time"] == "1:15:00"
