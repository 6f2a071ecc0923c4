"""Tests for import service."""

from __future__ import annotations

import datetime as dt

import pandas as pd
import pytest

from core.errors import ValidationError
from core.services.imports import (
    import_workouts,
    parse_date,
    parse_max_participants,
    parse_time,
    parse_workouts,
    read_spreadsheet,
)
from core.services.users import create_user
from core.services.workouts import list_workouts

CSV = (
    "Title,Description,Type,Date,Time,Max Participants\n"
    "Monday WOD,5 rounds,For Time,2025-01-06,18:00,12\n"
    "Tuesday EMOM,,EMOM,2025-01-07,6:30 PM,\n"
    "Broken,,AMRAP,not a date,09:00,8\n"
).encode()


def test_read_csv_keeps_blank_cells_as_missing():
    df = read_spreadsheet(CSV, "week.csv")
    assert list(df.columns) == ["Title", "Description", "Type", "Date", "Time", "Max Participants"]
    assert len(df) == 3
    assert df.iloc[1]["Description"] == ""


def test_unsupported_extension_rejected():
    with pytest.raises(ValidationError, match="Unsupported file type"):
        read_spreadsheet(b"whatever", "week.pdf")


def test_parse_workouts_reports_bad_rows_and_keeps_good_ones():
    report = parse_workouts(read_spreadsheet(CSV, "week.csv"), timezone="UTC", default_max_participants=20)

    assert [w.title for w in report.workouts] == ["Monday WOD", "Tuesday EMOM"]
    monday, tuesday = report.workouts
    assert monday.date == dt.datetime(2025, 1, 6, 18, 0)
    assert monday.max_participants == 12
    assert tuesday.date == dt.datetime(2025, 1, 7, 18, 30)
    assert tuesday.max_participants == 20
    assert tuesday.description == ""
    assert report.failed == 1
    assert report.errors[0].startswith("Row 3 (Broken): ")


def test_local_wall_clock_converted_to_utc():
    df = pd.DataFrame(
        [
            {"Title": "Winter", "Date": "2025-01-06", "Time": "18:00"},
            {"Title": "Summer", "Date": "2025-07-01", "Time": "18:00"},
        ]
    )
    report = parse_workouts(df, timezone="Europe/Zurich")
    assert [w.date for w in report.workouts] == [
        dt.datetime(2025, 1, 6, 17, 0),
        dt.datetime(2025, 7, 1, 16, 0),
    ]


def test_missing_title_gets_row_number_and_defaults():
    df = pd.DataFrame([{"Date": "2025-01-06"}])
    report = parse_workouts(df)
    (w,) = report.workouts
    assert w.title == "Workout 1"
    assert w.workout_type == "General"
    assert w.date == dt.datetime(2025, 1, 6, 9, 0)


def test_parse_date_variants():
    assert parse_date("45663") == dt.date(2025, 1, 6)
    assert parse_date(45663) == dt.date(2025, 1, 6)
    assert parse_date(pd.Timestamp("2025-01-06 07:00")) == dt.date(2025, 1, 6)
    assert parse_date(dt.date(2025, 1, 6)) == dt.date(2025, 1, 6)
    with pytest.raises(ValueError):
        parse_date(None)
    for serial in ("99999999999", 10**12):
        with pytest.raises(ValueError, match="out of range"):
            parse_date(serial)


def test_parse_time_variants():
    assert parse_time(None) == dt.time(9, 0)
    assert parse_time("12:15 AM") == dt.time(0, 15)
    assert parse_time("12:15 pm") == dt.time(12, 15)
    assert parse_time("07:45:30") == dt.time(7, 45)
    assert parse_time(dt.time(6, 0, 12)) == dt.time(6, 0)
    for bad in ("25:00", "noon", "7"):
        with pytest.raises(ValueError):
            parse_time(bad)


def test_parse_max_participants():
    assert parse_max_participants(None, 20) == 20
    assert parse_max_participants("8.0", 20) == 8
    with pytest.raises(ValueError):
        parse_max_participants("0", 20)
    with pytest.raises(ValueError):
        parse_max_participants("lots", 20)
    with pytest.raises(ValueError):
        parse_max_participants("inf", 20)


def test_out_of_range_cells_are_reported_not_raised():
    df = pd.DataFrame(
        [
            {"Title": "Big", "Date": "99999999999", "Time": "09:00"},
            {"Title": "Crowd", "Date": "2025-01-06", "Time": "09:00", "Max Participants": "inf"},
            {"Title": "Monday WOD", "Date": "2025-01-06", "Time": "18:00"},
        ]
    ).astype(object)
    report = parse_workouts(df.where(pd.notna(df), None))
    assert [w.title for w in report.workouts] == ["Monday WOD"]
    assert [e.split(":")[0] for e in report.errors] == ["Row 1 (Big)", "Row 2 (Crowd)"]


def test_corrupt_workbook_rejected():
    with pytest.raises(ValidationError, match="Could not read spreadsheet"):
        read_spreadsheet(b"PK\x03\x04truncated", "plan.xlsx")


def test_import_workouts_persists_rows(db):
    report = parse_workouts(read_spreadsheet(CSV, "week.csv"))
    with db.session_scope() as s:
        coach = create_user(s, "coach@wodboard.app", "x", "Coach", is_admin=True)
        created = import_workouts(s, report.workouts, created_by=coach.id)
        assert len(created) == 2
        assert all(w.sequence == 0 and w.created_by == coach.id for w in created)

    with db.session_scope() as s:
        assert sorted(w.title for w in list_workouts(s)) == ["Monday WOD", "Tuesday EMOM"]
