from __future__ import annotations

import datetime as dt

from core.models import Workout, WorkoutTemplate
from core.services.export import export_filename, render_export


def _workout(title: str, date: dt.datetime, description: str = "") -> Workout:
    return Workout(title=title, description=description, workout_type="For Time", date=date, max_participants=6)


def test_export_lists_workouts_then_templates():
    workouts = [_workout("Monday WOD", dt.datetime(2025, 1, 6, 17, 0), "21-15-9")]
    templates = [
        WorkoutTemplate(title="Fran", description="Thrusters", workout_type="For Time", category="Solo", times_used=3)
    ]

    text = render_export(workouts, templates, timezone="Europe/Zurich")

    assert text.index("SCHEDULED WORKOUTS") < text.index("ARCHIVE (WORKOUT TEMPLATES)")
    assert "--- Workout 1 ---" in text
    assert "Title: Monday WOD" in text
    assert "Date: 2025-01-06 18:00" in text
    assert "Max participants: 6" in text
    assert "--- Template 1 ---" in text
    assert "Category: Solo" in text
    assert "Used: 3x" in text


def test_export_empty_sections():
    text = render_export([], [])
    assert "(No scheduled workouts)" in text
    assert "(No templates in archive)" in text
    assert text.startswith("=" * 40)


def test_missing_description_placeholder():
    text = render_export([_workout("Open Gym", dt.datetime(2025, 1, 6, 9, 0))], [], timezone="UTC")
    assert "Date: 2025-01-06 09:00" in text
    assert "Description:\n(none)" in text


def test_export_filename():
    assert export_filename(dt.date(2025, 1, 6)) == "workouts-export-2025-01-06.txt"
