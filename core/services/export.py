from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

from core.models import Workout, WorkoutTemplate

RULE = "=" * 40


def _section(title: str) -> list[str]:
    return [RULE, title, RULE, ""]


def format_workout(w: Workout, timezone: str = "UTC") -> str:
    if w.date:
        local = w.date.replace(tzinfo=dt.timezone.utc).astimezone(ZoneInfo(timezone))
        when = local.strftime("%Y-%m-%d %H:%M")
    else:
        when = "No date"
    return "\n".join([
        f"Title: {w.title}",
        f"Date: {when}",
        f"Type: {w.workout_type}",
        f"Max participants: {w.max_participants}",
        "Description:",
        (w.description or "(none)").strip(),
        "",
    ])


def format_template(t: WorkoutTemplate) -> str:
    return "\n".join([
        f"Title: {t.title}",
        f"Category: {t.category}",
        f"Type: {t.workout_type}",
        f"Used: {t.times_used}x",
        "Description:",
        (t.description or "(none)").strip(),
        "",
    ])


def render_export(workouts: list[Workout], templates: list[WorkoutTemplate], timezone: str = "UTC") -> str:
    """Human-readable dump of every workout followed by the template archive."""
    lines = _section("SCHEDULED WORKOUTS")
    if not workouts:
        lines += ["(No scheduled workouts)", ""]
    for i, w in enumerate(workouts, start=1):
        lines += [f"--- Workout {i} ---", format_workout(w, timezone)]

    lines += _section("ARCHIVE (WORKOUT TEMPLATES)")
    if not templates:
        lines += ["(No templates in archive)", ""]
    for i, t in enumerate(templates, start=1):
        lines += [f"--- Template {i} ---", format_template(t)]
    return "\n".join(lines)


def export_filename(today: dt.date | None = None) -> str:
    today = today or dt.date.today()
    return f"workouts-export-{today.isoformat()}.txt"
