"""iCalendar (RFC 5545) payloads for workout invites and cancellations."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from zoneinfo import ZoneInfo

EVENT_DURATION = dt.timedelta(hours=1)
PRODID = "-//WOD Board//NONSGML v1.0//EN"

ACTIONS = ("create", "update", "cancel")


@dataclass(frozen=True)
class WorkoutSnapshot:
    """Detached copy of the workout fields an invite needs."""
    id: int
    title: str
    description: str
    workout_type: str
    date: dt.datetime  # naive UTC
    sequence: int


@dataclass(frozen=True)
class Contact:
    email: str
    name: str


def format_ics_datetime(value: dt.datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc)
    return value.strftime("%Y%m%dT%H%M%SZ")


def escape_text(text: str | None) -> str:
    if not text:
        return ""
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\n")
        .replace("\n", "\\n")
    )


def event_uid(workout_id: int, domain: str) -> str:
    return f"workout-{workout_id}@{domain}"


def build_ics(
    workout: WorkoutSnapshot,
    organizer: Contact,
    attendee: Contact,
    action: str = "create",
    *,
    domain: str = "wodboard.app",
    location: str = "Crossfit Gym",
    now: dt.datetime | None = None,
) -> str:
    if action not in ACTIONS:
        raise ValueError(f"unknown calendar action: {action}")
    cancelled = action == "cancel"
    stamp = now or dt.datetime.now(dt.timezone.utc)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        f"METHOD:{'CANCEL' if cancelled else 'REQUEST'}",
        "BEGIN:VEVENT",
        f"UID:{event_uid(workout.id, domain)}",
        f"DTSTAMP:{format_ics_datetime(stamp)}",
        f"DTSTART:{format_ics_datetime(workout.date)}",
        f"DTEND:{format_ics_datetime(workout.date + EVENT_DURATION)}",
        f"SUMMARY:{escape_text(workout.title)}",
    ]
    if workout.description:
        body = f"{workout.workout_type}\n\n{workout.description}" if workout.workout_type else workout.description
        lines.append(f"DESCRIPTION:{escape_text(body)}")
    lines += [
        f"LOCATION:{escape_text(location)}",
        f"STATUS:{'CANCELLED' if cancelled else 'CONFIRMED'}",
        f"SEQUENCE:{workout.sequence}",
        f"ORGANIZER;CN={escape_text(organizer.name)}:mailto:{organizer.email}",
        f"ATTENDEE;CN={escape_text(attendee.name)};RSVP=TRUE:mailto:{attendee.email}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


def slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def local_date(value: dt.datetime, timezone: str) -> dt.date:
    aware = value if value.tzinfo is not None else value.replace(tzinfo=dt.timezone.utc)
    return aware.astimezone(ZoneInfo(timezone)).date()


def ics_filename(workout: WorkoutSnapshot, timezone: str = "UTC") -> str:
    day = local_date(workout.date, timezone).isoformat()
    slug = slugify(workout.title)
    return f"workout-{day}-{slug}.ics" if slug else f"workout-{day}.ics"
