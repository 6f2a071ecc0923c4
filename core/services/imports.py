"""Spreadsheet import of scheduled workouts.

Accepts the first sheet of an ``.xlsx``/``.xls`` workbook or a ``.csv`` file
with the columns Title, Description, Type, Date, Time and Max Participants.
Rows that cannot be parsed are reported and skipped; the rest are created.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session
from xlrd import XLRDError

from core.errors import ValidationError
from core.models import Workout, as_naive_utc
from core.services.workouts import create_workout

logger = logging.getLogger(__name__)

TITLE_COLUMNS = ("Title", "title")
DESCRIPTION_COLUMNS = ("Description", "description")
TYPE_COLUMNS = ("Type", "type")
DATE_COLUMNS = ("Date", "date")
TIME_COLUMNS = ("Time", "time")
MAX_COLUMNS = ("Max Participants", "max_participants", "MaxParticipants")

DEFAULT_TIME = dt.time(9, 0)
EXCEL_EPOCH = dt.date(1899, 12, 30)
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*([AaPp][Mm])?\s*$")


@dataclass(frozen=True)
class ParsedWorkout:
    row: int
    title: str
    description: str
    workout_type: str
    date: dt.datetime  # naive UTC
    max_participants: int


@dataclass
class ImportReport:
    workouts: list[ParsedWorkout] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def read_spreadsheet(data: bytes, filename: str) -> pd.DataFrame:
    name = (filename or "").lower()
    buf = io.BytesIO(data)
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(buf, dtype=str, keep_default_na=False)
        elif name.endswith((".xlsx", ".xls")):
            df = pd.read_excel(buf, sheet_name=0)
        else:
            raise ValidationError("Unsupported file type. Upload a .xlsx, .xls or .csv file")
    except (ValueError, pd.errors.ParserError, zipfile.BadZipFile, InvalidFileException, XLRDError) as exc:
        raise ValidationError(f"Could not read spreadsheet: {exc}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    return df.astype(object).where(pd.notna(df), None)


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------

def _pick(row: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = row.get(name)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _from_serial(days: float) -> dt.date:
    try:
        return EXCEL_EPOCH + dt.timedelta(days=int(days))
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"date serial {days:g} out of range") from exc


def parse_date(value: Any) -> dt.date:
    if value is None:
        raise ValueError("missing date")
    if isinstance(value, (pd.Timestamp, dt.datetime)):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_serial(value)
    text = str(value).strip()
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_serial(float(text))
    try:
        return pd.to_datetime(text).date()
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"invalid date '{text}'") from exc


def parse_time(value: Any) -> dt.time:
    if value is None:
        return DEFAULT_TIME
    if isinstance(value, dt.datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, dt.time):
        return value.replace(second=0, microsecond=0)
    m = _TIME_RE.match(str(value))
    if not m:
        raise ValueError(f"invalid time '{value}'")
    hours, minutes, meridiem = int(m.group(1)), int(m.group(2)), m.group(3)
    if meridiem:
        meridiem = meridiem.upper()
        if meridiem == "PM" and hours != 12:
            hours += 12
        elif meridiem == "AM" and hours == 12:
            hours = 0
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid time '{value}'")
    return dt.time(hours, minutes)


def parse_max_participants(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(float(str(value).strip()))
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"invalid max participants '{value}'") from exc
    if parsed < 1:
        raise ValueError("max participants must be at least 1")
    return parsed


def local_to_utc(day: dt.date, at: dt.time, timezone: str) -> dt.datetime:
    """Interpret a wall-clock date and time in ``timezone``; return naive UTC."""
    return as_naive_utc(dt.datetime.combine(day, at, tzinfo=ZoneInfo(timezone)))


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

def parse_workouts(df: pd.DataFrame, timezone: str = "UTC", default_max_participants: int = 20) -> ImportReport:
    report = ImportReport()
    for i, row in enumerate(df.to_dict("records"), start=1):
        title = str(_pick(row, TITLE_COLUMNS) or f"Workout {i}").strip()
        try:
            day = parse_date(_pick(row, DATE_COLUMNS))
            at = parse_time(_pick(row, TIME_COLUMNS))
            max_participants = parse_max_participants(_pick(row, MAX_COLUMNS), default_max_participants)
        except (ValueError, OverflowError) as exc:
            report.errors.append(f"Row {i} ({title}): {exc}")
            continue
        report.workouts.append(
            ParsedWorkout(
                row=i,
                title=title,
                description=str(_pick(row, DESCRIPTION_COLUMNS) or "").strip(),
                workout_type=str(_pick(row, TYPE_COLUMNS) or "General").strip(),
                date=local_to_utc(day, at, timezone),
                max_participants=max_participants,
            )
        )
    return report


def import_workouts(s: Session, parsed: list[ParsedWorkout], created_by: int | None) -> list[Workout]:
    created = [
        create_workout(
            s,
            title=p.title,
            description=p.description,
            workout_type=p.workout_type,
            date=p.date,
            max_participants=p.max_participants,
            created_by=created_by,
        )
        for p in parsed
    ]
    logger.info("workouts_imported", extra={"count": len(created), "created_by": created_by})
    return created
