"""Workouts, registrations and attendance.

Every function takes the caller's session and never commits; the request
transaction decides when changes become visible. Lookups that miss return
``None``/``False`` and the HTTP layer turns that into a 404.
"""

from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import CapacityError
from core.models import Registration, Workout, WorkoutEdit, as_naive_utc, utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------

def create_workout(
    s: Session,
    title: str,
    description: str,
    workout_type: str,
    date: dt.datetime,
    max_participants: int,
    created_by: int | None,
) -> Workout:
    now = utcnow()
    workout = Workout(
        title=title,
        description=description or "",
        workout_type=workout_type or "General",
        date=as_naive_utc(date),
        max_participants=max_participants,
        created_by=created_by,
        created_at=now,
        updated_at=now,
        sequence=0,
    )
    s.add(workout)
    s.flush()
    logger.info("workout_created", extra={"workout_id": workout.id, "created_by": created_by})
    return workout


def get_workout(s: Session, workout_id: int) -> Workout | None:
    return s.get(Workout, workout_id)


def list_workouts(s: Session, upcoming_only: bool = False, now: dt.datetime | None = None) -> list[Workout]:
    q = select(Workout)
    if upcoming_only:
        now = as_naive_utc(now) if now is not None else utcnow()
        q = q.where(Workout.date >= now).order_by(Workout.date.asc(), Workout.id.asc())
    else:
        q = q.order_by(Workout.date.desc(), Workout.id.desc())
    return list(s.execute(q).scalars().all())


def list_workouts_between(s: Session, start: dt.datetime, end: dt.datetime) -> list[Workout]:
    """Workouts with ``start <= date < end``, earliest first."""
    q = (
        select(Workout)
        .where(Workout.date >= as_naive_utc(start), Workout.date < as_naive_utc(end))
        .order_by(Workout.date.asc(), Workout.id.asc())
    )
    return list(s.execute(q).scalars().all())


def update_workout(
    s: Session,
    workout_id: int,
    title: str,
    description: str,
    workout_type: str,
    date: dt.datetime,
    max_participants: int,
    editing_user_id: int | None,
) -> Workout | None:
    workout = s.get(Workout, workout_id)
    if workout is None:
        return None
    now = utcnow()
    workout.title = title
    workout.description = description or ""
    workout.workout_type = workout_type or "General"
    workout.date = as_naive_utc(date)
    workout.max_participants = max_participants
    workout.updated_at = now
    workout.sequence = (workout.sequence or 0) + 1
    s.add(WorkoutEdit(workout_id=workout.id, user_id=editing_user_id, edited_at=now))
    s.flush()
    logger.info(
        "workout_updated",
        extra={"workout_id": workout.id, "sequence": workout.sequence, "edited_by": editing_user_id},
    )
    return workout


def set_workout_result(s: Session, workout_id: int, result: str | None, rating: int | None) -> Workout | None:
    workout = s.get(Workout, workout_id)
    if workout is None:
        return None
    workout.result = result
    workout.rating = rating
    workout.updated_at = utcnow()
    workout.sequence = (workout.sequence or 0) + 1
    s.flush()
    logger.info("workout_result_set", extra={"workout_id": workout.id, "rating": rating})
    return workout


def delete_workout(s: Session, workout_id: int) -> bool:
    workout = s.get(Workout, workout_id)
    if workout is None:
        return False
    s.delete(workout)
    s.flush()
    logger.info("workout_deleted", extra={"workout_id": workout_id})
    return True


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------

def get_registration(s: Session, workout_id: int, user_id: int) -> Registration | None:
    return s.execute(
        select(Registration).where(Registration.workout_id == workout_id, Registration.user_id == user_id)
    ).scalar_one_or_none()


def count_registrations(s: Session, workout_id: int) -> int:
    return s.execute(select(func.count(Registration.id)).where(Registration.workout_id == workout_id)).scalar_one()


def _insert_registration(s: Session, workout_id: int, user_id: int) -> tuple[Registration, bool]:
    registration = Registration(workout_id=workout_id, user_id=user_id, attended=False, registered_at=utcnow())
    try:
        with s.begin_nested():
            s.add(registration)
            s.flush()
    except IntegrityError:
        # Lost a race against the same (workout, user) pair.
        existing = get_registration(s, workout_id, user_id)
        if existing is None:
            raise
        return existing, False
    logger.info("registration_created", extra={"workout_id": workout_id, "user_id": user_id})
    return registration, True


def register_for_workout(s: Session, workout_id: int, user_id: int) -> Registration:
    """Register without a capacity check; returns the existing row on repeat calls."""
    existing = get_registration(s, workout_id, user_id)
    if existing is not None:
        return existing
    registration, _ = _insert_registration(s, workout_id, user_id)
    return registration


def reserve_spot(s: Session, workout_id: int, user_id: int) -> tuple[Registration, bool] | None:
    """Capacity-checked registration.

    Locks the workout row for the rest of the transaction (SQLite sessions
    already hold the database write lock from `BEGIN IMMEDIATE`), so the
    count and the insert cannot interleave with another reservation for the
    same workout. Returns ``(registration, created)`` or ``None`` if the workout
    does not exist; raises ``CapacityError`` when the workout is full.
    """
    workout = s.execute(select(Workout).where(Workout.id == workout_id).with_for_update()).scalar_one_or_none()
    if workout is None:
        return None
    existing = get_registration(s, workout_id, user_id)
    if existing is not None:
        return existing, False
    if count_registrations(s, workout_id) >= workout.max_participants:
        logger.info("registration_rejected_capacity", extra={"workout_id": workout_id, "user_id": user_id})
        raise CapacityError("Workout is at maximum capacity")
    return _insert_registration(s, workout_id, user_id)


def unregister_from_workout(s: Session, workout_id: int, user_id: int) -> bool:
    registration = get_registration(s, workout_id, user_id)
    if registration is None:
        return False
    s.delete(registration)
    s.flush()
    logger.info("registration_deleted", extra={"workout_id": workout_id, "user_id": user_id})
    return True


def registrations_for_workout(s: Session, workout_id: int) -> list[Registration]:
    q = select(Registration).where(Registration.workout_id == workout_id).order_by(Registration.id.asc())
    return list(s.execute(q).scalars().all())


def registrations_for_user(s: Session, user_id: int) -> list[Registration]:
    q = select(Registration).where(Registration.user_id == user_id).order_by(Registration.id.asc())
    return list(s.execute(q).scalars().all())


def mark_attendance(s: Session, workout_id: int, user_id: int, attended: bool) -> bool:
    registration = get_registration(s, workout_id, user_id)
    if registration is None:
        return False
    registration.attended = attended
    s.flush()
    logger.info("attendance_marked", extra={"workout_id": workout_id, "user_id": user_id, "attended": attended})
    return True
