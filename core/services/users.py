"""User accounts and per-user statistics."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ConflictError
from core.models import Registration, User, Workout, as_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserStats:
    total_workouts: int
    attended_workouts: int
    upcoming_workouts: int
    # Not computed yet; always None.
    current_streak: Optional[int] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(s: Session, email: str, password_hash: str, name: str, is_admin: bool = False) -> User:
    user = User(email=normalize_email(email), password_hash=password_hash, name=name.strip(), is_admin=is_admin)
    try:
        with s.begin_nested():
            s.add(user)
            s.flush()
    except IntegrityError as exc:
        raise ConflictError("Email already registered") from exc
    logger.info("user_created", extra={"user_id": user.id, "is_admin": is_admin})
    return user


def get_user(s: Session, user_id: int) -> User | None:
    return s.get(User, user_id)


def get_user_by_email(s: Session, email: str) -> User | None:
    return s.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()


def list_users(s: Session) -> list[User]:
    return list(s.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars().all())


def delete_user(s: Session, user_id: int) -> bool:
    user = s.get(User, user_id)
    if user is None:
        return False
    s.delete(user)
    s.flush()
    logger.info("user_deleted", extra={"user_id": user_id})
    return True


def get_user_stats(s: Session, user_id: int, now: dt.datetime | None = None) -> UserStats:
    now = as_naive_utc(now) if now is not None else utcnow()
    total = s.execute(
        select(func.count(Registration.id))
        .join(Workout, Workout.id == Registration.workout_id)
        .where(Registration.user_id == user_id, Workout.date < now)
    ).scalar_one()
    attended = s.execute(
        select(func.count(Registration.id)).where(Registration.user_id == user_id, Registration.attended.is_(True))
    ).scalar_one()
    # Counts every future workout, not only the user's.
    upcoming = s.execute(select(func.count(Workout.id)).where(Workout.date > now)).scalar_one()
    return UserStats(total_workouts=total, attended_workouts=attended, upcoming_workouts=upcoming)
