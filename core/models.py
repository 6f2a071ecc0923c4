from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

TEMPLATE_CATEGORIES = ("Team of 2", "Team of 3", "Solo", "Custom")
POLL_STATUSES = ("active", "closed")


def utcnow() -> dt.datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    registrations: Mapped[list["Registration"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    poll_votes: Mapped[list["PollVote"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Workout(Base):
    __tablename__ = "workouts"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    workout_type: Mapped[str] = mapped_column(String(100), default="General")
    date: Mapped[dt.datetime] = mapped_column(DateTime, index=True)
    max_participants: Mapped[int] = mapped_column(Integer, default=4)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)
    sequence: Mapped[int] = mapped_column(Integer, default=0)
    result: Mapped[Optional[str]] = mapped_column(Text)
    rating: Mapped[Optional[int]] = mapped_column(Integer)

    creator: Mapped[Optional[User]] = relationship()
    registrations: Mapped[list["Registration"]] = relationship(
        back_populates="workout", cascade="all, delete-orphan", order_by="Registration.id"
    )
    edits: Mapped[list["WorkoutEdit"]] = relationship(cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("max_participants >= 1", name="ck_workouts_max_participants"),
        CheckConstraint("rating is null or rating between 1 and 5", name="ck_workouts_rating"),
        {"sqlite_autoincrement": True},
    )


class WorkoutEdit(Base):
    __tablename__ = "workout_edits"
    __table_args__ = {"sqlite_autoincrement": True}
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workout_id: Mapped[int] = mapped_column(ForeignKey("workouts.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    edited_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)


class Registration(Base):
    __tablename__ = "registrations"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workout_id: Mapped[int] = mapped_column(ForeignKey("workouts.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    attended: Mapped[bool] = mapped_column(Boolean, default=False)
    registered_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    workout: Mapped[Workout] = relationship(back_populates="registrations")
    user: Mapped[User] = relationship(back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("workout_id", "user_id", name="uq_registrations_workout_user"),
        {"sqlite_autoincrement": True},
    )


class WorkoutTemplate(Base):
    __tablename__ = "workout_templates"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    workout_type: Mapped[str] = mapped_column(String(100), default="General")
    category: Mapped[str] = mapped_column(String(50), default="Custom")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)
    times_used: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        CheckConstraint(
            "category in ('Team of 2', 'Team of 3', 'Solo', 'Custom')",
            name="ck_workout_templates_category",
        ),
        {"sqlite_autoincrement": True},
    )


class Poll(Base):
    __tablename__ = "polls"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    template_id: Mapped[Optional[int]] = mapped_column(ForeignKey("workout_templates.id", ondelete="SET NULL"))
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    status: Mapped[str] = mapped_column(String(20), default="active")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    creator: Mapped[Optional[User]] = relationship()
    template: Mapped[Optional[WorkoutTemplate]] = relationship()
    options: Mapped[list["PollOption"]] = relationship(
        back_populates="poll", cascade="all, delete-orphan", order_by="PollOption.id"
    )

    __table_args__ = (
        CheckConstraint("status in ('active', 'closed')", name="ck_polls_status"),
        Index("ix_polls_status", "status"),
        {"sqlite_autoincrement": True},
    )


class PollOption(Base):
    __tablename__ = "poll_options"
    __table_args__ = {"sqlite_autoincrement": True}
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id", ondelete="CASCADE"), index=True)
    date: Mapped[dt.datetime] = mapped_column(DateTime)
    label: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    poll: Mapped[Poll] = relationship(back_populates="options")
    votes: Mapped[list["PollVote"]] = relationship(
        back_populates="option", cascade="all, delete-orphan", order_by="PollVote.id"
    )


class PollVote(Base):
    __tablename__ = "poll_votes"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    poll_option_id: Mapped[int] = mapped_column(ForeignKey("poll_options.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    voted_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow)

    option: Mapped[PollOption] = relationship(back_populates="votes")
    user: Mapped[User] = relationship(back_populates="poll_votes")

    __table_args__ = (
        UniqueConstraint("poll_option_id", "user_id", name="uq_poll_votes_option_user"),
        {"sqlite_autoincrement": True},
    )
