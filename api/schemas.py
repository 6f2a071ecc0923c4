from __future__ import annotations

from datetime import datetime as dt_datetime
from datetime import timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StrictBool, StrictInt


def _as_utc(value: dt_datetime) -> dt_datetime:
    # Columns hold naive UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[dt_datetime, AfterValidator(_as_utc)]


# -- Requests --

class RegisterInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str


class LoginInput(BaseModel):
    email: str = ""
    password: str = ""


class WorkoutCreateInput(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    workout_type: Optional[str] = None
    date: Optional[UtcDatetime] = None
    max_participants: Optional[int] = Field(default=None, ge=1)
    template_id: Optional[int] = None


class WorkoutUpdateInput(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    workout_type: Optional[str] = None
    date: Optional[UtcDatetime] = None
    max_participants: Optional[int] = Field(default=None, ge=1)


class AttendanceInput(BaseModel):
    user_id: StrictInt
    attended: StrictBool


class ResultInput(BaseModel):
    result: Optional[str] = None
    rating: Optional[int] = None


class TemplateCreateInput(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    workout_type: str = "General"
    category: str = "Custom"


class TemplateUpdateInput(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    workout_type: Optional[str] = None
    category: Optional[str] = None


class PollOptionInput(BaseModel):
    date: UtcDatetime
    label: Optional[str] = None


class PollCreateInput(BaseModel):
    title: Optional[str] = None
    description: str = ""
    template_id: Optional[int] = None
    options: list[PollOptionInput] = Field(default_factory=list)


class PollUpdateInput(BaseModel):
    status: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    template_id: Optional[int] = None


class VoteInput(BaseModel):
    poll_option_id: int


# -- Responses --

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    is_admin: bool
    created_at: Optional[UtcDatetime] = None


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str


class StatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_workouts: int
    attended_workouts: int
    upcoming_workouts: int
    current_streak: Optional[int] = None


class AdminUserOut(UserOut):
    stats: StatsOut


class ParticipantOut(BaseModel):
    user_id: int
    user_name: str
    attended: bool


class WorkoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    workout_type: str
    date: UtcDatetime
    max_participants: int
    created_by: Optional[int] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
    sequence: int
    result: Optional[str] = None
    rating: Optional[int] = None
    creator_name: Optional[str] = None
    registered_count: int = 0
    is_registered: bool = False
    participants: list[ParticipantOut] = Field(default_factory=list)


class RegistrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    workout_id: int
    user_id: int
    attended: bool
    registered_at: UtcDatetime


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    workout_type: str
    category: str
    created_at: UtcDatetime
    times_used: int


class PollOptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    date: UtcDatetime
    label: Optional[str] = None
    created_at: UtcDatetime
    vote_count: int = 0
    voters: list[str] = Field(default_factory=list)
    user_voted: bool = False


class PollOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    template_id: Optional[int] = None
    created_by: Optional[int] = None
    status: str
    created_at: UtcDatetime
    creator_name: Optional[str] = None
    option_count: int = 0
    total_voters: int = 0


class PollDetailOut(PollOut):
    options: list[PollOptionOut] = Field(default_factory=list)
    template: Optional[TemplateOut] = None
    user_votes: list[int] = Field(default_factory=list)


class PollVoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_option_id: int
    user_id: int
    voted_at: UtcDatetime


class ImportResultOut(BaseModel):
    imported: int
    failed: int
    errors: list[str] = Field(default_factory=list)


# -- Envelopes --

class MessageOut(BaseModel):
    message: str


class SessionOut(BaseModel):
    user: UserOut


class LoginOut(BaseModel):
    message: str
    user: UserOut


class UsersOut(BaseModel):
    users: list[UserBrief]


class AdminUsersOut(BaseModel):
    users: list[AdminUserOut]


class StatsEnvelope(BaseModel):
    stats: StatsOut


class WorkoutEnvelope(BaseModel):
    workout: WorkoutOut


class WorkoutsEnvelope(BaseModel):
    workouts: list[WorkoutOut]


class RegistrationEnvelope(BaseModel):
    message: str
    registration: RegistrationOut


class TemplateEnvelope(BaseModel):
    template: TemplateOut


class TemplatesEnvelope(BaseModel):
    templates: list[TemplateOut]


class PollEnvelope(BaseModel):
    poll: PollDetailOut


class PollsEnvelope(BaseModel):
    polls: list[PollOut]


class PollOptionEnvelope(BaseModel):
    option: PollOptionOut


class PollVoteEnvelope(BaseModel):
    vote: PollVoteOut
