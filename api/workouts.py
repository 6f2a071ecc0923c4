from __future__ import annotations

import datetime as dt
import logging
from typing import Annotated, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile

from api.auth import SessionUser, get_session_user, require_admin
from api.schemas import (
    AttendanceInput,
    ImportResultOut,
    MessageOut,
    ParticipantOut,
    RegistrationEnvelope,
    RegistrationOut,
    ResultInput,
    WorkoutCreateInput,
    WorkoutEnvelope,
    WorkoutOut,
    WorkoutsEnvelope,
    WorkoutUpdateInput,
)
from core.config import get_settings
from core.db import session_scope
from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.models import User, Workout, as_naive_utc, utcnow
from core.services import imports as imports_svc
from core.services import templates as templates_svc
from core.services import workouts as workouts_svc
from core.services.calendar_invite import Contact, WorkoutSnapshot
from core.services.notifications import dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workouts"])

CurrentUser = Annotated[SessionUser, Depends(get_session_user)]
AdminUser = Annotated[SessionUser, Depends(require_admin)]


def snapshot(w: Workout) -> WorkoutSnapshot:
    return WorkoutSnapshot(
        id=w.id,
        title=w.title,
        description=w.description or "",
        workout_type=w.workout_type or "",
        date=w.date,
        sequence=w.sequence,
    )


def contact(user: Optional[User]) -> Optional[Contact]:
    if user is None:
        return None
    return Contact(email=user.email, name=user.name)


def workout_out(w: Workout, viewer_id: Optional[int] = None) -> WorkoutOut:
    registrations = list(w.registrations)
    participants = [ParticipantOut(user_id=r.user_id, user_name=r.user.name, attended=r.attended) for r in registrations]
    return WorkoutOut.model_validate(w).model_copy(
        update={
            "creator_name": w.creator.name if w.creator is not None else "Unknown",
            "registered_count": len(registrations),
            "is_registered": viewer_id is not None and any(r.user_id == viewer_id for r in registrations),
            "participants": participants,
        }
    )


def _load_workout(s, workout_id: int) -> Workout:
    w = workouts_svc.get_workout(s, workout_id)
    if w is None:
        raise NotFoundError("Workout not found")
    return w


@router.get("/workouts", response_model=WorkoutsEnvelope)
def list_workouts(user: CurrentUser, filter_: Optional[str] = Query(None, alias="filter")):
    with session_scope() as s:
        rows = workouts_svc.list_workouts(s, upcoming_only=(filter_ == "upcoming"))
        return WorkoutsEnvelope(workouts=[workout_out(w, user.id) for w in rows])


@router.post("/workouts", response_model=WorkoutEnvelope, status_code=201)
def create_workout(body: WorkoutCreateInput, user: CurrentUser, background_tasks: BackgroundTasks):
    settings = get_settings()
    with session_scope() as s:
        title, description, workout_type = body.title, body.description, body.workout_type
        if body.template_id is not None:
            template = templates_svc.get_template(s, body.template_id)
            if template is None:
                raise NotFoundError("Template not found")
            title = title or template.title
            description = description if description is not None else template.description
            workout_type = workout_type or template.workout_type
        if not (title or "").strip() or body.date is None:
            raise ValidationError("Title and date are required")

        w = workouts_svc.create_workout(
            s,
            title=title.strip(),
            description=description or "",
            workout_type=workout_type or "General",
            date=body.date,
            max_participants=body.max_participants or settings.default_max_participants,
            created_by=user.id,
        )
        if body.template_id is not None:
            templates_svc.increment_template_usage(s, body.template_id)
        out = workout_out(w, user.id)
        snap = snapshot(w)

    background_tasks.add_task(dispatcher.workout_created, snap, Contact(email=user.email, name=user.name))
    return WorkoutEnvelope(workout=out)


@router.get("/workouts/today", response_model=WorkoutsEnvelope)
def todays_workouts():
    """Public board of workouts scheduled for the current local day."""
    tz = ZoneInfo(get_settings().display_timezone)
    local_today = dt.datetime.now(tz).date()
    start = dt.datetime.combine(local_today, dt.time.min, tzinfo=tz)
    end = start + dt.timedelta(days=1)
    with session_scope() as s:
        rows = workouts_svc.list_workouts_between(s, start, end)
        outs = [workout_out(w).model_copy(update={"participants": [], "is_registered": False}) for w in rows]
    return WorkoutsEnvelope(workouts=outs)


@router.post("/workouts/import", response_model=ImportResultOut)
def import_workouts(user: CurrentUser, file: UploadFile = File(...)):
    settings = get_settings()
    df = imports_svc.read_spreadsheet(file.file.read(), file.filename or "")
    report = imports_svc.parse_workouts(
        df,
        timezone=settings.display_timezone,
        default_max_participants=settings.import_default_max_participants,
    )
    with session_scope() as s:
        created = imports_svc.import_workouts(s, report.workouts, created_by=user.id)
    return ImportResultOut(imported=len(created), failed=report.failed, errors=report.errors)


@router.get("/workouts/{workout_id}", response_model=WorkoutEnvelope)
def get_workout(workout_id: int, user: CurrentUser):
    with session_scope() as s:
        return WorkoutEnvelope(workout=workout_out(_load_workout(s, workout_id), user.id))


@router.put("/workouts/{workout_id}", response_model=WorkoutEnvelope)
def update_workout(workout_id: int, body: WorkoutUpdateInput, user: CurrentUser, background_tasks: BackgroundTasks):
    if not (body.title or "").strip() or body.date is None:
        raise ValidationError("Title and date are required")
    with session_scope() as s:
        current = _load_workout(s, workout_id)
        w = workouts_svc.update_workout(
            s,
            workout_id,
            title=body.title.strip(),
            description=body.description if body.description is not None else current.description,
            workout_type=body.workout_type or current.workout_type,
            date=body.date,
            max_participants=body.max_participants or current.max_participants,
            editing_user_id=user.id,
        )
        out = workout_out(w, user.id)
        snap = snapshot(w)
        organizer = contact(w.creator)
        attendees = [contact(r.user) for r in w.registrations]

    background_tasks.add_task(dispatcher.workout_updated, snap, organizer, attendees)
    return WorkoutEnvelope(workout=out)


@router.delete("/workouts/{workout_id}", response_model=MessageOut)
def delete_workout(workout_id: int, admin: AdminUser, background_tasks: BackgroundTasks):
    with session_scope() as s:
        w = _load_workout(s, workout_id)
        snap = snapshot(w)
        organizer = contact(w.creator)
        attendees = [contact(r.user) for r in w.registrations]
        workouts_svc.delete_workout(s, workout_id)

    background_tasks.add_task(dispatcher.workout_cancelled, snap, organizer, attendees)
    return MessageOut(message="Workout deleted successfully")


@router.post("/workouts/{workout_id}/register", response_model=RegistrationEnvelope, status_code=201)
def register(workout_id: int, user: CurrentUser, background_tasks: BackgroundTasks):
    with session_scope() as s:
        reserved = workouts_svc.reserve_spot(s, workout_id, user.id)
        if reserved is None:
            raise NotFoundError("Workout not found")
        registration, created = reserved
        out = RegistrationOut.model_validate(registration)
        w = workouts_svc.get_workout(s, workout_id)
        snap = snapshot(w)
        organizer = contact(w.creator)

    if created:
        background_tasks.add_task(
            dispatcher.workout_registered, snap, organizer, Contact(email=user.email, name=user.name)
        )
    return RegistrationEnvelope(message="Successfully registered", registration=out)


@router.delete("/workouts/{workout_id}/register", response_model=MessageOut)
def unregister(workout_id: int, user: CurrentUser):
    with session_scope() as s:
        _load_workout(s, workout_id)
        if not workouts_svc.unregister_from_workout(s, workout_id, user.id):
            raise NotFoundError("Registration not found")
    return MessageOut(message="Successfully unregistered")


@router.post("/workouts/{workout_id}/attendance", response_model=MessageOut)
def mark_attendance(workout_id: int, body: AttendanceInput, admin: AdminUser):
    with session_scope() as s:
        _load_workout(s, workout_id)
        if not workouts_svc.mark_attendance(s, workout_id, body.user_id, body.attended):
            raise NotFoundError("Registration not found")
    return MessageOut(message="Attendance updated")


@router.post("/workouts/{workout_id}/result", response_model=WorkoutEnvelope)
def set_result(workout_id: int, body: ResultInput, user: CurrentUser):
    with session_scope() as s:
        w = _load_workout(s, workout_id)
        if as_naive_utc(w.date) > utcnow():
            raise ValidationError("Result and rating can only be set for past workouts")
        if workouts_svc.get_registration(s, workout_id, user.id) is None:
            raise AuthorizationError("Only participants can set the result")

        result, rating = w.result, w.rating
        if "result" in body.model_fields_set:
            result = (body.result or "").strip() or None
        if "rating" in body.model_fields_set:
            rating = body.rating
            if rating is not None and not 1 <= rating <= 5:
                raise ValidationError("Rating must be between 1 and 5")

        w = workouts_svc.set_workout_result(s, workout_id, result, rating)
        return WorkoutEnvelope(workout=workout_out(w, user.id))
