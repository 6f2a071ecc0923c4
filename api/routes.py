import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from api.auth import (
    SessionUser,
    clear_session_cookie,
    get_session_user,
    issue_session_token,
    require_admin,
    set_session_cookie,
)
from api.ratelimit import login_limit
from api.schemas import (
    AdminUserOut,
    AdminUsersOut,
    LoginInput,
    LoginOut,
    MessageOut,
    RegisterInput,
    SessionOut,
    StatsEnvelope,
    StatsOut,
    UserBrief,
    UserOut,
    UsersOut,
)
from core.config import get_settings
from core.db import session_scope
from core.errors import AuthenticationError, NotFoundError, ValidationError
from core.security import PasswordPolicyError, hash_password, verify_password
from core.services import templates as templates_svc
from core.services import users as users_svc
from core.services import workouts as workouts_svc
from core.services.export import export_filename, render_export

logger = logging.getLogger(__name__)
router = APIRouter()

CurrentUser = Annotated[SessionUser, Depends(get_session_user)]
AdminUser = Annotated[SessionUser, Depends(require_admin)]


@router.get("/health", tags=["system"])
def health():
    return {"status": "ok"}


# -- Auth --

@router.post("/auth/register", response_model=SessionOut, status_code=201, tags=["auth"])
def register_account(body: RegisterInput):
    try:
        password_hash = hash_password(body.password)
    except PasswordPolicyError as exc:
        raise ValidationError(str(exc)) from exc
    with session_scope() as s:
        if users_svc.get_user_by_email(s, body.email) is not None:
            raise ValidationError("Email already registered")
        user = users_svc.create_user(s, email=body.email, password_hash=password_hash, name=body.name)
        return SessionOut(user=UserOut.model_validate(user))


@router.post("/auth/login", response_model=LoginOut, tags=["auth"])
@login_limit
def login(request: Request, response: Response, body: LoginInput):
    if not body.email.strip() or not body.password:
        raise ValidationError("Email and password are required")
    with session_scope() as s:
        user = users_svc.get_user_by_email(s, body.email)
        if user is None or not verify_password(body.password, user.password_hash):
            logger.info("login_failed", extra={"reason": "bad_credentials"})
            raise AuthenticationError("Invalid email or password")
        session_user = SessionUser.from_user(user)
        out = UserOut.model_validate(user)

    set_session_cookie(response, issue_session_token(session_user))
    logger.info("login_succeeded", extra={"user_id": session_user.id})
    return LoginOut(message="Login successful", user=out)


@router.post("/auth/logout", response_model=MessageOut, tags=["auth"])
def logout(response: Response):
    clear_session_cookie(response)
    return MessageOut(message="Logged out")


@router.get("/auth/session", response_model=SessionOut, tags=["auth"])
def session(user: CurrentUser):
    return SessionOut(user=UserOut(**user.as_dict()))


# -- Users --

@router.get("/users", response_model=UsersOut, tags=["users"])
def list_users(user: CurrentUser):
    with session_scope() as s:
        rows = sorted(users_svc.list_users(s), key=lambda u: u.name.lower())
        return UsersOut(users=[UserBrief.model_validate(u) for u in rows])


@router.get("/user/stats", response_model=StatsEnvelope, tags=["users"])
def my_stats(user: CurrentUser):
    with session_scope() as s:
        return StatsEnvelope(stats=StatsOut.model_validate(users_svc.get_user_stats(s, user.id)))


# -- Admin --

@router.get("/admin/users", response_model=AdminUsersOut, tags=["admin"])
def admin_list_users(admin: AdminUser):
    with session_scope() as s:
        users = [
            AdminUserOut(
                **UserOut.model_validate(u).model_dump(),
                stats=StatsOut.model_validate(users_svc.get_user_stats(s, u.id)),
            )
            for u in users_svc.list_users(s)
        ]
    return AdminUsersOut(users=users)


@router.delete("/admin/users/{user_id}", response_model=MessageOut, tags=["admin"])
def admin_delete_user(user_id: int, admin: AdminUser):
    if user_id == admin.id:
        raise ValidationError("You cannot delete your own account")
    with session_scope() as s:
        if not users_svc.delete_user(s, user_id):
            raise NotFoundError("User not found")
    logger.info("admin_user_deleted", extra={"user_id": user_id, "deleted_by": admin.id})
    return MessageOut(message="User deleted successfully")


# -- Export --

@router.get("/export/workouts-txt", response_class=PlainTextResponse, tags=["export"])
def export_workouts_txt(user: CurrentUser):
    settings = get_settings()
    with session_scope() as s:
        text = render_export(
            workouts_svc.list_workouts(s),
            templates_svc.list_templates(s),
            timezone=settings.display_timezone,
        )
    return PlainTextResponse(
        text,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )
