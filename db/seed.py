from __future__ import annotations

import logging
import os

from alembic import command
from alembic.config import Config
from sqlalchemy import select

from api.observability import configure_logging
from core.config import get_settings
from core.db import session_scope
from core.models import User, WorkoutTemplate
from core.security import hash_password
from core.services.templates import create_template
from core.services.users import create_user

logger = logging.getLogger(__name__)

DEMO_USERS = [
    # email, name, env var holding the password, fallback password, is_admin
    ("admin@wodboard.app", "Gym Admin", "SEED_ADMIN_PASSWORD", "admin123", True),
    ("anna@wodboard.app", "Anna Keller", "SEED_MEMBER_PASSWORD", "member123", False),
    ("luca@wodboard.app", "Luca Meier", "SEED_MEMBER_PASSWORD", "member123", False),
]

DEMO_TEMPLATES = [
    (
        "Fran",
        "21-15-9 reps for time of:\nThrusters (43/29 kg)\nPull-ups",
        "For Time",
        "Solo",
    ),
    (
        "Partner Chipper",
        "100 wall balls, 80 box jumps, 60 kettlebell swings, 40 burpees.\nSplit reps as needed.",
        "For Time",
        "Team of 2",
    ),
    (
        "Triple Threat EMOM",
        "EMOM 30: rower calories, toes-to-bar, dumbbell snatches. Rotate stations each minute.",
        "EMOM",
        "Team of 3",
    ),
]


def run_migrations() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def seed_users() -> None:
    with session_scope() as s:
        if s.execute(select(User.id)).first():
            return
        for email, name, env_var, fallback, is_admin in DEMO_USERS:
            password = os.getenv(env_var, fallback)
            create_user(s, email=email, password_hash=hash_password(password), name=name, is_admin=is_admin)


def seed_templates() -> None:
    with session_scope() as s:
        if s.execute(select(WorkoutTemplate.id)).first():
            return
        for title, description, workout_type, category in DEMO_TEMPLATES:
            create_template(s, title=title, description=description, workout_type=workout_type, category=category)


def main() -> None:
    configure_logging(get_settings().log_level)
    run_migrations()
    seed_users()
    seed_templates()
    logger.info("seed_complete")
    print("Seeding complete")


if __name__ == "__main__":
    main()
