"""Workout archive: reusable templates ranked by how often they are used."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from core.errors import ValidationError
from core.models import TEMPLATE_CATEGORIES, WorkoutTemplate, utcnow

logger = logging.getLogger(__name__)


def _check_category(category: str) -> str:
    if category not in TEMPLATE_CATEGORIES:
        raise ValidationError(f"Invalid category. Must be one of: {', '.join(TEMPLATE_CATEGORIES)}")
    return category


def create_template(
    s: Session,
    title: str,
    description: str,
    workout_type: str = "General",
    category: str = "Custom",
) -> WorkoutTemplate:
    template = WorkoutTemplate(
        title=title,
        description=description,
        workout_type=workout_type or "General",
        category=_check_category(category or "Custom"),
        created_at=utcnow(),
        times_used=0,
    )
    s.add(template)
    s.flush()
    logger.info("template_created", extra={"template_id": template.id, "category": template.category})
    return template


def get_template(s: Session, template_id: int) -> WorkoutTemplate | None:
    return s.get(WorkoutTemplate, template_id)


def _ranked(q):
    return q.order_by(WorkoutTemplate.times_used.desc(), WorkoutTemplate.id.asc())


def list_templates(s: Session, category: str | None = None) -> list[WorkoutTemplate]:
    q = select(WorkoutTemplate)
    if category:
        q = q.where(WorkoutTemplate.category == category)
    return list(s.execute(_ranked(q)).scalars().all())


def search_templates(s: Session, query: str, category: str | None = None) -> list[WorkoutTemplate]:
    needle = query.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{needle}%"
    q = select(WorkoutTemplate).where(
        or_(
            func.lower(WorkoutTemplate.title).like(pattern, escape="\\"),
            func.lower(WorkoutTemplate.description).like(pattern, escape="\\"),
        )
    )
    if category:
        q = q.where(WorkoutTemplate.category == category)
    return list(s.execute(_ranked(q)).scalars().all())


def update_template(
    s: Session,
    template_id: int,
    title: str,
    description: str,
    workout_type: str,
    category: str,
) -> WorkoutTemplate | None:
    template = s.get(WorkoutTemplate, template_id)
    if template is None:
        return None
    template.title = title
    template.description = description
    template.workout_type = workout_type or "General"
    template.category = _check_category(category or "Custom")
    s.flush()
    logger.info("template_updated", extra={"template_id": template_id})
    return template


def increment_template_usage(s: Session, template_id: int) -> bool:
    # Atomic increment.
    result = s.execute(
        update(WorkoutTemplate)
        .where(WorkoutTemplate.id == template_id)
        .values(times_used=WorkoutTemplate.times_used + 1)
        .execution_options(synchronize_session=False)
    )
    template = s.get(WorkoutTemplate, template_id)
    if template is not None:
        s.refresh(template)
    return result.rowcount > 0


def delete_template(s: Session, template_id: int) -> bool:
    template = s.get(WorkoutTemplate, template_id)
    if template is None:
        return False
    s.delete(template)
    s.flush()
    logger.info("template_deleted", extra={"template_id": template_id})
    return True
