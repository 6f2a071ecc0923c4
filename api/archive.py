from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from api.auth import SessionUser, get_session_user
from api.schemas import MessageOut, TemplateCreateInput, TemplateEnvelope, TemplateOut, TemplatesEnvelope, TemplateUpdateInput
from core.db import session_scope
from core.errors import NotFoundError, ValidationError
from core.services import templates as templates_svc

router = APIRouter(tags=["templates"])

CurrentUser = Annotated[SessionUser, Depends(get_session_user)]


@router.get("/templates", response_model=TemplatesEnvelope)
def list_templates(user: CurrentUser, category: Optional[str] = Query(None), search: Optional[str] = Query(None)):
    with session_scope() as s:
        if search and search.strip():
            rows = templates_svc.search_templates(s, search, category=category)
        else:
            rows = templates_svc.list_templates(s, category=category)
        return TemplatesEnvelope(templates=[TemplateOut.model_validate(t) for t in rows])


@router.post("/templates", response_model=TemplateEnvelope, status_code=201)
def create_template(body: TemplateCreateInput, user: CurrentUser):
    if not (body.title or "").strip() or not (body.description or "").strip():
        raise ValidationError("Title and description are required")
    with session_scope() as s:
        t = templates_svc.create_template(
            s,
            title=body.title.strip(),
            description=body.description.strip(),
            workout_type=body.workout_type,
            category=body.category,
        )
        return TemplateEnvelope(template=TemplateOut.model_validate(t))


@router.get("/templates/{template_id}", response_model=TemplateEnvelope)
def get_template(template_id: int, user: CurrentUser):
    with session_scope() as s:
        t = templates_svc.get_template(s, template_id)
        if t is None:
            raise NotFoundError("Template not found")
        return TemplateEnvelope(template=TemplateOut.model_validate(t))


@router.put("/templates/{template_id}", response_model=TemplateEnvelope)
def update_template(template_id: int, body: TemplateUpdateInput, user: CurrentUser):
    with session_scope() as s:
        current = templates_svc.get_template(s, template_id)
        if current is None:
            raise NotFoundError("Template not found")
        title = body.title.strip() if body.title is not None else current.title
        description = body.description.strip() if body.description is not None else current.description
        if not title or not description:
            raise ValidationError("Title and description are required")
        t = templates_svc.update_template(
            s,
            template_id,
            title=title,
            description=description,
            workout_type=body.workout_type or current.workout_type,
            category=body.category or current.category,
        )
        return TemplateEnvelope(template=TemplateOut.model_validate(t))


@router.delete("/templates/{template_id}", response_model=MessageOut)
def delete_template(template_id: int, user: CurrentUser):
    with session_scope() as s:
        if not templates_svc.delete_template(s, template_id):
            raise NotFoundError("Template not found")
    return MessageOut(message="Template deleted successfully")
