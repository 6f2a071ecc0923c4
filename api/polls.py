from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from api.auth import SessionUser, get_session_user, require_admin
from api.schemas import (
    MessageOut,
    PollCreateInput,
    PollDetailOut,
    PollEnvelope,
    PollOptionEnvelope,
    PollOptionInput,
    PollOptionOut,
    PollOut,
    PollsEnvelope,
    PollUpdateInput,
    PollVoteEnvelope,
    PollVoteOut,
    TemplateOut,
    VoteInput,
)
from core.db import session_scope
from core.errors import NotFoundError, ValidationError
from core.models import POLL_STATUSES, Poll, User
from core.services import polls as polls_svc
from core.services import templates as templates_svc

router = APIRouter(tags=["polls"])

CurrentUser = Annotated[SessionUser, Depends(get_session_user)]
AdminUser = Annotated[SessionUser, Depends(require_admin)]


def _user_names(s: Session, user_ids: set[int]) -> dict[int, str]:
    if not user_ids:
        return {}
    rows = s.execute(select(User.id, User.name).where(User.id.in_(user_ids))).all()
    return {uid: name for uid, name in rows}


def poll_summary(s: Session, poll: Poll) -> PollOut:
    return PollOut.model_validate(poll).model_copy(
        update={
            "creator_name": poll.creator.name if poll.creator is not None else "Unknown",
            "option_count": len(poll.options),
            "total_voters": polls_svc.count_total_voters(s, poll.id),
        }
    )


def poll_detail(s: Session, poll: Poll, viewer_id: Optional[int]) -> PollDetailOut:
    tally = polls_svc.tally_poll(s, poll.id)
    names = _user_names(s, {uid for t in tally.options for uid in t.voter_ids})
    options = [
        PollOptionOut.model_validate(t.option).model_copy(
            update={
                "vote_count": t.vote_count,
                "voters": [names.get(uid, "Unknown") for uid in t.voter_ids],
                "user_voted": viewer_id in t.voter_ids,
            }
        )
        for t in tally.options
    ]
    summary = poll_summary(s, poll)
    return PollDetailOut(
        **summary.model_dump(),
        options=options,
        template=TemplateOut.model_validate(poll.template) if poll.template is not None else None,
        user_votes=polls_svc.get_user_votes_for_poll(s, poll.id, viewer_id) if viewer_id is not None else [],
    )


def _load_poll(s: Session, poll_id: int) -> Poll:
    poll = polls_svc.get_poll(s, poll_id)
    if poll is None:
        raise NotFoundError("Poll not found")
    return poll


def _check_template(s: Session, template_id: Optional[int]) -> None:
    if template_id is not None and templates_svc.get_template(s, template_id) is None:
        raise NotFoundError("Template not found")


@router.get("/polls", response_model=PollsEnvelope)
def list_polls(user: CurrentUser, status: Optional[str] = Query(None)):
    with session_scope() as s:
        return PollsEnvelope(polls=[poll_summary(s, p) for p in polls_svc.list_polls(s, status=status)])


@router.post("/polls", response_model=PollEnvelope, status_code=201)
def create_poll(body: PollCreateInput, user: CurrentUser):
    if not (body.title or "").strip() or not body.options:
        raise ValidationError("Title and at least one option are required")
    with session_scope() as s:
        _check_template(s, body.template_id)
        poll = polls_svc.create_poll(
            s,
            title=body.title.strip(),
            description=body.description,
            template_id=body.template_id,
            created_by=user.id,
        )
        for opt in body.options:
            polls_svc.create_poll_option(s, poll.id, opt.date, opt.label)
        s.refresh(poll)
        return PollEnvelope(poll=poll_detail(s, poll, user.id))


@router.post("/polls/vote", response_model=PollVoteEnvelope, status_code=201)
def vote(body: VoteInput, user: CurrentUser):
    with session_scope() as s:
        v = polls_svc.create_poll_vote(s, body.poll_option_id, user.id)
        if v is None:
            raise NotFoundError("Poll option not found")
        return PollVoteEnvelope(vote=PollVoteOut.model_validate(v))


@router.delete("/polls/vote", response_model=MessageOut)
def unvote(body: VoteInput, user: CurrentUser):
    with session_scope() as s:
        if not polls_svc.delete_poll_vote(s, body.poll_option_id, user.id):
            raise NotFoundError("Vote not found")
    return MessageOut(message="Vote removed successfully")


@router.get("/polls/{poll_id}", response_model=PollEnvelope)
def get_poll(poll_id: int, user: CurrentUser):
    with session_scope() as s:
        return PollEnvelope(poll=poll_detail(s, _load_poll(s, poll_id), user.id))


@router.put("/polls/{poll_id}", response_model=PollEnvelope)
def update_poll(poll_id: int, body: PollUpdateInput, user: CurrentUser):
    fields = body.model_fields_set
    detail_fields = fields & {"title", "description", "template_id"}
    if "status" in fields and body.status not in POLL_STATUSES:
        raise ValidationError("Valid status required")
    if "status" not in fields and not detail_fields:
        raise ValidationError("Nothing to update")

    with session_scope() as s:
        poll = _load_poll(s, poll_id)
        if detail_fields:
            title = body.title.strip() if "title" in fields and body.title is not None else poll.title
            if not title:
                raise ValidationError("Title is required")
            template_id = body.template_id if "template_id" in fields else poll.template_id
            _check_template(s, template_id)
            polls_svc.update_poll(
                s,
                poll_id,
                title=title,
                description=body.description if "description" in fields and body.description is not None else poll.description,
                template_id=template_id,
            )
        if "status" in fields:
            polls_svc.set_poll_status(s, poll_id, body.status)
        s.refresh(poll)
        return PollEnvelope(poll=poll_detail(s, poll, user.id))


@router.delete("/polls/{poll_id}", response_model=MessageOut)
def delete_poll(poll_id: int, admin: AdminUser):
    with session_scope() as s:
        if not polls_svc.delete_poll(s, poll_id):
            raise NotFoundError("Poll not found")
    return MessageOut(message="Poll deleted successfully")


@router.post("/polls/{poll_id}/options", response_model=PollOptionEnvelope, status_code=201)
def add_option(poll_id: int, body: PollOptionInput, user: CurrentUser):
    with session_scope() as s:
        poll = _load_poll(s, poll_id)
        if poll.status != "active":
            raise ValidationError("Poll is closed")
        option = polls_svc.create_poll_option(s, poll_id, body.date, body.label)
        return PollOptionEnvelope(option=PollOptionOut.model_validate(option))


@router.delete("/polls/{poll_id}/options", response_model=MessageOut)
def delete_option(poll_id: int, user: CurrentUser, option_id: Optional[int] = Query(None)):
    if option_id is None:
        raise ValidationError("option_id is required")
    with session_scope() as s:
        _load_poll(s, poll_id)
        option = polls_svc.get_poll_option(s, option_id)
        if option is None or option.poll_id != poll_id:
            raise NotFoundError("Poll option not found")
        polls_svc.delete_poll_option(s, option_id)
    return MessageOut(message="Poll option deleted successfully")
