"""Availability polls: options, votes and on-read tallies.

A poll is ``active`` when created and can be closed once; closed polls stop
accepting votes.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ValidationError
from core.models import POLL_STATUSES, Poll, PollOption, PollVote, as_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass
class OptionTally:
    option: PollOption
    vote_count: int
    voter_ids: list[int] = field(default_factory=list)


@dataclass
class PollTally:
    poll_id: int
    total_voters: int
    options: list[OptionTally]


# ── Polls ────────────────────────────────────────────────────────────────

def create_poll(
    s: Session,
    title: str,
    description: str = "",
    template_id: int | None = None,
    created_by: int | None = None,
) -> Poll:
    poll = Poll(
        title=title,
        description=description or "",
        template_id=template_id,
        created_by=created_by,
        status="active",
        created_at=utcnow(),
    )
    s.add(poll)
    s.flush()
    logger.info("poll_created", extra={"poll_id": poll.id, "created_by": created_by})
    return poll


def get_poll(s: Session, poll_id: int) -> Poll | None:
    return s.get(Poll, poll_id)


def list_polls(s: Session, status: str | None = None) -> list[Poll]:
    q = select(Poll)
    if status:
        q = q.where(Poll.status == status)
    return list(s.execute(q.order_by(Poll.created_at.desc(), Poll.id.desc())).scalars().all())


def update_poll(
    s: Session,
    poll_id: int,
    title: str,
    description: str,
    template_id: int | None,
) -> Poll | None:
    poll = s.get(Poll, poll_id)
    if poll is None:
        return None
    poll.title = title
    poll.description = description or ""
    poll.template_id = template_id
    s.flush()
    return poll


def set_poll_status(s: Session, poll_id: int, status: str) -> Poll | None:
    if status not in POLL_STATUSES:
        raise ValidationError("Invalid status. Must be 'active' or 'closed'")
    poll = s.get(Poll, poll_id)
    if poll is None:
        return None
    if poll.status == status:
        return poll
    if poll.status == "closed":
        raise ValidationError("Closed polls cannot be reopened")
    poll.status = status
    s.flush()
    logger.info("poll_closed", extra={"poll_id": poll_id})
    return poll


def delete_poll(s: Session, poll_id: int) -> bool:
    poll = s.get(Poll, poll_id)
    if poll is None:
        return False
    s.delete(poll)
    s.flush()
    logger.info("poll_deleted", extra={"poll_id": poll_id})
    return True


# ── Options ──────────────────────────────────────────────────────────────

def create_poll_option(s: Session, poll_id: int, date: dt.datetime, label: str | None = None) -> PollOption:
    option = PollOption(poll_id=poll_id, date=as_naive_utc(date), label=label or None, created_at=utcnow())
    s.add(option)
    s.flush()
    return option


def get_poll_option(s: Session, option_id: int) -> PollOption | None:
    return s.get(PollOption, option_id)


def list_poll_options(s: Session, poll_id: int) -> list[PollOption]:
    q = select(PollOption).where(PollOption.poll_id == poll_id).order_by(PollOption.id.asc())
    return list(s.execute(q).scalars().all())


def delete_poll_option(s: Session, option_id: int) -> bool:
    option = s.get(PollOption, option_id)
    if option is None:
        return False
    removed = len(votes_for_option(s, option_id))
    s.delete(option)
    s.flush()
    logger.info("poll_option_deleted", extra={"poll_id": option.poll_id, "option_id": option_id, "votes_removed": removed})
    return True


# ── Votes ────────────────────────────────────────────────────────────────

def _get_vote(s: Session, option_id: int, user_id: int) -> PollVote | None:
    return s.execute(
        select(PollVote).where(PollVote.poll_option_id == option_id, PollVote.user_id == user_id)
    ).scalar_one_or_none()


def create_poll_vote(s: Session, option_id: int, user_id: int) -> PollVote | None:
    """Vote for an option; voting twice returns the existing vote.

    Returns ``None`` when the option does not exist.
    """
    option = s.get(PollOption, option_id)
    if option is None:
        return None
    if option.poll.status != "active":
        raise ValidationError("Poll is closed")
    existing = _get_vote(s, option_id, user_id)
    if existing is not None:
        return existing
    vote = PollVote(poll_option_id=option_id, user_id=user_id, voted_at=utcnow())
    try:
        with s.begin_nested():
            s.add(vote)
            s.flush()
    except IntegrityError:
        existing = _get_vote(s, option_id, user_id)
        if existing is None:
            raise
        return existing
    logger.info("poll_vote_created", extra={"poll_id": option.poll_id, "option_id": option_id, "user_id": user_id})
    return vote


def delete_poll_vote(s: Session, option_id: int, user_id: int) -> bool:
    vote = _get_vote(s, option_id, user_id)
    if vote is None:
        return False
    option = s.get(PollOption, option_id)
    if option is not None and option.poll.status != "active":
        raise ValidationError("Poll is closed")
    s.delete(vote)
    s.flush()
    logger.info("poll_vote_deleted", extra={"option_id": option_id, "user_id": user_id})
    return True


def votes_for_option(s: Session, option_id: int) -> list[PollVote]:
    q = select(PollVote).where(PollVote.poll_option_id == option_id).order_by(PollVote.id.asc())
    return list(s.execute(q).scalars().all())


def get_user_votes_for_poll(s: Session, poll_id: int, user_id: int) -> list[int]:
    q = (
        select(PollVote.poll_option_id)
        .join(PollOption, PollOption.id == PollVote.poll_option_id)
        .where(PollOption.poll_id == poll_id, PollVote.user_id == user_id)
        .order_by(PollVote.poll_option_id.asc())
    )
    return list(s.execute(q).scalars().all())


def count_total_voters(s: Session, poll_id: int) -> int:
    q = (
        select(func.count(func.distinct(PollVote.user_id)))
        .join(PollOption, PollOption.id == PollVote.poll_option_id)
        .where(PollOption.poll_id == poll_id)
    )
    return s.execute(q).scalar_one()


def tally_poll(s: Session, poll_id: int) -> PollTally:
    """Count votes per option and distinct voters across the poll.

    Options come back most-voted first; equal counts keep insertion order.
    """
    rows = s.execute(
        select(PollVote.poll_option_id, PollVote.user_id)
        .join(PollOption, PollOption.id == PollVote.poll_option_id)
        .where(PollOption.poll_id == poll_id)
        .order_by(PollVote.id.asc())
    ).all()
    voters_by_option: dict[int, list[int]] = {}
    for option_id, user_id in rows:
        voters_by_option.setdefault(option_id, []).append(user_id)

    tallies = [
        OptionTally(option=o, vote_count=len(voters_by_option.get(o.id, [])), voter_ids=voters_by_option.get(o.id, []))
        for o in list_poll_options(s, poll_id)
    ]
    # sorted() is stable, so ties stay in id order.
    tallies = sorted(tallies, key=lambda t: t.vote_count, reverse=True)
    return PollTally(poll_id=poll_id, total_voters=len({uid for _, uid in rows}), options=tallies)
