"""Tests for availability polls: votes, tallies and the closed state."""

from __future__ import annotations

import datetime as dt
import logging

import pytest
from sqlalchemy import func, select

from core.errors import ValidationError
from core.models import PollOption, PollVote
from core.services import polls as polls_svc
from core.services import users as users_svc

SATURDAY = dt.datetime(2025, 2, 8, 9, 0)
SUNDAY = dt.datetime(2025, 2, 9, 10, 0)


def _users(s, n: int):
    return [users_svc.create_user(s, f"voter{i}@wodboard.app", "x", f"Voter {i}") for i in range(n)]


def _poll_with_two_options(s, created_by=None):
    poll = polls_svc.create_poll(s, "Weekend team WOD", "Pick a slot", created_by=created_by)
    o1 = polls_svc.create_poll_option(s, poll.id, SATURDAY, "Saturday")
    o2 = polls_svc.create_poll_option(s, poll.id, SUNDAY)
    return poll, o1, o2


def test_tally_counts_votes_and_distinct_voters(db):
    with db.session_scope() as s:
        u1, u2 = _users(s, 2)
        poll, o1, o2 = _poll_with_two_options(s, created_by=u1.id)
        polls_svc.create_poll_vote(s, o1.id, u1.id)
        polls_svc.create_poll_vote(s, o1.id, u2.id)
        polls_svc.create_poll_vote(s, o2.id, u1.id)

        tally = polls_svc.tally_poll(s, poll.id)
        assert [t.option.id for t in tally.options] == [o1.id, o2.id]
        assert [t.vote_count for t in tally.options] == [2, 1]
        assert tally.options[0].voter_ids == [u1.id, u2.id]
        # u1 voted twice across options but is one voter.
        assert tally.total_voters == 2
        assert polls_svc.count_total_voters(s, poll.id) == 2
        assert polls_svc.get_user_votes_for_poll(s, poll.id, u1.id) == [o1.id, o2.id]


def test_tally_orders_most_voted_first(db):
    with db.session_scope() as s:
        u1, u2 = _users(s, 2)
        poll, o1, o2 = _poll_with_two_options(s)
        polls_svc.create_poll_vote(s, o2.id, u1.id)
        polls_svc.create_poll_vote(s, o2.id, u2.id)
        polls_svc.create_poll_vote(s, o1.id, u2.id)

        tally = polls_svc.tally_poll(s, poll.id)
        assert [t.option.id for t in tally.options] == [o2.id, o1.id]


def test_tally_ties_keep_creation_order(db):
    with db.session_scope() as s:
        (u1,) = _users(s, 1)
        poll, o1, o2 = _poll_with_two_options(s)
        o3 = polls_svc.create_poll_option(s, poll.id, SUNDAY + dt.timedelta(hours=2), "Late")
        polls_svc.create_poll_vote(s, o3.id, u1.id)

        tally = polls_svc.tally_poll(s, poll.id)
        assert [t.option.id for t in tally.options] == [o3.id, o1.id, o2.id]
        assert tally.options[1].vote_count == 0
        assert tally.options[1].voter_ids == []


def test_empty_poll_tally(db):
    with db.session_scope() as s:
        poll = polls_svc.create_poll(s, "Nobody yet")
        tally = polls_svc.tally_poll(s, poll.id)
        assert tally.total_voters == 0
        assert tally.options == []


def test_vote_is_idempotent_and_toggles_off(db):
    with db.session_scope() as s:
        (u1,) = _users(s, 1)
        poll, o1, _ = _poll_with_two_options(s)
        first = polls_svc.create_poll_vote(s, o1.id, u1.id)
        second = polls_svc.create_poll_vote(s, o1.id, u1.id)
        assert first.id == second.id
        assert len(polls_svc.votes_for_option(s, o1.id)) == 1

        assert polls_svc.delete_poll_vote(s, o1.id, u1.id) is True
        assert polls_svc.delete_poll_vote(s, o1.id, u1.id) is False
        assert polls_svc.votes_for_option(s, o1.id) == []


def test_vote_for_missing_option_returns_none(db):
    with db.session_scope() as s:
        (u1,) = _users(s, 1)
        assert polls_svc.create_poll_vote(s, 12345, u1.id) is None


def test_closing_is_one_way(db):
    with db.session_scope() as s:
        poll, _, _ = _poll_with_two_options(s)
        assert polls_svc.set_poll_status(s, poll.id, "closed").status == "closed"
        # Closing again is a no-op.
        assert polls_svc.set_poll_status(s, poll.id, "closed").status == "closed"
        with pytest.raises(ValidationError, match="cannot be reopened"):
            polls_svc.set_poll_status(s, poll.id, "active")
        with pytest.raises(ValidationError, match="Invalid status"):
            polls_svc.set_poll_status(s, poll.id, "archived")
        assert polls_svc.set_poll_status(s, 999, "closed") is None


def test_closed_poll_rejects_votes_and_unvotes(db):
    with db.session_scope() as s:
        (u1,) = _users(s, 1)
        poll, o1, o2 = _poll_with_two_options(s)
        polls_svc.create_poll_vote(s, o1.id, u1.id)
        polls_svc.set_poll_status(s, poll.id, "closed")

        with pytest.raises(ValidationError, match="Poll is closed"):
            polls_svc.create_poll_vote(s, o2.id, u1.id)
        with pytest.raises(ValidationError, match="Poll is closed"):
            polls_svc.delete_poll_vote(s, o1.id, u1.id)
        assert polls_svc.count_total_voters(s, poll.id) == 1


def test_list_polls_filters_by_status(db):
    with db.session_scope() as s:
        open_poll = polls_svc.create_poll(s, "Open")
        closed_poll = polls_svc.create_poll(s, "Closed")
        polls_svc.set_poll_status(s, closed_poll.id, "closed")

        assert [p.id for p in polls_svc.list_polls(s, status="active")] == [open_poll.id]
        assert [p.id for p in polls_svc.list_polls(s, status="closed")] == [closed_poll.id]
        assert {p.id for p in polls_svc.list_polls(s)} == {open_poll.id, closed_poll.id}


def test_delete_option_removes_its_votes(db, caplog):
    with db.session_scope() as s:
        u1, u2 = _users(s, 2)
        poll, o1, o2 = _poll_with_two_options(s)
        polls_svc.create_poll_vote(s, o1.id, u1.id)
        polls_svc.create_poll_vote(s, o2.id, u2.id)
        ids = (poll.id, o1.id)

    with caplog.at_level(logging.INFO, logger="core.services.polls"), db.session_scope() as s:
        assert polls_svc.delete_poll_option(s, ids[1]) is True
        assert polls_svc.delete_poll_option(s, ids[1]) is False

    deleted = [r for r in caplog.records if r.getMessage() == "poll_option_deleted"]
    assert [r.votes_removed for r in deleted] == [1]

    with db.session_scope() as s:
        assert s.execute(select(func.count(PollVote.id)).where(PollVote.poll_option_id == ids[1])).scalar_one() == 0
        tally = polls_svc.tally_poll(s, ids[0])
        assert tally.total_voters == 1


def test_delete_poll_cascades_options_and_votes(db):
    with db.session_scope() as s:
        u1, u2 = _users(s, 2)
        poll, o1, o2 = _poll_with_two_options(s)
        polls_svc.create_poll_vote(s, o1.id, u1.id)
        polls_svc.create_poll_vote(s, o2.id, u2.id)
        pid = poll.id

    with db.session_scope() as s:
        assert polls_svc.delete_poll(s, pid) is True
        assert polls_svc.delete_poll(s, pid) is False

    with db.session_scope() as s:
        assert s.execute(select(func.count(PollOption.id))).scalar_one() == 0
        assert s.execute(select(func.count(PollVote.id))).scalar_one() == 0


def test_update_poll_fields(db):
    with db.session_scope() as s:
        poll = polls_svc.create_poll(s, "Draft", "old")
        updated = polls_svc.update_poll(s, poll.id, "Final", "", None)
        assert (updated.title, updated.description) == ("Final", "")
        assert polls_svc.update_poll(s, 999, "x", "", None) is None
