from __future__ import annotations

import base64
import datetime as dt
import json

import httpx
import pytest

from core.config import Settings
from core.services.calendar_invite import Contact, WorkoutSnapshot
from core.services.notifications import (
    EmailDeliveryError,
    NotificationDispatcher,
    ResendClient,
    render_email,
)

WORKOUT = WorkoutSnapshot(
    id=3,
    title="Partner Chipper",
    description="Split reps as needed",
    workout_type="For Time",
    date=dt.datetime(2025, 1, 6, 17, 0),
    sequence=2,
)
COACH = Contact("coach@wodboard.app", "Coach")
ANNA = Contact("anna@wodboard.app", "Anna")
LUCA = Contact("luca@wodboard.app", "Luca")


def _settings(**overrides) -> Settings:
    return Settings(database_url="sqlite://", display_timezone="Europe/Zurich", **overrides)


class FakeSender:
    def __init__(self, fail_for: set[str] | None = None):
        self.payloads: list[dict] = []
        self.fail_for = fail_for or set()

    def __call__(self, payload: dict) -> str:
        if payload["to"] in self.fail_for:
            raise EmailDeliveryError("mailbox unavailable")
        self.payloads.append(payload)
        return f"msg-{len(self.payloads)}"


def test_registration_sends_request_invite_to_registrant():
    sender = FakeSender()
    d = NotificationDispatcher(sender=sender, settings=_settings())

    results = d.workout_registered(WORKOUT, COACH, ANNA)

    assert [r.success for r in results] == [True]
    assert results[0].message_id == "msg-1"
    payload = sender.payloads[0]
    assert payload["to"] == "anna@wodboard.app"
    assert payload["subject"] == "Workout Invitation: Partner Chipper"
    attachment = payload["attachments"][0]
    assert attachment["filename"] == "workout-2025-01-06-partner-chipper.ics"
    assert attachment["content_type"] == "text/calendar"
    ics = base64.b64decode(attachment["content"]).decode("utf-8")
    assert "METHOD:REQUEST" in ics
    assert "SEQUENCE:2" in ics
    assert "ORGANIZER;CN=Coach:mailto:coach@wodboard.app" in ics


def test_cancellation_reaches_every_attendee():
    sender = FakeSender()
    d = NotificationDispatcher(sender=sender, settings=_settings())

    d.workout_cancelled(WORKOUT, COACH, [ANNA, LUCA])

    assert [p["to"] for p in sender.payloads] == ["anna@wodboard.app", "luca@wodboard.app"]
    for p in sender.payloads:
        assert p["subject"] == "Workout Cancelled: Partner Chipper"
        assert "METHOD:CANCEL" in base64.b64decode(p["attachments"][0]["content"]).decode()


def test_one_failing_recipient_does_not_block_others():
    sender = FakeSender(fail_for={"anna@wodboard.app"})
    d = NotificationDispatcher(sender=sender, settings=_settings())

    results = d.workout_updated(WORKOUT, COACH, [ANNA, LUCA])

    assert [(r.recipient, r.success) for r in results] == [
        ("anna@wodboard.app", False),
        ("luca@wodboard.app", True),
    ]
    assert results[0].error == "mailbox unavailable"
    assert len(d.history) == 2


def test_missing_organizer_falls_back_to_sender_address():
    sender = FakeSender()
    d = NotificationDispatcher(sender=sender, settings=_settings(email_from="desk@wodboard.app"))

    d.workout_updated(WORKOUT, None, [ANNA])

    ics = base64.b64decode(sender.payloads[0]["attachments"][0]["content"]).decode()
    assert "ORGANIZER;CN=WOD Board:mailto:desk@wodboard.app" in ics
    assert sender.payloads[0]["from"] == "desk@wodboard.app"


def test_unconfigured_email_is_skipped_and_recorded():
    d = NotificationDispatcher(settings=_settings(resend_api_key=""))

    results = d.workout_created(WORKOUT, COACH)

    assert len(results) == 1
    assert results[0].success is False
    assert results[0].error == "Email service not configured"
    d.clear_history()
    assert d.history == []


def test_render_email_uses_local_time():
    subject, text, html = render_email("update", WORKOUT, "Europe/Zurich")
    assert subject == "Workout Updated: Partner Chipper"
    assert "Monday, January 06, 2025 18:00" in text
    assert "Type: For Time" in text
    assert "<h3>Partner Chipper</h3>" in html

    _, cancel_text, _ = render_email("cancel", WORKOUT, "UTC")
    assert "Type:" not in cancel_text


def test_render_email_escapes_workout_text_in_html():
    workout = WorkoutSnapshot(
        id=4,
        title="<b>Fran</b>",
        description="21-15-9 & <script>alert(1)</script>",
        workout_type="For Time",
        date=dt.datetime(2025, 1, 6, 17, 0),
        sequence=0,
    )
    _, text, html = render_email("create", workout, "UTC")
    assert "<h3>&lt;b&gt;Fran&lt;/b&gt;</h3>" in html
    assert "<script>" not in html
    assert "21-15-9 &amp; &lt;script&gt;" in html
    assert "Description: 21-15-9 & <script>alert(1)</script>" in text


def test_resend_client_posts_payload_and_returns_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "re_123"})

    client = ResendClient("key-1", "https://mail.test/emails", transport=httpx.MockTransport(handler))
    assert client.send({"to": "anna@wodboard.app"}) == "re_123"
    assert seen["auth"] == "Bearer key-1"
    assert seen["body"] == {"to": "anna@wodboard.app"}


def test_resend_client_raises_on_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    client = ResendClient("key-1", "https://mail.test/emails", transport=transport)
    with pytest.raises(EmailDeliveryError, match="500"):
        client.send({"to": "anna@wodboard.app"})


def test_dispatcher_records_http_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
    client = ResendClient("key-1", "https://mail.test/emails", transport=transport)
    d = NotificationDispatcher(sender=client.send, settings=_settings())

    results = d.workout_registered(WORKOUT, COACH, ANNA)

    assert results[0].success is False
    assert "422" in results[0].error
