"""Best-effort calendar-invite emails for workout lifecycle events.

Each trigger renders one ICS attachment per recipient and hands it to an
email sender. Failures are logged and recorded in the delivery history; they
never propagate to the caller.
"""

from __future__ import annotations

import base64
import datetime as dt
import logging
import threading
from dataclasses import dataclass
from html import escape as html_escape
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import httpx

from core.config import Settings, get_settings
from core.services.calendar_invite import Contact, WorkoutSnapshot, build_ics, ics_filename

logger = logging.getLogger(__name__)

SUBJECTS = {
    "create": "Workout Invitation: {title}",
    "update": "Workout Updated: {title}",
    "cancel": "Workout Cancelled: {title}",
}

INTROS = {
    "create": "You've been registered for the following workout:",
    "update": "A workout you're registered for has been updated:",
    "cancel": "The following workout has been cancelled:",
}

OUTROS = {
    "create": "The workout has been added to your calendar automatically.",
    "update": "Your calendar has been updated with the latest details.",
    "cancel": "The calendar event has been removed from your calendar.",
}

HISTORY_LIMIT = 500


class EmailDeliveryError(RuntimeError):
    pass


@dataclass(frozen=True)
class DeliveryResult:
    recipient: str
    action: str
    workout_id: int
    sequence: int
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class ResendClient:
    """Minimal client for a Resend-compatible ``POST /emails`` API."""

    def __init__(self, api_key: str, api_url: str, timeout: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    def send(self, payload: dict[str, Any]) -> str | None:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            resp = client.post(self.api_url, json=payload, headers=headers)
        if resp.status_code >= 300:
            raise EmailDeliveryError(f"email API returned {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json().get("id")
        except ValueError:
            return None


Sender = Callable[[dict[str, Any]], Optional[str]]


def format_local_datetime(value: dt.datetime, timezone: str) -> str:
    aware = value if value.tzinfo is not None else value.replace(tzinfo=dt.timezone.utc)
    local = aware.astimezone(ZoneInfo(timezone))
    return local.strftime("%A, %B %d, %Y %H:%M %Z")


def render_email(action: str, workout: WorkoutSnapshot, timezone: str) -> tuple[str, str, str]:
    """Return ``(subject, text, html)`` for one action."""
    when = format_local_datetime(workout.date, timezone)
    details = [workout.title, f"Date: {when}"]
    if workout.workout_type and action != "cancel":
        details.append(f"Type: {workout.workout_type}")
    if workout.description:
        details.append(f"Description: {workout.description}")

    subject = SUBJECTS[action].format(title=workout.title)
    text = "\n".join([INTROS[action], "", *details, "", OUTROS[action]])
    html = "".join(
        [f"<p>{INTROS[action]}</p>", f"<h3>{html_escape(workout.title)}</h3>"]
        + [f"<p>{html_escape(line)}</p>" for line in details[1:]]
        + [f"<p>{OUTROS[action]}</p>"]
    )
    return subject, text, html


class NotificationDispatcher:
    def __init__(self, sender: Sender | None = None, settings: Settings | None = None):
        self._sender = sender
        self._settings = settings
        self._history: list[DeliveryResult] = []
        self._lock = threading.Lock()

    # -- configuration --

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def set_sender(self, sender: Sender | None) -> None:
        self._sender = sender

    def _resolve_sender(self) -> Sender | None:
        if self._sender is not None:
            return self._sender
        cfg = self.settings
        if not cfg.email_enabled:
            return None
        return ResendClient(cfg.resend_api_key, cfg.email_api_url, cfg.email_timeout_seconds).send

    # -- history --

    @property
    def history(self) -> list[DeliveryResult]:
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    def _record(self, result: DeliveryResult) -> DeliveryResult:
        with self._lock:
            self._history.append(result)
            if len(self._history) > HISTORY_LIMIT:
                del self._history[: len(self._history) - HISTORY_LIMIT]
        return result

    # -- triggers --

    def workout_created(self, workout: WorkoutSnapshot, creator: Contact) -> list[DeliveryResult]:
        return self.dispatch("create", workout, creator, [creator])

    def workout_registered(self, workout: WorkoutSnapshot, organizer: Contact | None, registrant: Contact) -> list[DeliveryResult]:
        return self.dispatch("create", workout, organizer, [registrant])

    def workout_updated(self, workout: WorkoutSnapshot, organizer: Contact | None, attendees: list[Contact]) -> list[DeliveryResult]:
        return self.dispatch("update", workout, organizer, attendees)

    def workout_cancelled(self, workout: WorkoutSnapshot, organizer: Contact | None, attendees: list[Contact]) -> list[DeliveryResult]:
        return self.dispatch("cancel", workout, organizer, attendees)

    def dispatch(
        self,
        action: str,
        workout: WorkoutSnapshot,
        organizer: Contact | None,
        recipients: list[Contact],
    ) -> list[DeliveryResult]:
        cfg = self.settings
        organizer = organizer or Contact(email=cfg.email_from, name="WOD Board")
        sender = self._resolve_sender()
        results = []
        for recipient in recipients:
            results.append(self._send_one(sender, cfg, action, workout, organizer, recipient))
        if recipients:
            sent = sum(1 for r in results if r.success)
            logger.info(
                "notifications_dispatched",
                extra={"workout_id": workout.id, "action": action, "sent": sent, "failed": len(results) - sent},
            )
        return results

    def _send_one(
        self,
        sender: Sender | None,
        cfg: Settings,
        action: str,
        workout: WorkoutSnapshot,
        organizer: Contact,
        recipient: Contact,
    ) -> DeliveryResult:
        base = {"recipient": recipient.email, "action": action, "workout_id": workout.id, "sequence": workout.sequence}
        if sender is None:
            logger.warning("notification_skipped", extra={**base, "reason": "email service not configured"})
            return self._record(DeliveryResult(success=False, error="Email service not configured", **base))
        try:
            ics = build_ics(
                workout, organizer, recipient, action,
                domain=cfg.calendar_domain, location=cfg.calendar_location,
            )
            subject, text, html = render_email(action, workout, cfg.display_timezone)
            payload = {
                "from": cfg.email_from,
                "to": recipient.email,
                "subject": subject,
                "text": text,
                "html": html,
                "attachments": [
                    {
                        "filename": ics_filename(workout, cfg.display_timezone),
                        "content": base64.b64encode(ics.encode("utf-8")).decode("ascii"),
                        "content_type": "text/calendar",
                    }
                ],
            }
            message_id = sender(payload)
        except Exception as exc:
            logger.warning("notification_failed", extra={**base, "error": str(exc)})
            return self._record(DeliveryResult(success=False, error=str(exc), **base))
        logger.info("notification_sent", extra={**base, "message_id": message_id})
        return self._record(DeliveryResult(success=True, message_id=message_id, **base))


dispatcher = NotificationDispatcher()
