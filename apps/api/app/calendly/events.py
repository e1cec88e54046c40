from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as dateparser

INVITEE_CREATED = "invitee.created"
INVITEE_CANCELED = "invitee.canceled"
HANDLED_EVENTS = (INVITEE_CREATED, INVITEE_CANCELED)


@dataclass
class BookingEvent:
  event: str
  invitee_name: str | None = None
  invitee_email: str | None = None
  invitee_phone: str | None = None
  invitee_uri: str | None = None
  event_uri: str | None = None
  event_name: str | None = None
  event_type_uri: str | None = None
  user_uri: str | None = None
  start_time: datetime | None = None
  reschedule_url: str | None = None
  cancel_url: str | None = None
  rescheduled: bool = False
  cancel_reason: str | None = None
  raw: dict[str, Any] = field(default_factory=dict)

  @property
  def is_cancellation(self) -> bool:
    return self.event == INVITEE_CANCELED


def _parse_time(v: Any) -> datetime | None:
  if not isinstance(v, str) or not v.strip():
    return None
  try:
    dt = dateparser.parse(v.strip())
  except (ValueError, OverflowError):
    return None
  return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _phone_from(invitee: dict[str, Any]) -> str | None:
  for qa in invitee.get("questions_and_answers") or []:
    if not isinstance(qa, dict):
      continue
    if "phone" in str(qa.get("question") or "").lower():
      answer = str(qa.get("answer") or "").strip()
      if answer:
        return answer
  reminder = str(invitee.get("text_reminder_number") or "").strip()
  return reminder or None


def parse_booking_event(body: dict[str, Any]) -> BookingEvent:
  """Flattens an invitee webhook envelope.

  Older deliveries put the invitee fields directly under `payload` and the scheduled
  event under `payload.event`; newer ones nest them as `payload.invitee` and
  `payload.scheduled_event`. Both are accepted.
  """
  payload = body.get("payload") if isinstance(body.get("payload"), dict) else {}
  invitee = payload.get("invitee") if isinstance(payload.get("invitee"), dict) else payload
  scheduled = payload.get("scheduled_event") or payload.get("event")
  if not isinstance(scheduled, dict):
    scheduled = {}

  memberships = scheduled.get("event_memberships") or []
  user_uri = None
  if memberships and isinstance(memberships[0], dict):
    user_uri = memberships[0].get("user")

  cancellation = invitee.get("cancellation") if isinstance(invitee.get("cancellation"), dict) else {}
  return BookingEvent(
    event=str(body.get("event") or ""),
    invitee_name=invitee.get("name"),
    invitee_email=invitee.get("email"),
    invitee_phone=_phone_from(invitee),
    invitee_uri=invitee.get("uri"),
    event_uri=scheduled.get("uri"),
    event_name=scheduled.get("name"),
    event_type_uri=scheduled.get("event_type"),
    user_uri=user_uri,
    start_time=_parse_time(scheduled.get("start_time")),
    reschedule_url=invitee.get("reschedule_url"),
    cancel_url=invitee.get("cancel_url"),
    rescheduled=bool(invitee.get("rescheduled") or invitee.get("old_invitee")),
    cancel_reason=cancellation.get("reason"),
    raw=body,
  )


def uri_tail(uri: str | None) -> str:
  return (uri or "").rstrip("/").rsplit("/", 1)[-1]
