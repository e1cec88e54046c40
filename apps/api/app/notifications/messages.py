from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.calendly.events import BookingEvent
from app.config import settings
from app.models import Booking, ClientConnection
from app.notifications.service import NotificationMessage

GREEN = 0x57F287
RED = 0xED4245
BLURPLE = 0x5865F2
BRAND_BLUE = 0x1B4498

STATUS_FOOTER = "Campaign stats syncing | Bookings active | Notifications enabled"


def portal_url(access_token: str) -> str:
  return f"{settings.client_portal_url.rstrip('/')}?code={access_token}"


def format_event_time(dt: datetime | None, tz_name: str | None) -> str:
  if dt is None:
    return "TBD"
  try:
    tz = ZoneInfo(tz_name or "UTC")
  except ZoneInfoNotFoundError:
    tz = ZoneInfo("UTC")
  local = dt.astimezone(tz)
  return local.strftime("%a, %b %d, %I:%M %p %Z").replace(" 0", " ")


def _mrkdwn_fields(pairs: list[tuple[str, str]]) -> dict[str, Any]:
  return {"type": "section", "fields": [{"type": "mrkdwn", "text": f"*{k}:*\n{v}"} for k, v in pairs]}


def _link_buttons(links: list[tuple[str, str | None, str]]) -> dict[str, Any] | None:
  elements = [
    {"type": "button", "text": {"type": "plain_text", "text": label}, "url": url, "action_id": action}
    for label, url, action in links
    if url
  ]
  return {"type": "actions", "elements": elements} if elements else None


def _now_iso() -> str:
  return datetime.now(timezone.utc).isoformat()


def booking_created(conn: ClientConnection, ev: BookingEvent) -> NotificationMessage:
  when = format_event_time(ev.start_time, conn.client_timezone)
  heading = "Booking Rescheduled" if ev.rescheduled else "New Calendly Booking"
  pairs = [
    ("Client", conn.client_name),
    ("Contact", ev.invitee_name or "Unknown"),
    ("Email", ev.invitee_email or "Not provided"),
    ("Phone", ev.invitee_phone or "Not provided"),
    ("Event", ev.event_name or "N/A"),
    ("Time", when),
  ]
  blocks: list[dict[str, Any]] = [
    {"type": "header", "text": {"type": "plain_text", "text": heading}},
    _mrkdwn_fields(pairs),
  ]
  actions = _link_buttons(
    [
      ("Open Dashboard", portal_url(conn.access_token), "open_dashboard"),
      ("Reschedule", ev.reschedule_url, "reschedule"),
      ("Cancel", ev.cancel_url, "cancel"),
    ]
  )
  if actions:
    blocks.append(actions)
  blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": f"Access Token: `{conn.access_token}`"}]})

  links = [f"[Open Dashboard]({portal_url(conn.access_token)})"]
  if ev.reschedule_url:
    links.append(f"[Reschedule]({ev.reschedule_url})")
  if ev.cancel_url:
    links.append(f"[Cancel]({ev.cancel_url})")
  embed = {
    "title": heading,
    "color": GREEN,
    "fields": [{"name": k, "value": v, "inline": True} for k, v in pairs] + [{"name": "Links", "value": " | ".join(links), "inline": False}],
    "footer": {"text": conn.client_name},
    "timestamp": _now_iso(),
  }
  return NotificationMessage(
    text=f"New booking for {conn.client_name}",
    slack_blocks=blocks,
    discord_payload={"embeds": [embed]},
  )


def booking_canceled(conn: ClientConnection, ev: BookingEvent) -> NotificationMessage:
  pairs = [
    ("Client", conn.client_name),
    ("Contact", ev.invitee_name or "Unknown"),
    ("Email", ev.invitee_email or "Not provided"),
    ("Event", ev.event_name or "N/A"),
  ]
  if ev.cancel_reason:
    pairs.append(("Reason", ev.cancel_reason))
  embed = {
    "title": "Booking Canceled",
    "color": RED,
    "fields": [{"name": k, "value": v, "inline": True} for k, v in pairs],
    "footer": {"text": conn.client_name},
    "timestamp": _now_iso(),
  }
  return NotificationMessage(
    text=f"Booking canceled for {conn.client_name}",
    slack_blocks=[{"type": "header", "text": {"type": "plain_text", "text": "Booking Canceled"}}, _mrkdwn_fields(pairs)],
    discord_payload={"embeds": [embed]},
  )


def integration_activated(conn: ClientConnection) -> NotificationMessage:
  watched = conn.watched_event_types or []
  events = f"{len(watched)} selected" if watched else "All events"
  location = conn.ghl_location_name or conn.ghl_location_id
  pairs = [
    ("Client", conn.client_name),
    ("Access Token", f"`{conn.access_token}`"),
    ("Calendly Events", events),
    ("GHL Location", location),
  ]
  blocks = [
    {"type": "header", "text": {"type": "plain_text", "text": "Client Integration Activated"}},
    _mrkdwn_fields(pairs),
    {"type": "context", "elements": [{"type": "mrkdwn", "text": STATUS_FOOTER}]},
  ]
  embed = {
    "title": "Client Integration Activated",
    "color": GREEN,
    "fields": [{"name": k, "value": v, "inline": True} for k, v in pairs],
    "footer": {"text": STATUS_FOOTER},
    "timestamp": _now_iso(),
  }
  return NotificationMessage(
    text=f"New client integration activated: {conn.client_name}",
    slack_blocks=blocks,
    discord_payload={"embeds": [embed]},
  )


def conversation_available(conn: ClientConnection, booking: Booking, pdf_url: str) -> NotificationMessage:
  dashboard = portal_url(conn.access_token)
  who = booking.contact_name or "a booking"
  blocks: list[dict[str, Any]] = [
    {
      "type": "section",
      "text": {"type": "mrkdwn", "text": f"*Conversation Available*\n\nThe conversation transcript for *{who}* is now available to view."},
    },
    {"type": "divider"},
    {
      "type": "section",
      "fields": [
        {"type": "mrkdwn", "text": f"*Contact*\n{booking.contact_email or 'Not provided'}"},
        {"type": "mrkdwn", "text": f"*Event*\n{booking.event_type_name or 'N/A'}"},
      ],
    },
    _link_buttons([("View PDF", pdf_url, "view_pdf"), ("Open Dashboard", dashboard, "open_dashboard")]),
    {"type": "context", "elements": [{"type": "mrkdwn", "text": conn.client_name}]},
  ]
  embed = {
    "title": "Conversation Available",
    "description": f"The conversation transcript for **{who}** is now available to view.",
    "color": BLURPLE,
    "fields": [
      {"name": "Contact", "value": booking.contact_email or "Not provided", "inline": True},
      {"name": "Event", "value": booking.event_type_name or "N/A", "inline": True},
      {"name": "View PDF", "value": f"[Click to view]({pdf_url})", "inline": False},
    ],
    "footer": {"text": conn.client_name},
    "timestamp": _now_iso(),
  }
  return NotificationMessage(
    text=f"Conversation available: {who}",
    slack_blocks=blocks,
    discord_payload={
      "content": f"A conversation transcript is now available! [View in Dashboard]({dashboard}) or [View PDF directly]({pdf_url})",
      "embeds": [embed],
    },
  )


def discord_connected() -> NotificationMessage:
  return NotificationMessage(
    text="Discord connected",
    discord_payload={
      "embeds": [
        {
          "title": "Discord Connected",
          "description": "Booking notifications will now be sent to this channel.",
          "color": BRAND_BLUE,
          "footer": {"text": "Conversifi Integration"},
        }
      ]
    },
  )
