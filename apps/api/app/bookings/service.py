from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.calendly.events import BookingEvent, uri_tail
from app.config import settings
from app.ghl.client import create_contact
from app.logging_setup import secret_hint
from app.models import Booking, ClientConnection
from app.notifications import messages
from app.notifications.service import FAILED, SENT, SKIPPED, DeliveryResult, notify_client
from app.security import decrypt_integration_secret

logger = logging.getLogger(__name__)


async def match_connection(db: AsyncSession, user_uri: str | None) -> ClientConnection | None:
  """Finds the active client whose scheduling user produced this event.

  Exact URI match first; if none, the trailing path segment (the user's uuid) is
  compared so that URIs differing only in host or prefix still match.
  """
  if not user_uri:
    return None
  res = await db.execute(select(ClientConnection).where(ClientConnection.is_active.is_(True)))
  conns = [c for c in res.scalars().all() if c.calendly_user_uri]

  for c in conns:
    if c.calendly_user_uri == user_uri:
      return c

  tail = uri_tail(user_uri)
  if not tail:
    return None
  for c in conns:
    if uri_tail(c.calendly_user_uri) == tail:
      logger.warning(
        "calendly user %s matched client %s by uuid suffix only (stored uri %s)",
        user_uri,
        c.id,
        c.calendly_user_uri,
      )
      return c
  return None


def is_watched(conn: ClientConnection, event_type_uri: str | None) -> bool:
  watched = conn.watched_event_types or []
  if not watched:
    return True
  return bool(event_type_uri) and event_type_uri in watched


def _crm_key(conn: ClientConnection) -> str | None:
  if conn.ghl_api_key_encrypted:
    return decrypt_integration_secret(conn.ghl_api_key_encrypted)
  return settings.ghl_api_key


async def create_crm_contact(conn: ClientConnection, ev: BookingEvent) -> DeliveryResult:
  try:
    key = _crm_key(conn)
    if not key:
      return DeliveryResult(channel="crm", status=SKIPPED, error="GHL API key not configured")
    res = await create_contact(
      key,
      location_id=conn.ghl_location_id,
      name=ev.invitee_name,
      email=ev.invitee_email,
      phone=ev.invitee_phone,
      tags=["calendly-booking", conn.client_name],
      custom_fields={
        "calendly_event_type": ev.event_name,
        "calendly_event_time": ev.start_time.isoformat() if ev.start_time else None,
        "access_token": conn.access_token,
      },
    )
  except Exception as exc:
    reason = getattr(exc, "message", None) or str(exc)
    logger.warning("GHL contact for client %s failed: %s", conn.id, reason)
    return DeliveryResult(channel="crm", status=FAILED, error=reason)
  return DeliveryResult(channel="crm", status=SENT, detail=res)


async def handle_cancellation(db: AsyncSession, conn: ClientConnection, ev: BookingEvent) -> dict[str, Any]:
  updated = 0
  if ev.invitee_uri:
    res = await db.execute(
      update(Booking)
      .where(Booking.client_connection_id == conn.id, Booking.calendly_invitee_uri == ev.invitee_uri)
      .values(event_status="canceled")
    )
    updated = int(res.rowcount or 0)
  await db.commit()
  if not updated:
    logger.info("cancellation for %s matched no stored booking", ev.invitee_uri)

  deliveries = await notify_client(conn, messages.booking_canceled(conn, ev))
  return {"message": "Cancellation processed", "updated": updated, "deliveries": [d.as_dict() for d in deliveries]}


async def handle_creation(db: AsyncSession, conn: ClientConnection, ev: BookingEvent) -> dict[str, Any]:
  crm = await create_crm_contact(conn, ev)
  deliveries = await notify_client(conn, messages.booking_created(conn, ev))

  b = Booking(
    client_connection_id=conn.id,
    access_token=conn.access_token,
    contact_name=ev.invitee_name,
    contact_email=ev.invitee_email,
    contact_phone=ev.invitee_phone,
    event_type_name=ev.event_name,
    event_type_uri=ev.event_type_uri,
    event_time=ev.start_time,
    calendly_event_uri=ev.event_uri,
    calendly_invitee_uri=ev.invitee_uri,
    event_status="scheduled",
    rescheduled=ev.rescheduled,
    reschedule_url=ev.reschedule_url,
    cancel_url=ev.cancel_url,
    raw_payload=ev.raw,
  )
  db.add(b)
  await db.commit()
  logger.info("booking %s stored for client %s (%s)", b.id, conn.id, secret_hint(conn.access_token))
  return {
    "message": "Webhook processed",
    "booking_id": b.id,
    "rescheduled": ev.rescheduled,
    "deliveries": [crm.as_dict()] + [d.as_dict() for d in deliveries],
  }
