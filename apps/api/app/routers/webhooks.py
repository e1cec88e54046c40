from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.bookings.service import handle_cancellation, handle_creation, is_watched, match_connection
from app.calendly.events import HANDLED_EVENTS, parse_booking_event
from app.calendly.signature import SIGNATURE_HEADER, SignatureError, verify_signature
from app.config import settings
from app.deps import get_db, require_admin
from app.models import InboundWebhookEvent, User
from app.schemas import InboundEventOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SOURCE_CALENDLY = "calendly"


def _safe_headers(headers: dict[str, str]) -> dict[str, Any]:
  out: dict[str, Any] = {}
  for k, v in headers.items():
    if k.lower() in ("authorization", "cookie", "set-cookie"):
      continue
    out[k] = v
  return out


@router.post("/calendly")
async def calendly_inbound(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  raw = await request.body()
  try:
    verify_signature(
      signing_key=settings.calendly_signing_key,
      header=request.headers.get(SIGNATURE_HEADER),
      raw_body=raw,
      tolerance_seconds=int(settings.calendly_signature_tolerance_seconds),
    )
  except SignatureError as exc:
    logger.warning("calendly webhook rejected: %s", exc)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature") from exc

  try:
    body = json.loads(raw or b"null")
  except ValueError:
    body = None
  if not isinstance(body, dict):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON object body required")

  ev = parse_booking_event(body)
  if ev.event not in HANDLED_EVENTS:
    return {"success": True, "message": "Event ignored"}

  conn = await match_connection(db, ev.user_uri)
  if not conn:
    logger.info("calendly %s for %s matched no active connection", ev.event, ev.user_uri)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No matching connection")
  if not is_watched(conn, ev.event_type_uri):
    return {"success": True, "message": "Event type not watched"}

  inbox = InboundWebhookEvent(
    source=SOURCE_CALENDLY,
    event_name=ev.event,
    headers=_safe_headers(dict(request.headers)),
    body=body,
    received_at=datetime.now(timezone.utc),
    processed=False,
  )
  db.add(inbox)
  await db.flush()
  conn_id = conn.id

  try:
    if ev.is_cancellation:
      result = await handle_cancellation(db, conn, ev)
    else:
      result = await handle_creation(db, conn, ev)
  except Exception as exc:
    await db.rollback()
    db.add(
      InboundWebhookEvent(
        source=SOURCE_CALENDLY,
        event_name=ev.event,
        headers=_safe_headers(dict(request.headers)),
        body=body,
        received_at=datetime.now(timezone.utc),
        processed=True,
        processed_at=datetime.now(timezone.utc),
        error=str(exc) or exc.__class__.__name__,
      )
    )
    await db.commit()
    raise

  inbox.processed = True
  inbox.processed_at = datetime.now(timezone.utc)
  inbox.result = result
  await write_audit(
    db,
    event_type=f"webhook.{ev.event}",
    entity_type="ClientConnection",
    entity_id=conn_id,
    payload={"event_id": inbox.id, "booking_id": result.get("booking_id")},
  )
  await db.commit()
  return {"success": True, "event_id": inbox.id, **result}


@router.get("/events", response_model=list[InboundEventOut])
async def list_events(
  source: str | None = None,
  limit: int = 50,
  admin: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> list[InboundEventOut]:
  q = select(InboundWebhookEvent)
  if source:
    q = q.where(InboundWebhookEvent.source == source)
  res = await db.execute(q.order_by(InboundWebhookEvent.received_at.desc()).limit(max(1, min(int(limit), 200))))
  return [
    InboundEventOut(
      id=e.id,
      source=e.source,
      event_name=e.event_name,
      received_at=e.received_at,
      processed=bool(e.processed),
      result=e.result,
      error=e.error,
    )
    for e in res.scalars().all()
  ]
