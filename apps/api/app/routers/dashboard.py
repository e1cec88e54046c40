from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.deps import DashboardSession, client_ip, get_db, open_dashboard_session
from app.models import Booking, CampaignStat, Report
from app.notifications import messages
from app.notifications.service import notify_client
from app.rate_limit import enforce
from app.schemas import (
  AccessCodeIn,
  BookingOut,
  BookingUpdateIn,
  CampaignStatOut,
  DashboardConnectionOut,
  DashboardOut,
  DashboardStatsOut,
  ReportOut,
  TimezoneUpdateIn,
)
from app.storage import REPORTS_BUCKET, get_storage, safe_name

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

HISTORY_DAYS = 30


def _stat_out(s: CampaignStat) -> CampaignStatOut:
  return CampaignStatOut(
    id=s.id,
    date=s.date,
    messages_sent=s.messages_sent,
    replies_received=s.replies_received,
    connections_made=s.connections_made,
    meetings_booked=s.meetings_booked,
    total_prospects=s.total_prospects,
    total_sent=s.total_sent,
    total_responses=s.total_responses,
    pending_requests=s.pending_requests,
    acceptance_rate=s.acceptance_rate,
    response_rate=s.response_rate,
    campaign_data=s.campaign_data,
  )


def booking_out(b: Booking) -> BookingOut:
  return BookingOut(
    id=b.id,
    contact_name=b.contact_name,
    contact_email=b.contact_email,
    contact_phone=b.contact_phone,
    event_type_name=b.event_type_name,
    event_time=b.event_time,
    event_status=b.event_status,
    rescheduled=bool(b.rescheduled),
    reschedule_url=b.reschedule_url,
    cancel_url=b.cancel_url,
    showed_up=b.showed_up,
    call_outcome=b.call_outcome,
    closer_notes=b.closer_notes,
    archived=bool(b.archived),
    conversation_pdf_url=b.conversation_pdf_url,
    created_at=b.created_at,
  )


def report_out(r: Report) -> ReportOut:
  return ReportOut(
    id=r.id,
    client_connection_id=r.client_connection_id,
    report_name=r.report_name,
    report_url=r.report_url,
    report_date=r.report_date,
    created_at=r.created_at,
  )


async def _session(request: Request, db: AsyncSession, access_token: str | None) -> DashboardSession:
  ip = client_ip(request) or "unknown"
  enforce(f"dashboard:ip:{ip}", limit=int(settings.rate_limit_dashboard_ip_per_minute))
  return await open_dashboard_session(db, access_token)


@router.post("", response_model=DashboardOut)
async def dashboard(payload: AccessCodeIn, request: Request, db: AsyncSession = Depends(get_db)) -> DashboardOut:
  session = await _session(request, db, payload.access_token)
  conn = session.connection
  now = datetime.now(timezone.utc)

  # Calls whose start time has passed are treated as held.
  await db.execute(
    update(Booking)
    .where(Booking.client_connection_id == conn.id, Booking.event_status == "scheduled", Booking.event_time < now)
    .values(event_status="completed")
  )
  await db.commit()

  since = (now - timedelta(days=HISTORY_DAYS)).date()
  sres = await db.execute(
    select(CampaignStat)
    .where(CampaignStat.client_connection_id == conn.id, CampaignStat.date >= since)
    .order_by(CampaignStat.date.desc())
  )
  history = [_stat_out(s) for s in sres.scalars().all()]

  bres = await db.execute(
    select(Booking).where(Booking.client_connection_id == conn.id).order_by(Booking.event_time.desc().nulls_last(), Booking.created_at.desc())
  )
  bookings = [booking_out(b) for b in bres.scalars().all()]

  rres = await db.execute(select(Report).where(Report.client_connection_id == conn.id).order_by(Report.report_date.desc()))
  reports = [report_out(r) for r in rres.scalars().all()]

  return DashboardOut(
    connection=DashboardConnectionOut(
      id=conn.id,
      client_name=conn.client_name,
      is_active=bool(conn.is_active),
      client_timezone=session.timezone,
      created_at=conn.created_at,
    ),
    stats=DashboardStatsOut(latest=history[0] if history else None, history=history, actualMeetingsBooked=len(bookings)),
    bookings=bookings,
    reports=reports,
  )


@router.post("/timezone")
async def set_timezone(payload: TimezoneUpdateIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  session = await _session(request, db, payload.access_token)
  session.connection.client_timezone = payload.timezone
  await db.commit()
  return {"success": True, "timezone": payload.timezone}


@router.post("/bookings/update")
async def update_booking(payload: BookingUpdateIn, request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  session = await _session(request, db, payload.access_token)
  res = await db.execute(select(Booking).where(Booking.id == payload.booking_id))
  b = res.scalar_one_or_none()
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
  if b.client_connection_id != session.connection.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

  if payload.event_status is not None:
    b.event_status = payload.event_status
  if payload.showed_up is not None:
    b.showed_up = payload.showed_up
    if payload.showed_up:
      b.event_status = "completed"
  if payload.call_outcome is not None:
    b.call_outcome = payload.call_outcome
  if payload.closer_notes is not None:
    b.closer_notes = payload.closer_notes
  if payload.archived is not None:
    b.archived = payload.archived
  await db.commit()
  await db.refresh(b)
  return {"success": True, "booking": booking_out(b)}


@router.post("/bookings/conversation")
async def upload_conversation(
  request: Request,
  access_token: str = Form(...),
  booking_id: str = Form(...),
  file: UploadFile = File(...),
  db: AsyncSession = Depends(get_db),
) -> dict:
  session = await _session(request, db, access_token)
  res = await db.execute(select(Booking).where(Booking.id == booking_id))
  b = res.scalar_one_or_none()
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
  if b.client_connection_id != session.connection.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

  name = file.filename or "conversation.pdf"
  if file.content_type != "application/pdf" and not name.lower().endswith(".pdf"):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are allowed")
  data = await file.read(int(settings.max_upload_bytes) + 1)
  if len(data) > int(settings.max_upload_bytes):
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")

  storage = get_storage()
  ts = int(datetime.now(timezone.utc).timestamp() * 1000)
  path = storage.upload(REPORTS_BUCKET, f"conversations/{b.id}/{ts}_{safe_name(name)}", data)
  url = storage.public_url(REPORTS_BUCKET, path)
  b.conversation_pdf_url = url
  await db.commit()

  deliveries = await notify_client(session.connection, messages.conversation_available(session.connection, b, url))
  return {"success": True, "url": url, "notifications": [d.as_dict() for d in deliveries]}
