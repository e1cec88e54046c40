from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.config import settings
from app.deps import get_db, require_admin
from app.models import ClientConnection, Report, User
from app.routers.dashboard import report_out
from app.schemas import ReportOut
from app.storage import REPORTS_BUCKET, StorageError, get_storage, safe_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("")
async def upload_report(
  client_connection_id: str = Form(...),
  report_name: str = Form(...),
  report_date: date = Form(...),
  file: UploadFile = File(...),
  admin: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> dict:
  cres = await db.execute(select(ClientConnection).where(ClientConnection.id == client_connection_id))
  conn = cres.scalar_one_or_none()
  if not conn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
  if not report_name.strip():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="report_name is required")

  name = file.filename or "report.pdf"
  if file.content_type != "application/pdf" and not name.lower().endswith(".pdf"):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are allowed")
  data = await file.read(int(settings.max_upload_bytes) + 1)
  if len(data) > int(settings.max_upload_bytes):
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")

  storage = get_storage()
  ts = int(datetime.now(timezone.utc).timestamp() * 1000)
  path = storage.upload(REPORTS_BUCKET, f"{conn.access_token}/{ts}_{safe_name(name)}", data)
  r = Report(
    client_connection_id=conn.id,
    report_name=report_name.strip(),
    report_url=storage.public_url(REPORTS_BUCKET, path),
    storage_path=path,
    report_date=report_date,
  )
  db.add(r)
  await db.flush()
  await write_audit(db, event_type="report.uploaded", entity_type="Report", entity_id=r.id, actor_id=admin.id, payload={"client_connection_id": conn.id, "name": r.report_name})
  await db.commit()
  return {"success": True, "report": report_out(r)}


@router.get("", response_model=list[ReportOut])
async def list_reports(
  client_connection_id: str | None = None,
  admin: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> list[ReportOut]:
  q = select(Report)
  if client_connection_id:
    q = q.where(Report.client_connection_id == client_connection_id)
  res = await db.execute(q.order_by(Report.report_date.desc(), Report.created_at.desc()))
  return [report_out(r) for r in res.scalars().all()]


@router.delete("/{report_id}")
async def delete_report(report_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(Report).where(Report.id == report_id))
  r = res.scalar_one_or_none()
  if not r:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
  if r.storage_path:
    try:
      get_storage().remove(REPORTS_BUCKET, r.storage_path)
    except StorageError as exc:
      logger.warning("report file %s not removed: %s", r.storage_path, exc)
  await db.execute(delete(Report).where(Report.id == report_id))
  await write_audit(db, event_type="report.deleted", entity_type="Report", entity_id=report_id, actor_id=admin.id, payload={"name": r.report_name})
  await db.commit()
  return {"success": True}
