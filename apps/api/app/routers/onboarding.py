from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.config import settings
from app.deps import get_db, require_admin
from app.models import OnboardingSubmission, User
from app.notifications.service import FAILED, SENT, SKIPPED, DeliveryResult
from app.providers import http_client
from app.schemas import OnboardingOut
from app.storage import ONBOARDING_FILES_BUCKET, StorageError, get_storage, safe_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

REQUIRED_FIELDS = (
  "first_name",
  "last_name",
  "company_name",
  "email",
  "phone",
  "linkedin_url",
  "website_url",
  "industry",
  "has_calendly",
  "country",
  "street_address",
  "city_state",
)
OPTIONAL_FIELDS = (
  "ideal_client",
  "geography",
  "industries",
  "job_titles",
  "problem_solved",
  "service_description",
  "success_stories",
  "deal_size",
  "sales_person",
  "blacklist_urls",
)


def _onboarding_out(s: OnboardingSubmission) -> OnboardingOut:
  return OnboardingOut(
    id=s.id,
    file_urls=list(s.file_urls or []),
    created_at=s.created_at,
    company_headcounts=s.company_headcounts,
    **{f: getattr(s, f) for f in REQUIRED_FIELDS + OPTIONAL_FIELDS},
  )


def _headcounts(values: list[Any]) -> list[str] | None:
  # Sent either as repeated form fields or as one JSON-encoded list.
  out: list[str] = []
  for v in values:
    if not isinstance(v, str) or not v.strip():
      continue
    if v.strip().startswith("["):
      try:
        decoded = json.loads(v)
      except ValueError:
        decoded = [v]
      out.extend(str(x) for x in decoded if str(x).strip())
    else:
      out.append(v.strip())
  return out or None


async def forward_submission(url: str | None, answers: dict[str, Any]) -> DeliveryResult:
  if not url:
    return DeliveryResult(channel="onboarding_webhook", status=SKIPPED, error="Onboarding webhook not configured")
  try:
    async with http_client() as client:
      r = await client.post(url, json=answers)
  except httpx.HTTPError as exc:
    logger.warning("onboarding forward failed: %s", exc)
    return DeliveryResult(channel="onboarding_webhook", status=FAILED, error=str(exc) or exc.__class__.__name__)
  if r.status_code >= 400:
    logger.warning("onboarding forward answered %s", r.status_code)
    return DeliveryResult(channel="onboarding_webhook", status=FAILED, error=f"Webhook returned {r.status_code}")
  return DeliveryResult(channel="onboarding_webhook", status=SENT)


@router.post("")
async def submit_onboarding(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
  form = await request.form()

  answers: dict[str, Any] = {}
  for f in REQUIRED_FIELDS:
    v = form.get(f)
    if not isinstance(v, str) or not v.strip():
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing required field: {f}")
    answers[f] = v.strip()
  for f in OPTIONAL_FIELDS:
    v = form.get(f)
    answers[f] = v.strip() if isinstance(v, str) and v.strip() else None
  answers["company_headcounts"] = _headcounts(form.getlist("company_headcounts"))

  storage = get_storage()
  company = safe_name(answers["company_name"])
  ts = int(datetime.now(timezone.utc).timestamp() * 1000)
  paths: list[str] = []
  for key, value in form.multi_items():
    if not key.startswith("file_") or not isinstance(value, UploadFile):
      continue
    data = await value.read(int(settings.max_upload_bytes) + 1)
    if len(data) > int(settings.max_upload_bytes):
      logger.warning("onboarding file %s skipped: too large", value.filename)
      continue
    try:
      paths.append(storage.upload(ONBOARDING_FILES_BUCKET, f"{company}/{ts}_{safe_name(value.filename or key)}", data))
    except (OSError, StorageError) as exc:
      logger.warning("onboarding file %s not stored: %s", value.filename, exc)

  s = OnboardingSubmission(file_urls=paths, **answers)
  db.add(s)
  await db.commit()

  forward = await forward_submission(settings.onboarding_webhook_url, {**answers, "file_urls": paths, "submission_id": s.id})
  return {"success": True, "id": s.id, "forward": forward.as_dict()}


@router.get("", response_model=list[OnboardingOut])
async def list_submissions(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> list[OnboardingOut]:
  res = await db.execute(select(OnboardingSubmission).order_by(OnboardingSubmission.created_at.desc()))
  return [_onboarding_out(s) for s in res.scalars().all()]


@router.get("/{submission_id}/files")
async def submission_files(submission_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(OnboardingSubmission).where(OnboardingSubmission.id == submission_id))
  s = res.scalar_one_or_none()
  if not s:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
  storage = get_storage()
  files = [{"path": p, "url": storage.signed_url(ONBOARDING_FILES_BUCKET, p)} for p in s.file_urls or []]
  return {"success": True, "files": files}
