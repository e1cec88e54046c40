from __future__ import annotations

from urllib.parse import urlsplit

import pytest
from httpx import AsyncClient

import app.routers.onboarding as onboarding_router
from app.config import settings
from app.notifications.service import SENT, DeliveryResult
from tests.conftest import login, make_connection

ANSWERS = {
  "first_name": "Ada",
  "last_name": "Lovelace",
  "company_name": "Analytical Engines Ltd",
  "email": "ada@example.com",
  "phone": "+44 20 0000 0000",
  "linkedin_url": "https://linkedin.com/in/ada",
  "website_url": "https://engines.example.com",
  "industry": "Computing",
  "has_calendly": "yes",
  "country": "UK",
  "street_address": "12 St James's Square",
  "city_state": "London",
}


def _relative(url: str) -> str:
  parts = urlsplit(url)
  return parts.path + (f"?{parts.query}" if parts.query else "")


@pytest.mark.anyio
async def test_onboarding_requires_every_required_field(client: AsyncClient) -> None:
  partial = {k: v for k, v in ANSWERS.items() if k != "city_state"}
  res = await client.post("/onboarding", data=partial)
  assert res.status_code == 400
  assert res.json()["error"] == "Missing required field: city_state"


@pytest.mark.anyio
async def test_onboarding_stores_answers_and_private_files(client: AsyncClient) -> None:
  res = await client.post(
    "/onboarding",
    data={**ANSWERS, "deal_size": "10k", "company_headcounts": ["11-50", "51-200"]},
    files={"file_brief": ("brief.pdf", b"%PDF brief", "application/pdf")},
  )
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["success"] is True
  assert data["forward"]["status"] == "skipped"
  submission_id = data["id"]

  headers = await login(client)
  listed = (await client.get("/onboarding", headers=headers)).json()
  assert len(listed) == 1
  s = listed[0]
  assert s["company_headcounts"] == ["11-50", "51-200"]
  assert s["deal_size"] == "10k"
  assert s["ideal_client"] is None
  assert len(s["file_urls"]) == 1
  assert s["file_urls"][0].startswith("Analytical_Engines_Ltd/")

  files = (await client.get(f"/onboarding/{submission_id}/files", headers=headers)).json()["files"]
  signed = _relative(files[0]["url"])
  ok = await client.get(signed)
  assert ok.status_code == 200
  assert ok.content == b"%PDF brief"

  unsigned = await client.get(signed.split("?", 1)[0])
  assert unsigned.status_code == 403
  assert unsigned.json()["error"] == "Invalid or expired link"
  tampered = await client.get(signed[:-4] + "0000")
  assert tampered.status_code == 403


@pytest.mark.anyio
async def test_onboarding_forwards_to_configured_webhook(client: AsyncClient, monkeypatch) -> None:
  forwarded: list[dict] = []

  async def fake_forward(url, answers):
    forwarded.append({"url": url, "answers": answers})
    return DeliveryResult(channel="onboarding_webhook", status=SENT)

  monkeypatch.setattr(settings, "onboarding_webhook_url", "https://hooks.example.com/onboarding")
  monkeypatch.setattr(onboarding_router, "forward_submission", fake_forward)
  res = await client.post("/onboarding", data={**ANSWERS, "company_headcounts": '["1-10"]'})
  assert res.status_code == 200, res.text
  assert res.json()["forward"]["status"] == "sent"
  assert forwarded[0]["url"] == "https://hooks.example.com/onboarding"
  assert forwarded[0]["answers"]["company_headcounts"] == ["1-10"]
  assert forwarded[0]["answers"]["submission_id"] == res.json()["id"]


@pytest.mark.anyio
async def test_report_upload_list_and_delete(client: AsyncClient) -> None:
  headers = await login(client)
  conn = await make_connection()

  not_pdf = await client.post(
    "/reports",
    data={"client_connection_id": conn.id, "report_name": "Weekly", "report_date": "2030-01-07"},
    files={"file": ("weekly.docx", b"doc", "application/msword")},
    headers=headers,
  )
  assert not_pdf.status_code == 400

  up = await client.post(
    "/reports",
    data={"client_connection_id": conn.id, "report_name": "Weekly", "report_date": "2030-01-07"},
    files={"file": ("weekly.pdf", b"%PDF weekly", "application/pdf")},
    headers=headers,
  )
  assert up.status_code == 200, up.text
  report = up.json()["report"]
  assert report["report_date"] == "2030-01-07"
  assert "/files/reports/ACM1234/" in report["report_url"]
  assert (await client.get(_relative(report["report_url"]))).content == b"%PDF weekly"

  dash = (await client.post("/dashboard", json={"access_token": "ACM1234"})).json()
  assert [r["id"] for r in dash["reports"]] == [report["id"]]

  listed = (await client.get("/reports", params={"client_connection_id": conn.id}, headers=headers)).json()
  assert [r["report_name"] for r in listed] == ["Weekly"]

  d = await client.delete(f"/reports/{report['id']}", headers=headers)
  assert d.status_code == 200, d.text
  assert (await client.get(_relative(report["report_url"]))).status_code == 404
  assert (await client.get("/reports", headers=headers)).json() == []


@pytest.mark.anyio
async def test_unknown_bucket_is_404(client: AsyncClient) -> None:
  assert (await client.get("/files/secrets/x.txt")).status_code == 404
