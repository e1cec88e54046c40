from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select

import app.stats.service as stats_service
from app.config import settings
from app.conversifi.client import ConversifiApiError
from app.db import SessionLocal
from app.models import CampaignStat
from tests.conftest import MEMBER_EMAIL, MEMBER_PASSWORD, login, make_connection


def _payload(sent: int) -> dict:
  return {"totals": {"total_sent": sent, "connections_accepted": 2, "total_responses": 1, "meetings_booked": 1}, "campaigns": []}


@pytest.fixture
def fake_stats_api(monkeypatch) -> list[str]:
  calls: list[str] = []

  async def fake_fetch(url: str, *, api_key: str):
    calls.append(url)
    if url.endswith("/broken"):
      raise ConversifiApiError(status_code=500, message="API error: 500")
    return _payload(10)

  monkeypatch.setattr(settings, "conversifi_api_key", "cv-key")
  monkeypatch.setattr(stats_service, "fetch_campaign_stats", fake_fetch)
  return calls


@pytest.mark.anyio
async def test_one_failing_client_does_not_stop_the_others(client: AsyncClient, fake_stats_api: list[str]) -> None:
  await make_connection(client_name="One", access_token="ONE1111", conversifi_webhook_url="https://stats.example.com/one")
  await make_connection(client_name="Two", access_token="TWO2222", conversifi_webhook_url="https://stats.example.com/broken")
  await make_connection(client_name="Three", access_token="THR3333", conversifi_webhook_url="https://stats.example.com/three")
  await make_connection(client_name="NoUrl", access_token="NOU4444", conversifi_webhook_url=None)

  headers = await login(client)
  res = await client.post("/stats/sync", headers=headers)
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["success"] is True
  assert data["synced"] == 2
  assert data["total"] == 3
  assert data["message"] == "Synced 2/3 connections"
  by_client = {r["client"]: r for r in data["results"]}
  assert by_client["Two"]["success"] is False
  assert by_client["Two"]["error"] == "API error: 500"
  assert by_client["One"]["stats"]["pending_requests"] == 8
  assert len(fake_stats_api) == 3

  async with SessionLocal() as db:
    rows = (await db.execute(select(CampaignStat))).scalars().all()
    assert sorted(r.access_token for r in rows) == ["ONE1111", "THR3333"]


@pytest.mark.anyio
async def test_resync_same_day_updates_in_place(client: AsyncClient, fake_stats_api: list[str], monkeypatch) -> None:
  await make_connection(client_name="One", access_token="ONE1111", conversifi_webhook_url="https://stats.example.com/one")
  headers = await login(client)
  assert (await client.post("/stats/sync", headers=headers)).json()["synced"] == 1

  async def bigger(url: str, *, api_key: str):
    return _payload(40)

  monkeypatch.setattr(stats_service, "fetch_campaign_stats", bigger)
  assert (await client.post("/stats/sync", json={"access_token": "one1111"}, headers=headers)).json()["synced"] == 1

  async with SessionLocal() as db:
    rows = (await db.execute(select(CampaignStat))).scalars().all()
    assert len(rows) == 1
    assert rows[0].total_sent == 40
    assert rows[0].campaign_data["adapter"] == "flat_v1"


@pytest.mark.anyio
async def test_sync_without_eligible_connections(client: AsyncClient, fake_stats_api: list[str]) -> None:
  headers = await login(client)
  res = await client.post("/stats/sync", headers=headers)
  assert res.status_code == 200, res.text
  assert res.json() == {"success": False, "error": "No active connections with Conversifi webhooks found", "synced": 0}


@pytest.mark.anyio
async def test_sync_requires_api_key_and_admin(client: AsyncClient, monkeypatch) -> None:
  monkeypatch.setattr(settings, "conversifi_api_key", None)
  headers = await login(client)
  res = await client.post("/stats/sync", headers=headers)
  assert res.status_code == 500, res.text
  assert res.json()["error"] == "Conversifi API key not configured"

  member = await login(client, MEMBER_EMAIL, MEMBER_PASSWORD)
  assert (await client.post("/stats/sync", headers=member)).status_code == 403
