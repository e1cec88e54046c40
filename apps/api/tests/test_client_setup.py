from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

import app.clients.service as client_service
import app.notifications.service as notification_service
from app.calendly.client import CalendlyApiError
from app.config import settings
from app.db import SessionLocal
from app.models import Booking, ClientConnection
from app.security import decrypt_secret
from tests.conftest import CALENDLY_ORG_URI, CALENDLY_USER_URI, MEMBER_EMAIL, MEMBER_PASSWORD, login, make_connection

WEBHOOK_URI = "https://api.calendly.com/webhook_subscriptions/WH1"


def setup_payload(**overrides) -> dict:
  payload = {
    "client_name": "Acme Corp",
    "calendly_token": "cal-secret-token",
    "ghl_location_id": "loc_123",
    "ghl_location_name": "Acme HQ",
    "slack_channel_id": "C123",
    "slack_channel_name": "acme-bookings",
    "conversifi_webhook_url": "https://stats.example.com/acme",
  }
  payload.update(overrides)
  return payload


@pytest.fixture
def calendly_ok(monkeypatch) -> dict:
  calls: dict = {"me": 0, "webhook": []}

  async def fake_me(token: str) -> dict:
    calls["me"] += 1
    return {"user_uri": CALENDLY_USER_URI, "org_uri": CALENDLY_ORG_URI, "name": "Acme", "email": "a@acme.test"}

  async def fake_create(token: str, **kwargs) -> str:
    calls["webhook"].append(kwargs)
    return WEBHOOK_URI

  monkeypatch.setattr(client_service, "calendly_me", fake_me)
  monkeypatch.setattr(client_service, "create_webhook_subscription", fake_create)
  return calls


@pytest.mark.anyio
async def test_setup_round_trips_through_access_code_lookup(client: AsyncClient, calendly_ok: dict) -> None:
  headers = await login(client)
  res = await client.post("/clients/setup", json=setup_payload(access_token="acm1234", watched_event_types=["https://api.calendly.com/event_types/ET1"]), headers=headers)
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["success"] is True
  conn = data["connection"]
  assert conn["access_token"] == "ACM1234"
  assert conn["calendly_user_uri"] == CALENDLY_USER_URI
  assert conn["calendly_webhook_id"] == WEBHOOK_URI
  assert calendly_ok["me"] == 1
  assert calendly_ok["webhook"][0]["callback_url"].endswith("/webhooks/calendly")
  assert {n["channel"]: n["status"] for n in data["notifications"]} == {"slack": "skipped", "discord": "skipped"}

  lookup = await client.get("/clients/by-access-token/ACM1234", headers=headers)
  assert lookup.status_code == 200, lookup.text
  got = lookup.json()
  assert got["id"] == conn["id"]
  assert got["client_name"] == "Acme Corp"
  assert got["ghl_location_id"] == "loc_123"
  assert got["watched_event_types"] == ["https://api.calendly.com/event_types/ET1"]
  assert got["client_timezone"] == "UTC"
  assert "calendly_token" not in got

  async with SessionLocal() as db:
    row = (await db.execute(select(ClientConnection).where(ClientConnection.id == conn["id"]))).scalar_one()
    assert row.calendly_token_encrypted != "cal-secret-token"
    assert decrypt_secret(row.calendly_token_encrypted) == "cal-secret-token"


@pytest.mark.anyio
async def test_setup_generates_access_code_when_none_given(client: AsyncClient, calendly_ok: dict) -> None:
  headers = await login(client)
  res = await client.post("/clients/setup", json=setup_payload(), headers=headers)
  assert res.status_code == 200, res.text
  code = res.json()["connection"]["access_token"]
  assert len(code) == 7 and code[:3].isalpha() and code[:3].isupper() and code[3:].isdigit()


@pytest.mark.anyio
async def test_setup_validation_failures(client: AsyncClient, calendly_ok: dict) -> None:
  headers = await login(client)

  missing = await client.post("/clients/setup", json=setup_payload(calendly_token="", ghl_location_id=""), headers=headers)
  assert missing.status_code == 400, missing.text
  assert missing.json()["error"] == "Missing required fields: calendly_token, ghl_location_id"

  no_channel = await client.post("/clients/setup", json=setup_payload(slack_channel_id=""), headers=headers)
  assert no_channel.status_code == 400, no_channel.text
  assert no_channel.json()["error"] == "At least one notification channel is required"

  bad_code = await client.post("/clients/setup", json=setup_payload(access_token="AB12345"), headers=headers)
  assert bad_code.status_code == 400, bad_code.text

  await make_connection(access_token="TAK1234")
  taken = await client.post("/clients/setup", json=setup_payload(access_token="tak1234"), headers=headers)
  assert taken.status_code == 400, taken.text
  assert taken.json()["error"] == "Access token already in use"


@pytest.mark.anyio
async def test_setup_fails_only_on_identity_lookup(client: AsyncClient, monkeypatch) -> None:
  headers = await login(client)

  async def bad_me(token: str) -> dict:
    raise CalendlyApiError(status_code=401, message="Unauthenticated")

  monkeypatch.setattr(client_service, "calendly_me", bad_me)
  res = await client.post("/clients/setup", json=setup_payload(), headers=headers)
  assert res.status_code == 400, res.text
  assert res.json() == {"success": False, "error": "Invalid Calendly API token", "details": "Unauthenticated"}

  async with SessionLocal() as db:
    assert (await db.execute(select(func.count()).select_from(ClientConnection))).scalar_one() == 0


@pytest.mark.anyio
async def test_webhook_registration_failure_does_not_block_setup(client: AsyncClient, monkeypatch) -> None:
  headers = await login(client)

  async def broken_create(token: str, **kwargs) -> str:
    raise CalendlyApiError(status_code=500, message="boom")

  monkeypatch.setattr(client_service, "create_webhook_subscription", broken_create)
  res = await client.post(
    "/clients/setup",
    json=setup_payload(calendly_user_uri=CALENDLY_USER_URI, calendly_org_uri=CALENDLY_ORG_URI),
    headers=headers,
  )
  assert res.status_code == 200, res.text
  assert res.json()["connection"]["calendly_webhook_id"] is None


@pytest.mark.anyio
async def test_setup_is_admin_only(client: AsyncClient, calendly_ok: dict) -> None:
  headers = await login(client, MEMBER_EMAIL, MEMBER_PASSWORD)
  res = await client.post("/clients/setup", json=setup_payload(), headers=headers)
  assert res.status_code == 403, res.text


@pytest.mark.anyio
async def test_update_and_delete_connection(client: AsyncClient) -> None:
  headers = await login(client)
  conn = await make_connection()
  async with SessionLocal() as db:
    db.add(Booking(client_connection_id=conn.id, access_token=conn.access_token, contact_name="Jane"))
    await db.commit()

  bad_tz = await client.patch(f"/clients/{conn.id}", json={"client_timezone": "Mars/Olympus"}, headers=headers)
  assert bad_tz.status_code == 400, bad_tz.text

  upd = await client.patch(f"/clients/{conn.id}", json={"client_timezone": "Europe/London", "is_active": False}, headers=headers)
  assert upd.status_code == 200, upd.text
  assert upd.json()["client_timezone"] == "Europe/London"
  assert upd.json()["is_active"] is False

  listed = await client.get("/clients", headers=headers)
  assert [c["id"] for c in listed.json()] == [conn.id]

  d = await client.delete(f"/clients/{conn.id}", headers=headers)
  assert d.status_code == 200, d.text
  missing = await client.get(f"/clients/{conn.id}", headers=headers)
  assert missing.status_code == 404
  async with SessionLocal() as db:
    assert (await db.execute(select(func.count()).select_from(Booking))).scalar_one() == 0


@pytest.mark.anyio
async def test_recreate_webhook_replaces_subscription(client: AsyncClient, monkeypatch) -> None:
  headers = await login(client)
  conn = await make_connection(calendly_webhook_id="https://api.calendly.com/webhook_subscriptions/OLD")
  deleted: list[str] = []

  async def fake_delete(token: str, uri: str) -> None:
    deleted.append(uri)

  async def fake_create(token: str, **kwargs) -> str:
    return WEBHOOK_URI

  monkeypatch.setattr(client_service, "delete_webhook_subscription", fake_delete)
  monkeypatch.setattr(client_service, "create_webhook_subscription", fake_create)
  res = await client.post(f"/clients/{conn.id}/recreate-webhook", headers=headers)
  assert res.status_code == 200, res.text
  assert res.json() == {"success": True, "webhook_id": WEBHOOK_URI}
  assert deleted == ["https://api.calendly.com/webhook_subscriptions/OLD"]


@pytest.mark.anyio
async def test_discord_setup_requires_bot_token(client: AsyncClient) -> None:
  headers = await login(client)
  conn = await make_connection()
  res = await client.post(f"/clients/{conn.id}/discord", json={"channel_id": "D1", "guild_id": "G1"}, headers=headers)
  assert res.status_code == 500, res.text
  assert res.json()["error"] == "Discord bot not configured"


@pytest.mark.anyio
async def test_discord_is_enabled_only_when_a_webhook_was_created(client: AsyncClient, calendly_ok: dict, monkeypatch) -> None:
  headers = await login(client)
  discord_fields = {"discord_channel_id": "D1", "discord_channel_name": "bookings", "discord_guild_id": "G1", "discord_guild_name": "Agency"}

  monkeypatch.setattr(settings, "discord_bot_token", None)
  no_bot = await client.post("/clients/setup", json=setup_payload(client_name="No Bot", **discord_fields), headers=headers)
  assert no_bot.status_code == 200, no_bot.text
  conn = no_bot.json()["connection"]
  assert conn["discord_channel_id"] == "D1"
  assert conn["discord_enabled"] is False

  posted: list = []

  async def fake_channel_webhook(channel_id: str, **kwargs) -> str:
    assert channel_id == "D1"
    return "https://discord.com/api/webhooks/9/tok"

  async def fake_execute(url: str, payload: dict) -> None:
    posted.append(url)

  monkeypatch.setattr(settings, "discord_bot_token", "bot-token")
  monkeypatch.setattr(client_service, "create_channel_webhook", fake_channel_webhook)
  monkeypatch.setattr(notification_service, "discord_execute_webhook", fake_execute)
  with_bot = await client.post("/clients/setup", json=setup_payload(client_name="With Bot", **discord_fields), headers=headers)
  assert with_bot.status_code == 200, with_bot.text
  assert with_bot.json()["connection"]["discord_enabled"] is True
  assert {n["channel"]: n["status"] for n in with_bot.json()["notifications"]}["discord"] == "sent"
  assert posted == ["https://discord.com/api/webhooks/9/tok"]
