from __future__ import annotations

import pytest
from httpx import AsyncClient

from app.config import settings
from tests.conftest import ADMIN_EMAIL, MEMBER_EMAIL, MEMBER_PASSWORD, login


@pytest.mark.anyio
async def test_login_me_logout(client: AsyncClient) -> None:
  headers = await login(client)
  me = await client.get("/auth/me", headers=headers)
  assert me.status_code == 200, me.text
  assert me.json()["email"] == ADMIN_EMAIL
  assert me.json()["role"] == "admin"

  out = await client.post("/auth/logout", headers=headers)
  assert out.json() == {"success": True}
  after = await client.get("/auth/me", headers=headers)
  assert after.status_code == 401


@pytest.mark.anyio
async def test_bad_credentials_use_the_error_envelope(client: AsyncClient) -> None:
  res = await client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
  assert res.status_code == 401
  assert res.json() == {"success": False, "error": "Invalid credentials"}

  invalid = await client.post("/auth/login", json={"email": ADMIN_EMAIL})
  assert invalid.status_code == 400
  assert invalid.json()["success"] is False
  assert invalid.json()["error"].startswith("Invalid password")


@pytest.mark.anyio
async def test_login_rate_limited(client: AsyncClient, monkeypatch) -> None:
  monkeypatch.setattr(settings, "rate_limit_login_ip_per_minute", 3)
  for _ in range(3):
    r = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "bad"})
    assert r.status_code == 401, r.text
  r = await client.post("/auth/login", json={"email": "nobody@example.com", "password": "bad"})
  assert r.status_code == 429, r.text
  assert r.headers.get("retry-after")


@pytest.mark.anyio
async def test_admin_creates_and_promotes_users(client: AsyncClient) -> None:
  headers = await login(client)

  created = await client.post(
    "/admin/users",
    json={"email": "Closer@Example.com", "name": "Closer", "password": "closer1234"},
    headers=headers,
  )
  assert created.status_code == 200, created.text
  assert created.json()["email"] == "closer@example.com"
  assert created.json()["role"] == "user"

  dup = await client.post("/admin/users", json={"email": "closer@example.com", "name": "Again", "password": "closer1234"}, headers=headers)
  assert dup.status_code == 400
  assert dup.json()["error"] == "Email already exists"

  missing = await client.post("/admin/users/promote", json={"email": "ghost@example.com"}, headers=headers)
  assert missing.status_code == 404
  assert missing.json()["error"] == "User not found. They must create an account first."

  promoted = await client.post("/admin/users/promote", json={"email": "closer@example.com"}, headers=headers)
  assert promoted.status_code == 200, promoted.text
  again = await client.post("/admin/users/promote", json={"email": "closer@example.com"}, headers=headers)
  assert again.status_code == 400
  assert again.json()["error"] == "User is already an admin"

  closer = await login(client, "closer@example.com", "closer1234")
  assert (await client.get("/admin/users", headers=closer)).status_code == 200


@pytest.mark.anyio
async def test_admin_routes_reject_regular_users(client: AsyncClient) -> None:
  headers = await login(client, MEMBER_EMAIL, MEMBER_PASSWORD)
  for path in ("/admin/users", "/clients", "/reports", "/onboarding"):
    res = await client.get(path, headers=headers)
    assert res.status_code == 403, path
    assert res.json()["error"] == "Admin only"


@pytest.mark.anyio
async def test_health_and_security_headers(client: AsyncClient) -> None:
  res = await client.get("/health")
  assert res.json() == {"success": True}
  assert res.headers["x-content-type-options"] == "nosniff"
  assert res.headers["x-frame-options"] == "DENY"
  version = (await client.get("/version")).json()
  assert version["version"] == settings.app_version
