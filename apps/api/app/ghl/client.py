from __future__ import annotations

from typing import Any

from app.config import settings
from app.providers import ProviderApiError, http_client, request_json


class GhlApiError(ProviderApiError):
  provider = "GHL"


def _client(api_key: str):
  key = (api_key or "").strip()
  if not key:
    raise ValueError("GHL API key is required")
  return http_client(
    base_url=settings.ghl_api_base.rstrip("/"),
    headers={
      "Authorization": f"Bearer {key}",
      "Version": settings.ghl_api_version,
      "Content-Type": "application/json",
    },
  )


async def search_locations(api_key: str) -> list[dict[str, Any]]:
  async with _client(api_key) as client:
    data = await request_json(client, "GET", "/locations/search", params={"limit": 100}, error_cls=GhlApiError)
  out: list[dict[str, Any]] = []
  for loc in (data or {}).get("locations") or []:
    first = (loc.get("firstName") or "").strip()
    last = (loc.get("lastName") or "").strip()
    out.append(
      {
        "location_id": loc.get("id"),
        "location_name": loc.get("name"),
        "owner_name": f"{first} {last}" if first and last else "No owner",
      }
    )
  return out


async def probe_contacts(api_key: str, *, location_id: str) -> dict[str, Any]:
  """Reads one contact to prove the key can reach the location.

  Returns {"success": bool, ...}; auth failures are reported, not raised.
  """
  async with _client(api_key) as client:
    r = await client.get("/contacts/", params={"locationId": location_id, "limit": 1})
  if r.status_code == 401:
    return {"success": False, "error": "Invalid API key - unauthorized"}
  if r.status_code == 403:
    return {"success": False, "error": "API key does not have access to this location"}
  if r.status_code >= 400:
    return {"success": False, "error": f"GHL API error: {r.status_code}"}
  try:
    data = r.json() if r.content else {}
  except ValueError:
    return {"success": False, "error": "GHL returned a non-JSON response"}
  return {
    "success": True,
    "message": "API key is valid and can access contacts",
    "contact_count": len((data or {}).get("contacts") or []),
  }


async def create_contact(
  api_key: str,
  *,
  location_id: str,
  name: str | None,
  email: str | None,
  phone: str | None,
  tags: list[str],
  custom_fields: dict[str, Any],
) -> dict[str, Any]:
  body = {
    "locationId": location_id,
    "email": email,
    "name": name,
    "phone": phone,
    "tags": tags,
    "customFields": [{"key": k, "value": v} for k, v in custom_fields.items()],
  }
  async with _client(api_key) as client:
    data = await request_json(client, "POST", "/contacts/", json=body, error_cls=GhlApiError)
  contact = (data or {}).get("contact") or {}
  return {"contact_id": contact.get("id")}
