from __future__ import annotations

from typing import Any

from app.config import settings
from app.providers import ProviderApiError, http_client


class ConversifiApiError(ProviderApiError):
  provider = "Conversifi"


class ConversifiNotConfigured(RuntimeError):
  pass


def api_key_or_raise(api_key: str | None = None) -> str:
  key = (api_key or settings.conversifi_api_key or "").strip()
  if not key:
    raise ConversifiNotConfigured("Conversifi API key not configured")
  return key


async def fetch_campaign_stats(url: str, *, api_key: str) -> Any:
  async with http_client(headers={"X-API-Key": api_key, "Content-Type": "application/json"}) as client:
    r = await client.get(url)
  if r.status_code >= 400:
    raise ConversifiApiError(
      status_code=r.status_code,
      message=f"API error: {r.status_code}",
      details={"body": (r.text or "")[:500]},
    )
  try:
    return r.json()
  except ValueError as exc:
    raise ConversifiApiError(
      status_code=502,
      message="API returned a non-JSON response",
      details={"body": (r.text or "")[:500], "upstream_status": r.status_code},
    ) from exc


async def probe_endpoint(url: str, *, api_key: str) -> dict[str, Any]:
  try:
    data = await fetch_campaign_stats(url, api_key=api_key)
  except ConversifiApiError as exc:
    if "upstream_status" in exc.details:
      return {"success": False, "error": exc.message}
    return {"success": False, "error": f"API returned {exc.status_code}"}
  has_data = bool(data) if isinstance(data, (list, dict)) else data is not None
  return {"success": True, "message": "Conversifi endpoint is live", "has_data": has_data}
