from __future__ import annotations

from typing import Any

import httpx

from app.config import settings


class ProviderApiError(RuntimeError):
  provider = "provider"

  def __init__(self, *, status_code: int, message: str, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message
    self.details = details or {}


def _extract_error(payload: Any, fallback: str) -> tuple[str, dict[str, Any]]:
  if isinstance(payload, dict):
    for key in ("message", "error", "title", "msg"):
      v = payload.get(key)
      if isinstance(v, str) and v.strip():
        return v.strip()[:500], payload
      if isinstance(v, dict) and isinstance(v.get("message"), str):
        return str(v["message"])[:500], payload
    return fallback, payload
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:500], {}
  return fallback, {}


def http_client(**kwargs: Any) -> httpx.AsyncClient:
  kwargs.setdefault("timeout", settings.http_timeout_seconds)
  return httpx.AsyncClient(**kwargs)


async def request_json(
  client: httpx.AsyncClient,
  method: str,
  url: str,
  *,
  error_cls: type[ProviderApiError] = ProviderApiError,
  **kwargs: Any,
) -> Any:
  r = await client.request(method, url, **kwargs)
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = (r.text or "")[:800]
    msg, details = _extract_error(payload, f"{error_cls.provider} request failed")
    raise error_cls(status_code=r.status_code, message=msg, details=details)
  if r.status_code == 204 or not r.content:
    return None
  try:
    return r.json()
  except ValueError as exc:
    raise error_cls(
      status_code=502,
      message="non-JSON response",
      details={"body": (r.text or "")[:500], "upstream_status": r.status_code},
    ) from exc
