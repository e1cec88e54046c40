from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.providers import ProviderApiError, http_client, request_json

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = ["invitee.created", "invitee.canceled"]


class CalendlyApiError(ProviderApiError):
  provider = "Calendly"


def _client(token: str):
  t = (token or "").strip()
  if not t:
    raise ValueError("calendly_token is required")
  return http_client(
    base_url=settings.calendly_api_base.rstrip("/"),
    headers={"Authorization": f"Bearer {t}", "Content-Type": "application/json"},
  )


async def calendly_me(token: str) -> dict[str, Any]:
  async with _client(token) as client:
    data = await request_json(client, "GET", "/users/me", error_cls=CalendlyApiError)
  resource = (data or {}).get("resource") or {}
  return {
    "user_uri": resource.get("uri"),
    "org_uri": resource.get("current_organization"),
    "name": resource.get("name"),
    "email": resource.get("email"),
    "scheduling_url": resource.get("scheduling_url"),
    "timezone": resource.get("timezone"),
  }


async def list_event_types(token: str, *, user_uri: str) -> list[dict[str, Any]]:
  async with _client(token) as client:
    data = await request_json(
      client,
      "GET",
      "/event_types",
      params={"user": user_uri, "active": "true", "count": 100},
      error_cls=CalendlyApiError,
    )
  out: list[dict[str, Any]] = []
  for et in (data or {}).get("collection") or []:
    out.append(
      {
        "uri": et.get("uri"),
        "name": et.get("name"),
        "slug": et.get("slug"),
        "duration": et.get("duration"),
        "active": et.get("active"),
        "scheduling_url": et.get("scheduling_url"),
      }
    )
  return out


async def list_webhook_subscriptions(
  token: str,
  *,
  organization: str,
  user: str | None = None,
  scope: str = "user",
) -> list[dict[str, Any]]:
  params: dict[str, Any] = {"organization": organization, "scope": scope, "count": 100}
  if user and scope == "user":
    params["user"] = user
  async with _client(token) as client:
    data = await request_json(client, "GET", "/webhook_subscriptions", params=params, error_cls=CalendlyApiError)
  return list((data or {}).get("collection") or [])


async def delete_webhook_subscription(token: str, webhook_uri: str) -> None:
  uuid_part = webhook_uri.rstrip("/").rsplit("/", 1)[-1]
  async with _client(token) as client:
    await request_json(client, "DELETE", f"/webhook_subscriptions/{uuid_part}", error_cls=CalendlyApiError)


async def create_webhook_subscription(
  token: str,
  *,
  callback_url: str,
  organization: str,
  user: str,
  signing_key: str | None = None,
) -> str | None:
  """Registers our callback for invitee events and returns the subscription URI.

  When the provider already holds a subscription for the same callback, that one is
  adopted instead of failing.
  """
  body: dict[str, Any] = {
    "url": callback_url,
    "events": WEBHOOK_EVENTS,
    "organization": organization,
    "user": user,
    "scope": "user",
  }
  if signing_key:
    body["signing_key"] = signing_key
  try:
    async with _client(token) as client:
      data = await request_json(client, "POST", "/webhook_subscriptions", json=body, error_cls=CalendlyApiError)
    return ((data or {}).get("resource") or {}).get("uri")
  except CalendlyApiError as exc:
    if "already exists" not in (exc.message or "").lower() and exc.status_code != 409:
      raise
    logger.info("calendly webhook already registered for %s; adopting existing subscription", callback_url)
  subs = await list_webhook_subscriptions(token, organization=organization, user=user)
  existing = next((s for s in subs if s.get("callback_url") == callback_url), None)
  return existing.get("uri") if existing else None
