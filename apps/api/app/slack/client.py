from __future__ import annotations

from typing import Any

from app.config import settings
from app.providers import ProviderApiError, http_client, request_json


class SlackApiError(ProviderApiError):
  provider = "Slack"


def _client(bot_token: str | None):
  token = (bot_token or settings.slack_bot_token or "").strip()
  if not token:
    raise ValueError("Slack integration not configured")
  return http_client(
    base_url=settings.slack_api_base.rstrip("/"),
    headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json; charset=utf-8"},
  )


def _check_ok(data: Any) -> dict[str, Any]:
  # Slack answers 200 with {"ok": false, "error": "..."} for API-level failures.
  if not isinstance(data, dict) or not data.get("ok"):
    err = str((data or {}).get("error") or "unknown_error") if isinstance(data, dict) else "unknown_error"
    raise SlackApiError(status_code=400, message=err, details={"error": err})
  return data


async def list_channels(bot_token: str | None = None) -> list[dict[str, Any]]:
  async with _client(bot_token) as client:
    data = await request_json(
      client,
      "GET",
      "/conversations.list",
      params={"types": "public_channel,private_channel", "exclude_archived": "true", "limit": 1000},
      error_cls=SlackApiError,
    )
  data = _check_ok(data)
  return [
    {"id": ch.get("id"), "name": ch.get("name"), "is_private": bool(ch.get("is_private"))}
    for ch in data.get("channels") or []
  ]


async def post_message(
  *,
  channel: str,
  text: str,
  blocks: list[dict[str, Any]] | None = None,
  bot_token: str | None = None,
) -> dict[str, Any]:
  body: dict[str, Any] = {"channel": channel, "text": text}
  if blocks:
    body["blocks"] = blocks
  async with _client(bot_token) as client:
    data = await request_json(client, "POST", "/chat.postMessage", json=body, error_cls=SlackApiError)
  data = _check_ok(data)
  return {"channel": data.get("channel"), "ts": data.get("ts")}
