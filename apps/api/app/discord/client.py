from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.providers import ProviderApiError, http_client, request_json

logger = logging.getLogger(__name__)

TEXT_CHANNEL = 0


class DiscordApiError(ProviderApiError):
  provider = "Discord"


def _bot_client(bot_token: str | None):
  token = (bot_token or settings.discord_bot_token or "").strip()
  if not token:
    raise ValueError("Discord bot not configured")
  return http_client(
    base_url=settings.discord_api_base.rstrip("/"),
    headers={"Authorization": f"Bot {token}", "Content-Type": "application/json"},
  )


async def list_guilds(bot_token: str | None = None) -> list[dict[str, Any]]:
  async with _bot_client(bot_token) as client:
    data = await request_json(client, "GET", "/users/@me/guilds", error_cls=DiscordApiError)
  return [{"id": g.get("id"), "name": g.get("name")} for g in data or []]


async def list_text_channels(bot_token: str | None = None) -> dict[str, Any]:
  guilds = await list_guilds(bot_token)
  channels: list[dict[str, Any]] = []
  async with _bot_client(bot_token) as client:
    for g in guilds:
      try:
        data = await request_json(client, "GET", f"/guilds/{g['id']}/channels", error_cls=DiscordApiError)
      except DiscordApiError as exc:
        logger.warning("discord channels for guild %s unavailable: %s", g.get("name"), exc.message)
        continue
      text = sorted([c for c in data or [] if c.get("type") == TEXT_CHANNEL], key=lambda c: c.get("position") or 0)
      for c in text:
        channels.append({"id": c.get("id"), "name": c.get("name"), "guild_id": g["id"], "guild_name": g.get("name")})
  return {"guilds": guilds, "channels": channels}


async def create_channel_webhook(channel_id: str, *, name: str | None = None, bot_token: str | None = None) -> str:
  async with _bot_client(bot_token) as client:
    data = await request_json(
      client,
      "POST",
      f"/channels/{channel_id}/webhooks",
      json={"name": name or settings.discord_webhook_name},
      error_cls=DiscordApiError,
    )
  return f"https://discord.com/api/webhooks/{data['id']}/{data['token']}"


async def execute_webhook(webhook_url: str, payload: dict[str, Any]) -> None:
  async with http_client() as client:
    await request_json(client, "POST", webhook_url, json=payload, error_cls=DiscordApiError)
