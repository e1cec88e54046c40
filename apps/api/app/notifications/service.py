from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.config import settings
from app.discord.client import execute_webhook as discord_execute_webhook
from app.models import ClientConnection
from app.providers import ProviderApiError
from app.slack.client import post_message as slack_post_message

logger = logging.getLogger(__name__)

SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"


@dataclass(frozen=True)
class NotificationMessage:
  text: str
  slack_blocks: list[dict[str, Any]] = field(default_factory=list)
  discord_payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryResult:
  channel: str
  status: str
  error: str | None = None
  detail: dict[str, Any] = field(default_factory=dict)

  @property
  def ok(self) -> bool:
    return self.status == SENT

  def as_dict(self) -> dict[str, Any]:
    out: dict[str, Any] = {"channel": self.channel, "status": self.status}
    if self.error:
      out["error"] = self.error
    if self.detail:
      out["detail"] = self.detail
    return out


class Notifier(Protocol):
  channel: str

  async def send(self, *, msg: NotificationMessage) -> DeliveryResult: ...


class SlackNotifier:
  channel = "slack"

  def __init__(self, channel_id: str) -> None:
    self.channel_id = channel_id

  async def send(self, *, msg: NotificationMessage) -> DeliveryResult:
    try:
      res = await slack_post_message(channel=self.channel_id, text=msg.text, blocks=msg.slack_blocks or None)
    except Exception as exc:
      return _failed(self.channel, exc)
    return DeliveryResult(channel=self.channel, status=SENT, detail=res or {})


class DiscordNotifier:
  channel = "discord"

  def __init__(self, webhook_url: str) -> None:
    self.webhook_url = webhook_url

  async def send(self, *, msg: NotificationMessage) -> DeliveryResult:
    payload = dict(msg.discord_payload or {"content": msg.text})
    payload.setdefault("username", settings.discord_webhook_name)
    try:
      await discord_execute_webhook(self.webhook_url, payload)
    except Exception as exc:
      return _failed(self.channel, exc)
    return DeliveryResult(channel=self.channel, status=SENT)


class SkippedNotifier:
  """Stands in for a channel the client has not configured."""

  def __init__(self, channel: str, reason: str) -> None:
    self.channel = channel
    self.reason = reason

  async def send(self, *, msg: NotificationMessage) -> DeliveryResult:
    return DeliveryResult(channel=self.channel, status=SKIPPED, error=self.reason)


def _failed(channel: str, exc: Exception) -> DeliveryResult:
  reason = f"{exc.provider} API error: {exc.message}" if isinstance(exc, ProviderApiError) else str(exc) or exc.__class__.__name__
  logger.warning("%s notification failed: %s", channel, reason)
  return DeliveryResult(channel=channel, status=FAILED, error=reason)


def slack_notifier_for(*, channel_id: str | None) -> Notifier:
  if not settings.slack_bot_token:
    return SkippedNotifier("slack", "Slack bot token not configured")
  if not channel_id:
    return SkippedNotifier("slack", "No Slack channel selected")
  return SlackNotifier(channel_id)


def discord_notifier_for(*, webhook_url: str | None, enabled: bool = True) -> Notifier:
  if not webhook_url or not enabled:
    return SkippedNotifier("discord", "Discord not connected")
  return DiscordNotifier(webhook_url)


def notifiers_for(conn: ClientConnection) -> list[Notifier]:
  return [
    slack_notifier_for(channel_id=conn.slack_channel_id),
    discord_notifier_for(webhook_url=conn.discord_webhook_url, enabled=bool(conn.discord_enabled)),
  ]


async def fan_out(notifiers: list[Notifier], msg: NotificationMessage) -> list[DeliveryResult]:
  # One channel at a time; a failure on one never stops the next.
  results: list[DeliveryResult] = []
  for n in notifiers:
    results.append(await n.send(msg=msg))
  return results


async def notify_client(conn: ClientConnection, msg: NotificationMessage) -> list[DeliveryResult]:
  return await fan_out(notifiers_for(conn), msg)
