from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.access_codes import access_code_taken, generate_unique_access_code, is_valid_access_code, normalize_access_code
from app.calendly.client import CalendlyApiError, calendly_me, create_webhook_subscription, delete_webhook_subscription
from app.config import settings
from app.discord.client import DiscordApiError, create_channel_webhook
from app.logging_setup import secret_hint
from app.models import Booking, CampaignStat, ClientConnection, Report
from app.notifications import messages
from app.notifications.service import DeliveryResult, discord_notifier_for, notify_client
from app.schemas import ClientSetupIn, DiscordSetupIn
from app.security import decrypt_integration_secret, encrypt_secret
from app.storage import REPORTS_BUCKET, StorageError, get_storage

logger = logging.getLogger(__name__)

REQUIRED_SETUP_FIELDS = ("client_name", "calendly_token", "ghl_location_id", "conversifi_webhook_url")


async def _resolve_access_code(db: AsyncSession, requested: str | None) -> str:
  if not requested:
    return await generate_unique_access_code(db)
  code = normalize_access_code(requested)
  if not is_valid_access_code(code):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Access token must be 3 letters followed by 4 digits")
  if await access_code_taken(db, code):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Access token already in use")
  return code


async def _register_webhook(token: str, *, organization: str | None, user: str | None) -> str | None:
  if not organization or not user:
    return None
  try:
    return await create_webhook_subscription(
      token,
      callback_url=settings.calendly_callback_url(),
      organization=organization,
      user=user,
      signing_key=settings.calendly_signing_key,
    )
  except CalendlyApiError as exc:
    logger.warning("calendly webhook registration failed (%s): %s", exc.status_code, exc.message)
  return None


async def _create_discord_webhook(channel_id: str | None) -> str | None:
  if not channel_id or not settings.discord_bot_token:
    return None
  try:
    return await create_channel_webhook(channel_id)
  except DiscordApiError as exc:
    logger.warning("discord webhook for channel %s not created: %s", channel_id, exc.message)
  return None


async def setup_client(db: AsyncSession, payload: ClientSetupIn) -> tuple[ClientConnection, list[DeliveryResult]]:
  """Creates a client connection and wires its booking webhook and chat channels.

  Only the provider identity lookup and the insert can fail the call; webhook
  registration, Discord webhook creation and the confirmation message are best-effort.
  """
  missing = [f for f in REQUIRED_SETUP_FIELDS if not (getattr(payload, f) or "").strip()]
  if missing:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Missing required fields: {', '.join(missing)}")
  if not payload.slack_channel_id and not payload.discord_channel_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="At least one notification channel is required")

  code = await _resolve_access_code(db, payload.access_token)
  token = payload.calendly_token.strip()

  user_uri = payload.calendly_user_uri
  org_uri = payload.calendly_org_uri
  if not user_uri or not org_uri:
    try:
      me = await calendly_me(token)
    except CalendlyApiError as exc:
      raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Invalid Calendly API token", "details": exc.message},
      ) from exc
    user_uri = user_uri or me["user_uri"]
    org_uri = org_uri or me["org_uri"]

  webhook_id = await _register_webhook(token, organization=org_uri, user=user_uri)
  discord_url = await _create_discord_webhook(payload.discord_channel_id)

  conn = ClientConnection(
    client_name=payload.client_name.strip(),
    access_token=code,
    calendly_token_encrypted=encrypt_secret(token),
    calendly_user_uri=user_uri,
    calendly_org_uri=org_uri,
    calendly_webhook_id=webhook_id,
    watched_event_types=payload.watched_event_types or None,
    ghl_location_id=payload.ghl_location_id.strip(),
    ghl_location_name=payload.ghl_location_name,
    ghl_api_key_encrypted=encrypt_secret(payload.ghl_api_key) if payload.ghl_api_key else None,
    slack_channel_id=payload.slack_channel_id,
    slack_channel_name=payload.slack_channel_name,
    discord_channel_id=payload.discord_channel_id,
    discord_channel_name=payload.discord_channel_name,
    discord_guild_id=payload.discord_guild_id,
    discord_guild_name=payload.discord_guild_name,
    discord_webhook_url=discord_url,
    discord_enabled=bool(discord_url),
    conversifi_webhook_url=payload.conversifi_webhook_url.strip(),
  )
  db.add(conn)
  try:
    await db.commit()
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.error("client connection insert failed: %s", exc)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save connection") from exc

  logger.info("client %s connected with access code %s", conn.id, secret_hint(code))
  deliveries = await notify_client(conn, messages.integration_activated(conn))
  return conn, deliveries


async def recreate_webhook(db: AsyncSession, conn: ClientConnection) -> str:
  token = decrypt_integration_secret(conn.calendly_token_encrypted)
  if conn.calendly_webhook_id:
    try:
      await delete_webhook_subscription(token, conn.calendly_webhook_id)
    except CalendlyApiError as exc:
      logger.warning("old calendly webhook %s not deleted: %s", conn.calendly_webhook_id, exc.message)

  if not conn.calendly_user_uri or not conn.calendly_org_uri:
    me = await calendly_me(token)
    conn.calendly_user_uri = conn.calendly_user_uri or me["user_uri"]
    conn.calendly_org_uri = conn.calendly_org_uri or me["org_uri"]

  uri = await create_webhook_subscription(
    token,
    callback_url=settings.calendly_callback_url(),
    organization=conn.calendly_org_uri,
    user=conn.calendly_user_uri,
    signing_key=settings.calendly_signing_key,
  )
  if not uri:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook exists but could not be found")
  conn.calendly_webhook_id = uri
  return uri


async def remove_connection(db: AsyncSession, conn: ClientConnection) -> None:
  if conn.calendly_webhook_id:
    try:
      token = decrypt_integration_secret(conn.calendly_token_encrypted)
      await delete_webhook_subscription(token, conn.calendly_webhook_id)
    except Exception as exc:
      logger.warning("calendly webhook for client %s not deleted: %s", conn.id, exc)

  storage = get_storage()
  rres = await db.execute(select(Report.storage_path).where(Report.client_connection_id == conn.id))
  for path in rres.scalars().all():
    if not path:
      continue
    try:
      storage.remove(REPORTS_BUCKET, path)
    except StorageError as exc:
      logger.warning("report file %s not removed: %s", path, exc)

  await db.execute(delete(Report).where(Report.client_connection_id == conn.id))
  await db.execute(delete(CampaignStat).where(CampaignStat.client_connection_id == conn.id))
  await db.execute(delete(Booking).where(Booking.client_connection_id == conn.id))
  await db.execute(delete(ClientConnection).where(ClientConnection.id == conn.id))


async def setup_discord(db: AsyncSession, conn: ClientConnection, payload: DiscordSetupIn) -> dict[str, Any]:
  if not settings.discord_bot_token:
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Discord bot not configured")
  try:
    url = await create_channel_webhook(payload.channel_id)
  except DiscordApiError as exc:
    if exc.status_code == 403:
      raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail='Bot lacks permission to create webhooks in this channel. Please ensure the bot has "Manage Webhooks" permission.',
      ) from exc
    raise

  conn.discord_channel_id = payload.channel_id
  conn.discord_channel_name = payload.channel_name
  conn.discord_guild_id = payload.guild_id
  conn.discord_guild_name = payload.guild_name
  conn.discord_webhook_url = url
  conn.discord_enabled = True
  await db.commit()

  test = await discord_notifier_for(webhook_url=url).send(msg=messages.discord_connected())
  return {"success": True, "message": "Discord connected", "test_message": test.as_dict()}
