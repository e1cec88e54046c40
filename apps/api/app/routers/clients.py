from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.access_codes import normalize_access_code
from app.audit import write_audit
from app.clients.service import recreate_webhook, remove_connection, setup_client, setup_discord
from app.deps import get_db, require_admin
from app.models import ClientConnection, User
from app.schemas import VALID_TIMEZONES, ClientConnectionOut, ClientSetupIn, ClientUpdateIn, DiscordSetupIn
from app.security import encrypt_secret

router = APIRouter(prefix="/clients", tags=["clients"])


def connection_out(c: ClientConnection) -> ClientConnectionOut:
  return ClientConnectionOut(
    id=c.id,
    client_name=c.client_name,
    access_token=c.access_token,
    calendly_user_uri=c.calendly_user_uri,
    calendly_org_uri=c.calendly_org_uri,
    calendly_webhook_id=c.calendly_webhook_id,
    watched_event_types=c.watched_event_types,
    ghl_location_id=c.ghl_location_id,
    ghl_location_name=c.ghl_location_name,
    has_ghl_api_key=bool(c.ghl_api_key_encrypted),
    slack_channel_id=c.slack_channel_id,
    slack_channel_name=c.slack_channel_name,
    discord_channel_id=c.discord_channel_id,
    discord_channel_name=c.discord_channel_name,
    discord_guild_id=c.discord_guild_id,
    discord_guild_name=c.discord_guild_name,
    discord_enabled=bool(c.discord_enabled),
    conversifi_webhook_url=c.conversifi_webhook_url,
    client_timezone=c.client_timezone or "UTC",
    is_active=bool(c.is_active),
    created_at=c.created_at,
    updated_at=c.updated_at,
  )


async def _get_connection(db: AsyncSession, connection_id: str) -> ClientConnection:
  res = await db.execute(select(ClientConnection).where(ClientConnection.id == connection_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
  return c


@router.post("/setup")
async def setup(payload: ClientSetupIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  conn, deliveries = await setup_client(db, payload)
  await write_audit(
    db,
    event_type="client.connected",
    entity_type="ClientConnection",
    entity_id=conn.id,
    actor_id=admin.id,
    payload={"client_name": conn.client_name, "webhook": bool(conn.calendly_webhook_id)},
  )
  await db.commit()
  return {"success": True, "connection": connection_out(conn), "notifications": [d.as_dict() for d in deliveries]}


@router.get("", response_model=list[ClientConnectionOut])
async def list_connections(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> list[ClientConnectionOut]:
  res = await db.execute(select(ClientConnection).order_by(ClientConnection.created_at.desc()))
  return [connection_out(c) for c in res.scalars().all()]


@router.get("/by-access-token/{code}", response_model=ClientConnectionOut)
async def get_by_access_code(code: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> ClientConnectionOut:
  res = await db.execute(select(ClientConnection).where(ClientConnection.access_token == normalize_access_code(code)))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
  return connection_out(c)


@router.get("/{connection_id}", response_model=ClientConnectionOut)
async def get_connection(connection_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> ClientConnectionOut:
  return connection_out(await _get_connection(db, connection_id))


@router.patch("/{connection_id}", response_model=ClientConnectionOut)
async def update_connection(
  connection_id: str,
  payload: ClientUpdateIn,
  admin: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> ClientConnectionOut:
  c = await _get_connection(db, connection_id)

  if payload.client_name is not None:
    c.client_name = payload.client_name.strip()
  if payload.ghl_location_id is not None:
    c.ghl_location_id = payload.ghl_location_id
  if payload.ghl_location_name is not None:
    c.ghl_location_name = payload.ghl_location_name
  if payload.ghl_api_key is not None:
    c.ghl_api_key_encrypted = encrypt_secret(payload.ghl_api_key) if payload.ghl_api_key.strip() else None
  if payload.conversifi_webhook_url is not None:
    c.conversifi_webhook_url = payload.conversifi_webhook_url.strip() or None
  if payload.watched_event_types is not None:
    c.watched_event_types = payload.watched_event_types or None
  if payload.slack_channel_id is not None:
    c.slack_channel_id = payload.slack_channel_id or None
  if payload.slack_channel_name is not None:
    c.slack_channel_name = payload.slack_channel_name or None
  if payload.discord_enabled is not None:
    c.discord_enabled = payload.discord_enabled
  if payload.client_timezone is not None:
    if payload.client_timezone not in VALID_TIMEZONES:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid timezone")
    c.client_timezone = payload.client_timezone
  if payload.is_active is not None:
    c.is_active = payload.is_active

  await write_audit(
    db,
    event_type="client.updated",
    entity_type="ClientConnection",
    entity_id=c.id,
    actor_id=admin.id,
    payload={"fields": sorted(payload.model_dump(exclude_unset=True, exclude={"ghl_api_key"}).keys())},
  )
  await db.commit()
  await db.refresh(c)
  return connection_out(c)


@router.delete("/{connection_id}")
async def delete_connection(connection_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  c = await _get_connection(db, connection_id)
  name = c.client_name
  await remove_connection(db, c)
  await write_audit(db, event_type="client.deleted", entity_type="ClientConnection", entity_id=connection_id, actor_id=admin.id, payload={"client_name": name})
  await db.commit()
  return {"success": True}


@router.post("/{connection_id}/recreate-webhook")
async def recreate_connection_webhook(connection_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  c = await _get_connection(db, connection_id)
  uri = await recreate_webhook(db, c)
  await write_audit(db, event_type="client.webhook.recreated", entity_type="ClientConnection", entity_id=c.id, actor_id=admin.id, payload={"webhook_id": uri})
  await db.commit()
  return {"success": True, "webhook_id": uri}


@router.post("/{connection_id}/discord")
async def connect_discord(
  connection_id: str,
  payload: DiscordSetupIn,
  admin: User = Depends(require_admin),
  db: AsyncSession = Depends(get_db),
) -> dict:
  c = await _get_connection(db, connection_id)
  out = await setup_discord(db, c, payload)
  await write_audit(
    db,
    event_type="client.discord.connected",
    entity_type="ClientConnection",
    entity_id=c.id,
    actor_id=admin.id,
    payload={"channel_id": payload.channel_id, "guild_id": payload.guild_id},
  )
  await db.commit()
  return out
