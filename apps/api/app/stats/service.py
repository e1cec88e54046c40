from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.access_codes import normalize_access_code
from app.conversifi.client import ConversifiApiError, api_key_or_raise, fetch_campaign_stats
from app.models import CampaignStat, ClientConnection
from app.stats.adapters import NormalizedStats, UnknownStatsShape, normalize_stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncTarget:
  id: str
  client_name: str
  access_token: str
  url: str


async def eligible_connections(db: AsyncSession, *, access_token: str | None = None) -> list[ClientConnection]:
  q = select(ClientConnection).where(
    ClientConnection.is_active.is_(True),
    ClientConnection.conversifi_webhook_url.is_not(None),
    ClientConnection.conversifi_webhook_url != "",
  )
  if access_token:
    q = q.where(ClientConnection.access_token == normalize_access_code(access_token))
  res = await db.execute(q.order_by(ClientConnection.created_at.asc(), ClientConnection.client_name.asc()))
  return list(res.scalars().all())


async def upsert_daily_stats(db: AsyncSession, target: SyncTarget, stats: NormalizedStats, *, day: date) -> CampaignStat:
  res = await db.execute(
    select(CampaignStat).where(CampaignStat.client_connection_id == target.id, CampaignStat.date == day)
  )
  row = res.scalar_one_or_none()
  if row is None:
    row = CampaignStat(client_connection_id=target.id, access_token=target.access_token, date=day)
    db.add(row)
  for k, v in stats.counters().items():
    setattr(row, k, v)
  row.access_token = target.access_token
  row.campaign_data = {
    "campaigns": stats.campaigns,
    "totals": stats.totals,
    "adapter": stats.adapter,
    "synced_at": datetime.now(timezone.utc).isoformat(),
  }
  await db.flush()
  return row


async def sync_one(db: AsyncSession, target: SyncTarget, *, api_key: str, day: date) -> dict[str, Any]:
  entry: dict[str, Any] = {"client": target.client_name, "access_token": target.access_token}
  try:
    payload = await fetch_campaign_stats(target.url, api_key=api_key)
    stats = normalize_stats(payload)
    await upsert_daily_stats(db, target, stats, day=day)
    await db.commit()
  except ConversifiApiError as exc:
    logger.warning("stats sync for %s failed: %s", target.client_name, exc.message)
    return {**entry, "success": False, "error": exc.message}
  except UnknownStatsShape as exc:
    logger.warning("stats sync for %s returned an unknown shape", target.client_name)
    return {**entry, "success": False, "error": str(exc)}
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.error("stats upsert for %s failed: %s", target.client_name, exc)
    return {**entry, "success": False, "error": "Database error"}
  except Exception as exc:
    await db.rollback()
    logger.warning("stats sync for %s failed: %s", target.client_name, exc)
    return {**entry, "success": False, "error": str(exc) or exc.__class__.__name__}
  return {**entry, "success": True, "stats": stats.counters(), "periods": stats.periods, "adapter": stats.adapter}


async def sync_campaign_stats(db: AsyncSession, *, access_token: str | None = None) -> dict[str, Any]:
  api_key = api_key_or_raise()
  conns = await eligible_connections(db, access_token=access_token)
  if not conns:
    msg = (
      "Connection not found or has no Conversifi webhook configured"
      if access_token
      else "No active connections with Conversifi webhooks found"
    )
    return {"success": False, "error": msg, "synced": 0}

  day = datetime.now(timezone.utc).date()
  # Plain snapshots: a rollback after one client must not expire the rest.
  targets = [SyncTarget(id=c.id, client_name=c.client_name, access_token=c.access_token, url=c.conversifi_webhook_url or "") for c in conns]
  results: list[dict[str, Any]] = []
  for t in targets:
    results.append(await sync_one(db, t, api_key=api_key, day=day))

  synced = sum(1 for r in results if r["success"])
  logger.info("stats sync complete: %s/%s", synced, len(conns))
  return {
    "success": True,
    "message": f"Synced {synced}/{len(conns)} connections",
    "synced": synced,
    "total": len(conns),
    "results": results,
  }
