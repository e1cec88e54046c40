from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import get_db, require_admin
from app.models import User
from app.schemas import StatsSyncIn
from app.stats.service import sync_campaign_stats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.post("/sync")
async def sync_stats(payload: StatsSyncIn | None = None, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  access_token = payload.access_token if payload else None
  out = await sync_campaign_stats(db, access_token=access_token)
  await write_audit(
    db,
    event_type="stats.synced",
    entity_type="CampaignStat",
    entity_id=None,
    actor_id=admin.id,
    payload={"synced": out.get("synced"), "total": out.get("total"), "access_token": access_token},
  )
  await db.commit()
  return out
