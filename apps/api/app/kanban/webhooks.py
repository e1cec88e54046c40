from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import KanbanBoard, KanbanCard, KanbanColumn, KanbanWorkspace
from app.notifications.service import FAILED, SENT, DeliveryResult
from app.providers import http_client

logger = logging.getLogger(__name__)

CARD_ENTERED_COLUMN = "card_entered_column"
FIRST_TIME_ONLY = "first_time_only"


def should_trigger(column: KanbanColumn, card: KanbanCard) -> bool:
  if not column.webhook_url:
    return False
  if column.webhook_trigger_mode == FIRST_TIME_ONLY and card.webhook_triggered:
    return False
  return True


def build_payload(card: KanbanCard, column: KanbanColumn, board: KanbanBoard, workspace: KanbanWorkspace) -> dict[str, Any]:
  return {
    "event": CARD_ENTERED_COLUMN,
    "timestamp": datetime.now(timezone.utc).isoformat(),
    "card": {
      "id": card.id,
      "title": card.title,
      "description": card.description,
      "priority": card.priority,
      "due_date": card.due_date.isoformat() if card.due_date else None,
    },
    "column": {"id": column.id, "name": column.name},
    "board": {"name": board.name},
    "workspace": {"name": workspace.name},
  }


async def post_card_event(url: str, payload: dict[str, Any]) -> DeliveryResult:
  try:
    async with http_client() as client:
      r = await client.post(url, json=payload)
  except httpx.HTTPError as exc:
    logger.warning("column webhook %s unreachable: %s", url, exc)
    return DeliveryResult(channel="webhook", status=FAILED, error=str(exc) or exc.__class__.__name__)
  if r.status_code >= 400:
    logger.warning("column webhook %s answered %s", url, r.status_code)
    return DeliveryResult(channel="webhook", status=FAILED, error=f"Webhook returned {r.status_code}")
  return DeliveryResult(channel="webhook", status=SENT, detail={"status_code": r.status_code})


async def fire_column_webhook(db: AsyncSession, card: KanbanCard, column: KanbanColumn) -> DeliveryResult:
  """Posts the card to its column's webhook and marks the card as triggered.

  The flag is set after any delivery attempt, successful or not. Caller commits.
  """
  bres = await db.execute(select(KanbanBoard).where(KanbanBoard.id == column.board_id))
  board = bres.scalar_one()
  wres = await db.execute(select(KanbanWorkspace).where(KanbanWorkspace.id == board.workspace_id))
  workspace = wres.scalar_one()

  result = await post_card_event(column.webhook_url, build_payload(card, column, board, workspace))
  card.webhook_triggered = True
  return result
