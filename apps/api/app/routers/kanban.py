from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.config import settings
from app.deps import get_current_user, get_db
from app.kanban.gate import SharedLinkGate, shared_link_gate
from app.kanban.webhooks import fire_column_webhook, should_trigger
from app.models import (
  KanbanBoard,
  KanbanCard,
  KanbanCardAttachment,
  KanbanCardComment,
  KanbanColumn,
  KanbanWorkspace,
  User,
)
from app.schemas import (
  AttachmentOut,
  BoardCreateIn,
  BoardOut,
  BoardUpdateIn,
  CardCreateIn,
  CardMoveIn,
  CardOut,
  CardReorderIn,
  CardUpdateIn,
  ColumnCreateIn,
  ColumnOut,
  ColumnReorderIn,
  ColumnUpdateIn,
  CommentCreateIn,
  CommentOut,
  UnlockIn,
  WorkspaceCreateIn,
  WorkspaceOut,
  WorkspaceUpdateIn,
)
from app.storage import KANBAN_ATTACHMENTS_BUCKET, StorageError, get_storage, safe_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/kanban", tags=["kanban"])


def _workspace_out(w: KanbanWorkspace) -> WorkspaceOut:
  return WorkspaceOut(id=w.id, name=w.name, has_password=bool(w.password), created_at=w.created_at)


def _board_out(b: KanbanBoard) -> BoardOut:
  return BoardOut(id=b.id, workspace_id=b.workspace_id, name=b.name, has_password=bool(b.password), position=b.position, created_at=b.created_at)


def _column_out(c: KanbanColumn) -> ColumnOut:
  return ColumnOut(
    id=c.id,
    board_id=c.board_id,
    name=c.name,
    position=c.position,
    webhook_url=c.webhook_url,
    webhook_trigger_mode=c.webhook_trigger_mode,
  )


def _card_out(c: KanbanCard) -> CardOut:
  return CardOut(
    id=c.id,
    column_id=c.column_id,
    title=c.title,
    description=c.description,
    priority=c.priority,
    due_date=c.due_date,
    position=c.position,
    webhook_triggered=bool(c.webhook_triggered),
    created_at=c.created_at,
  )


def _comment_out(c: KanbanCardComment) -> CommentOut:
  return CommentOut(id=c.id, card_id=c.card_id, author_name=c.author_name, content=c.content, created_at=c.created_at)


def _attachment_out(a: KanbanCardAttachment) -> AttachmentOut:
  return AttachmentOut(
    id=a.id,
    card_id=a.card_id,
    file_name=a.file_name,
    file_url=a.file_url,
    file_type=a.file_type,
    file_size=a.file_size,
    created_at=a.created_at,
  )


async def _get_workspace(db: AsyncSession, workspace_id: str) -> KanbanWorkspace:
  res = await db.execute(select(KanbanWorkspace).where(KanbanWorkspace.id == workspace_id))
  w = res.scalar_one_or_none()
  if not w:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found")
  return w


async def _get_board(db: AsyncSession, board_id: str, gate: SharedLinkGate) -> KanbanBoard:
  res = await db.execute(select(KanbanBoard).where(KanbanBoard.id == board_id))
  b = res.scalar_one_or_none()
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")
  w = await _get_workspace(db, b.workspace_id)
  gate.check(w.password, b.password)
  return b


async def _get_column(db: AsyncSession, column_id: str, gate: SharedLinkGate) -> KanbanColumn:
  res = await db.execute(select(KanbanColumn).where(KanbanColumn.id == column_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Column not found")
  await _get_board(db, c.board_id, gate)
  return c


async def _get_card(db: AsyncSession, card_id: str, gate: SharedLinkGate) -> tuple[KanbanCard, KanbanColumn]:
  res = await db.execute(select(KanbanCard).where(KanbanCard.id == card_id))
  card = res.scalar_one_or_none()
  if not card:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Card not found")
  column = await _get_column(db, card.column_id, gate)
  return card, column


async def _next_position(db: AsyncSession, column, *where) -> int:
  res = await db.execute(select(func.max(column)).where(*where))
  max_pos = res.scalar_one()
  return (max_pos + 1) if max_pos is not None else 0


async def _column_cards(db: AsyncSession, column_id: str, *, exclude: str | None = None) -> list[KanbanCard]:
  res = await db.execute(
    select(KanbanCard).where(KanbanCard.column_id == column_id).order_by(KanbanCard.position.asc(), KanbanCard.created_at.asc())
  )
  return [c for c in res.scalars().all() if c.id != exclude]


async def _purge_cards(db: AsyncSession, card_ids: list[str]) -> None:
  if not card_ids:
    return
  storage = get_storage()
  ares = await db.execute(select(KanbanCardAttachment.file_path).where(KanbanCardAttachment.card_id.in_(card_ids)))
  for path in ares.scalars().all():
    try:
      storage.remove(KANBAN_ATTACHMENTS_BUCKET, path)
    except StorageError as exc:
      logger.warning("attachment file %s not removed: %s", path, exc)
  await db.execute(delete(KanbanCardAttachment).where(KanbanCardAttachment.card_id.in_(card_ids)))
  await db.execute(delete(KanbanCardComment).where(KanbanCardComment.card_id.in_(card_ids)))
  await db.execute(delete(KanbanCard).where(KanbanCard.id.in_(card_ids)))


async def _purge_columns(db: AsyncSession, column_ids: list[str]) -> None:
  if not column_ids:
    return
  cres = await db.execute(select(KanbanCard.id).where(KanbanCard.column_id.in_(column_ids)))
  await _purge_cards(db, list(cres.scalars().all()))
  await db.execute(delete(KanbanColumn).where(KanbanColumn.id.in_(column_ids)))


async def _purge_boards(db: AsyncSession, board_ids: list[str]) -> None:
  if not board_ids:
    return
  cres = await db.execute(select(KanbanColumn.id).where(KanbanColumn.board_id.in_(board_ids)))
  await _purge_columns(db, list(cres.scalars().all()))
  await db.execute(delete(KanbanBoard).where(KanbanBoard.id.in_(board_ids)))


# workspaces


@router.get("/workspaces", response_model=list[WorkspaceOut])
async def list_workspaces(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[WorkspaceOut]:
  res = await db.execute(select(KanbanWorkspace).order_by(KanbanWorkspace.created_at.asc()))
  return [_workspace_out(w) for w in res.scalars().all()]


@router.post("/workspaces", response_model=WorkspaceOut)
async def create_workspace(payload: WorkspaceCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  w = KanbanWorkspace(name=payload.name.strip(), password=payload.password)
  db.add(w)
  await db.flush()
  await write_audit(db, event_type="kanban.workspace.created", entity_type="KanbanWorkspace", entity_id=w.id, actor_id=user.id, payload={"name": w.name})
  await db.commit()
  return _workspace_out(w)


@router.patch("/workspaces/{workspace_id}", response_model=WorkspaceOut)
async def update_workspace(
  workspace_id: str,
  payload: WorkspaceUpdateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> WorkspaceOut:
  w = await _get_workspace(db, workspace_id)
  gate.check(w.password)
  if payload.name is not None:
    w.name = payload.name.strip()
  if payload.clear_password:
    w.password = None
  elif payload.password:
    w.password = payload.password
  await write_audit(db, event_type="kanban.workspace.updated", entity_type="KanbanWorkspace", entity_id=w.id, actor_id=user.id, payload={"name": w.name})
  await db.commit()
  return _workspace_out(w)


@router.delete("/workspaces/{workspace_id}")
async def delete_workspace(
  workspace_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  w = await _get_workspace(db, workspace_id)
  gate.check(w.password)
  bres = await db.execute(select(KanbanBoard.id).where(KanbanBoard.workspace_id == workspace_id))
  await _purge_boards(db, list(bres.scalars().all()))
  await db.execute(delete(KanbanWorkspace).where(KanbanWorkspace.id == workspace_id))
  await write_audit(db, event_type="kanban.workspace.deleted", entity_type="KanbanWorkspace", entity_id=workspace_id, actor_id=user.id, payload={"name": w.name})
  await db.commit()
  return {"success": True}


@router.post("/workspaces/{workspace_id}/unlock")
async def unlock_workspace(workspace_id: str, payload: UnlockIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  w = await _get_workspace(db, workspace_id)
  if not SharedLinkGate(payload.password).opens(w.password):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")
  return {"success": True}


# boards


@router.get("/workspaces/{workspace_id}/boards", response_model=list[BoardOut])
async def list_boards(
  workspace_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[BoardOut]:
  w = await _get_workspace(db, workspace_id)
  gate.check(w.password)
  res = await db.execute(select(KanbanBoard).where(KanbanBoard.workspace_id == workspace_id).order_by(KanbanBoard.position.asc()))
  return [_board_out(b) for b in res.scalars().all()]


@router.post("/workspaces/{workspace_id}/boards", response_model=BoardOut)
async def create_board(
  workspace_id: str,
  payload: BoardCreateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardOut:
  w = await _get_workspace(db, workspace_id)
  gate.check(w.password)
  pos = await _next_position(db, KanbanBoard.position, KanbanBoard.workspace_id == workspace_id)
  b = KanbanBoard(workspace_id=workspace_id, name=payload.name.strip(), password=payload.password, position=pos)
  db.add(b)
  await db.flush()
  await write_audit(db, event_type="kanban.board.created", entity_type="KanbanBoard", entity_id=b.id, actor_id=user.id, payload={"name": b.name})
  await db.commit()
  return _board_out(b)


@router.patch("/boards/{board_id}", response_model=BoardOut)
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardOut:
  b = await _get_board(db, board_id, gate)
  if payload.name is not None:
    b.name = payload.name.strip()
  if payload.clear_password:
    b.password = None
  elif payload.password:
    b.password = payload.password
  await write_audit(db, event_type="kanban.board.updated", entity_type="KanbanBoard", entity_id=b.id, actor_id=user.id, payload={"name": b.name})
  await db.commit()
  return _board_out(b)


@router.delete("/boards/{board_id}")
async def delete_board(
  board_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  b = await _get_board(db, board_id, gate)
  await _purge_boards(db, [b.id])
  await write_audit(db, event_type="kanban.board.deleted", entity_type="KanbanBoard", entity_id=board_id, actor_id=user.id, payload={"name": b.name})
  await db.commit()
  return {"success": True}


@router.post("/boards/{board_id}/unlock")
async def unlock_board(board_id: str, payload: UnlockIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(KanbanBoard).where(KanbanBoard.id == board_id))
  b = res.scalar_one_or_none()
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Board not found")
  if not SharedLinkGate(payload.password).opens(b.password):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Incorrect password")
  return {"success": True}


# columns


@router.get("/boards/{board_id}/columns", response_model=list[ColumnOut])
async def list_columns(
  board_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ColumnOut]:
  await _get_board(db, board_id, gate)
  res = await db.execute(select(KanbanColumn).where(KanbanColumn.board_id == board_id).order_by(KanbanColumn.position.asc()))
  return [_column_out(c) for c in res.scalars().all()]


@router.post("/boards/{board_id}/columns", response_model=ColumnOut)
async def create_column(
  board_id: str,
  payload: ColumnCreateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  await _get_board(db, board_id, gate)
  pos = await _next_position(db, KanbanColumn.position, KanbanColumn.board_id == board_id)
  c = KanbanColumn(
    board_id=board_id,
    name=payload.name.strip(),
    position=pos,
    webhook_url=payload.webhook_url,
    webhook_trigger_mode=payload.webhook_trigger_mode,
  )
  db.add(c)
  await db.flush()
  await write_audit(db, event_type="kanban.column.created", entity_type="KanbanColumn", entity_id=c.id, actor_id=user.id, payload={"name": c.name})
  await db.commit()
  return _column_out(c)


@router.patch("/columns/{column_id}", response_model=ColumnOut)
async def update_column(
  column_id: str,
  payload: ColumnUpdateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  c = await _get_column(db, column_id, gate)
  if payload.name is not None:
    c.name = payload.name.strip()
  if payload.clear_webhook:
    c.webhook_url = None
  elif payload.webhook_url is not None:
    c.webhook_url = payload.webhook_url.strip() or None
  if payload.webhook_trigger_mode is not None:
    c.webhook_trigger_mode = payload.webhook_trigger_mode
  await write_audit(
    db,
    event_type="kanban.column.updated",
    entity_type="KanbanColumn",
    entity_id=c.id,
    actor_id=user.id,
    payload={"name": c.name, "webhook": bool(c.webhook_url), "mode": c.webhook_trigger_mode},
  )
  await db.commit()
  return _column_out(c)


@router.delete("/columns/{column_id}")
async def delete_column(
  column_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  c = await _get_column(db, column_id, gate)
  await _purge_columns(db, [c.id])
  await write_audit(db, event_type="kanban.column.deleted", entity_type="KanbanColumn", entity_id=column_id, actor_id=user.id, payload={"name": c.name})
  await db.commit()
  return {"success": True}


@router.post("/boards/{board_id}/columns/reorder")
async def reorder_columns(
  board_id: str,
  payload: ColumnReorderIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await _get_board(db, board_id, gate)
  res = await db.execute(select(KanbanColumn).where(KanbanColumn.board_id == board_id))
  columns = {c.id: c for c in res.scalars().all()}
  if len(payload.column_ids) != len(columns) or set(payload.column_ids) != set(columns.keys()):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="column_ids must include all columns")
  for idx, column_id in enumerate(payload.column_ids):
    columns[column_id].position = idx
  await write_audit(db, event_type="kanban.columns.reordered", entity_type="KanbanBoard", entity_id=board_id, actor_id=user.id, payload={"column_ids": payload.column_ids})
  await db.commit()
  return {"success": True}


# cards


@router.get("/boards/{board_id}/cards", response_model=list[CardOut])
async def list_cards(
  board_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CardOut]:
  await _get_board(db, board_id, gate)
  res = await db.execute(
    select(KanbanCard)
    .join(KanbanColumn, KanbanColumn.id == KanbanCard.column_id)
    .where(KanbanColumn.board_id == board_id)
    .order_by(KanbanColumn.position.asc(), KanbanCard.position.asc())
  )
  return [_card_out(c) for c in res.scalars().all()]


@router.post("/columns/{column_id}/cards")
async def create_card(
  column_id: str,
  payload: CardCreateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  column = await _get_column(db, column_id, gate)
  pos = await _next_position(db, KanbanCard.position, KanbanCard.column_id == column_id)
  card = KanbanCard(
    column_id=column_id,
    title=payload.title.strip(),
    description=payload.description,
    priority=payload.priority,
    due_date=payload.due_date,
    position=pos,
  )
  db.add(card)
  await db.flush()

  webhook = None
  if should_trigger(column, card):
    webhook = (await fire_column_webhook(db, card, column)).as_dict()
  await write_audit(db, event_type="kanban.card.created", entity_type="KanbanCard", entity_id=card.id, actor_id=user.id, payload={"title": card.title, "column_id": column_id})
  await db.commit()
  return {"success": True, "card": _card_out(card), "webhook": webhook}


@router.patch("/cards/{card_id}", response_model=CardOut)
async def update_card(
  card_id: str,
  payload: CardUpdateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CardOut:
  card, _column = await _get_card(db, card_id, gate)
  if payload.title is not None:
    card.title = payload.title.strip()
  if payload.description is not None:
    card.description = payload.description
  if payload.priority is not None:
    card.priority = payload.priority
  if payload.clear_due_date:
    card.due_date = None
  elif payload.due_date is not None:
    card.due_date = payload.due_date
  await write_audit(db, event_type="kanban.card.updated", entity_type="KanbanCard", entity_id=card.id, actor_id=user.id, payload={"title": card.title})
  await db.commit()
  return _card_out(card)


@router.delete("/cards/{card_id}")
async def delete_card(
  card_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  card, column = await _get_card(db, card_id, gate)
  await _purge_cards(db, [card.id])
  for idx, c in enumerate(await _column_cards(db, column.id)):
    c.position = idx
  await write_audit(db, event_type="kanban.card.deleted", entity_type="KanbanCard", entity_id=card_id, actor_id=user.id, payload={"title": card.title})
  await db.commit()
  return {"success": True}


@router.post("/cards/{card_id}/move")
async def move_card(
  card_id: str,
  payload: CardMoveIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  card, source = await _get_card(db, card_id, gate)
  target = source if payload.column_id == source.id else await _get_column(db, payload.column_id, gate)
  if target.board_id != source.board_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Target column is on another board")
  entered = target.id != source.id

  target_cards = await _column_cards(db, target.id, exclude=card.id)
  target_cards.insert(min(payload.position, len(target_cards)), card)
  card.column_id = target.id
  for idx, c in enumerate(target_cards):
    c.position = idx
  if entered:
    for idx, c in enumerate(await _column_cards(db, source.id, exclude=card.id)):
      c.position = idx

  webhook = None
  if entered and should_trigger(target, card):
    webhook = (await fire_column_webhook(db, card, target)).as_dict()
  await write_audit(
    db,
    event_type="kanban.card.moved",
    entity_type="KanbanCard",
    entity_id=card.id,
    actor_id=user.id,
    payload={"from": source.id, "to": target.id, "position": card.position},
  )
  await db.commit()
  return {"success": True, "card": _card_out(card), "webhook": webhook}


@router.post("/columns/{column_id}/cards/reorder")
async def reorder_cards(
  column_id: str,
  payload: CardReorderIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await _get_column(db, column_id, gate)
  cards = {c.id: c for c in await _column_cards(db, column_id)}
  if len(payload.card_ids) != len(cards) or set(payload.card_ids) != set(cards.keys()):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="card_ids must include all cards in the column")
  for idx, cid in enumerate(payload.card_ids):
    cards[cid].position = idx
  await write_audit(db, event_type="kanban.cards.reordered", entity_type="KanbanColumn", entity_id=column_id, actor_id=user.id, payload={"card_ids": payload.card_ids})
  await db.commit()
  return {"success": True}


@router.post("/cards/{card_id}/trigger-webhook")
async def trigger_card_webhook(
  card_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  card, column = await _get_card(db, card_id, gate)
  if not column.webhook_url:
    return {"success": False, "message": "No webhook configured"}
  result = await fire_column_webhook(db, card, column)
  await db.commit()
  return {"success": result.ok, "webhook": result.as_dict()}


# comments


@router.get("/cards/{card_id}/comments", response_model=list[CommentOut])
async def list_comments(
  card_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CommentOut]:
  await _get_card(db, card_id, gate)
  res = await db.execute(select(KanbanCardComment).where(KanbanCardComment.card_id == card_id).order_by(KanbanCardComment.created_at.asc()))
  return [_comment_out(c) for c in res.scalars().all()]


@router.post("/cards/{card_id}/comments", response_model=CommentOut)
async def add_comment(
  card_id: str,
  payload: CommentCreateIn,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  await _get_card(db, card_id, gate)
  c = KanbanCardComment(card_id=card_id, author_name=payload.author_name.strip(), content=payload.content)
  db.add(c)
  await db.flush()
  await write_audit(db, event_type="kanban.comment.created", entity_type="KanbanCardComment", entity_id=c.id, actor_id=user.id, payload={"card_id": card_id})
  await db.commit()
  return _comment_out(c)


@router.delete("/comments/{comment_id}")
async def delete_comment(
  comment_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  res = await db.execute(select(KanbanCardComment).where(KanbanCardComment.id == comment_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
  await _get_card(db, c.card_id, gate)
  await db.execute(delete(KanbanCardComment).where(KanbanCardComment.id == comment_id))
  await write_audit(db, event_type="kanban.comment.deleted", entity_type="KanbanCardComment", entity_id=comment_id, actor_id=user.id, payload={"card_id": c.card_id})
  await db.commit()
  return {"success": True}


# attachments


@router.get("/cards/{card_id}/attachments", response_model=list[AttachmentOut])
async def list_attachments(
  card_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[AttachmentOut]:
  await _get_card(db, card_id, gate)
  res = await db.execute(
    select(KanbanCardAttachment).where(KanbanCardAttachment.card_id == card_id).order_by(KanbanCardAttachment.created_at.asc())
  )
  return [_attachment_out(a) for a in res.scalars().all()]


@router.post("/cards/{card_id}/attachments", response_model=AttachmentOut)
async def upload_attachment(
  card_id: str,
  file: UploadFile = File(...),
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> AttachmentOut:
  await _get_card(db, card_id, gate)
  data = await file.read(int(settings.max_upload_bytes) + 1)
  if len(data) > int(settings.max_upload_bytes):
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Attachment too large")

  storage = get_storage()
  name = file.filename or "attachment"
  ts = int(datetime.now(timezone.utc).timestamp() * 1000)
  path = storage.upload(KANBAN_ATTACHMENTS_BUCKET, f"{card_id}/{ts}_{safe_name(name)}", data)
  a = KanbanCardAttachment(
    card_id=card_id,
    file_name=name,
    file_path=path,
    file_url=storage.public_url(KANBAN_ATTACHMENTS_BUCKET, path),
    file_type=file.content_type or "application/octet-stream",
    file_size=len(data),
  )
  db.add(a)
  await db.flush()
  await write_audit(db, event_type="kanban.attachment.added", entity_type="KanbanCardAttachment", entity_id=a.id, actor_id=user.id, payload={"file_name": name})
  await db.commit()
  return _attachment_out(a)


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(
  attachment_id: str,
  gate: SharedLinkGate = Depends(shared_link_gate),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  res = await db.execute(select(KanbanCardAttachment).where(KanbanCardAttachment.id == attachment_id))
  a = res.scalar_one_or_none()
  if not a:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
  await _get_card(db, a.card_id, gate)
  try:
    get_storage().remove(KANBAN_ATTACHMENTS_BUCKET, a.file_path)
  except StorageError as exc:
    logger.warning("attachment file %s not removed: %s", a.file_path, exc)
  await db.execute(delete(KanbanCardAttachment).where(KanbanCardAttachment.id == attachment_id))
  await write_audit(db, event_type="kanban.attachment.deleted", entity_type="KanbanCardAttachment", entity_id=attachment_id, actor_id=user.id, payload={"file_name": a.file_name})
  await db.commit()
  return {"success": True}
