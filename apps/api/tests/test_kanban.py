from __future__ import annotations

import pytest
from httpx import AsyncClient

import app.kanban.webhooks as kanban_webhooks
from app.notifications.service import SENT, DeliveryResult
from tests.conftest import MEMBER_EMAIL, MEMBER_PASSWORD, login

HOOK = "https://hooks.example.com/qualified"


@pytest.fixture
def webhook_calls(monkeypatch) -> list[dict]:
  calls: list[dict] = []

  async def fake_post(url: str, payload: dict) -> DeliveryResult:
    calls.append({"url": url, "payload": payload})
    return DeliveryResult(channel="webhook", status=SENT, detail={"status_code": 200})

  monkeypatch.setattr(kanban_webhooks, "post_card_event", fake_post)
  return calls


async def _board(client: AsyncClient, headers: dict, *, mode: str = "first_time_only") -> dict:
  ws = (await client.post("/kanban/workspaces", json={"name": "Sales"}, headers=headers)).json()
  board = (await client.post(f"/kanban/workspaces/{ws['id']}/boards", json={"name": "Pipeline"}, headers=headers)).json()
  todo = (await client.post(f"/kanban/boards/{board['id']}/columns", json={"name": "New"}, headers=headers)).json()
  hooked = (
    await client.post(
      f"/kanban/boards/{board['id']}/columns",
      json={"name": "Qualified", "webhook_url": HOOK, "webhook_trigger_mode": mode},
      headers=headers,
    )
  ).json()
  return {"workspace": ws, "board": board, "todo": todo, "hooked": hooked}


@pytest.mark.anyio
async def test_workspace_board_column_card_crud(client: AsyncClient, webhook_calls: list[dict]) -> None:
  headers = await login(client, MEMBER_EMAIL, MEMBER_PASSWORD)
  b = await _board(client, headers)
  assert b["todo"]["position"] == 0
  assert b["hooked"]["position"] == 1

  created = await client.post(
    f"/kanban/columns/{b['todo']['id']}/cards",
    json={"title": "Call Acme", "priority": "high", "due_date": "2030-02-01"},
    headers=headers,
  )
  assert created.status_code == 200, created.text
  card = created.json()["card"]
  assert created.json()["webhook"] is None
  assert card["priority"] == "high"
  assert card["due_date"] == "2030-02-01"

  upd = await client.patch(f"/kanban/cards/{card['id']}", json={"title": "Call Acme again", "clear_due_date": True}, headers=headers)
  assert upd.status_code == 200, upd.text
  assert upd.json()["title"] == "Call Acme again"
  assert upd.json()["due_date"] is None

  bad_priority = await client.post(f"/kanban/columns/{b['todo']['id']}/cards", json={"title": "x", "priority": "whenever"}, headers=headers)
  assert bad_priority.status_code == 400, bad_priority.text

  comment = await client.post(f"/kanban/cards/{card['id']}/comments", json={"author_name": "Sam", "content": "Left a voicemail"}, headers=headers)
  assert comment.status_code == 200, comment.text
  comments = (await client.get(f"/kanban/cards/{card['id']}/comments", headers=headers)).json()
  assert [c["content"] for c in comments] == ["Left a voicemail"]

  att = await client.post(
    f"/kanban/cards/{card['id']}/attachments",
    files={"file": ("notes.txt", b"hello", "text/plain")},
    headers=headers,
  )
  assert att.status_code == 200, att.text
  assert att.json()["file_size"] == 5
  file_url = att.json()["file_url"]
  fetched = await client.get(file_url.replace("http://localhost:8000", ""))
  assert fetched.status_code == 200
  assert fetched.content == b"hello"

  d = await client.delete(f"/kanban/workspaces/{b['workspace']['id']}", headers=headers)
  assert d.status_code == 200, d.text
  gone = await client.get(f"/kanban/boards/{b['board']['id']}/cards", headers=headers)
  assert gone.status_code == 404
  assert (await client.get(file_url.replace("http://localhost:8000", ""))).status_code == 404


@pytest.mark.anyio
async def test_first_time_only_column_fires_once(client: AsyncClient, webhook_calls: list[dict]) -> None:
  headers = await login(client)
  b = await _board(client, headers)
  card = (await client.post(f"/kanban/columns/{b['todo']['id']}/cards", json={"title": "Lead"}, headers=headers)).json()["card"]

  first = await client.post(f"/kanban/cards/{card['id']}/move", json={"column_id": b["hooked"]["id"], "position": 0}, headers=headers)
  assert first.status_code == 200, first.text
  assert first.json()["webhook"]["status"] == "sent"
  assert first.json()["card"]["webhook_triggered"] is True
  assert len(webhook_calls) == 1
  sent = webhook_calls[0]["payload"]
  assert webhook_calls[0]["url"] == HOOK
  assert sent["event"] == "card_entered_column"
  assert sent["card"]["title"] == "Lead"
  assert sent["column"]["name"] == "Qualified"
  assert sent["board"] == {"name": "Pipeline"}
  assert sent["workspace"] == {"name": "Sales"}

  back = await client.post(f"/kanban/cards/{card['id']}/move", json={"column_id": b["todo"]["id"], "position": 0}, headers=headers)
  assert back.json()["webhook"] is None
  again = await client.post(f"/kanban/cards/{card['id']}/move", json={"column_id": b["hooked"]["id"], "position": 0}, headers=headers)
  assert again.status_code == 200, again.text
  assert again.json()["webhook"] is None
  assert len(webhook_calls) == 1

  # A manual trigger always posts.
  manual = await client.post(f"/kanban/cards/{card['id']}/trigger-webhook", headers=headers)
  assert manual.json()["success"] is True
  assert len(webhook_calls) == 2


@pytest.mark.anyio
async def test_every_time_column_fires_on_each_entry_and_on_create(client: AsyncClient, webhook_calls: list[dict]) -> None:
  headers = await login(client)
  b = await _board(client, headers, mode="every_time")

  direct = await client.post(f"/kanban/columns/{b['hooked']['id']}/cards", json={"title": "Hot lead"}, headers=headers)
  assert direct.json()["webhook"]["status"] == "sent"
  card_id = direct.json()["card"]["id"]

  await client.post(f"/kanban/cards/{card_id}/move", json={"column_id": b["todo"]["id"], "position": 0}, headers=headers)
  await client.post(f"/kanban/cards/{card_id}/move", json={"column_id": b["hooked"]["id"], "position": 0}, headers=headers)
  # Moving within the same column is not an entry.
  await client.post(f"/kanban/cards/{card_id}/move", json={"column_id": b["hooked"]["id"], "position": 0}, headers=headers)
  assert len(webhook_calls) == 2

  nohook = (await client.post(f"/kanban/columns/{b['todo']['id']}/cards", json={"title": "Cold"}, headers=headers)).json()["card"]
  manual = await client.post(f"/kanban/cards/{nohook['id']}/trigger-webhook", headers=headers)
  assert manual.json() == {"success": False, "message": "No webhook configured"}


@pytest.mark.anyio
async def test_move_and_reorder_keep_positions_dense(client: AsyncClient, webhook_calls: list[dict]) -> None:
  headers = await login(client)
  b = await _board(client, headers)
  todo = b["todo"]["id"]
  ids = []
  for title in ("a", "b", "c"):
    ids.append((await client.post(f"/kanban/columns/{todo}/cards", json={"title": title}, headers=headers)).json()["card"]["id"])

  moved = await client.post(f"/kanban/cards/{ids[0]}/move", json={"column_id": todo, "position": 2}, headers=headers)
  assert moved.status_code == 200, moved.text
  cards = (await client.get(f"/kanban/boards/{b['board']['id']}/cards", headers=headers)).json()
  assert [(c["title"], c["position"]) for c in cards] == [("b", 0), ("c", 1), ("a", 2)]

  bad = await client.post(f"/kanban/columns/{todo}/cards/reorder", json={"card_ids": ids[:2]}, headers=headers)
  assert bad.status_code == 400, bad.text
  ok = await client.post(f"/kanban/columns/{todo}/cards/reorder", json={"card_ids": [ids[2], ids[1], ids[0]]}, headers=headers)
  assert ok.status_code == 200, ok.text
  cards = (await client.get(f"/kanban/boards/{b['board']['id']}/cards", headers=headers)).json()
  assert [c["title"] for c in cards] == ["c", "b", "a"]

  await client.delete(f"/kanban/cards/{ids[1]}", headers=headers)
  cards = (await client.get(f"/kanban/boards/{b['board']['id']}/cards", headers=headers)).json()
  assert [(c["title"], c["position"]) for c in cards] == [("c", 0), ("a", 1)]

  cols = [b["hooked"]["id"], b["todo"]["id"]]
  missing = await client.post(f"/kanban/boards/{b['board']['id']}/columns/reorder", json={"column_ids": cols[:1]}, headers=headers)
  assert missing.status_code == 400, missing.text
  assert missing.json()["error"] == "column_ids must include all columns"
  reordered = await client.post(f"/kanban/boards/{b['board']['id']}/columns/reorder", json={"column_ids": cols}, headers=headers)
  assert reordered.status_code == 200, reordered.text
  listed = (await client.get(f"/kanban/boards/{b['board']['id']}/columns", headers=headers)).json()
  assert [c["id"] for c in listed] == cols


@pytest.mark.anyio
async def test_password_gate_hides_protected_boards(client: AsyncClient) -> None:
  headers = await login(client)
  ws = (await client.post("/kanban/workspaces", json={"name": "Private", "password": "s3cret"}, headers=headers)).json()
  assert ws["has_password"] is True
  assert "password" not in ws

  blocked = await client.get(f"/kanban/workspaces/{ws['id']}/boards", headers=headers)
  assert blocked.status_code == 403
  assert blocked.json()["error"] == "Password required"
  opened = await client.get(f"/kanban/workspaces/{ws['id']}/boards", headers={**headers, "X-Shared-Link-Password": "s3cret"})
  assert opened.status_code == 200, opened.text

  wrong = await client.post(f"/kanban/workspaces/{ws['id']}/unlock", json={"password": "nope"}, headers=headers)
  assert wrong.status_code == 403
  assert wrong.json()["error"] == "Incorrect password"
  right = await client.post(f"/kanban/workspaces/{ws['id']}/unlock", json={"password": "s3cret"}, headers=headers)
  assert right.json() == {"success": True}

  anon = await client.get("/kanban/workspaces")
  assert anon.status_code == 401
