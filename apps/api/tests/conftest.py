from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./client_portal_test.db")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="client-portal-storage-"))

from app.config import settings
from app.db import SessionLocal, engine
from app.main import app
from app.models import Base, ClientConnection, User
from app.rate_limit import limiter
from app.security import encrypt_secret, hash_password

ADMIN_EMAIL = "admin@client-portal.test"
ADMIN_PASSWORD = "admin1234"
MEMBER_EMAIL = "member@client-portal.test"
MEMBER_PASSWORD = "member1234"

CALENDLY_USER_URI = "https://api.calendly.com/users/AAAA1111"
CALENDLY_ORG_URI = "https://api.calendly.com/organizations/ORG1"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset()
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  async with SessionLocal() as db:
    db.add(User(email=ADMIN_EMAIL, name="Admin", role="admin", password_hash=hash_password(ADMIN_PASSWORD)))
    db.add(User(email=MEMBER_EMAIL, name="Member", role="user", password_hash=hash_password(MEMBER_PASSWORD)))
    await db.commit()
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. client_portal_test)."
    )
  await _reset_db()
  yield
  await engine.dispose()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def login(client: AsyncClient, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> dict[str, str]:
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  return {"Authorization": f"Bearer {res.json()['token']}"}


async def make_connection(
  *,
  client_name: str = "Acme",
  access_token: str = "ACM1234",
  calendly_user_uri: str | None = CALENDLY_USER_URI,
  watched_event_types: list[str] | None = None,
  conversifi_webhook_url: str | None = "https://stats.example.com/acme",
  is_active: bool = True,
  **extra,
) -> ClientConnection:
  async with SessionLocal() as db:
    conn = ClientConnection(
      client_name=client_name,
      access_token=access_token,
      calendly_token_encrypted=encrypt_secret("cal-token"),
      calendly_user_uri=calendly_user_uri,
      calendly_org_uri=CALENDLY_ORG_URI,
      watched_event_types=watched_event_types,
      ghl_location_id="loc_1",
      conversifi_webhook_url=conversifi_webhook_url,
      is_active=is_active,
      **extra,
    )
    db.add(conn)
    await db.commit()
    return conn


EVENT_TYPE_URI = "https://api.calendly.com/event_types/ET1"
INVITEE_URI = "https://api.calendly.com/scheduled_events/EV1/invitees/INV1"


def booking_body(event: str = "invitee.created", *, user_uri: str = CALENDLY_USER_URI, event_type: str = EVENT_TYPE_URI) -> dict:
  return {
    "event": event,
    "payload": {
      "name": "Jane Doe",
      "email": "jane@example.com",
      "uri": INVITEE_URI,
      "reschedule_url": "https://calendly.com/reschedulings/INV1",
      "cancel_url": "https://calendly.com/cancellations/INV1",
      "questions_and_answers": [{"question": "Phone number", "answer": "+1 555 0100"}],
      "scheduled_event": {
        "uri": "https://api.calendly.com/scheduled_events/EV1",
        "name": "Discovery Call",
        "event_type": event_type,
        "start_time": "2030-01-15T15:00:00.000000Z",
        "event_memberships": [{"user": user_uri}],
      },
    },
  }
