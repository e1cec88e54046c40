from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.access_codes import normalize_access_code
from app.db import SessionLocal
from app.models import ApiToken, ClientConnection, User
from app.security import api_token_hash


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def _bearer(request: Request) -> str | None:
  auth = request.headers.get("authorization")
  if not auth or not auth.lower().startswith("bearer "):
    return None
  return auth.split(" ", 1)[1].strip() or None


async def get_current_token(request: Request, db: AsyncSession = Depends(get_db)) -> ApiToken:
  token = _bearer(request)
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  res = await db.execute(select(ApiToken).where(ApiToken.token_hash == api_token_hash(token), ApiToken.revoked_at.is_(None)))
  t = res.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
  return t


async def get_current_user(
  t: ApiToken = Depends(get_current_token),
  db: AsyncSession = Depends(get_db),
) -> User:
  ures = await db.execute(select(User).where(User.id == t.user_id))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  if not u.active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")
  t.last_used_at = datetime.now(timezone.utc)
  await db.commit()
  return u


async def require_admin(user: User = Depends(get_current_user)) -> User:
  if user.role != "admin":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
  return user


@dataclass(frozen=True)
class DashboardSession:
  """What a client dashboard request is allowed to see: one connection, named by its access code."""

  access_code: str
  connection: ClientConnection

  @property
  def timezone(self) -> str:
    return self.connection.client_timezone or "UTC"


async def open_dashboard_session(db: AsyncSession, access_code: str | None) -> DashboardSession:
  code = normalize_access_code(access_code)
  if not code:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Access token is required")
  res = await db.execute(select(ClientConnection).where(ClientConnection.access_token == code))
  conn = res.scalar_one_or_none()
  if not conn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid access token")
  return DashboardSession(access_code=code, connection=conn)


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
