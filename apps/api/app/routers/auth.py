from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.config import settings
from app.deps import client_ip, get_current_token, get_current_user, get_db
from app.logging_setup import secret_hint
from app.models import ApiToken, User
from app.rate_limit import enforce
from app.schemas import LoginIn, LoginOut, UserOut
from app.security import api_token_hash, new_api_token, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, role=u.role, active=bool(u.active))


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, request: Request, db: AsyncSession = Depends(get_db)) -> LoginOut:
  ip = client_ip(request) or "unknown"
  enforce(f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute))

  email = payload.email.strip().lower()
  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    await write_audit(db, event_type="auth.login.failed", entity_type="Auth", entity_id=None, payload={"email": email, "ip": ip})
    await db.commit()
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
  if not u.active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")

  token = new_api_token()
  t = ApiToken(user_id=u.id, name=f"login {ip}", token_hash=api_token_hash(token), token_hint=secret_hint(token))
  db.add(t)
  await write_audit(db, event_type="auth.login", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"ip": ip})
  await db.commit()
  return LoginOut(token=token, user=_user_out(u))


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return _user_out(user)


@router.post("/logout")
async def logout(t: ApiToken = Depends(get_current_token), db: AsyncSession = Depends(get_db)) -> dict:
  t.revoked_at = datetime.now(timezone.utc)
  await write_audit(db, event_type="auth.logout", entity_type="User", entity_id=t.user_id, actor_id=t.user_id, payload={})
  await db.commit()
  return {"success": True}
