from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import get_db, require_admin
from app.models import User
from app.schemas import AdminUserCreateIn, PromoteAdminIn, UserOut
from app.security import hash_password

router = APIRouter(prefix="/admin/users", tags=["users"])


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, role=u.role, active=bool(u.active))


@router.get("", response_model=list[UserOut])
async def list_users(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> list[UserOut]:
  res = await db.execute(select(User).order_by(User.created_at.asc()))
  return [_user_out(u) for u in res.scalars().all()]


@router.post("", response_model=UserOut)
async def create_user(payload: AdminUserCreateIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> UserOut:
  email = payload.email.strip().lower()
  res = await db.execute(select(User).where(User.email == email))
  if res.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")
  u = User(email=email, name=payload.name.strip(), role=payload.role, password_hash=hash_password(payload.password))
  db.add(u)
  await db.flush()
  await write_audit(db, event_type="user.created", entity_type="User", entity_id=u.id, actor_id=admin.id, payload={"email": email, "role": u.role})
  await db.commit()
  return _user_out(u)


@router.post("/promote")
async def promote_admin(payload: PromoteAdminIn, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)) -> dict:
  email = payload.email.strip().lower()
  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found. They must create an account first.")
  if u.role == "admin":
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is already an admin")
  u.role = "admin"
  await write_audit(db, event_type="user.promoted", entity_type="User", entity_id=u.id, actor_id=admin.id, payload={"email": email})
  await db.commit()
  return {"success": True, "message": f"{email} is now an admin"}
