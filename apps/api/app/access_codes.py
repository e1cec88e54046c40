from __future__ import annotations

import re
import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ClientConnection

ACCESS_CODE_RE = re.compile(r"^[A-Z]{3}[0-9]{4}$")


def normalize_access_code(code: str | None) -> str:
  return (code or "").strip().upper()


def is_valid_access_code(code: str | None) -> bool:
  return bool(ACCESS_CODE_RE.fullmatch(normalize_access_code(code)))


def random_access_code() -> str:
  letters = "".join(secrets.choice(string.ascii_uppercase) for _ in range(3))
  digits = "".join(secrets.choice(string.digits) for _ in range(4))
  return letters + digits


async def access_code_taken(db: AsyncSession, code: str) -> bool:
  res = await db.execute(select(ClientConnection.id).where(ClientConnection.access_token == normalize_access_code(code)))
  return res.scalar_one_or_none() is not None


async def generate_unique_access_code(db: AsyncSession, *, attempts: int = 20) -> str:
  for _ in range(attempts):
    code = random_access_code()
    if not await access_code_taken(db, code):
      return code
  raise RuntimeError("Could not allocate a unique access code")
