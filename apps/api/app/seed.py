from __future__ import annotations

import asyncio
import logging
import secrets

from sqlalchemy import select

from app.config import settings
from app.db import SessionLocal
from app.logging_setup import configure_logging
from app.models import User
from app.security import hash_password

logger = logging.getLogger(__name__)


def _bootstrap_password() -> tuple[str, bool]:
  configured = (settings.seed_admin_password or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def seed() -> None:
  """Creates the first operator account if it does not exist yet."""
  async with SessionLocal() as db:
    email = settings.seed_admin_email.strip().lower()
    res = await db.execute(select(User).where(User.email == email))
    if res.scalar_one_or_none():
      logger.info("admin %s already present", email)
      return
    password, generated = _bootstrap_password()
    db.add(User(email=email, name="Admin", role="admin", password_hash=hash_password(password)))
    await db.commit()
    if generated:
      # Printed once so the operator can log in; not stored anywhere else.
      print(f"bootstrap admin: {email}={password}")
    logger.info("admin %s created (generated password=%s)", email, str(generated).lower())


if __name__ == "__main__":
  configure_logging()
  asyncio.run(seed())
