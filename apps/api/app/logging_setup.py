from __future__ import annotations

import logging

from app.config import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
  root = logging.getLogger()
  level = getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)
  root.setLevel(level)
  if any(getattr(h, "_client_portal", False) for h in root.handlers):
    return
  handler = logging.StreamHandler()
  handler.setFormatter(logging.Formatter(_FORMAT))
  handler._client_portal = True  # type: ignore[attr-defined]
  root.addHandler(handler)


def secret_hint(value: str | None) -> str:
  v = (value or "").strip()
  if len(v) <= 4:
    return "****"
  return f"****{v[-4:]}"
