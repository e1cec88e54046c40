from __future__ import annotations

import os
import re
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from app.config import settings
from app.security import sign_storage_path

REPORTS_BUCKET = "reports"
KANBAN_ATTACHMENTS_BUCKET = "kanban-attachments"
ONBOARDING_FILES_BUCKET = "onboarding-files"

_SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]")


class StorageError(RuntimeError):
  pass


@dataclass(frozen=True)
class Bucket:
  name: str
  public: bool


BUCKETS: dict[str, Bucket] = {
  REPORTS_BUCKET: Bucket(REPORTS_BUCKET, public=True),
  KANBAN_ATTACHMENTS_BUCKET: Bucket(KANBAN_ATTACHMENTS_BUCKET, public=True),
  ONBOARDING_FILES_BUCKET: Bucket(ONBOARDING_FILES_BUCKET, public=False),
}


def safe_name(name: str) -> str:
  return _SAFE_NAME_RE.sub("_", name or "file")


def get_bucket(name: str) -> Bucket:
  b = BUCKETS.get(name)
  if not b:
    raise StorageError(f"Unknown bucket: {name}")
  return b


class LocalStorage:
  """Named buckets on local disk, addressed by relative object paths."""

  def __init__(self, root: str | None = None) -> None:
    self.root = os.path.abspath(root or settings.storage_dir)

  def _resolve(self, bucket: str, path: str) -> str:
    get_bucket(bucket)
    base = os.path.join(self.root, bucket)
    full = os.path.abspath(os.path.join(base, path))
    if not full.startswith(base + os.sep):
      raise StorageError("Invalid object path")
    return full

  def upload(self, bucket: str, path: str, data: bytes) -> str:
    full = self._resolve(bucket, path)
    os.makedirs(os.path.dirname(full), exist_ok=True)
    with open(full, "wb") as f:
      f.write(data)
    return path

  def remove(self, bucket: str, path: str) -> bool:
    full = self._resolve(bucket, path)
    if not os.path.exists(full):
      return False
    os.remove(full)
    return True

  def open_path(self, bucket: str, path: str) -> str | None:
    full = self._resolve(bucket, path)
    return full if os.path.isfile(full) else None

  def public_url(self, bucket: str, path: str) -> str:
    if not get_bucket(bucket).public:
      raise StorageError(f"Bucket {bucket} is private")
    return f"{settings.public_base_url.rstrip('/')}/files/{bucket}/{quote(path)}"

  def signed_url(self, bucket: str, path: str, *, ttl_seconds: int | None = None) -> str:
    ttl = int(ttl_seconds if ttl_seconds is not None else settings.signed_url_ttl_seconds)
    expires, sig = sign_storage_path(bucket, path, ttl_seconds=ttl)
    qs = urlencode({"expires": expires, "signature": sig})
    return f"{settings.public_base_url.rstrip('/')}/files/{bucket}/{quote(path)}?{qs}"


def get_storage() -> LocalStorage:
  return LocalStorage()
