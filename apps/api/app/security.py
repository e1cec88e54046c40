from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time

from cryptography.fernet import Fernet, InvalidToken
from passlib.context import CryptContext

from app.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

API_TOKEN_PREFIX = "cppat_"


class IntegrationSecretDecryptError(RuntimeError):
  pass


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def _fernet() -> Fernet:
  key = settings.fernet_key
  # accept raw bytes/base64 for ergonomics
  try:
    return Fernet(key.encode("utf-8"))
  except ValueError:
    b = base64.urlsafe_b64encode(key.encode("utf-8").ljust(32, b"\0")[:32])
    return Fernet(b)


def encrypt_secret(value: str) -> str:
  return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(value: str) -> str:
  return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_integration_secret(value: str) -> str:
  try:
    return decrypt_secret(value)
  except InvalidToken as exc:
    raise IntegrationSecretDecryptError(
      "Integration token cannot be decrypted with the current key; reconnect and save this client again."
    ) from exc


def new_api_token() -> str:
  return API_TOKEN_PREFIX + secrets.token_urlsafe(32)


def api_token_hash(token: str) -> str:
  # Keyed hash so DB leaks don't allow offline token matching.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (token or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def _storage_signature(bucket: str, path: str, expires: int) -> str:
  key = (settings.app_secret or "").encode("utf-8")
  msg = f"{bucket}/{path}:{expires}".encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def sign_storage_path(bucket: str, path: str, *, ttl_seconds: int, now: int | None = None) -> tuple[int, str]:
  expires = int(now if now is not None else time.time()) + int(ttl_seconds)
  return expires, _storage_signature(bucket, path, expires)


def verify_storage_signature(bucket: str, path: str, *, expires: int, signature: str, now: int | None = None) -> bool:
  ts = int(now if now is not None else time.time())
  if expires < ts:
    return False
  return hmac.compare_digest(_storage_signature(bucket, path, expires), (signature or "").strip())
