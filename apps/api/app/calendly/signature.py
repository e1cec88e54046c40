from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "calendly-webhook-signature"

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


class SignatureError(ValueError):
  pass


@dataclass(frozen=True)
class ParsedSignature:
  timestamp: str
  v1: str


def parse_signature_header(header: str) -> ParsedSignature:
  parts: dict[str, str] = {}
  for chunk in (header or "").split(","):
    if "=" not in chunk:
      continue
    k, v = chunk.split("=", 1)
    parts[k.strip()] = v.strip()
  t = parts.get("t")
  v1 = parts.get("v1")
  if not t or not v1:
    raise SignatureError("Malformed signature header")
  if not _HEX_RE.fullmatch(v1):
    raise SignatureError("Malformed signature value")
  return ParsedSignature(timestamp=t, v1=v1.lower())


def compute_signature(signing_key: str, timestamp: str, raw_body: bytes | str) -> str:
  # Signed over the exact bytes received; str is accepted for callers building test bodies.
  body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
  msg = f"{timestamp}.".encode("utf-8") + body
  return hmac.new(signing_key.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def verify_signature(
  *,
  signing_key: str | None,
  header: str | None,
  raw_body: bytes,
  tolerance_seconds: int = 0,
  now: int | None = None,
) -> bool:
  """Checks a `t=<unix>,v1=<hex>` signature header against the raw request body.

  Returns False when verification was skipped (no key configured or no header sent),
  True when it passed, and raises SignatureError when it failed.
  """
  if not signing_key or not header:
    logger.warning("calendly webhook accepted without signature verification (key configured=%s)", bool(signing_key))
    return False

  parsed = parse_signature_header(header)
  expected = compute_signature(signing_key, parsed.timestamp, raw_body)
  if not hmac.compare_digest(expected.encode("ascii"), parsed.v1.encode("ascii")):
    raise SignatureError("Invalid signature")

  if tolerance_seconds > 0:
    try:
      ts = int(parsed.timestamp)
    except ValueError as exc:
      raise SignatureError("Malformed signature timestamp") from exc
    current = int(now if now is not None else time.time())
    if abs(current - ts) > tolerance_seconds:
      raise SignatureError("Signature timestamp outside tolerance")
  return True
