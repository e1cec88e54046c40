from __future__ import annotations

import pytest

from app.calendly.signature import SignatureError, compute_signature, parse_signature_header, verify_signature

KEY = "whsec_test"
BODY = b'{"event":"invitee.created"}'


@pytest.mark.anyio
async def test_parse_signature_header_reads_t_and_v1() -> None:
  parsed = parse_signature_header("t=1700000000, v1=abc123")
  assert parsed.timestamp == "1700000000"
  assert parsed.v1 == "abc123"

  with pytest.raises(SignatureError):
    parse_signature_header("v1=abc123")
  with pytest.raises(SignatureError):
    parse_signature_header("garbage")


@pytest.mark.anyio
async def test_verify_signature_accepts_matching_hmac_and_rejects_tampering() -> None:
  sig = compute_signature(KEY, "1700000000", BODY)
  assert verify_signature(signing_key=KEY, header=f"t=1700000000,v1={sig}", raw_body=BODY) is True

  with pytest.raises(SignatureError):
    verify_signature(signing_key=KEY, header=f"t=1700000000,v1={sig}", raw_body=BODY + b" ")
  with pytest.raises(SignatureError):
    verify_signature(signing_key="other", header=f"t=1700000000,v1={sig}", raw_body=BODY)


@pytest.mark.anyio
async def test_verify_signature_skips_without_key_or_header() -> None:
  assert verify_signature(signing_key=None, header="t=1,v1=00", raw_body=BODY) is False
  assert verify_signature(signing_key=KEY, header=None, raw_body=BODY) is False


@pytest.mark.anyio
async def test_verify_signature_enforces_replay_window_only_when_enabled() -> None:
  sig = compute_signature(KEY, "1000", BODY)
  header = f"t=1000,v1={sig}"
  assert verify_signature(signing_key=KEY, header=header, raw_body=BODY, tolerance_seconds=0, now=999_999) is True
  assert verify_signature(signing_key=KEY, header=header, raw_body=BODY, tolerance_seconds=180, now=1100) is True
  with pytest.raises(SignatureError):
    verify_signature(signing_key=KEY, header=header, raw_body=BODY, tolerance_seconds=180, now=1181)


@pytest.mark.anyio
async def test_non_hex_signature_value_is_malformed() -> None:
  with pytest.raises(SignatureError):
    parse_signature_header("t=1700000000,v1=\xe9\xe9")
  with pytest.raises(SignatureError):
    verify_signature(signing_key=KEY, header="t=1700000000,v1=zz", raw_body=BODY)


@pytest.mark.anyio
async def test_signature_covers_raw_bytes_even_when_not_utf8() -> None:
  raw = b"\xff\xfe{}"
  sig = compute_signature(KEY, "1000", raw)
  assert verify_signature(signing_key=KEY, header=f"t=1000,v1={sig}", raw_body=raw) is True
  with pytest.raises(SignatureError):
    verify_signature(signing_key=KEY, header="t=1000,v1=00", raw_body=raw)
  assert compute_signature(KEY, "1000", '{"a":1}') == compute_signature(KEY, "1000", b'{"a":1}')
