"""Normalization of campaign-analytics payloads.

The analytics endpoint has shipped more than one response layout. Each known layout
gets its own adapter; `normalize_stats` sniffs the shape and hands the payload to the
first adapter that claims it. Aggregation code only ever sees `NormalizedStats`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable

COUNTER_KEYS = (
  "total_prospects",
  "total_sent",
  "total_responses",
  "connections_accepted",
  "meetings_booked",
  "inmails_sent",
  "messages_sent",
)


class UnknownStatsShape(ValueError):
  pass


@dataclass
class NormalizedStats:
  adapter: str
  messages_sent: int = 0
  replies_received: int = 0
  connections_made: int = 0
  meetings_booked: int = 0
  total_prospects: int = 0
  total_sent: int = 0
  total_responses: int = 0
  pending_requests: int = 0
  acceptance_rate: float = 0.0
  response_rate: float = 0.0
  periods: list[str] = field(default_factory=list)
  campaigns: list[Any] = field(default_factory=list)
  totals: dict[str, Any] = field(default_factory=dict)

  def counters(self) -> dict[str, Any]:
    d = asdict(self)
    for k in ("adapter", "periods", "campaigns", "totals"):
      d.pop(k)
    return d


def _int(v: Any) -> int:
  try:
    return int(v or 0)
  except (TypeError, ValueError):
    return 0


def _float(v: Any) -> float:
  try:
    return float(v or 0)
  except (TypeError, ValueError):
    return 0.0


def _unwrap(payload: Any) -> dict[str, Any]:
  # {status, data: {success, data: {...}}} | {data: {...}} | {...}
  node = payload
  for _ in range(2):
    if isinstance(node, dict) and isinstance(node.get("data"), dict):
      node = node["data"]
  return node if isinstance(node, dict) else {}


def _campaigns(body: dict[str, Any]) -> list[Any]:
  c = body.get("campaigns")
  return c if isinstance(c, list) else []


def _campaign_stats(campaign: Any, *, period_key: str | None) -> dict[str, Any]:
  if not isinstance(campaign, dict):
    return {}
  if period_key:
    periods = campaign.get("periods") if isinstance(campaign.get("periods"), dict) else {}
    p = periods.get(period_key) if isinstance(periods.get(period_key), dict) else {}
    if isinstance(p.get("stats"), dict):
      return p["stats"]
  s = campaign.get("stats")
  return s if isinstance(s, dict) else {}


def _sum_campaigns(campaigns: list[Any], *, period_key: str | None) -> dict[str, Any]:
  out: dict[str, Any] = {k: 0 for k in COUNTER_KEYS}
  for c in campaigns:
    s = _campaign_stats(c, period_key=period_key)
    for k in COUNTER_KEYS:
      out[k] += _int(s.get(k))
  sent = out["total_sent"]
  out["acceptance_rate"] = round(out["connections_accepted"] * 100.0 / sent, 2) if sent else 0.0
  out["response_rate"] = round(out["total_responses"] * 100.0 / sent, 2) if sent else 0.0
  return out


def _build(adapter: str, agg: dict[str, Any], campaigns: list[Any], totals: dict[str, Any], *, period_key: str | None) -> NormalizedStats:
  messages = 0
  for c in campaigns:
    s = _campaign_stats(c, period_key=period_key)
    messages += _int(s.get("inmails_sent")) + _int(s.get("messages_sent"))
  if messages == 0 and _int(agg.get("inmails_sent")):
    messages = _int(agg.get("inmails_sent"))

  sent = _int(agg.get("total_sent"))
  connections = _int(agg.get("connections_accepted"))
  responses = _int(agg.get("total_responses"))
  return NormalizedStats(
    adapter=adapter,
    messages_sent=messages,
    replies_received=responses,
    connections_made=connections,
    meetings_booked=_int(agg.get("meetings_booked")),
    total_prospects=_int(agg.get("total_prospects")),
    total_sent=sent,
    total_responses=responses,
    pending_requests=max(sent - connections, 0),
    acceptance_rate=_float(agg.get("acceptance_rate")),
    response_rate=_float(agg.get("response_rate")),
    periods=sorted(totals.keys()) if period_key else [],
    campaigns=campaigns,
    totals=totals,
  )


def _is_periods_v2(body: dict[str, Any]) -> bool:
  totals = body.get("totals")
  if isinstance(totals, dict) and isinstance(totals.get("all_time"), dict):
    return True
  return any(isinstance(c, dict) and isinstance(c.get("periods"), dict) for c in _campaigns(body))


def adapt_periods_v2(body: dict[str, Any]) -> NormalizedStats:
  """Period-keyed layout: totals.{all_time,last_7_days,...}, campaigns[].periods.all_time.stats."""
  campaigns = _campaigns(body)
  totals = body.get("totals") if isinstance(body.get("totals"), dict) else {}
  all_time = totals.get("all_time") if isinstance(totals.get("all_time"), dict) else None
  agg = all_time if all_time is not None else _sum_campaigns(campaigns, period_key="all_time")
  return _build("periods_v2", agg, campaigns, totals, period_key="all_time")


def _is_flat_v1(body: dict[str, Any]) -> bool:
  return isinstance(body.get("totals"), dict) or "campaigns" in body or any(k in body for k in COUNTER_KEYS)


def adapt_flat_v1(body: dict[str, Any]) -> NormalizedStats:
  """Flat layout: totals holds the counters directly (or the body itself does), campaigns[].stats."""
  campaigns = _campaigns(body)
  totals = body.get("totals") if isinstance(body.get("totals"), dict) else {}
  if totals:
    agg = totals
  elif any(k in body for k in COUNTER_KEYS):
    agg = body
  else:
    agg = _sum_campaigns(campaigns, period_key=None)
  return _build("flat_v1", agg, campaigns, totals, period_key=None)


ADAPTERS: list[tuple[str, Callable[[dict[str, Any]], bool], Callable[[dict[str, Any]], NormalizedStats]]] = [
  ("periods_v2", _is_periods_v2, adapt_periods_v2),
  ("flat_v1", _is_flat_v1, adapt_flat_v1),
]


def normalize_stats(payload: Any) -> NormalizedStats:
  body = _unwrap(payload)
  for _name, sniff, adapt in ADAPTERS:
    if sniff(body):
      return adapt(body)
  raise UnknownStatsShape("Unrecognized campaign stats payload")
