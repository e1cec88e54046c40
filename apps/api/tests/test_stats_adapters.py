from __future__ import annotations

import pytest

from app.stats.adapters import UnknownStatsShape, normalize_stats


@pytest.mark.anyio
async def test_period_keyed_payload_uses_all_time_totals() -> None:
  payload = {
    "status": "ok",
    "data": {
      "success": True,
      "data": {
        "totals": {
          "all_time": {
            "total_prospects": 100,
            "total_sent": 50,
            "total_responses": 10,
            "connections_accepted": 20,
            "meetings_booked": 3,
            "acceptance_rate": 40.0,
            "response_rate": 20.0,
          },
          "last_7_days": {"total_sent": 5},
        },
        "campaigns": [
          {"name": "A", "periods": {"all_time": {"stats": {"inmails_sent": 2, "messages_sent": 4}}}},
          {"name": "B", "periods": {"all_time": {"stats": {"messages_sent": 1}}}},
        ],
      },
    },
  }
  s = normalize_stats(payload)
  assert s.adapter == "periods_v2"
  assert s.messages_sent == 7
  assert s.replies_received == 10
  assert s.connections_made == 20
  assert s.meetings_booked == 3
  assert s.total_prospects == 100
  assert s.pending_requests == 30
  assert s.acceptance_rate == 40.0
  assert s.response_rate == 20.0
  assert s.periods == ["all_time", "last_7_days"]
  assert len(s.campaigns) == 2


@pytest.mark.anyio
async def test_period_keyed_payload_without_totals_sums_campaigns() -> None:
  payload = {
    "campaigns": [
      {"periods": {"all_time": {"stats": {"total_sent": 10, "connections_accepted": 5, "total_responses": 2}}}},
      {"periods": {"all_time": {"stats": {"total_sent": 10, "connections_accepted": 1, "total_responses": 0}}}},
    ]
  }
  s = normalize_stats(payload)
  assert s.adapter == "periods_v2"
  assert s.total_sent == 20
  assert s.connections_made == 6
  assert s.acceptance_rate == 30.0
  assert s.response_rate == 10.0
  assert s.pending_requests == 14


@pytest.mark.anyio
async def test_flat_payload_reads_counters_directly() -> None:
  payload = {
    "data": {
      "totals": {"total_sent": 10, "connections_accepted": 4, "total_responses": 2, "meetings_booked": 1, "inmails_sent": 7},
      "campaigns": [],
    }
  }
  s = normalize_stats(payload)
  assert s.adapter == "flat_v1"
  assert s.messages_sent == 7
  assert s.connections_made == 4
  assert s.pending_requests == 6
  assert s.meetings_booked == 1
  assert s.periods == []


@pytest.mark.anyio
async def test_flat_payload_sums_campaign_stats_when_no_totals() -> None:
  payload = {"campaigns": [{"stats": {"total_sent": 4, "connections_accepted": 1, "messages_sent": 3}}, {"stats": {"total_sent": 6}}]}
  s = normalize_stats(payload)
  assert s.adapter == "flat_v1"
  assert s.total_sent == 10
  assert s.connections_made == 1
  assert s.messages_sent == 3
  assert s.acceptance_rate == 10.0


@pytest.mark.anyio
async def test_unknown_shape_is_rejected() -> None:
  with pytest.raises(UnknownStatsShape):
    normalize_stats({"foo": 1})
  with pytest.raises(UnknownStatsShape):
    normalize_stats([1, 2, 3])
