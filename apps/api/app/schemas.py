from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from app.access_codes import normalize_access_code

BookingStatus = Literal["scheduled", "completed", "canceled", "rescheduled"]
CallOutcome = Literal["closed", "no_close", "follow_up", "no_answer", "not_qualified", "rescheduled"]
CardPriority = Literal["urgent", "high", "medium", "low"]
TriggerMode = Literal["every_time", "first_time_only"]

VALID_TIMEZONES = (
  "UTC",
  "America/New_York",
  "America/Chicago",
  "America/Denver",
  "America/Los_Angeles",
  "Europe/London",
  "Europe/Paris",
  "Asia/Dubai",
  "Asia/Singapore",
  "Asia/Tokyo",
  "Australia/Sydney",
)


def _blank_to_none(v: object) -> object:
  if isinstance(v, str) and not v.strip():
    return None
  return v


class AccessCodeIn(BaseModel):
  access_token: str = Field(min_length=1)

  @field_validator("access_token")
  @classmethod
  def _norm_code(cls, v: str) -> str:
    return normalize_access_code(v)


# auth / users


class LoginIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  password: str = Field(min_length=1)


class UserOut(BaseModel):
  id: str
  email: str
  name: str
  role: str
  active: bool


class LoginOut(BaseModel):
  success: bool = True
  token: str
  user: UserOut


class AdminUserCreateIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  name: str = Field(min_length=1, max_length=120)
  password: str = Field(min_length=8)
  role: Literal["admin", "user"] = "user"


class PromoteAdminIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)


# client connections


class ClientSetupIn(BaseModel):
  access_token: str | None = None
  client_name: str = ""
  calendly_token: str = ""
  calendly_user_uri: str | None = None
  calendly_org_uri: str | None = None
  watched_event_types: list[str] | None = None
  ghl_location_id: str = ""
  ghl_location_name: str | None = None
  ghl_api_key: str | None = None
  slack_channel_id: str | None = None
  slack_channel_name: str | None = None
  discord_channel_id: str | None = None
  discord_channel_name: str | None = None
  discord_guild_id: str | None = None
  discord_guild_name: str | None = None
  conversifi_webhook_url: str = ""

  @field_validator(
    "access_token",
    "calendly_user_uri",
    "calendly_org_uri",
    "ghl_location_name",
    "ghl_api_key",
    "slack_channel_id",
    "slack_channel_name",
    "discord_channel_id",
    "discord_channel_name",
    "discord_guild_id",
    "discord_guild_name",
    mode="before",
  )
  @classmethod
  def _blank_strings(cls, v: object) -> object:
    return _blank_to_none(v)


class ClientUpdateIn(BaseModel):
  client_name: str | None = Field(default=None, min_length=1)
  ghl_location_id: str | None = None
  ghl_location_name: str | None = None
  ghl_api_key: str | None = None
  conversifi_webhook_url: str | None = None
  watched_event_types: list[str] | None = None
  slack_channel_id: str | None = None
  slack_channel_name: str | None = None
  discord_enabled: bool | None = None
  client_timezone: str | None = None
  is_active: bool | None = None


class DiscordSetupIn(BaseModel):
  channel_id: str = Field(min_length=1)
  channel_name: str | None = None
  guild_id: str = Field(min_length=1)
  guild_name: str | None = None


class ClientConnectionOut(BaseModel):
  id: str
  client_name: str
  access_token: str
  calendly_user_uri: str | None
  calendly_org_uri: str | None
  calendly_webhook_id: str | None
  watched_event_types: list[str] | None
  ghl_location_id: str
  ghl_location_name: str | None
  has_ghl_api_key: bool
  slack_channel_id: str | None
  slack_channel_name: str | None
  discord_channel_id: str | None
  discord_channel_name: str | None
  discord_guild_id: str | None
  discord_guild_name: str | None
  discord_enabled: bool
  conversifi_webhook_url: str | None
  client_timezone: str
  is_active: bool
  created_at: datetime
  updated_at: datetime


# integrations


class CalendlyTokenIn(BaseModel):
  calendly_token: str = Field(min_length=1)


class CalendlyEventTypesIn(CalendlyTokenIn):
  user_uri: str = Field(min_length=1)


class CalendlyWebhooksIn(CalendlyTokenIn):
  organization: str = Field(min_length=1)
  user: str | None = None
  scope: Literal["user", "organization"] = "user"


class CalendlyWebhookDeleteIn(CalendlyTokenIn):
  webhook_uri: str = Field(min_length=1)


class GhlValidateIn(BaseModel):
  api_key: str = Field(min_length=1)
  location_id: str = Field(min_length=1)


class ConversifiValidateIn(BaseModel):
  webhook_url: str = Field(min_length=1)


# stats / dashboard


class StatsSyncIn(BaseModel):
  access_token: str | None = None


class CampaignStatOut(BaseModel):
  id: str
  date: dt.date
  messages_sent: int
  replies_received: int
  connections_made: int
  meetings_booked: int
  total_prospects: int
  total_sent: int
  total_responses: int
  pending_requests: int
  acceptance_rate: float
  response_rate: float
  campaign_data: dict[str, Any] | None


class BookingOut(BaseModel):
  id: str
  contact_name: str | None
  contact_email: str | None
  contact_phone: str | None
  event_type_name: str | None
  event_time: datetime | None
  event_status: str
  rescheduled: bool
  reschedule_url: str | None
  cancel_url: str | None
  showed_up: bool | None
  call_outcome: str | None
  closer_notes: str | None
  archived: bool
  conversation_pdf_url: str | None
  created_at: datetime


class ReportOut(BaseModel):
  id: str
  client_connection_id: str
  report_name: str
  report_url: str
  report_date: date
  created_at: datetime


class DashboardConnectionOut(BaseModel):
  id: str
  client_name: str
  is_active: bool
  client_timezone: str
  created_at: datetime


class DashboardStatsOut(BaseModel):
  latest: CampaignStatOut | None
  history: list[CampaignStatOut]
  actualMeetingsBooked: int


class DashboardOut(BaseModel):
  success: bool = True
  connection: DashboardConnectionOut
  stats: DashboardStatsOut
  bookings: list[BookingOut]
  reports: list[ReportOut]


class TimezoneUpdateIn(AccessCodeIn):
  timezone: str

  @field_validator("timezone")
  @classmethod
  def _known_tz(cls, v: str) -> str:
    if v not in VALID_TIMEZONES:
      raise ValueError("Invalid timezone")
    return v


class BookingUpdateIn(AccessCodeIn):
  booking_id: str = Field(min_length=1)
  showed_up: bool | None = None
  call_outcome: CallOutcome | None = None
  closer_notes: str | None = None
  event_status: BookingStatus | None = None
  archived: bool | None = None


# onboarding


class OnboardingOut(BaseModel):
  id: str
  first_name: str
  last_name: str
  company_name: str
  email: str
  phone: str
  linkedin_url: str
  website_url: str
  industry: str
  has_calendly: str
  country: str
  street_address: str
  city_state: str
  ideal_client: str | None
  company_headcounts: list[str] | None
  geography: str | None
  industries: str | None
  job_titles: str | None
  problem_solved: str | None
  service_description: str | None
  success_stories: str | None
  deal_size: str | None
  sales_person: str | None
  blacklist_urls: str | None
  file_urls: list[str]
  created_at: datetime


# kanban


class WorkspaceCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  password: str | None = None

  @field_validator("password", mode="before")
  @classmethod
  def _blank_strings(cls, v: object) -> object:
    return _blank_to_none(v)


class WorkspaceUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  password: str | None = None
  clear_password: bool = False


class WorkspaceOut(BaseModel):
  id: str
  name: str
  has_password: bool
  created_at: datetime


class BoardCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  password: str | None = None

  @field_validator("password", mode="before")
  @classmethod
  def _blank_strings(cls, v: object) -> object:
    return _blank_to_none(v)


class BoardUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  password: str | None = None
  clear_password: bool = False


class BoardOut(BaseModel):
  id: str
  workspace_id: str
  name: str
  has_password: bool
  position: int
  created_at: datetime


class ColumnCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  webhook_url: str | None = None
  webhook_trigger_mode: TriggerMode = "every_time"

  @field_validator("webhook_url", mode="before")
  @classmethod
  def _blank_strings(cls, v: object) -> object:
    return _blank_to_none(v)


class ColumnUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  webhook_url: str | None = None
  webhook_trigger_mode: TriggerMode | None = None
  clear_webhook: bool = False


class ColumnOut(BaseModel):
  id: str
  board_id: str
  name: str
  position: int
  webhook_url: str | None
  webhook_trigger_mode: str


class ColumnReorderIn(BaseModel):
  column_ids: list[str]


class CardCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=500)
  description: str | None = None
  priority: CardPriority | None = None
  due_date: date | None = None

  @field_validator("priority", "due_date", mode="before")
  @classmethod
  def _blank_strings(cls, v: object) -> object:
    return _blank_to_none(v)


class CardUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=500)
  description: str | None = None
  priority: CardPriority | None = None
  due_date: date | None = None
  clear_due_date: bool = False


class CardOut(BaseModel):
  id: str
  column_id: str
  title: str
  description: str | None
  priority: str | None
  due_date: date | None
  position: int
  webhook_triggered: bool
  created_at: datetime


class CardMoveIn(BaseModel):
  column_id: str
  position: int = Field(ge=0)


class CardReorderIn(BaseModel):
  card_ids: list[str]


class CommentCreateIn(BaseModel):
  author_name: str = Field(min_length=1, max_length=120)
  content: str = Field(min_length=1)


class CommentOut(BaseModel):
  id: str
  card_id: str
  author_name: str
  content: str
  created_at: datetime


class AttachmentOut(BaseModel):
  id: str
  card_id: str
  file_name: str
  file_url: str
  file_type: str | None
  file_size: int | None
  created_at: datetime


class UnlockIn(BaseModel):
  password: str = ""


class InboundEventOut(BaseModel):
  id: str
  source: str
  event_name: str | None
  received_at: datetime
  processed: bool
  result: dict[str, Any] | None
  error: str | None
