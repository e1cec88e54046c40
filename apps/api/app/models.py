from __future__ import annotations

import datetime as dt
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if value is None:
    return None
  return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)
  role: Mapped[str] = mapped_column(String, nullable=False, default="user")
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ApiToken(Base):
  __tablename__ = "api_tokens"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  token_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  token_hint: Mapped[str] = mapped_column(String, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ClientConnection(Base):
  __tablename__ = "client_connections"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  client_name: Mapped[str] = mapped_column(String, nullable=False)
  access_token: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  calendly_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
  calendly_user_uri: Mapped[str | None] = mapped_column(String, nullable=True)
  calendly_org_uri: Mapped[str | None] = mapped_column(String, nullable=True)
  calendly_webhook_id: Mapped[str | None] = mapped_column(String, nullable=True)
  # None or [] means every event type is watched.
  watched_event_types: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
  ghl_location_id: Mapped[str] = mapped_column(String, nullable=False)
  ghl_location_name: Mapped[str | None] = mapped_column(String, nullable=True)
  ghl_api_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
  slack_channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
  slack_channel_name: Mapped[str | None] = mapped_column(String, nullable=True)
  discord_channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
  discord_channel_name: Mapped[str | None] = mapped_column(String, nullable=True)
  discord_guild_id: Mapped[str | None] = mapped_column(String, nullable=True)
  discord_guild_name: Mapped[str | None] = mapped_column(String, nullable=True)
  discord_webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  discord_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  conversifi_webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  client_timezone: Mapped[str] = mapped_column(String, nullable=False, default="UTC")
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Booking(Base):
  __tablename__ = "bookings"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  client_connection_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("client_connections.id", ondelete="CASCADE"), nullable=False, index=True
  )
  access_token: Mapped[str] = mapped_column(String, nullable=False, index=True)
  contact_name: Mapped[str | None] = mapped_column(String, nullable=True)
  contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
  contact_phone: Mapped[str | None] = mapped_column(String, nullable=True)
  event_type_name: Mapped[str | None] = mapped_column(String, nullable=True)
  event_type_uri: Mapped[str | None] = mapped_column(String, nullable=True)
  event_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  calendly_event_uri: Mapped[str | None] = mapped_column(String, nullable=True)
  calendly_invitee_uri: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  event_status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
  rescheduled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  reschedule_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  cancel_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  showed_up: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
  call_outcome: Mapped[str | None] = mapped_column(String, nullable=True)
  closer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
  archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  conversation_pdf_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  raw_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CampaignStat(Base):
  __tablename__ = "campaign_stats"
  __table_args__ = (UniqueConstraint("client_connection_id", "date", name="ux_campaign_stats_client_date"),)

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  client_connection_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("client_connections.id", ondelete="CASCADE"), nullable=False, index=True
  )
  access_token: Mapped[str] = mapped_column(String, nullable=False, index=True)
  date: Mapped[dt.date] = mapped_column(Date, nullable=False)
  messages_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  replies_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  connections_made: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  meetings_booked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  total_prospects: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  total_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  total_responses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  pending_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  acceptance_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
  response_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
  campaign_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Report(Base):
  __tablename__ = "reports"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  client_connection_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("client_connections.id", ondelete="CASCADE"), nullable=False, index=True
  )
  report_name: Mapped[str] = mapped_column(String, nullable=False)
  report_url: Mapped[str] = mapped_column(Text, nullable=False)
  storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
  report_date: Mapped[date] = mapped_column(Date, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class OnboardingSubmission(Base):
  __tablename__ = "onboarding_submissions"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  first_name: Mapped[str] = mapped_column(String, nullable=False)
  last_name: Mapped[str] = mapped_column(String, nullable=False)
  company_name: Mapped[str] = mapped_column(String, nullable=False)
  email: Mapped[str] = mapped_column(String, nullable=False)
  phone: Mapped[str] = mapped_column(String, nullable=False)
  linkedin_url: Mapped[str] = mapped_column(Text, nullable=False)
  website_url: Mapped[str] = mapped_column(Text, nullable=False)
  industry: Mapped[str] = mapped_column(String, nullable=False)
  has_calendly: Mapped[str] = mapped_column(String, nullable=False)
  country: Mapped[str] = mapped_column(String, nullable=False)
  street_address: Mapped[str] = mapped_column(Text, nullable=False)
  city_state: Mapped[str] = mapped_column(String, nullable=False)
  ideal_client: Mapped[str | None] = mapped_column(Text, nullable=True)
  company_headcounts: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
  geography: Mapped[str | None] = mapped_column(Text, nullable=True)
  industries: Mapped[str | None] = mapped_column(Text, nullable=True)
  job_titles: Mapped[str | None] = mapped_column(Text, nullable=True)
  problem_solved: Mapped[str | None] = mapped_column(Text, nullable=True)
  service_description: Mapped[str | None] = mapped_column(Text, nullable=True)
  success_stories: Mapped[str | None] = mapped_column(Text, nullable=True)
  deal_size: Mapped[str | None] = mapped_column(String, nullable=True)
  sales_person: Mapped[str | None] = mapped_column(String, nullable=True)
  blacklist_urls: Mapped[str | None] = mapped_column(Text, nullable=True)
  file_urls: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class KanbanWorkspace(Base):
  __tablename__ = "kanban_workspaces"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  name: Mapped[str] = mapped_column(String, nullable=False)
  password: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class KanbanBoard(Base):
  __tablename__ = "kanban_boards"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  workspace_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("kanban_workspaces.id", ondelete="CASCADE"), nullable=False, index=True
  )
  name: Mapped[str] = mapped_column(String, nullable=False)
  password: Mapped[str | None] = mapped_column(String, nullable=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class KanbanColumn(Base):
  __tablename__ = "kanban_columns"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  board_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("kanban_boards.id", ondelete="CASCADE"), nullable=False, index=True
  )
  name: Mapped[str] = mapped_column(String, nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  webhook_trigger_mode: Mapped[str] = mapped_column(String, nullable=False, default="every_time")
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class KanbanCard(Base):
  __tablename__ = "kanban_cards"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  column_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("kanban_columns.id", ondelete="CASCADE"), nullable=False, index=True
  )
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  priority: Mapped[str | None] = mapped_column(String, nullable=True)
  due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  webhook_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class KanbanCardComment(Base):
  __tablename__ = "kanban_card_comments"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  card_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("kanban_cards.id", ondelete="CASCADE"), nullable=False, index=True
  )
  author_name: Mapped[str] = mapped_column(String, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class KanbanCardAttachment(Base):
  __tablename__ = "kanban_card_attachments"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  card_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("kanban_cards.id", ondelete="CASCADE"), nullable=False, index=True
  )
  file_name: Mapped[str] = mapped_column(String, nullable=False)
  file_path: Mapped[str] = mapped_column(Text, nullable=False)
  file_url: Mapped[str] = mapped_column(Text, nullable=False)
  file_type: Mapped[str | None] = mapped_column(String, nullable=True)
  file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class InboundWebhookEvent(Base):
  __tablename__ = "inbound_webhook_events"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  source: Mapped[str] = mapped_column(String, nullable=False, index=True)
  event_name: Mapped[str | None] = mapped_column(String, nullable=True)
  headers: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
  body: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
  received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
  processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  result: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
  actor_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
