"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-01
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
  return sa.Column("id", sa.UUID(as_uuid=False), primary_key=True, nullable=False)


def _ts(name: str) -> sa.Column:
  return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _fk(name: str, target: str, *, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
  return sa.Column(name, sa.UUID(as_uuid=False), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
  op.create_table(
    "users",
    _id(),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("role", sa.String(), nullable=False, server_default="user"),
    sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "api_tokens",
    _id(),
    _fk("user_id", "users.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("token_hash", sa.String(), nullable=False),
    sa.Column("token_hint", sa.String(), nullable=False),
    _ts("created_at"),
    sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
  )
  op.create_index("ix_api_tokens_user_id", "api_tokens", ["user_id"])
  op.create_index("ix_api_tokens_token_hash", "api_tokens", ["token_hash"], unique=True)

  op.create_table(
    "client_connections",
    _id(),
    sa.Column("client_name", sa.String(), nullable=False),
    sa.Column("access_token", sa.String(), nullable=False),
    sa.Column("calendly_token_encrypted", sa.Text(), nullable=False),
    sa.Column("calendly_user_uri", sa.String(), nullable=True),
    sa.Column("calendly_org_uri", sa.String(), nullable=True),
    sa.Column("calendly_webhook_id", sa.String(), nullable=True),
    sa.Column("watched_event_types", postgresql.JSONB(), nullable=True),
    sa.Column("ghl_location_id", sa.String(), nullable=False),
    sa.Column("ghl_location_name", sa.String(), nullable=True),
    sa.Column("ghl_api_key_encrypted", sa.Text(), nullable=True),
    sa.Column("slack_channel_id", sa.String(), nullable=True),
    sa.Column("slack_channel_name", sa.String(), nullable=True),
    sa.Column("discord_channel_id", sa.String(), nullable=True),
    sa.Column("discord_channel_name", sa.String(), nullable=True),
    sa.Column("discord_guild_id", sa.String(), nullable=True),
    sa.Column("discord_guild_name", sa.String(), nullable=True),
    sa.Column("discord_webhook_url", sa.Text(), nullable=True),
    sa.Column("discord_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("conversifi_webhook_url", sa.Text(), nullable=True),
    sa.Column("client_timezone", sa.String(), nullable=False, server_default="UTC"),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_client_connections_access_token", "client_connections", ["access_token"], unique=True)
  op.create_index("ix_client_connections_is_active", "client_connections", ["is_active"])

  op.create_table(
    "bookings",
    _id(),
    _fk("client_connection_id", "client_connections.id"),
    sa.Column("access_token", sa.String(), nullable=False),
    sa.Column("contact_name", sa.String(), nullable=True),
    sa.Column("contact_email", sa.String(), nullable=True),
    sa.Column("contact_phone", sa.String(), nullable=True),
    sa.Column("event_type_name", sa.String(), nullable=True),
    sa.Column("event_type_uri", sa.String(), nullable=True),
    sa.Column("event_time", sa.DateTime(timezone=True), nullable=True),
    sa.Column("calendly_event_uri", sa.String(), nullable=True),
    sa.Column("calendly_invitee_uri", sa.String(), nullable=True),
    sa.Column("event_status", sa.String(), nullable=False, server_default="scheduled"),
    sa.Column("rescheduled", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("reschedule_url", sa.Text(), nullable=True),
    sa.Column("cancel_url", sa.Text(), nullable=True),
    sa.Column("showed_up", sa.Boolean(), nullable=True),
    sa.Column("call_outcome", sa.String(), nullable=True),
    sa.Column("closer_notes", sa.Text(), nullable=True),
    sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("conversation_pdf_url", sa.Text(), nullable=True),
    sa.Column("raw_payload", postgresql.JSONB(), nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_bookings_client_connection_id", "bookings", ["client_connection_id"])
  op.create_index("ix_bookings_access_token", "bookings", ["access_token"])
  op.create_index("ix_bookings_calendly_invitee_uri", "bookings", ["calendly_invitee_uri"])

  op.create_table(
    "campaign_stats",
    _id(),
    _fk("client_connection_id", "client_connections.id"),
    sa.Column("access_token", sa.String(), nullable=False),
    sa.Column("date", sa.Date(), nullable=False),
    sa.Column("messages_sent", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("replies_received", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("connections_made", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("meetings_booked", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("total_prospects", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("total_sent", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("total_responses", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("pending_requests", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("acceptance_rate", sa.Float(), nullable=False, server_default="0"),
    sa.Column("response_rate", sa.Float(), nullable=False, server_default="0"),
    sa.Column("campaign_data", postgresql.JSONB(), nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
    sa.UniqueConstraint("client_connection_id", "date", name="ux_campaign_stats_client_date"),
  )
  op.create_index("ix_campaign_stats_client_connection_id", "campaign_stats", ["client_connection_id"])
  op.create_index("ix_campaign_stats_access_token", "campaign_stats", ["access_token"])

  op.create_table(
    "reports",
    _id(),
    _fk("client_connection_id", "client_connections.id"),
    sa.Column("report_name", sa.String(), nullable=False),
    sa.Column("report_url", sa.Text(), nullable=False),
    sa.Column("storage_path", sa.Text(), nullable=True),
    sa.Column("report_date", sa.Date(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_reports_client_connection_id", "reports", ["client_connection_id"])

  op.create_table(
    "onboarding_submissions",
    _id(),
    sa.Column("first_name", sa.String(), nullable=False),
    sa.Column("last_name", sa.String(), nullable=False),
    sa.Column("company_name", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("phone", sa.String(), nullable=False),
    sa.Column("linkedin_url", sa.Text(), nullable=False),
    sa.Column("website_url", sa.Text(), nullable=False),
    sa.Column("industry", sa.String(), nullable=False),
    sa.Column("has_calendly", sa.String(), nullable=False),
    sa.Column("country", sa.String(), nullable=False),
    sa.Column("street_address", sa.Text(), nullable=False),
    sa.Column("city_state", sa.String(), nullable=False),
    sa.Column("ideal_client", sa.Text(), nullable=True),
    sa.Column("company_headcounts", postgresql.JSONB(), nullable=True),
    sa.Column("geography", sa.Text(), nullable=True),
    sa.Column("industries", sa.Text(), nullable=True),
    sa.Column("job_titles", sa.Text(), nullable=True),
    sa.Column("problem_solved", sa.Text(), nullable=True),
    sa.Column("service_description", sa.Text(), nullable=True),
    sa.Column("success_stories", sa.Text(), nullable=True),
    sa.Column("deal_size", sa.String(), nullable=True),
    sa.Column("sales_person", sa.String(), nullable=True),
    sa.Column("blacklist_urls", sa.Text(), nullable=True),
    sa.Column("file_urls", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
    _ts("created_at"),
  )

  op.create_table(
    "kanban_workspaces",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password", sa.String(), nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )

  op.create_table(
    "kanban_boards",
    _id(),
    _fk("workspace_id", "kanban_workspaces.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password", sa.String(), nullable=True),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_kanban_boards_workspace_id", "kanban_boards", ["workspace_id"])

  op.create_table(
    "kanban_columns",
    _id(),
    _fk("board_id", "kanban_boards.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("webhook_url", sa.Text(), nullable=True),
    sa.Column("webhook_trigger_mode", sa.String(), nullable=False, server_default="every_time"),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_kanban_columns_board_id", "kanban_columns", ["board_id"])

  op.create_table(
    "kanban_cards",
    _id(),
    _fk("column_id", "kanban_columns.id"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("priority", sa.String(), nullable=True),
    sa.Column("due_date", sa.Date(), nullable=True),
    sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("webhook_triggered", sa.Boolean(), nullable=False, server_default=sa.false()),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_kanban_cards_column_id", "kanban_cards", ["column_id"])

  op.create_table(
    "kanban_card_comments",
    _id(),
    _fk("card_id", "kanban_cards.id"),
    sa.Column("author_name", sa.String(), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_kanban_card_comments_card_id", "kanban_card_comments", ["card_id"])

  op.create_table(
    "kanban_card_attachments",
    _id(),
    _fk("card_id", "kanban_cards.id"),
    sa.Column("file_name", sa.String(), nullable=False),
    sa.Column("file_path", sa.Text(), nullable=False),
    sa.Column("file_url", sa.Text(), nullable=False),
    sa.Column("file_type", sa.String(), nullable=True),
    sa.Column("file_size", sa.Integer(), nullable=True),
    _ts("created_at"),
  )
  op.create_index("ix_kanban_card_attachments_card_id", "kanban_card_attachments", ["card_id"])

  op.create_table(
    "inbound_webhook_events",
    _id(),
    sa.Column("source", sa.String(), nullable=False),
    sa.Column("event_name", sa.String(), nullable=True),
    sa.Column("headers", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("body", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("result", postgresql.JSONB(), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
  )
  op.create_index("ix_inbound_webhook_events_source", "inbound_webhook_events", ["source"])
  op.create_index("ix_inbound_webhook_events_processed", "inbound_webhook_events", ["processed"])

  op.create_table(
    "audit_events",
    _id(),
    _fk("actor_id", "users.id", ondelete="SET NULL", nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    _ts("created_at"),
  )


def downgrade() -> None:
  for table in (
    "audit_events",
    "inbound_webhook_events",
    "kanban_card_attachments",
    "kanban_card_comments",
    "kanban_cards",
    "kanban_columns",
    "kanban_boards",
    "kanban_workspaces",
    "onboarding_submissions",
    "reports",
    "campaign_stats",
    "bookings",
    "client_connections",
    "api_tokens",
    "users",
  ):
    op.drop_table(table)
