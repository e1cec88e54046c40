from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://portal:portal@db:5432/client_portal"
  app_secret: str = "dev-secret-change-me"
  fernet_key: str = "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA="
  app_version: str = "v2026-10-01"
  build_sha: str = "dev"
  api_docs_enabled: bool = True
  log_level: str = "INFO"

  cors_origins: str = "*"
  redis_url: str | None = None
  rate_limit_login_ip_per_minute: int = 60
  rate_limit_dashboard_ip_per_minute: int = 30

  # Where the scheduling provider posts booking events and where clients open their dashboard.
  public_base_url: str = "http://localhost:8000"
  client_portal_url: str = "https://client.conversifi.io"

  http_timeout_seconds: float = 20.0

  calendly_api_base: str = "https://api.calendly.com"
  calendly_signing_key: str | None = None
  calendly_signature_tolerance_seconds: int = 180  # 0 disables the replay window

  slack_api_base: str = "https://slack.com/api"
  slack_bot_token: str | None = None

  discord_api_base: str = "https://discord.com/api/v10"
  discord_bot_token: str | None = None
  discord_webhook_name: str = "Conversifi Notifications"

  ghl_api_base: str = "https://services.leadconnectorhq.com"
  ghl_api_version: str = "2021-07-28"
  ghl_api_key: str | None = None

  conversifi_api_key: str | None = None
  stats_sync_enabled: bool = False
  stats_sync_interval_seconds: int = 3600

  onboarding_webhook_url: str | None = None

  storage_dir: str = "data/storage"
  signed_url_ttl_seconds: int = 3600
  max_upload_bytes: int = 25 * 1024 * 1024

  seed_admin_email: str = "admin@client-portal.local"
  seed_admin_password: str | None = None

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def calendly_callback_url(self) -> str:
    return f"{self.public_base_url.rstrip('/')}/webhooks/calendly"


settings = Settings()
