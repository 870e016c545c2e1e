from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskpulse:taskpulse@db:5432/taskpulse"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  api_docs_enabled: bool = True
  log_level: str = "INFO"

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,web"

  # Service-role secret for cron/API callers. Unset disables the check.
  cron_secret: str | None = None

  reminder_scan_enabled: bool = True
  reminder_scan_interval_seconds: int = 300
  reminder_horizon_hours: int = 48
  reminder_buffer_minutes: int = 30
  reminder_day_of_hour: int = 9
  reminder_timezone: str | None = None  # IANA name; unset = server local time

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()
