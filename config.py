"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The allow-list and workspace id are read once at startup; changing either
requires a restart. ALLOWED_EMAILS is a comma-separated string in the
environment and is exposed as a normalised list via AccessSettings.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_allowed_emails(raw: str) -> list[str]:
    """Split a comma-separated allow-list into trimmed, lower-cased emails."""
    return [email.strip().lower() for email in raw.split(",") if email.strip()]


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "page-of-us"


class AccessSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    allowed_emails: str = ""
    workspace_id: str = "shared_workspace_main"

    # 1 hour. The login page copy that says "5 hours" is stale; this wins.
    session_duration_ms: int = Field(default=3_600_000, gt=0)
    session_check_interval_seconds: float = Field(default=60.0, gt=0, le=60)

    login_token_ttl_seconds: int = Field(default=900, gt=0)

    # Upper bound (degrees, per axis) for a bottle relocation after reading
    bottle_drift_degrees: float = Field(default=0.05, ge=0, le=1)

    client_cookie_name: str = "pou_client"
    cookie_secure: bool = True

    @property
    def allowed_email_list(self) -> list[str]:
        return parse_allowed_emails(self.allowed_emails)

    def is_allowed(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.allowed_email_list


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@pageofus.app"
    zepto_from_name: str = "Page of Us"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_url: str = "http://localhost:3000"
    app_name: str = "Page of Us"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    access: Optional[AccessSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.access is None:
            self.access = AccessSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
