"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env / .env.<APP_ENV> files or environment
variables.

Environment Variables:
    APP_ENV: Environment name (development/staging/production, or dev/prod)
    VERIFY_TOKEN: Token expected in the WhatsApp webhook handshake
    WHATSAPP_TOKEN: Cloud API bearer token
    TENANT_BY_PHONE_NUMBER_ID: Tenant mapping, e.g. "1041740029016016:broker"
    DEFAULT_TENANT: Tenant used when a phone number id is not mapped
    CONFIG_ROOT: Directory holding configs/<tenant>/flow.json and calendar.json
    GOOGLE_APPLICATION_CREDENTIALS: Service account JSON for Google Calendar
    SESSION_TTL_SECONDS: Idle time after which a session restarts at MENU
"""

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENV_ALIASES = {"dev": "development", "prod": "production"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment.

    Options:
    - development: WHATSAPP_FORCE_TO honoured, session endpoints exposed
    - staging: Pre-production, recipient normalization still applied
    - production: Recipients sent exactly as received
    """

    debug: bool = False
    """Enable debug mode (DEBUG logging, detailed error responses)."""

    # Application Configuration
    app_name: str = "flowly-orchestrator"
    """Application name."""

    host: str = "0.0.0.0"
    """Host to bind the application server."""

    port: int = 8080
    """Port to bind the application server."""

    # Webhook
    verify_token: str = "brokerbot_verify"
    """Token WhatsApp echoes back in the GET /webhook subscription handshake."""

    # WhatsApp Cloud API
    whatsapp_token: Optional[str] = None
    """Cloud API bearer token. Messages cannot be answered without it."""

    whatsapp_api_version: str = "v24.0"
    """Graph API version used to build the messages endpoint."""

    whatsapp_base_url: str = "https://graph.facebook.com"
    """Graph API base URL."""

    whatsapp_force_to: Optional[str] = None
    """DEVELOPMENT ONLY: send every reply to this number instead.

    Ignored outside the development environment.
    """

    whatsapp_timeout: float = 15.0
    """Timeout in seconds for each outbound Cloud API request."""

    # Tenancy
    tenant_by_phone_number_id: str = ""
    """Comma-separated phone_number_id:tenant pairs.

    Example: 1041740029016016:broker,2233445566:dental
    Malformed pairs are ignored.
    """

    default_tenant: str = "broker"
    """Tenant used when the phone number id is not mapped."""

    config_root: str = "configs"
    """Root directory of per-tenant configuration (configs/<tenant>/...)."""

    # Google Calendar
    google_application_credentials: Optional[str] = None
    """Path to the service account JSON used for Google Calendar."""

    google_calendar_id: Optional[str] = None
    """Fallback calendar id for tenants without a calendar.json."""

    # Sessions
    session_ttl_seconds: int = 1800
    """Idle session lifetime in seconds (default: 30 minutes). 0 disables expiry."""

    session_sweep_interval: int = 300
    """Seconds between sweeps that drop expired sessions."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow VERIFY_TOKEN or verify_token
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, value):
        """Accept the short names dev/prod used by existing deployments."""
        if isinstance(value, str):
            value = value.strip().lower()
            return APP_ENV_ALIASES.get(value, value)
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def tenant_mapping(self) -> dict[str, str]:
        """Parse tenant_by_phone_number_id into a dict.

        Pairs without a colon are skipped; whitespace is trimmed.
        """
        mapping: dict[str, str] = {}
        for pair in self.tenant_by_phone_number_id.split(","):
            pair = pair.strip()
            if not pair or ":" not in pair:
                continue
            phone_number_id, tenant = pair.split(":", 1)
            mapping[phone_number_id.strip()] = tenant.strip()
        return mapping

    @property
    def effective_force_to(self) -> Optional[str]:
        """WHATSAPP_FORCE_TO, only honoured in development."""
        if not self.is_development:
            return None
        return self.whatsapp_force_to or None


def env_files() -> tuple[str, ...]:
    """Return the dotenv files to read, most specific last.

    APP_ENV is taken from the process environment so that ``.env.<APP_ENV>``
    can override values from ``.env``.
    """
    app_env = os.getenv("APP_ENV", "").strip() or "development"
    return (".env", f".env.{app_env}")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and reused
    across the application.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from app.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.default_tenant)
        broker
    """
    return Settings(_env_file=env_files())


# Module-level settings instance for easy imports
settings = get_settings()
