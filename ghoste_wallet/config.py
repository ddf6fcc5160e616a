"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


def _split_csv(value: str) -> list[str]:
    """Split a comma-separated setting into unique, stripped, non-empty items."""
    items: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Ghoste Wallet API"
    api_version: str = "0.1.0"
    api_description: str = "Credit wallet and feature pricing for Ghoste"

    # Wallet store backend: "supabase" (PostgREST + RPC) or "postgres" (self-hosted)
    wallet_backend: str = "supabase"

    # Supabase - also used for bearer token resolution on every backend
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_profiles_table: str = "user_profiles"
    supabase_spend_rpc: str = "spend_credits_for_feature"
    supabase_transfer_rpc: str = "wallet_transfer"
    supabase_transactions_table: str = "wallet_transactions"

    # Database Configuration (postgres backend only)
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # Wallet defaults for lazily created profiles
    default_plan: str = "free"
    default_credits_manager: int = 0
    default_credits_tools: int = 1000

    # Dev override allow-lists (comma-separated); these users bypass metering
    dev_override_emails: str = ""
    dev_override_user_ids: str = ""

    @property
    def dev_override_email_list(self) -> list[str]:
        """Get normalized (lower-case) dev override emails."""
        return _split_csv(self.dev_override_emails.lower())

    @property
    def dev_override_user_id_list(self) -> list[str]:
        """Get dev override user ids."""
        return _split_csv(self.dev_override_user_ids)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "ghoste-wallet-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start with a store it cannot reach.
        """
        errors: list[str] = []

        if self.wallet_backend not in ("supabase", "postgres"):
            errors.append(
                f"WALLET_BACKEND must be 'supabase' or 'postgres', got: {self.wallet_backend!r}"
            )

        # Supabase Auth resolves bearer tokens on every backend
        if not self.supabase_url:
            errors.append("SUPABASE_URL is required but empty or missing")
        elif not self.supabase_url.startswith(("http://", "https://")):
            errors.append(f"SUPABASE_URL must be an http(s) URL, got: {self.supabase_url[:20]}...")

        if not self.supabase_service_key:
            errors.append("SUPABASE_SERVICE_KEY is required but empty or missing")

        if self.wallet_backend == "postgres":
            if not self.database_url:
                errors.append("DATABASE_URL is required when WALLET_BACKEND=postgres")
            elif not self.database_url.startswith(("postgresql", "postgres")):
                errors.append(
                    f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
                )

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def supabase_rest_url(self) -> str:
        """Base URL of the PostgREST API."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    @property
    def supabase_auth_url(self) -> str:
        """Base URL of the Supabase Auth API."""
        return f"{self.supabase_url.rstrip('/')}/auth/v1"


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
