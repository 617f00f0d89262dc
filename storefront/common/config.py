"""Central environment-driven settings for the storefront services.

The process loads this once at startup. Per-store values that admins edit at
runtime (store name, payment instructions, tracking prefix) live in the
`site_settings` table instead; see `storefront.common.site_settings`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "storefront"
    log_level: str = "INFO"
    database_url: str = "sqlite+pysqlite:///./storefront.db"
    redis_url: str = "redis://redis:6379/0"
    api_key: str = "change-me"
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str = ""
    email_from: str = "Storefront <orders@example.com>"
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    passcode_ttl_seconds: int = 600
    passcode_cooldown_seconds: int = 60
    verified_window_seconds: int = 1800
    verify_attempts_per_window: int = 5
    verify_window_seconds: int = 600
    order_history_requires_verification: bool = False
    expose_debug_passcode: bool = False
    create_schema_on_startup: bool = False
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
