"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


DAY_MS = 24 * 60 * 60 * 1000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream exchange proxy (deposit / withdraw history)
    upstream_api_url: str = "http://binance-proxy:3000"
    upstream_api_key: str | None = None  # Sent as X-API-Key, never logged

    # Downstream store (transactions bulk insert + sync job ledger)
    ledger_api_url: str = "http://binance-db-api:3000"

    # Per-call timeout for every outbound HTTP request
    http_timeout_seconds: float = 30.0

    # Sync tuning
    chunk_size_days: int = 7
    page_limit: int = 1000
    initial_sync_days: int = 90  # Lookback for the very first run of a job type
    bulk_source: str = "cronjob-binance"

    # Identity used by scheduled runs
    app_user_id: str | None = None
    external_user_id: str | None = None

    # App
    app_name: str = "WalletSync"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # API
    api_v1_prefix: str = "/api/v1"
    api_token: str | None = None  # Bearer token for trigger endpoints; open when unset

    # Cron Jobs
    enable_cron_jobs: bool = False
    sync_interval_seconds: int = 60 * 60

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def chunk_size_ms(self) -> int:
        return self.chunk_size_days * DAY_MS

    @property
    def initial_lookback_ms(self) -> int:
        return self.initial_sync_days * DAY_MS


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
