"""
Central configuration for the live match sync subsystem.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models.enums import DataSourceKind


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared by every component."""

    model_config = SettingsConfigDict(
        env_prefix="LS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Process identifier bound to every log line")

    # ── Data source ──────────────────────────────────────────
    data_source: DataSourceKind = Field(
        default=DataSourceKind.FOOTBALL_DATA,
        description="Which data source backs the fetch coordinator (football_data or mock).",
    )
    football_data_base_url: str = "https://api.football-data.org/v4"
    football_data_api_key: str = ""
    request_timeout_s: float = 10.0
    mock_seed: int = 7

    # ── Call budget ──────────────────────────────────────────
    budget_max_calls: int = Field(default=25, ge=1)
    budget_window_s: float = Field(default=60.0, gt=0)
    budget_max_wait_s: float = Field(default=60.0, ge=0, description="Longest wait for a budget slot")

    # ── Fetch retries ────────────────────────────────────────
    fetch_max_attempts: int = Field(default=3, ge=1)
    fetch_retry_base_delay_s: float = Field(default=2.0, ge=0)
    date_range_days: int = Field(default=7, ge=0)

    # ── Live monitors ────────────────────────────────────────
    monitor_failure_threshold: int = Field(default=5, ge=1)
    monitor_backoff_base_s: float = Field(default=30.0, ge=0)
    monitor_backoff_ceiling_s: float = Field(default=300.0, ge=0)

    # ── Cache maintenance ────────────────────────────────────
    cache_sweep_interval_s: float = Field(default=300.0, gt=0)

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = False
    metrics_port: int = 9090

    @property
    def football_data_key_hint(self) -> str:
        """API key prefix, for logging only."""
        if not self.football_data_api_key:
            return ""
        return self.football_data_api_key[:4] + "***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
