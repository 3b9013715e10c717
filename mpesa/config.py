"""Client Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Credentials come from environment variables or explicit arguments (never hardcoded)
    - Settings are frozen: loaded once at client construction, immutable thereafter
    - token_refresh_margin_seconds ≥ 60
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults for every non-secret setting: a sandbox client works with two env vars
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mpesa.core.domain_types import BASE_URLS, Environment


class Settings(BaseSettings):
    """M-Pesa client settings from MPESA_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MPESA_", env_file=".env", case_sensitive=False,
        extra="ignore", frozen=True,
    )

    # Credentials
    consumer_key: str = ""
    consumer_secret: str = Field(default="", repr=False)

    # Gateway
    environment: Environment = Environment.SANDBOX
    base_url: str | None = None
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Admission control
    max_concurrent: int = Field(default=10, ge=1)
    window_duration_ms: int = Field(default=60_000, ge=1)
    window_budget: int = Field(default=100, ge=1)

    # Retries
    max_retries: int = Field(default=3, ge=0)
    initial_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=10_000, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    max_jitter_ms: float = Field(default=100, ge=0)

    # Token cache
    token_refresh_margin_seconds: float = Field(default=60, ge=60)

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @model_validator(mode="after")
    def check_delays(self) -> "Settings":
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        return self

    @property
    def resolved_base_url(self) -> str:
        return (self.base_url or BASE_URLS[self.environment]).rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
