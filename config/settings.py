"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Matcher thresholds and ledger write policy live here so they can be
tuned per deployment without code changes.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # TITLE MATCHING
    # ===================
    match_high_threshold: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Minimum fuzzy score for a high-confidence match"
    )
    match_medium_threshold: int = Field(
        default=75,
        ge=1,
        le=100,
        description="Minimum fuzzy score for a medium-confidence match"
    )
    match_low_threshold: int = Field(
        default=60,
        ge=1,
        le=100,
        description="Minimum fuzzy score for a low-confidence match"
    )
    suggestion_min_score: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Minimum score for a product to be suggested for an unmatched title"
    )

    # ===================
    # LEDGER
    # ===================
    ledger_write_policy: str = Field(
        default="best_effort",
        pattern="^(best_effort|atomic)$",
        description="Default write policy for confirmed import results"
    )
    ledger_batch_size: int = Field(
        default=200,
        ge=1,
        le=5000,
        description="Rows per progress log line in the best-effort writer"
    )

    # ===================
    # FISCAL CALENDAR
    # ===================
    fiscal_year_start_month: int = Field(
        default=8,
        ge=1,
        le=12,
        description="Calendar month the fiscal year starts in (8 = August)"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed by the CORS middleware"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()
