"""
Horse Dashboard Configuration

All environment variables and settings for the dashboard metrics API.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # APP
    # ==========================================================================
    app_name: str = "Horse Dashboard"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # SUPABASE (record source)
    # ==========================================================================
    supabase_url: str
    supabase_key: str
    records_table: str = "HORSE"
    # Rows per request when reading the full table; keep <= PostgREST max-rows
    records_page_size: int = 1000

    # ==========================================================================
    # METRICS
    # ==========================================================================
    # Placeholder unit value, not a computed figure
    revenue_per_conversion: float = 150.0
    daily_window_days: int = 30
    top_stages_limit: int = 5
    # Calendar days are bucketed in the dashboard audience's zone
    display_timezone: str = "America/Sao_Paulo"

    # ==========================================================================
    # RATE LIMITING
    # ==========================================================================
    dashboard_rate_limit_rpm: int = 60

    # ==========================================================================
    # CORS
    # ==========================================================================
    cors_origins: str = "*"

    # ==========================================================================
    # SERVER
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
