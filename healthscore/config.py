"""
Health score settings, read from the environment (or .env) by pydantic-settings.

Source identifiers are optional at load time; the calculators that need them
call require_site_url() / require_property_id() and fail with
ConfigurationError when they are missing.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when a setting required for a calculation is missing."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Metric sources
    gsc_site_url: str = Field(default="", description="Search Console property (site URL)")
    ga4_property_id: str = Field(default="", description="GA4 analytics property ID")
    pagespeed_api_key: str = Field(
        default="", description="PageSpeed Insights API key (enables P5 when set)"
    )

    # Database
    db_path: str = Field(default="./data/healthscore.duckdb", description="DuckDB file path")

    # Scoring
    trailing_window_days: int = Field(
        default=7, ge=1, le=90, description="Days in the trailing comparison window"
    )

    # Alerts
    alerts_enabled: bool = Field(default=True, description="Run alert rules after scoring")
    alert_dedup_hours: int = Field(
        default=24, ge=1, le=168, description="Suppress duplicate active alerts for N hours"
    )

    # Scheduler
    cron_secret: str = Field(default="", description="Shared secret for the X-CRON-TOKEN header")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=False, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def pagespeed_enabled(self) -> bool:
        """PageSpeed metrics are only collected when an API key is configured."""
        return bool(self.pagespeed_api_key)

    def require_site_url(self) -> str:
        """Return the Search Console site URL or raise ConfigurationError."""
        if not self.gsc_site_url:
            raise ConfigurationError("GSC_SITE_URL is not configured")
        return self.gsc_site_url

    def require_property_id(self) -> str:
        """Return the GA4 property ID or raise ConfigurationError."""
        if not self.ga4_property_id:
            raise ConfigurationError("GA4_PROPERTY_ID is not configured")
        return self.ga4_property_id


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; tests call get_settings.cache_clear() after changing env."""
    return Settings()
