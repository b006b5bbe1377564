"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="PostgreSQL+PostGIS async connection string",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )
    database_pool_size: int = Field(
        default=10,
        description="Connection pool size for the async engine",
        gt=0,
    )
    database_statement_timeout_ms: int | None = Field(
        default=30_000,
        description="Server-side statement timeout in milliseconds (unset to disable)",
        gt=0,
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Aggregation
    aggregation_concurrency: int = Field(
        default=8,
        description="Maximum number of per-combination count queries in flight at once",
        gt=0,
        le=64,
    )
    aggregation_query_timeout_seconds: float | None = Field(
        default=None,
        description="Optional client-side timeout for a single per-combination query",
        gt=0,
    )
    chart_years: str = Field(
        default="2004,2006,2008,2010,2012,2014,2016,2018,2020,2022,2024",
        description="Comma-separated election years used for over-time chart series",
    )

    @property
    def chart_year_list(self) -> list[int]:
        """Parse chart years string into a list of integers.

        Returns:
            List of election years in the configured order.

        Raises:
            ValueError: If an entry is not an integer.
        """
        if not self.chart_years.strip():
            return []
        return [int(y.strip()) for y in self.chart_years.split(",") if y.strip()]

    # Result cache
    result_cache_max_entries: int = Field(
        default=256,
        description="Maximum number of cached baseline results",
        gt=0,
    )
    result_cache_ttl_seconds: int = Field(
        default=3600,
        description="Time-to-live for cached baseline results in seconds",
        gt=0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    rate_limit_per_minute: int = Field(
        default=200,
        description="Maximum API requests per minute per IP address",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
