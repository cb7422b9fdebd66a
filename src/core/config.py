"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="laundry-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Requests
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")

    # Access tokens (issued by the auth service, verified here)
    jwt_secret: str = Field(..., description="Shared secret used to verify access tokens")
    jwt_algorithm: str = Field(default="HS256", description="Access token signing algorithm")

    # Customers
    default_country_code: str = Field(default="+84", description="Country code applied to local phone numbers")

    # Orders
    default_page_size: int = Field(default=10, description="Default page size for order listings")

    # Reporting
    stats_daily_limit: int = Field(default=30, description="Number of daily revenue buckets returned")
    stats_top_customers_limit: int = Field(default=10, description="Number of top customers returned")
    stats_page_size: int = Field(default=1000, description="Rows fetched per request when aggregating")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
