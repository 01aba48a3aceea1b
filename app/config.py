"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Dataset Store Configuration
    data_store_path: str = Field(
        default="data/contract_store.json",
        description="JSON file holding loaded datasets and selection filters"
    )
    max_import_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Maximum size of an imported JSON document in bytes"
    )

    # Retry Configuration
    store_write_retry_attempts: int = Field(
        default=3,
        description="Maximum number of attempts when writing the store file"
    )
    store_write_retry_min_wait: float = Field(
        default=0.1,
        description="Minimum wait time in seconds between write retries"
    )
    store_write_retry_max_wait: float = Field(
        default=2.0,
        description="Maximum wait time in seconds between write retries"
    )

    # Analysis Parameters
    amount_percentage_decimals: int = Field(
        default=1,
        description="Decimal places used when reporting percentage shares"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Maintenance Contract Analytics",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
