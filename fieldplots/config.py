"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Observation store configuration
    observation_store_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL for the observation record store"
    )
    observation_store_api_key: str = Field(
        default="",
        description="API key for authentication against the record store"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for store calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Species accumulation parameters
    sac_default_iterations: int = Field(
        default=50,
        description="Number of random plot permutations used by the SAC estimator"
    )
    sac_max_iterations: int = Field(
        default=1000,
        description="Upper bound on SAC permutations accepted from callers"
    )
    sac_chunk_threshold: int = Field(
        default=10_000,
        description="Plot count x iterations above which permutations are evaluated in chunks"
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
        default="Field Plots Survey Analytics",
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
