"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "dev"
    log_level: str = "INFO"

    # S3 / S3-compatible storage
    # Credentials left unset fall back to the boto3 default chain
    # (environment variables, ~/.aws profile files, instance metadata)
    s3_bucket_name: str  # Required, the single bucket this service manages
    s3_endpoint: Optional[str] = None  # Only for S3-compatible stores (MinIO, R2, ...)
    s3_region: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_addressing_style: str = "auto"  # "auto", "path" or "virtual"
    s3_max_attempts: Optional[int] = None  # boto3 retry budget, None keeps SDK default
    s3_connect_timeout: int = 10  # seconds
    s3_read_timeout: int = 60  # seconds

    # Number of concurrent object reads when loading a directory
    storage_read_concurrency: int = 4

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
