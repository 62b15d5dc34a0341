"""
Application configuration using Pydantic Settings.
All environment variables are loaded here with sensible defaults.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "dev"
    log_level: str = "INFO"

    # S3-compatible object storage (IBM COS, R2, MinIO, AWS S3)
    # Only the gateway reads these; the rest of the app receives a gateway instance
    storage_endpoint: Optional[str] = None  # e.g., https://s3.us-south.cloud-object-storage.appdomain.cloud
    storage_access_key: Optional[str] = None  # HMAC access key ID
    storage_secret_key: Optional[str] = None  # HMAC secret access key
    storage_region: str = "us-south"
    storage_addressing_style: str = "path"

    # Presigned URL expirations in seconds
    presign_upload_expiration: int = 600  # single-object PUT (10 min)
    presign_download_expiration: int = 300  # GET (5 min)
    presign_part_expiration: int = 3600  # multipart part PUT (1 hour)

    # Multipart uploads
    multipart_chunk_size: int = 5 * 1024 * 1024  # S3 minimum part size (except last part)
    multipart_max_parts: int = 10000  # S3 hard limit

    # HTTP
    cors_origins: List[str] = ["*"]

    # Upload client (CLI)
    api_url: str = "http://localhost:3030/api"
    client_timeout: float = 300.0
    client_concurrency: int = 8  # parts uploaded at the same time

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def storage_configured(self) -> bool:
        """True when endpoint and HMAC credentials are all present."""
        return all([
            self.storage_endpoint,
            self.storage_access_key,
            self.storage_secret_key,
        ])


# Global settings instance
settings = Settings()
