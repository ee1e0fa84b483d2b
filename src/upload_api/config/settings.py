# src/upload_api/config/settings.py
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# S3 rejects non-final multipart parts smaller than this
MIN_UPLOAD_PART_SIZE_BYTES = 5 * 1024 * 1024
DEFAULT_UPLOAD_PART_SIZE_BYTES = 8 * 1024 * 1024

# Maximum length of an S3 object key, in bytes
DEFAULT_MAX_NAME_BYTES = 1024


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from upload_api.config.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="upload-api",
        description="Application name"
    )

    # Server
    api_host: str = Field(
        default="0.0.0.0",
        description="Address the HTTP server binds to"
    )

    api_port: int = Field(
        default=8000,
        description="Port the HTTP server listens on"
    )

    # Timeouts (seconds)
    #
    # read_timeout bounds the whole request body read. Uploads are copied
    # straight from the client connection into the bucket without local
    # temporary storage, so a large file over a slow link needs a large value.
    # 0 disables the limit.
    read_timeout: float = Field(
        default=60.0,
        ge=0,
        description="Total time allowed to read and store an upload (0 = no limit)"
    )

    write_timeout: float = Field(
        default=10.0,
        ge=0,
        description="Time allowed to finalize the stored object and answer (0 = no limit)"
    )

    idle_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Keep-alive timeout for idle connections"
    )

    # Cancelling a copy mid-stream leaves an incomplete upload behind, so this
    # should ideally match read_timeout.
    shutdown_timeout: float = Field(
        default=20.0,
        gt=0,
        description="Grace period for in-flight requests on shutdown"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Custom S3 endpoint, e.g. MinIO or a moto server"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        description="S3 bucket receiving the uploads"
    )

    upload_part_size_bytes: int = Field(
        default=DEFAULT_UPLOAD_PART_SIZE_BYTES,
        ge=MIN_UPLOAD_PART_SIZE_BYTES,
        description="Size of each multipart upload part; bounds per-request memory"
    )

    max_name_bytes: int = Field(
        default=DEFAULT_MAX_NAME_BYTES,
        gt=0,
        description="Maximum size of the override name field"
    )

    abort_incomplete_uploads: bool = Field(
        default=True,
        description="Abort the pending multipart upload when a copy fails"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('s3_bucket_name')
    @classmethod
    def validate_bucket_name(cls, v):
        """The bucket name is required and cannot be blank."""
        if not v or not v.strip():
            raise ValueError("s3_bucket_name must not be empty")
        return v.strip()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard logging levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()
        if level not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return level

    def get_environment_dict(self) -> dict:
        """Get configuration as a dictionary for display or subprocesses.

        Credentials are masked.

        Returns:
            Dictionary of environment variables
        """
        return {
            'APP_NAME': self.app_name,
            'API_HOST': self.api_host,
            'API_PORT': str(self.api_port),
            'READ_TIMEOUT': str(self.read_timeout),
            'WRITE_TIMEOUT': str(self.write_timeout),
            'IDLE_TIMEOUT': str(self.idle_timeout),
            'SHUTDOWN_TIMEOUT': str(self.shutdown_timeout),
            'S3_BUCKET_NAME': self.s3_bucket_name,
            'AWS_DEFAULT_REGION': self.aws_region,
            'AWS_ENDPOINT_URL': self.aws_endpoint_url or '',
            'AWS_ACCESS_KEY_ID': '***' if self.aws_access_key_id else '',
            'AWS_SECRET_ACCESS_KEY': '***' if self.aws_secret_access_key else '',
            'UPLOAD_PART_SIZE_BYTES': str(self.upload_part_size_bytes),
            'MAX_NAME_BYTES': str(self.max_name_bytes),
            'ABORT_INCOMPLETE_UPLOADS': str(self.abort_incomplete_uploads).lower(),
            'LOG_LEVEL': self.log_level,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
