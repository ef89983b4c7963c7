"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
A bucket can also be configured at runtime from a JSON document with the
camelCase keys the browser sends (bucketName, region, accessKeyId,
secretAccessKey).

Mock mode enables local development without a real bucket.
"""

import json
from functools import lru_cache
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.storage.client import StorageConfig

MOCK_BUCKET_NAME = "demo-bucket"


class ConfigurationError(Exception):
    """Raised when a bucket configuration is missing fields or malformed."""

    def __init__(self, message: str, missing_fields: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Bucket Explorer API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. A list allows key rotation without downtime."
    )

    # S3 Storage Configuration
    s3_bucket_name: str = Field(
        default="",
        description="Bucket to browse"
    )
    s3_region: str = Field(
        default="us-east-1",
        description="Region the bucket lives in"
    )
    s3_access_key_id: str = Field(
        default="",
        description="Access key ID"
    )
    s3_secret_access_key: str = Field(
        default="",
        description="Secret access key"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for S3-compatible services (R2, MinIO). Leave unset for AWS S3."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real bucket. Enables local dev without object storage."
    )

    # Listing and Upload Behavior
    listing_page_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Keys requested per listing page (S3 caps this at 1000)."
    )
    presigned_url_expiry_seconds: int = Field(
        default=900,
        ge=1,
        le=604800,
        description="Lifetime of presigned upload URLs. 15 minutes by default."
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum size of a proxied upload in MB."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def bucket_name(self) -> str:
        """Configured bucket, falling back to a demo name in mock mode."""
        if not self.s3_bucket_name and self.s3_mock_mode:
            return MOCK_BUCKET_NAME
        return self.s3_bucket_name

    def storage_config(self) -> StorageConfig:
        """Build the storage connection config from these settings."""
        return StorageConfig(
            access_key_id=self.s3_access_key_id,
            secret_access_key=self.s3_secret_access_key,
            bucket_name=self.bucket_name,
            region=self.s3_region,
            endpoint_url=self.s3_endpoint_url,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        # Storage settings only required if not in mock mode
        if not self.s3_mock_mode:
            if not self.s3_bucket_name:
                missing.append("S3_BUCKET_NAME")
            if not self.s3_region:
                missing.append("S3_REGION")
            if not self.s3_access_key_id:
                missing.append("S3_ACCESS_KEY_ID")
            if not self.s3_secret_access_key:
                missing.append("S3_SECRET_ACCESS_KEY")

        return missing


class BucketConfigPayload(BaseModel):
    """
    Bucket configuration as uploaded by the browser.

    Accepts the camelCase keys of the configuration file format as well as
    the snake_case field names.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    bucket_name: str = Field(default="", alias="bucketName")
    region: str = Field(default="")
    access_key_id: str = Field(default="", alias="accessKeyId")
    secret_access_key: str = Field(default="", alias="secretAccessKey")
    endpoint_url: Optional[str] = Field(default=None, alias="endpointUrl")

    def missing_fields(self) -> list[str]:
        required = {
            "bucketName": self.bucket_name,
            "region": self.region,
            "accessKeyId": self.access_key_id,
            "secretAccessKey": self.secret_access_key,
        }
        return [name for name, value in required.items() if not value]

    def to_storage_config(self) -> StorageConfig:
        """Return a StorageConfig, raising ConfigurationError if fields are missing."""
        missing = self.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Invalid configuration. Missing required fields: {', '.join(missing)}.",
                missing_fields=missing,
            )
        return StorageConfig(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            bucket_name=self.bucket_name,
            region=self.region,
            endpoint_url=self.endpoint_url or None,
        )


def parse_bucket_config(source: str | bytes | dict[str, Any]) -> StorageConfig:
    """
    Parse a JSON bucket configuration into a StorageConfig.

    Example document:
        {
          "bucketName": "your-s3-bucket-name",
          "region": "your-bucket-region",
          "accessKeyId": "your-aws-access-key-id",
          "secretAccessKey": "your-aws-secret-access-key"
        }

    Raises ConfigurationError for malformed JSON or missing fields.
    """
    if isinstance(source, dict):
        data = source
    else:
        try:
            data = json.loads(source)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Configuration is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    try:
        payload = BucketConfigPayload.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e.error_count()} invalid field(s)") from e

    return payload.to_storage_config()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
