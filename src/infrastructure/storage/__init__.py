"""
Object storage integration for bucket browsing and uploads.

Supports AWS S3 and S3-compatible services (R2, MinIO) via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    StorageError,
    create_storage_client,
    translate_listing_error,
)

__all__ = [
    "MockStorageClient",
    "S3StorageClient",
    "StorageConfig",
    "StorageError",
    "create_storage_client",
    "translate_listing_error",
]
