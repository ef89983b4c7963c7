"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports mock mode for local development.
"""

from .settings import (
    BucketConfigPayload,
    ConfigurationError,
    Settings,
    get_settings,
    parse_bucket_config,
)

__all__ = [
    "BucketConfigPayload",
    "ConfigurationError",
    "Settings",
    "get_settings",
    "parse_bucket_config",
]
