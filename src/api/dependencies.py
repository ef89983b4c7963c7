"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never build their own storage clients, which
keeps them easy to test with dependency overrides.

The active BucketExplorer is shared across requests: it holds the tree
snapshot users navigate between refreshes. Changing the bucket
configuration swaps it for a new explorer.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.explorer.service import BucketExplorer, ObjectStorage
from ..infrastructure.storage.client import StorageConfig, create_storage_client

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared instances (persist across requests)
_mock_storage_client: Optional[ObjectStorage] = None
_active_explorer: Optional[BucketExplorer] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def _shared_mock_storage() -> ObjectStorage:
    global _mock_storage_client

    if _mock_storage_client is None:
        _mock_storage_client = create_storage_client(mock_mode=True, seed_demo=True)
        logger.info("Created shared mock storage client for session")
    return _mock_storage_client


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStorage:
    """
    Provide storage client for listings and uploads.

    Returns either an S3 client or the shared mock client based on settings.
    In mock mode the same client is reused so uploads persist.
    """
    if settings.s3_mock_mode:
        logger.debug("Using shared mock storage client")
        return _shared_mock_storage()

    client = create_storage_client(config=settings.storage_config())
    logger.debug("Created S3 storage client")
    return client


def build_explorer(settings: Settings, config: StorageConfig) -> BucketExplorer:
    """Create an explorer for ``config`` using the storage mode in settings."""
    if settings.s3_mock_mode:
        storage = _shared_mock_storage()
    else:
        storage = create_storage_client(config=config)

    return BucketExplorer(
        storage=storage,
        bucket=config.bucket_name,
        page_size=settings.listing_page_size,
        presign_expiry_seconds=settings.presigned_url_expiry_seconds,
    )


def set_active_explorer(explorer: Optional[BucketExplorer]) -> None:
    """Replace the shared explorer. The old tree snapshot is discarded."""
    global _active_explorer
    _active_explorer = explorer
    if explorer is not None:
        logger.info("Active bucket changed", extra={"bucket": explorer.bucket})


def get_explorer(
    settings: Annotated[Settings, Depends(get_settings)],
) -> BucketExplorer:
    """
    Provide the shared BucketExplorer.

    Created on first use for the bucket named in settings, unless a bucket
    configuration was uploaded earlier.
    """
    global _active_explorer

    if _active_explorer is None:
        bucket = settings.bucket_name
        if not bucket:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No bucket configured. Upload a bucket configuration first.",
            )
        _active_explorer = BucketExplorer(
            storage=get_storage_client(settings),
            bucket=bucket,
            page_size=settings.listing_page_size,
            presign_expiry_seconds=settings.presigned_url_expiry_seconds,
        )
        logger.info("Created bucket explorer", extra={"bucket": bucket})

    return _active_explorer


def reset_shared_state() -> None:
    """Drop shared mock storage and explorer (used by tests)."""
    global _mock_storage_client, _active_explorer
    _mock_storage_client = None
    _active_explorer = None


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
ExplorerDep = Annotated[BucketExplorer, Depends(get_explorer)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
