"""
Object storage client for bucket browsing and uploads.

Supports AWS S3 and S3-compatible services (R2, MinIO) through boto3, with
a mock mode for local development.

The S3 client:
- Lists one page at a time with ListObjectsV2 and continuation tokens
- Uploads objects directly (proxy mode) or presigns a PUT for the browser
- Translates botocore errors into the listing error kinds the core expects

Mock mode keeps objects in memory, enabling API testing without
provisioning a bucket.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from src.core.explorer.models import RawRecord
from src.core.explorer.pager import (
    DEFAULT_PAGE_SIZE,
    AccessDeniedError,
    BucketNotFoundError,
    InvalidCredentialsError,
    ListingError,
    ListingPage,
    TransientNetworkError,
)
from src.core.explorer.service import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ObjectStorage,
)

logger = logging.getLogger(__name__)

ACCESS_DENIED_CODES = frozenset({"AccessDenied", "AllAccessDisabled", "403"})
BUCKET_NOT_FOUND_CODES = frozenset({"NoSuchBucket", "404"})
INVALID_CREDENTIALS_CODES = frozenset({
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "AuthFailure",
    "ExpiredToken",
    "InvalidToken",
    "InvalidClientTokenId",
})


class StorageError(Exception):
    """Raised when an upload or presign operation fails."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class StorageConfig:
    """
    Connection details for one bucket.

    endpoint_url is only needed for S3-compatible services; leave it unset
    for AWS S3.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _client_error_code(error: ClientError) -> str:
    code = error.response.get("Error", {}).get("Code", "")
    if code:
        return str(code)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(status) if status else "Unknown"


def translate_listing_error(error: Exception, bucket: str) -> ListingError:
    """Map a boto3/botocore exception to one of the listing error kinds."""
    if isinstance(error, ListingError):
        return error

    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return InvalidCredentialsError(
            "No valid credentials were provided. Check your Access Key ID and Secret Access Key.",
            bucket=bucket,
            code="NoCredentials",
        )

    if isinstance(error, ClientError):
        code = _client_error_code(error)
        if code in ACCESS_DENIED_CODES:
            return AccessDeniedError(
                f"Access denied listing bucket '{bucket}'. Check that your identity has s3:ListBucket permission.",
                bucket=bucket,
                code=code,
            )
        if code in BUCKET_NOT_FOUND_CODES:
            return BucketNotFoundError(
                f"Bucket '{bucket}' not found.",
                bucket=bucket,
                code=code,
            )
        if code in INVALID_CREDENTIALS_CODES:
            return InvalidCredentialsError(
                "Invalid credentials. Check your Access Key ID and Secret Access Key.",
                bucket=bucket,
                code=code,
            )
        return TransientNetworkError(
            f"Failed to list bucket '{bucket}': {code}",
            bucket=bucket,
            code=code,
        )

    return TransientNetworkError(
        f"Failed to list bucket '{bucket}': {error}",
        bucket=bucket,
    )


def _describe_write_error(error: Exception, bucket: str, action: str) -> StorageError:
    """Build a user-facing StorageError for a failed upload or presign."""
    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return StorageError(
            "No valid credentials were provided. Check your Access Key ID and Secret Access Key.",
            code="NoCredentials",
        )

    if isinstance(error, ClientError):
        code = _client_error_code(error)
        if code in ACCESS_DENIED_CODES:
            message = (
                "Access denied. Check that your identity has s3:PutObject "
                "permission on the bucket or prefix."
            )
        elif code in BUCKET_NOT_FOUND_CODES:
            message = f"Bucket '{bucket}' not found. Check the bucket name."
        elif code in INVALID_CREDENTIALS_CODES:
            message = "Invalid credentials. Check your Access Key ID and Secret Access Key."
        else:
            message = f"Failed to {action}: {code}"
        return StorageError(message, code=code)

    return StorageError(f"Failed to {action}: {error}")


# ---------------------------------------------------------------------------
# S3 Storage
# ---------------------------------------------------------------------------

class S3StorageClient(ObjectStorage):
    """
    S3 and S3-compatible storage client.

    boto3 is synchronous, so each call runs in a worker thread via
    asyncio.to_thread. Cancelling the awaiting task therefore stops the
    pager between pages instead of blocking the event loop.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

        s3_options = {"addressing_style": "path"} if config.endpoint_url else {}
        boto_config = Config(
            signature_version="s3v4",
            s3=s3_options,
        )

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url or "aws",
            }
        )

    @property
    def config(self) -> StorageConfig:
        return self._config

    async def list_objects_page(
        self,
        bucket: str,
        continuation_token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ListingPage:
        """Fetch one ListObjectsV2 page."""
        return await asyncio.to_thread(
            self._list_objects_page, bucket, continuation_token, page_size
        )

    def _list_objects_page(
        self,
        bucket: str,
        continuation_token: Optional[str],
        page_size: int,
    ) -> ListingPage:
        kwargs = {
            "Bucket": bucket,
            "MaxKeys": page_size,
        }
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token

        try:
            response = self._s3_client.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            error = translate_listing_error(e, bucket)
            logger.error(
                "Failed to list objects",
                extra={"bucket": bucket, "code": error.code, "error": str(e)},
            )
            raise error from e

        records = []
        for entry in response.get("Contents", []):
            key = entry.get("Key")
            if not key:
                continue
            records.append(
                RawRecord(
                    key=key,
                    size=int(entry.get("Size") or 0),
                    last_modified=entry.get("LastModified"),
                )
            )

        is_truncated = bool(response.get("IsTruncated"))
        return ListingPage(
            records=records,
            is_truncated=is_truncated,
            next_continuation_token=response.get("NextContinuationToken") if is_truncated else None,
        )

    async def upload_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Write an object with PutObject."""
        await asyncio.to_thread(self._upload_object, bucket, key, data, content_type)

    def _upload_object(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        try:
            self._s3_client.put_object(
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise _describe_write_error(e, bucket, "upload file") from e

        logger.debug(
            "Uploaded object",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)},
        )

    async def get_presigned_upload_url(
        self,
        bucket: str,
        key: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> str:
        """
        Generate a time-limited PUT URL.

        The signature covers ContentType, so the browser must send the same
        Content-Type header when it uploads.
        """
        try:
            return self._s3_client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": bucket,
                    "Key": key,
                    "ContentType": content_type,
                },
                ExpiresIn=expiry_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)},
            )
            raise _describe_write_error(e, bucket, "generate upload URL") from e


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class MockObject:
    """An object held by MockStorageClient."""
    size: int
    last_modified: datetime
    content_type: str = DEFAULT_CONTENT_TYPE
    data: bytes = field(default=b"", repr=False)


DEMO_OBJECTS: list[tuple[str, int, datetime]] = [
    ("documents/report.docx", 1024 * 256, datetime(2023, 10, 15, 10, 30, tzinfo=timezone.utc)),
    ("documents/archive/old_data.zip", 1024 * 1024 * 5, datetime(2022, 1, 20, 14, 0, tzinfo=timezone.utc)),
    ("images/photo1.jpg", 1024 * 1024 * 2, datetime(2023, 11, 1, 9, 15, tzinfo=timezone.utc)),
    ("images/logo.png", 1024 * 50, datetime(2023, 9, 1, 17, 45, tzinfo=timezone.utc)),
    ("README.md", 1024 * 2, datetime(2023, 11, 10, 12, 0, tzinfo=timezone.utc)),
    ("empty_folder/", 0, datetime(2023, 8, 1, 8, 0, tzinfo=timezone.utc)),
]


class MockStorageClient(ObjectStorage):
    """
    In-memory storage for local development and tests.

    Listings come back in key order, split into pages of page_size with
    the offset of the next page as the continuation token, so the pager
    sees real pagination. If bucket_name is set, any other bucket is
    reported as missing.
    """

    def __init__(self, bucket_name: Optional[str] = None) -> None:
        self._bucket_name = bucket_name
        self._objects: dict[str, MockObject] = {}
        self.list_calls = 0
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def keys(self) -> list[str]:
        return sorted(self._objects)

    def get(self, key: str) -> Optional[MockObject]:
        return self._objects.get(key)

    def put(
        self,
        key: str,
        size: Optional[int] = None,
        last_modified: Optional[datetime] = None,
        data: bytes = b"",
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Store an object without going through the async API."""
        self._objects[key] = MockObject(
            size=len(data) if size is None else size,
            last_modified=last_modified or datetime.now(timezone.utc),
            content_type=content_type,
            data=data,
        )

    def seed_demo_objects(self) -> None:
        """Load a small demo bucket with nested folders and an empty folder marker."""
        for key, size, last_modified in DEMO_OBJECTS:
            self.put(key, size=size, last_modified=last_modified)
        logger.debug("Seeded mock storage", extra={"count": len(DEMO_OBJECTS)})

    def _check_bucket(self, bucket: str) -> None:
        if self._bucket_name is not None and bucket != self._bucket_name:
            raise BucketNotFoundError(
                f"Bucket '{bucket}' not found.", bucket=bucket, code="NoSuchBucket"
            )

    async def list_objects_page(
        self,
        bucket: str,
        continuation_token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ListingPage:
        """Return one page of the stored keys."""
        self._check_bucket(bucket)
        self.list_calls += 1

        try:
            offset = int(continuation_token) if continuation_token else 0
        except ValueError:
            raise TransientNetworkError(
                f"Invalid continuation token: {continuation_token}",
                bucket=bucket,
                code="InvalidArgument",
            )

        keys = self.keys
        window = keys[offset:offset + page_size]
        next_offset = offset + len(window)
        is_truncated = next_offset < len(keys)

        records = [
            RawRecord(
                key=key,
                size=self._objects[key].size,
                last_modified=self._objects[key].last_modified,
            )
            for key in window
        ]

        return ListingPage(
            records=records,
            is_truncated=is_truncated,
            next_continuation_token=str(next_offset) if is_truncated else None,
        )

    async def upload_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Store an object in memory."""
        if self._bucket_name is not None and bucket != self._bucket_name:
            raise StorageError(f"Bucket '{bucket}' not found. Check the bucket name.", code="NoSuchBucket")

        self.put(key, data=data, content_type=content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)},
        )

    async def get_presigned_upload_url(
        self,
        bucket: str,
        key: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> str:
        """Return a placeholder URL; nothing listens on it."""
        if self._bucket_name is not None and bucket != self._bucket_name:
            raise StorageError(f"Bucket '{bucket}' not found. Check the bucket name.", code="NoSuchBucket")

        return f"mock://storage/{bucket}/{key}?expires={expiry_seconds}"


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    seed_demo: bool = False,
) -> ObjectStorage:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return an in-memory client
        seed_demo: In mock mode, preload the demo objects

    Returns:
        ObjectStorage implementation (S3 or Mock)
    """
    if mock_mode:
        client = MockStorageClient()
        if seed_demo:
            client.seed_demo_objects()
        return client

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
