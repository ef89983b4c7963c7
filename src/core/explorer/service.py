"""
Bucket explorer: listing, tree snapshot, and uploads for one bucket.

The explorer ties the pager and tree builder to a storage backend:

    storage listing -> collect_records -> build_tree -> Forest snapshot

The snapshot is replaced wholesale on every refresh. Uploads never patch
the tree in place; a successful upload triggers a full refresh instead.

This module is framework-agnostic. It doesn't know about HTTP or boto3,
only about the ObjectStorage protocol below.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from .navigation import build_object_key
from .pager import DEFAULT_PAGE_SIZE, ListingError, ListingPage, collect_records
from .tree import Forest, build_tree

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_PRESIGN_EXPIRY_SECONDS = 900


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStorage(Protocol):
    """
    Interface for an object-storage backend.

    The explorer doesn't care whether this is S3, an S3-compatible
    service, or the in-memory mock used in tests.
    """

    async def list_objects_page(
        self,
        bucket: str,
        continuation_token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ListingPage:
        """Fetch one page of a bucket listing."""
        ...

    async def upload_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """Write an object directly."""
        ...

    async def get_presigned_upload_url(
        self,
        bucket: str,
        key: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> str:
        """Return a time-limited URL the browser can PUT the object to."""
        ...


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UploadResult:
    """Outcome of a proxied upload."""
    key: str
    size: int
    content_type: str
    refreshed: bool


@dataclass(frozen=True)
class PresignedUpload:
    """A pre-authorized direct upload target."""
    url: str
    key: str
    content_type: str
    expires_in: int
    method: str = "PUT"


# ---------------------------------------------------------------------------
# Explorer
# ---------------------------------------------------------------------------

class BucketExplorer:
    """
    Holds the latest tree for one bucket and performs uploads into it.

    refresh() always lists the bucket from the first page. If a listing
    fails, the previous snapshot is dropped so callers never browse a tree
    that no longer matches the bucket.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        bucket: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        presign_expiry_seconds: int = DEFAULT_PRESIGN_EXPIRY_SECONDS,
    ) -> None:
        if not bucket:
            raise ValueError("Bucket name is required")
        if page_size < 1:
            raise ValueError("page_size must be positive")

        self._storage = storage
        self._bucket = bucket
        self._page_size = page_size
        self._presign_expiry_seconds = presign_expiry_seconds
        self._forest: Optional[Forest] = None
        self._loaded_at: Optional[datetime] = None
        self._generation = 0

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def forest(self) -> Optional[Forest]:
        return self._forest

    @property
    def loaded_at(self) -> Optional[datetime]:
        return self._loaded_at

    @property
    def is_loaded(self) -> bool:
        return self._forest is not None

    async def refresh(self) -> Forest:
        """
        List the whole bucket and rebuild the tree.

        Raises ListingError if any page fails. Only the most recently
        started refresh may install its result, so a slow, older refresh
        cannot overwrite a newer tree.
        """
        self._generation += 1
        generation = self._generation

        try:
            records = await collect_records(
                self._storage, self._bucket, page_size=self._page_size
            )
        except ListingError:
            if generation == self._generation:
                self._forest = None
                self._loaded_at = None
            raise

        forest = build_tree(records)

        if generation == self._generation:
            self._forest = forest
            self._loaded_at = datetime.now(timezone.utc)

        logger.info(
            "Bucket tree refreshed",
            extra={"bucket": self._bucket, "records": len(records), "nodes": len(forest)},
        )
        return forest

    async def ensure_loaded(self) -> Forest:
        """Return the current tree, listing the bucket first if needed."""
        if self._forest is None:
            return await self.refresh()
        return self._forest

    async def upload(
        self,
        folder_key: str,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """
        Upload ``data`` as ``folder_key + filename`` and refresh the tree.

        The upload itself raises on failure. A failed refresh afterwards
        does not undo the upload; it is logged and reported through
        UploadResult.refreshed.
        """
        key = build_object_key(folder_key, filename)
        content_type = content_type or DEFAULT_CONTENT_TYPE

        await self._storage.upload_object(
            self._bucket, key, data, content_type=content_type
        )
        logger.info(
            "Uploaded object",
            extra={"bucket": self._bucket, "key": key, "size_bytes": len(data)},
        )

        refreshed = True
        try:
            await self.refresh()
        except ListingError as e:
            refreshed = False
            logger.warning(
                "Refresh after upload failed",
                extra={"bucket": self._bucket, "key": key, "error": str(e)},
            )

        return UploadResult(
            key=key,
            size=len(data),
            content_type=content_type,
            refreshed=refreshed,
        )

    async def presign_upload(
        self,
        folder_key: str,
        filename: str,
        content_type: Optional[str] = None,
    ) -> PresignedUpload:
        """Return a presigned PUT target for ``folder_key + filename``."""
        key = build_object_key(folder_key, filename)
        content_type = content_type or DEFAULT_CONTENT_TYPE

        url = await self._storage.get_presigned_upload_url(
            self._bucket,
            key,
            content_type=content_type,
            expiry_seconds=self._presign_expiry_seconds,
        )
        logger.info(
            "Generated presigned upload URL",
            extra={
                "bucket": self._bucket,
                "key": key,
                "expires_in": self._presign_expiry_seconds,
            },
        )

        return PresignedUpload(
            url=url,
            key=key,
            content_type=content_type,
            expires_in=self._presign_expiry_seconds,
        )
