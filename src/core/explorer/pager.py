"""
Paged listing of every object in a bucket.

Storage listing APIs return at most one page of keys per call plus an
opaque continuation token. The pager follows the tokens until the backend
reports no more pages and hands back one flat list of records.

Failure policy:
- Nothing is retried here
- The first failed page fails the whole listing
- Records from earlier pages are discarded, never returned partially

Pages are fetched strictly one after another because each request needs
the token from the previous response. Cancelling the awaiting task stops
the loop before the next request; a new listing always starts over from
the first page.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .models import RawRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class ListingError(Exception):
    """Raised when a bucket listing cannot be completed."""

    def __init__(self, message: str, bucket: str = "", code: Optional[str] = None) -> None:
        super().__init__(message)
        self.bucket = bucket
        self.code = code


class AccessDeniedError(ListingError):
    """Credentials are valid but lack permission to list the bucket."""
    pass


class BucketNotFoundError(ListingError):
    """The bucket does not exist or is unreachable for this identity."""
    pass


class InvalidCredentialsError(ListingError):
    """The access key / secret pair is malformed or was rejected."""
    pass


class TransientNetworkError(ListingError):
    """Any other failure while fetching a page."""
    pass


@dataclass
class ListingPage:
    """One page returned by a listing call."""
    records: list[RawRecord] = field(default_factory=list)
    is_truncated: bool = False
    next_continuation_token: Optional[str] = None


class ObjectLister(Protocol):
    """
    Anything that can return one page of a bucket listing.

    Implementations raise a ListingError subclass on failure. Other
    exceptions are treated as transient failures by the pager.
    """

    async def list_objects_page(
        self,
        bucket: str,
        continuation_token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> ListingPage:
        """Fetch one page of records, starting at continuation_token."""
        ...


async def collect_records(
    lister: ObjectLister,
    bucket: str,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[RawRecord]:
    """
    Fetch every page of ``bucket`` and return all records in listing order.

    Raises ListingError on the first failed page.
    """
    records: list[RawRecord] = []
    continuation_token: Optional[str] = None
    pages = 0

    while True:
        try:
            page = await lister.list_objects_page(
                bucket,
                continuation_token=continuation_token,
                page_size=page_size,
            )
        except ListingError:
            logger.error(
                "Bucket listing failed",
                extra={"bucket": bucket, "pages_fetched": pages},
            )
            raise
        except Exception as e:
            logger.error(
                "Bucket listing failed unexpectedly",
                extra={"bucket": bucket, "pages_fetched": pages, "error": str(e)},
            )
            raise TransientNetworkError(
                f"Failed to list bucket '{bucket}': {e}", bucket=bucket
            ) from e

        pages += 1
        records.extend(page.records)
        logger.debug(
            "Fetched listing page",
            extra={"bucket": bucket, "page": pages, "records": len(page.records)},
        )

        if not page.is_truncated:
            break

        if not page.next_continuation_token:
            # A truncated page without a token would loop on page one forever.
            raise TransientNetworkError(
                f"Listing of bucket '{bucket}' was truncated without a continuation token",
                bucket=bucket,
            )
        continuation_token = page.next_continuation_token

    logger.info(
        "Bucket listing complete",
        extra={"bucket": bucket, "pages": pages, "records": len(records)},
    )
    return records
