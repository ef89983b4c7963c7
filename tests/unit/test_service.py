"""
Unit tests for the BucketExplorer service.

Uses the in-memory MockStorageClient where a working backend is needed,
and small hand-written fakes where the test needs to control timing or
failures.
"""

import asyncio

import pytest

from src.core.explorer.models import FolderNode, RawRecord
from src.core.explorer.navigation import InvalidObjectNameError
from src.core.explorer.pager import AccessDeniedError, BucketNotFoundError, ListingPage
from src.core.explorer.service import BucketExplorer, DEFAULT_CONTENT_TYPE
from src.infrastructure.storage.client import MockStorageClient


class ListingFailsStorage(MockStorageClient):
    """Accepts uploads but refuses to list."""

    async def list_objects_page(self, bucket, continuation_token=None, page_size=1000):
        raise AccessDeniedError("denied", bucket=bucket, code="AccessDenied")


class ControlledStorage:
    """Listing calls block until the test resolves them, one future per call."""

    def __init__(self):
        self.pending: list[asyncio.Future] = []

    async def list_objects_page(self, bucket, continuation_token=None, page_size=1000):
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future


def single_page(*keys: str) -> ListingPage:
    return ListingPage(records=[RawRecord(key=key, size=1) for key in keys])


@pytest.fixture
def storage() -> MockStorageClient:
    client = MockStorageClient()
    client.seed_demo_objects()
    return client


@pytest.fixture
def explorer(storage) -> BucketExplorer:
    return BucketExplorer(storage=storage, bucket="demo-bucket", page_size=2)


class TestConstruction:
    def test_requires_bucket(self, storage):
        with pytest.raises(ValueError, match="Bucket name"):
            BucketExplorer(storage=storage, bucket="")

    def test_requires_positive_page_size(self, storage):
        with pytest.raises(ValueError):
            BucketExplorer(storage=storage, bucket="b", page_size=0)

    def test_starts_unloaded(self, explorer):
        assert explorer.is_loaded is False
        assert explorer.forest is None
        assert explorer.loaded_at is None


class TestRefresh:
    """Tests for listing and rebuilding the tree."""

    def test_refresh_builds_demo_tree(self, explorer, storage):
        forest = asyncio.run(explorer.refresh())

        assert explorer.is_loaded
        assert explorer.forest is forest
        assert explorer.loaded_at is not None
        # Six objects across three pages of two.
        assert storage.list_calls == 3
        assert [node.key for node in forest.roots] == [
            "README.md", "documents/", "empty_folder/", "images/",
        ]
        assert isinstance(forest.get("documents/archive/"), FolderNode)
        assert forest.children_of("empty_folder/") == []

    def test_ensure_loaded_lists_once(self, explorer, storage):
        first = asyncio.run(explorer.ensure_loaded())
        second = asyncio.run(explorer.ensure_loaded())

        assert first is second
        assert storage.list_calls == 3

    def test_refresh_picks_up_new_objects(self, explorer, storage):
        asyncio.run(explorer.refresh())
        storage.put("new/file.txt", size=3)

        forest = asyncio.run(explorer.refresh())

        assert "new/file.txt" in forest

    def test_failed_refresh_drops_snapshot(self, storage):
        explorer = BucketExplorer(storage=storage, bucket="demo-bucket")
        asyncio.run(explorer.refresh())

        storage._bucket_name = "another-bucket"
        with pytest.raises(BucketNotFoundError):
            asyncio.run(explorer.refresh())

        assert explorer.forest is None
        assert explorer.is_loaded is False

    def test_older_refresh_cannot_overwrite_newer(self):
        storage = ControlledStorage()
        explorer = BucketExplorer(storage=storage, bucket="b")

        async def scenario():
            older = asyncio.create_task(explorer.refresh())
            await asyncio.sleep(0)
            newer = asyncio.create_task(explorer.refresh())
            await asyncio.sleep(0)

            storage.pending[1].set_result(single_page("new.txt"))
            await newer
            storage.pending[0].set_result(single_page("old.txt"))
            await older

        asyncio.run(scenario())

        assert "new.txt" in explorer.forest
        assert "old.txt" not in explorer.forest


class TestUpload:
    """Tests for proxied uploads."""

    def test_upload_stores_and_refreshes(self, explorer, storage):
        asyncio.run(explorer.refresh())

        result = asyncio.run(explorer.upload("documents/", "notes.txt", b"hello", "text/plain"))

        assert result.key == "documents/notes.txt"
        assert result.size == 5
        assert result.content_type == "text/plain"
        assert result.refreshed is True
        assert storage.get("documents/notes.txt").data == b"hello"
        assert "documents/notes.txt" in explorer.forest

    def test_upload_to_root(self, explorer, storage):
        result = asyncio.run(explorer.upload("", "top.txt", b"x"))

        assert result.key == "top.txt"
        assert result.content_type == DEFAULT_CONTENT_TYPE
        assert explorer.forest.get("top.txt") in explorer.forest.roots

    def test_invalid_filename_uploads_nothing(self, explorer, storage):
        keys_before = storage.keys

        with pytest.raises(InvalidObjectNameError):
            asyncio.run(explorer.upload("documents/", "../escape.txt", b"x"))

        assert storage.keys == keys_before

    def test_refresh_failure_after_upload_is_reported(self):
        storage = ListingFailsStorage()
        explorer = BucketExplorer(storage=storage, bucket="b")

        result = asyncio.run(explorer.upload("", "a.txt", b"data"))

        assert result.refreshed is False
        assert storage.get("a.txt") is not None
        assert explorer.forest is None


class TestPresignUpload:
    def test_presign_upload(self, storage):
        explorer = BucketExplorer(
            storage=storage, bucket="demo-bucket", presign_expiry_seconds=120
        )

        presigned = asyncio.run(explorer.presign_upload("images", "cat.png", "image/png"))

        assert presigned.key == "images/cat.png"
        assert presigned.method == "PUT"
        assert presigned.expires_in == 120
        assert presigned.content_type == "image/png"
        assert presigned.url == "mock://storage/demo-bucket/images/cat.png?expires=120"

    def test_presign_defaults_content_type(self, explorer):
        presigned = asyncio.run(explorer.presign_upload("", "blob"))
        assert presigned.content_type == DEFAULT_CONTENT_TYPE
