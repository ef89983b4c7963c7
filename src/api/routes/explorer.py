"""
Bucket browsing API endpoints.

The browser works against a tree snapshot:
1. Configure a bucket (PUT /config) or use the one from settings
2. Fetch the tree (GET /tree) or one folder at a time (GET /folders)
3. Inspect a file (GET /objects)
4. Refresh (POST /refresh) after uploads made with presigned URLs

Every listing rebuilds the whole tree from the first page.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...config.settings import BucketConfigPayload
from ...core.explorer.models import FileNode, FolderNode, Node
from ...core.explorer.navigation import breadcrumb, format_bytes, normalize_folder_key, parent_path
from ..dependencies import (
    AuthenticatedUser,
    ExplorerDep,
    SettingsDep,
    build_explorer,
    set_active_explorer,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class TreeNode(BaseModel):
    """A file or folder in the bucket tree."""
    type: str = Field(description="'file' or 'folder'")
    name: str = Field(description="Last path segment")
    key: str = Field(description="Full object key (folders end in '/')")
    path: str = Field(description="Same as key")
    size: Optional[int] = Field(None, description="Size in bytes (files only)")
    last_modified: Optional[datetime] = Field(None, description="Last modified time (files only)")
    child_count: Optional[int] = Field(None, description="Number of direct children (folders only)")
    children: Optional[list["TreeNode"]] = Field(None, description="Nested nodes (full tree only)")


class TreeResponse(BaseModel):
    """The whole bucket as a tree."""
    bucket: str = Field(description="Bucket name")
    loaded_at: Optional[datetime] = Field(None, description="When the tree was built")
    node_count: int = Field(description="Total files and folders")
    items: list[TreeNode] = Field(description="Top-level nodes")


class FolderListingResponse(BaseModel):
    """Direct children of one folder."""
    bucket: str = Field(description="Bucket name")
    key: str = Field(description="Folder key ('' for root)")
    parent_key: Optional[str] = Field(None, description="Folder one level up (None at root)")
    breadcrumb: str = Field(description="Readable location, e.g. 'Root > documents'")
    items: list[TreeNode] = Field(description="Folders and files in encounter order")


class FileInfoResponse(BaseModel):
    """Metadata for a single file."""
    name: str = Field(description="File name")
    key: str = Field(description="Full object key")
    path: str = Field(description="Same as key")
    size: int = Field(description="Size in bytes")
    size_display: str = Field(description="Human-readable size")
    last_modified: datetime = Field(description="Last modified time")
    folder_key: str = Field(description="Containing folder ('' for root)")


class RefreshResponse(BaseModel):
    """Result of a full listing."""
    bucket: str = Field(description="Bucket name")
    node_count: int = Field(description="Total files and folders")
    loaded_at: Optional[datetime] = Field(None, description="When the tree was built")


class BucketConfigResponse(BaseModel):
    """Active bucket after a configuration change."""
    bucket: str = Field(description="Bucket name")
    region: str = Field(description="Bucket region")
    node_count: int = Field(description="Total files and folders found")
    message: str = Field(description="Status message")


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def to_tree_node(node: Node, recursive: bool = True) -> TreeNode:
    """Convert a domain node into its response model."""
    if isinstance(node, FileNode):
        return TreeNode(
            type=node.type,
            name=node.name,
            key=node.key,
            path=node.path,
            size=node.size,
            last_modified=node.last_modified,
        )

    return TreeNode(
        type=node.type,
        name=node.name,
        key=node.key,
        path=node.path,
        child_count=len(node.children),
        children=[to_tree_node(child) for child in node.children] if recursive else None,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.put(
    "/config",
    response_model=BucketConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Configure bucket",
    description="Point the explorer at a bucket and list it",
)
async def configure_bucket(
    payload: BucketConfigPayload,
    api_key: AuthenticatedUser = None,
    settings: SettingsDep = None,
) -> BucketConfigResponse:
    """
    Switch to the bucket described by ``payload``.

    Fields use the configuration file format: bucketName, region,
    accessKeyId, secretAccessKey (and optionally endpointUrl).
    The bucket is listed right away so bad credentials surface here.
    On failure, no bucket stays active.
    """
    config = payload.to_storage_config()
    explorer = build_explorer(settings, config)

    logger.info(
        "Bucket configuration received",
        extra={
            "bucket": config.bucket_name,
            "region": config.region,
            "key_prefix": config.access_key_id[:4],
        }
    )

    set_active_explorer(None)
    forest = await explorer.refresh()
    set_active_explorer(explorer)

    return BucketConfigResponse(
        bucket=config.bucket_name,
        region=config.region,
        node_count=len(forest),
        message=f"Configuration loaded. Bucket: {config.bucket_name}, Region: {config.region}",
    )


@router.post(
    "/refresh",
    response_model=RefreshResponse,
    status_code=status.HTTP_200_OK,
    summary="Rebuild tree",
    description="List the whole bucket again and rebuild the tree",
)
async def refresh_tree(
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
) -> RefreshResponse:
    forest = await explorer.refresh()
    return RefreshResponse(
        bucket=explorer.bucket,
        node_count=len(forest),
        loaded_at=explorer.loaded_at,
    )


@router.get(
    "/tree",
    response_model=TreeResponse,
    status_code=status.HTTP_200_OK,
    summary="Get bucket tree",
    description="Return every file and folder as a nested tree",
)
async def get_tree(
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
) -> TreeResponse:
    """Return the current tree, listing the bucket first if needed."""
    forest = await explorer.ensure_loaded()
    return TreeResponse(
        bucket=explorer.bucket,
        loaded_at=explorer.loaded_at,
        node_count=len(forest),
        items=[to_tree_node(node) for node in forest.roots],
    )


@router.get(
    "/folders",
    response_model=FolderListingResponse,
    status_code=status.HTTP_200_OK,
    summary="List folder",
    description="Return the direct children of one folder",
)
async def list_folder(
    key: str = Query("", description="Folder key; empty for the bucket root"),
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
) -> FolderListingResponse:
    forest = await explorer.ensure_loaded()
    folder_key = normalize_folder_key(key)

    try:
        children = forest.children_of(folder_key)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Folder not found: {key}",
        )

    return FolderListingResponse(
        bucket=explorer.bucket,
        key=folder_key,
        parent_key=parent_path(folder_key) if folder_key else None,
        breadcrumb=breadcrumb(folder_key),
        items=[to_tree_node(child, recursive=False) for child in children],
    )


@router.get(
    "/objects",
    response_model=FileInfoResponse,
    status_code=status.HTTP_200_OK,
    summary="Get file info",
    description="Return size, last modified time and full key of one file",
)
async def get_file_info(
    key: str = Query(..., min_length=1, description="Full object key"),
    api_key: AuthenticatedUser = None,
    explorer: ExplorerDep = None,
) -> FileInfoResponse:
    forest = await explorer.ensure_loaded()
    node = forest.get(key)

    if isinstance(node, FolderNode):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"'{key}' is a folder. Use /folders to list it.",
        )
    if node is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {key}",
        )

    return FileInfoResponse(
        name=node.name,
        key=node.key,
        path=node.path,
        size=node.size,
        size_display=format_bytes(node.size),
        last_modified=node.last_modified,
        folder_key=parent_path(node.key),
    )
