"""
Bucket browsing logic.

Contains the listing pager, the key-to-tree builder, navigation helpers,
and the explorer service that ties them together.
"""

from .models import (
    FileNode,
    FileRecord,
    FolderMarker,
    FolderNode,
    Node,
    RawRecord,
    classify_record,
)
from .pager import (
    AccessDeniedError,
    BucketNotFoundError,
    InvalidCredentialsError,
    ListingError,
    ListingPage,
    ObjectLister,
    TransientNetworkError,
    collect_records,
)
from .tree import Forest, TreeBuilder, build_tree
from .service import BucketExplorer, ObjectStorage, PresignedUpload, UploadResult

__all__ = [
    "FileNode",
    "FileRecord",
    "FolderMarker",
    "FolderNode",
    "Node",
    "RawRecord",
    "classify_record",
    "AccessDeniedError",
    "BucketNotFoundError",
    "InvalidCredentialsError",
    "ListingError",
    "ListingPage",
    "ObjectLister",
    "TransientNetworkError",
    "collect_records",
    "Forest",
    "TreeBuilder",
    "build_tree",
    "BucketExplorer",
    "ObjectStorage",
    "PresignedUpload",
    "UploadResult",
]
