"""
Domain models for browsing an object-storage bucket as a folder tree.

Object storage has no directories, only keys. These models describe the
records a listing returns and the tree nodes we build from them. They have
no dependencies on boto3, FastAPI, or any other framework.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

DELIMITER = "/"


@dataclass(frozen=True)
class RawRecord:
    """
    One entry returned by a storage listing call.

    Frozen because a record is a snapshot of what the backend said at
    listing time. last_modified is None when the backend omitted it.
    """
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class FolderMarker:
    """A record whose key ends in '/', standing in for a directory."""
    path: str


@dataclass(frozen=True)
class FileRecord:
    """A record for an actual object (including zero-byte objects)."""
    key: str
    size: int
    last_modified: Optional[datetime] = None

    @property
    def parent_path(self) -> str:
        """Folder prefix ending in '/', or '' for root-level files."""
        head, sep, _ = self.key.rpartition(DELIMITER)
        return head + sep

    @property
    def name(self) -> str:
        return self.key.rpartition(DELIMITER)[2]


ClassifiedRecord = Union[FolderMarker, FileRecord]


def classify_record(record: RawRecord) -> ClassifiedRecord:
    """
    Decide up front whether a record is a folder marker or a file.

    The trailing slash is the only signal. Size is ignored: a marker with
    nonzero size metadata is still a marker, and a zero-byte key without
    a trailing slash is still a file.
    """
    if record.key.endswith(DELIMITER):
        return FolderMarker(path=record.key)
    return FileRecord(
        key=record.key,
        size=record.size,
        last_modified=record.last_modified,
    )


@dataclass(frozen=True)
class FileNode:
    """A leaf in the tree. Never mutated after creation."""
    name: str
    key: str
    size: int
    last_modified: datetime
    type: str = field(default="file", init=False)

    @property
    def path(self) -> str:
        return self.key


@dataclass
class FolderNode:
    """
    A directory in the tree.

    key always ends in '/'. children keep the order in which they were
    first encountered; the tree builder guarantees child keys are unique.
    """
    name: str
    key: str
    children: list["Node"] = field(default_factory=list)
    type: str = field(default="folder", init=False)

    @property
    def path(self) -> str:
        return self.key

    @property
    def folders(self) -> list["FolderNode"]:
        return [child for child in self.children if isinstance(child, FolderNode)]

    @property
    def files(self) -> list[FileNode]:
        return [child for child in self.children if isinstance(child, FileNode)]


Node = Union[FileNode, FolderNode]
