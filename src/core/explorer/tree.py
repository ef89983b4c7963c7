"""
Materialize a flat object listing into a folder tree.

A listing is a flat, paged list of keys. The tree builder turns it into a
forest of FolderNode/FileNode objects:

1. Sort records by key (plain string comparison)
2. Classify each record as a folder marker or a file
3. Create folders lazily, reusing any folder already created for a prefix
4. Attach each file to its parent folder (or to the root)

Folder creation is memoized by full prefix, so the result does not depend
on input order: a file seen before its folder marker still ends up inside
the one folder for that prefix.

The builder is pure. It never raises on odd keys ("a//b", "/x", "/") and
never touches the network.
"""

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from typing import Optional

from .models import (
    DELIMITER,
    FileNode,
    FileRecord,
    FolderMarker,
    FolderNode,
    Node,
    RawRecord,
    classify_record,
)

logger = logging.getLogger(__name__)

ROOT_KEY = ""


class Forest:
    """
    The top-level nodes of a bucket plus a key index over every node.

    The index backs O(1) "current directory" lookups so the presentation
    layer never has to walk from the roots to render a folder.
    """

    def __init__(self, roots: list[Node], index: dict[str, Node]) -> None:
        self._roots = roots
        self._index = index

    @property
    def roots(self) -> list[Node]:
        return self._roots

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._roots)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def get(self, key: str) -> Optional[Node]:
        """Return the node with this exact key, or None."""
        return self._index.get(key)

    def children_of(self, folder_key: str) -> list[Node]:
        """
        Return the children of a folder.

        The empty key (or "/") addresses the root. A key without the trailing
        "/" resolves to its folder even when a file has the same bare key.
        Raises KeyError when no folder matches.
        """
        if folder_key in (ROOT_KEY, DELIMITER):
            return self._roots

        node = self._index.get(folder_key)
        if not isinstance(node, FolderNode) and not folder_key.endswith(DELIMITER):
            node = self._index.get(folder_key + DELIMITER)

        if not isinstance(node, FolderNode):
            raise KeyError(folder_key)
        return node.children

    def walk(self) -> Iterator[tuple[int, Node]]:
        """Yield (depth, node) pairs depth-first in sibling order."""
        stack: list[tuple[int, Node]] = [(0, node) for node in reversed(self._roots)]
        while stack:
            depth, node = stack.pop()
            yield depth, node
            if isinstance(node, FolderNode):
                stack.extend((depth + 1, child) for child in reversed(node.children))

    def keys(self) -> list[str]:
        return [node.key for _, node in self.walk()]


class TreeBuilder:
    """
    Single-use builder holding the memo tables for one build pass.

    Each build gets its own builder, so concurrent builds never share
    state.
    """

    def __init__(self, now: Optional[datetime] = None) -> None:
        self._now = now or datetime.now(timezone.utc)
        self._roots: list[Node] = []
        self._folders: dict[str, FolderNode] = {}
        self._files: dict[str, FileNode] = {}

    def ensure_folder(self, path: str) -> Optional[FolderNode]:
        """
        Return the folder for ``path``, creating it and any missing ancestors.

        Idempotent: the same path always yields the same node object.
        Returns None when the path has no non-empty segments (e.g. "/"),
        which callers treat as the root.
        """
        segments = [segment for segment in path.split(DELIMITER) if segment]
        if not segments:
            return None

        full_prefix = DELIMITER.join(segments) + DELIMITER
        memoized = self._folders.get(full_prefix)
        if memoized is not None:
            return memoized

        siblings = self._roots
        prefix = ""
        folder: Optional[FolderNode] = None

        for segment in segments:
            prefix += segment + DELIMITER
            folder = self._folders.get(prefix)
            if folder is None:
                folder = FolderNode(name=segment, key=prefix)
                siblings.append(folder)
                self._folders[prefix] = folder
            siblings = folder.children

        return folder

    def add_file(self, record: FileRecord) -> None:
        if record.key in self._files:
            # First occurrence wins.
            return

        parent = self.ensure_folder(record.parent_path)
        node = FileNode(
            name=record.name,
            key=record.key,
            size=record.size,
            last_modified=record.last_modified or self._now,
        )
        (parent.children if parent is not None else self._roots).append(node)
        self._files[record.key] = node

    def add(self, record: RawRecord) -> None:
        if not record.key:
            return

        classified = classify_record(record)
        if isinstance(classified, FolderMarker):
            self.ensure_folder(classified.path)
        else:
            self.add_file(classified)

    def build(self, records: Iterable[RawRecord]) -> Forest:
        for record in sorted(records, key=lambda r: r.key):
            self.add(record)

        index: dict[str, Node] = {**self._folders, **self._files}
        logger.debug(
            "Built bucket tree",
            extra={
                "folders": len(self._folders),
                "files": len(self._files),
                "roots": len(self._roots),
            },
        )
        return Forest(roots=self._roots, index=index)


def build_tree(records: Iterable[RawRecord], now: Optional[datetime] = None) -> Forest:
    """
    Build a forest from listing records in any order.

    ``now`` is the timestamp given to records without last_modified;
    it defaults to the current UTC time.
    """
    return TreeBuilder(now=now).build(records)
