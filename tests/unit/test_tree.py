"""
Unit tests for turning a flat key listing into a folder tree.

These tests use plain RawRecord lists; nothing touches storage.
"""

import random
from datetime import datetime, timezone

import pytest

from src.core.explorer.models import (
    FileNode,
    FileRecord,
    FolderMarker,
    FolderNode,
    RawRecord,
    classify_record,
)
from src.core.explorer.tree import Forest, TreeBuilder, build_tree

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
EARLIER = datetime(2023, 6, 1, 12, 0, tzinfo=timezone.utc)


def records(*keys: str) -> list[RawRecord]:
    return [RawRecord(key=key, size=10, last_modified=EARLIER) for key in keys]


def shape(nodes) -> list:
    """Reduce a node list to nested (type, key) tuples for comparison."""
    result = []
    for node in nodes:
        if isinstance(node, FolderNode):
            result.append(("folder", node.key, shape(node.children)))
        else:
            result.append(("file", node.key))
    return result


# ---------------------------------------------------------------------------
# Record classification
# ---------------------------------------------------------------------------

class TestClassifyRecord:
    """Folder markers are decided by the trailing slash alone."""

    def test_trailing_slash_is_marker(self):
        assert classify_record(RawRecord(key="a/b/")) == FolderMarker(path="a/b/")

    def test_marker_with_size_is_still_marker(self):
        classified = classify_record(RawRecord(key="a/", size=512))
        assert isinstance(classified, FolderMarker)

    def test_zero_byte_key_without_slash_is_file(self):
        classified = classify_record(RawRecord(key="a/empty.txt", size=0))
        assert isinstance(classified, FileRecord)
        assert classified.size == 0

    def test_file_record_parent_and_name(self):
        record = FileRecord(key="a/b/c.txt", size=1)
        assert record.parent_path == "a/b/"
        assert record.name == "c.txt"

    def test_root_file_has_empty_parent(self):
        record = FileRecord(key="README.md", size=1)
        assert record.parent_path == ""
        assert record.name == "README.md"


# ---------------------------------------------------------------------------
# Tree shape
# ---------------------------------------------------------------------------

class TestBuildTree:
    """Tests for the overall tree produced from a listing."""

    def test_empty_listing_gives_empty_forest(self):
        forest = build_tree([])
        assert forest.roots == []
        assert len(forest) == 0

    def test_markers_and_files_at_several_depths(self):
        """One folder per prefix; siblings in encounter order after the key sort."""
        forest = build_tree(records(
            "a/",
            "a/x.txt",
            "a/b/",
            "a/b/y.txt",
            "c.txt",
        ))

        assert shape(forest.roots) == [
            ("folder", "a/", [
                ("folder", "a/b/", [("file", "a/b/y.txt")]),
                ("file", "a/x.txt"),
            ]),
            ("file", "c.txt"),
        ]

    def test_file_without_marker_creates_folders(self):
        forest = build_tree(records("deep/er/file.bin"))

        assert shape(forest.roots) == [
            ("folder", "deep/", [
                ("folder", "deep/er/", [("file", "deep/er/file.bin")]),
            ]),
        ]

    def test_marker_alone_creates_empty_folder(self):
        forest = build_tree(records("empty_folder/"))

        folder = forest.get("empty_folder/")
        assert isinstance(folder, FolderNode)
        assert folder.children == []
        assert folder.name == "empty_folder"

    def test_nested_marker_creates_ancestors(self):
        forest = build_tree(records("a/b/c/"))

        assert shape(forest.roots) == [
            ("folder", "a/", [("folder", "a/b/", [("folder", "a/b/c/", [])])]),
        ]

    def test_marker_after_files_does_not_duplicate_folder(self):
        """Sorting puts 'a/' before 'a/x', but a duplicate marker must not add a second folder."""
        forest = build_tree(records("a/x.txt", "a/", "a/", "a/y.txt"))

        assert len(forest.roots) == 1
        assert [child.key for child in forest.roots[0].children] == ["a/x.txt", "a/y.txt"]

    def test_folder_and_file_with_same_stem_coexist(self):
        """Key 'a' (file) and prefix 'a/' (folder) are different nodes."""
        forest = build_tree(records("a", "a/b.txt"))

        assert shape(forest.roots) == [
            ("file", "a"),
            ("folder", "a/", [("file", "a/b.txt")]),
        ]

    def test_children_follow_sorted_encounter_order(self):
        forest = build_tree(records("b/2.txt", "a.txt", "b/1.txt", "B.txt"))

        # Uppercase sorts before lowercase in plain string comparison.
        assert [node.key for node in forest.roots] == ["B.txt", "a.txt", "b/"]
        assert [node.key for node in forest.roots[2].children] == ["b/1.txt", "b/2.txt"]

    def test_folder_key_ends_with_slash_and_path_equals_key(self):
        forest = build_tree(records("a/b/c.txt"))

        for _, node in forest.walk():
            assert node.path == node.key
            if isinstance(node, FolderNode):
                assert node.key.endswith("/")
                assert node.type == "folder"
            else:
                assert node.type == "file"


# ---------------------------------------------------------------------------
# Structural properties
# ---------------------------------------------------------------------------

class TestTreeProperties:
    """Invariants that must hold for any listing."""

    KEYS = [
        "documents/",
        "documents/report.docx",
        "documents/archive/old_data.zip",
        "images/photo1.jpg",
        "images/logo.png",
        "README.md",
        "empty_folder/",
        "a/b/c/d/e.txt",
        "a/b/",
        "z",
    ]

    def test_order_independent(self):
        """Any permutation of the same records builds the same tree."""
        expected = shape(build_tree(records(*self.KEYS), now=NOW).roots)

        rng = random.Random(42)
        for _ in range(20):
            shuffled = list(self.KEYS)
            rng.shuffle(shuffled)
            assert shape(build_tree(records(*shuffled), now=NOW).roots) == expected

    def test_every_file_appears_exactly_once(self):
        forest = build_tree(records(*self.KEYS))

        file_keys = [node.key for _, node in forest.walk() if isinstance(node, FileNode)]
        expected = [key for key in self.KEYS if not key.endswith("/")]
        assert sorted(file_keys) == sorted(expected)
        assert len(file_keys) == len(set(file_keys))

    def test_every_folder_prefix_appears_exactly_once(self):
        forest = build_tree(records(*self.KEYS))

        folder_keys = [node.key for _, node in forest.walk() if isinstance(node, FolderNode)]
        assert len(folder_keys) == len(set(folder_keys))
        assert set(folder_keys) == {
            "a/", "a/b/", "a/b/c/", "a/b/c/d/",
            "documents/", "documents/archive/",
            "empty_folder/", "images/",
        }

    def test_children_are_direct_descendants(self):
        forest = build_tree(records(*self.KEYS))

        for _, node in forest.walk():
            if not isinstance(node, FolderNode):
                continue
            for child in node.children:
                assert child.key.startswith(node.key)
                remainder = child.key[len(node.key):].rstrip("/")
                assert "/" not in remainder

    def test_build_is_pure(self):
        """The same input yields equal trees and does not mutate the records."""
        listing = records(*self.KEYS)
        snapshot = list(listing)

        first = build_tree(listing, now=NOW)
        second = build_tree(listing, now=NOW)

        assert listing == snapshot
        assert shape(first.roots) == shape(second.roots)
        assert first.roots is not second.roots


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------

class TestEdgeCases:
    """Odd keys never raise."""

    def test_duplicate_file_key_first_wins(self):
        forest = build_tree([
            RawRecord(key="a.txt", size=1, last_modified=EARLIER),
            RawRecord(key="a.txt", size=2, last_modified=NOW),
        ])

        assert len(forest.roots) == 1
        assert forest.get("a.txt").size == 1

    def test_missing_last_modified_uses_now(self):
        forest = build_tree([RawRecord(key="a.txt", size=1)], now=NOW)
        assert forest.get("a.txt").last_modified == NOW

    def test_missing_last_modified_defaults_to_current_utc(self):
        before = datetime.now(timezone.utc)
        forest = build_tree([RawRecord(key="a.txt", size=1)])
        after = datetime.now(timezone.utc)

        assert before <= forest.get("a.txt").last_modified <= after

    def test_double_slash_skips_empty_segment(self):
        forest = build_tree(records("a//b.txt"))

        folder = forest.roots[0]
        assert folder.key == "a/"
        assert [child.key for child in folder.children] == ["a//b.txt"]
        assert folder.children[0].name == "b.txt"

    def test_leading_slash_skips_empty_segment(self):
        forest = build_tree(records("/x/y.txt"))

        assert forest.roots[0].key == "x/"
        assert forest.roots[0].children[0].key == "/x/y.txt"

    def test_bare_slash_marker_adds_nothing(self):
        forest = build_tree(records("/"))
        assert forest.roots == []

    def test_empty_key_is_skipped(self):
        forest = build_tree([RawRecord(key=""), *records("a.txt")])
        assert [node.key for node in forest.roots] == ["a.txt"]

    def test_zero_byte_file_is_file(self):
        forest = build_tree([RawRecord(key="placeholder", size=0, last_modified=EARLIER)])
        node = forest.get("placeholder")
        assert isinstance(node, FileNode)
        assert node.size == 0


# ---------------------------------------------------------------------------
# Builder and Forest
# ---------------------------------------------------------------------------

class TestTreeBuilder:
    """Tests for folder memoization."""

    def test_ensure_folder_is_idempotent(self):
        builder = TreeBuilder(now=NOW)

        first = builder.ensure_folder("a/b/")
        second = builder.ensure_folder("a/b/")

        assert first is second

    def test_ensure_folder_normalizes_missing_trailing_slash(self):
        builder = TreeBuilder(now=NOW)
        assert builder.ensure_folder("a/b") is builder.ensure_folder("a/b/")

    def test_ensure_folder_without_segments_returns_none(self):
        builder = TreeBuilder(now=NOW)
        assert builder.ensure_folder("") is None
        assert builder.ensure_folder("//") is None


class TestForest:
    """Tests for lookups on a built tree."""

    @pytest.fixture
    def forest(self) -> Forest:
        return build_tree(records("a/", "a/x.txt", "a/b/y.txt", "c.txt"))

    def test_len_counts_files_and_folders(self, forest):
        assert len(forest) == 5

    def test_contains_and_get(self, forest):
        assert "a/b/" in forest
        assert "missing" not in forest
        assert forest.get("a/x.txt").name == "x.txt"
        assert forest.get("missing") is None

    def test_children_of_root(self, forest):
        assert forest.children_of("") is forest.roots
        assert forest.children_of("/") is forest.roots

    def test_children_of_folder(self, forest):
        assert [node.key for node in forest.children_of("a/")] == ["a/b/", "a/x.txt"]

    def test_children_of_accepts_key_without_slash(self, forest):
        assert forest.children_of("a/b") == forest.children_of("a/b/")

    def test_children_of_bare_key_prefers_folder_over_file(self):
        """A file "a" and a folder "a/" can coexist; the bare key lists the folder."""
        forest = build_tree(records("a", "a/b.txt"))

        assert [node.key for node in forest.children_of("a")] == ["a/b.txt"]

    def test_children_of_unknown_raises(self, forest):
        with pytest.raises(KeyError):
            forest.children_of("nope/")

    def test_children_of_file_raises(self, forest):
        with pytest.raises(KeyError):
            forest.children_of("c.txt")

    def test_walk_is_depth_first(self, forest):
        assert [(depth, node.key) for depth, node in forest.walk()] == [
            (0, "a/"),
            (1, "a/b/"),
            (2, "a/b/y.txt"),
            (1, "a/x.txt"),
            (0, "c.txt"),
        ]

    def test_folder_files_and_folders_views(self, forest):
        folder = forest.get("a/")
        assert [node.key for node in folder.files] == ["a/x.txt"]
        assert [node.key for node in folder.folders] == ["a/b/"]
