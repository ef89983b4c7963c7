"""
Helpers for presenting a bucket tree as a navigable directory.

Pure string functions used by the HTTP layer and the CLI.
"""

from .models import DELIMITER
from .tree import ROOT_KEY

ROOT_LABEL = "Root"

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]


class InvalidObjectNameError(ValueError):
    """Raised when an upload filename or folder key cannot form an object key."""
    pass


def path_segments(key: str) -> list[str]:
    return [segment for segment in key.split(DELIMITER) if segment]


def parent_path(key: str) -> str:
    """
    Return the folder key one level up, or '' at (or directly under) the root.

    >>> parent_path("documents/archive/")
    'documents/'
    """
    segments = path_segments(key)
    if len(segments) <= 1:
        return ROOT_KEY
    return DELIMITER.join(segments[:-1]) + DELIMITER


def breadcrumb(key: str) -> str:
    """Human-readable location such as 'Root > documents > archive'."""
    segments = path_segments(key)
    if not segments:
        return ROOT_LABEL
    return " > ".join([ROOT_LABEL, *segments])


def format_bytes(size: int, decimals: int = 2) -> str:
    """Format a byte count with binary (1024) units, e.g. '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"

    decimals = max(decimals, 0)
    exponent = 0
    scaled = float(size)
    while scaled >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        scaled /= 1024
        exponent += 1

    value = round(scaled, decimals)
    if value == int(value):
        value = int(value)
    return f"{value} {_SIZE_UNITS[exponent]}"


def normalize_folder_key(folder_key: str) -> str:
    """Normalize a folder key to '' (root) or 'a/b/' form."""
    segments = path_segments(folder_key)
    if not segments:
        return ROOT_KEY
    return DELIMITER.join(segments) + DELIMITER


def build_object_key(folder_key: str, filename: str) -> str:
    """
    Join an upload target folder and a filename into an object key.

    Raises InvalidObjectNameError for empty names, names containing '/',
    and the relative names '.' and '..'.
    """
    name = filename.strip()
    if not name:
        raise InvalidObjectNameError("Filename cannot be empty")
    if DELIMITER in name:
        raise InvalidObjectNameError(f"Filename cannot contain '{DELIMITER}': {filename}")
    if name in (".", ".."):
        raise InvalidObjectNameError(f"Invalid filename: {filename}")

    segments = path_segments(folder_key)
    if any(segment in (".", "..") for segment in segments):
        raise InvalidObjectNameError(f"Invalid folder key: {folder_key}")

    return normalize_folder_key(folder_key) + name
