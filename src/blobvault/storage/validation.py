"""Argument validation for storage operations.

Every check runs before a backend touches its storage, so malformed input
fails fast and never produces partial side effects.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Final

from blobvault.storage import paths

if TYPE_CHECKING:
    from blobvault.storage.base import Blob, ListOptions

_FORBIDDEN_SEGMENTS = frozenset({".", ".."})

# Reserved for attribute sidecars stored next to each blob
ATTRIBUTES_FILE_EXTENSION: Final[str] = ".attr"


class InvalidPathError(ValueError):
    """Raised when a blob or folder path is malformed."""

    def __init__(self, path: Any, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"invalid path {path!r}: {reason}")


def _check_segments(path: str) -> None:
    for segment in paths.split(path):
        if segment in _FORBIDDEN_SEGMENTS:
            raise InvalidPathError(path, f"segment '{segment}' is not allowed")


def check_blob_full_path(path: Any) -> None:
    """Validate a path that must name a single blob."""
    if path is None:
        raise ValueError("blob path is required")
    if not isinstance(path, str):
        raise InvalidPathError(path, "path must be a string")
    if paths.is_root(path):
        raise InvalidPathError(path, "path must name a blob, not the root folder")
    _check_segments(path)
    if paths.get_name(path).endswith(ATTRIBUTES_FILE_EXTENSION):
        raise InvalidPathError(
            path, f"blob names ending in '{ATTRIBUTES_FILE_EXTENSION}' are reserved"
        )


def check_blob_collection(items: Any, argument: str) -> None:
    """Reject a missing batch argument."""
    if items is None:
        raise ValueError(f"{argument} is required")


def check_blob_full_paths(items: Iterable[str | Blob | None] | None) -> None:
    """Validate a batch of paths or blobs. None entries are skipped."""
    if items is None:
        return
    for item in items:
        if item is None:
            continue
        check_blob_full_path(item if isinstance(item, str) else item.full_path)


def check_folder_path(path: Any) -> None:
    """Validate a folder path. None means the root."""
    if path is None:
        return
    if not isinstance(path, str):
        raise InvalidPathError(path, "path must be a string")
    _check_segments(path)


def check_blob_prefix(prefix: str | None) -> None:
    if prefix and paths.PATH_SEPARATOR in prefix:
        raise InvalidPathError(prefix, "file prefix must not contain path separators")


def check_source_stream(source: Any) -> None:
    if source is None:
        raise ValueError("source stream is required")


def check_list_options(options: ListOptions) -> None:
    check_folder_path(options.folder_path)
    check_blob_prefix(options.file_prefix)
    if options.max_results is not None and options.max_results < 0:
        raise ValueError("max_results must be zero or positive")
