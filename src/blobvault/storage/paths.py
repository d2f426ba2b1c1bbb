"""Abstract blob path helpers.

Blob paths are slash-separated, always start with a single separator and
never end with one (except the root, which is just "/").

    /                -> root
    /a/b/file.txt    -> name "file.txt", parent "/a/b"
"""

from __future__ import annotations

from typing import Final
from urllib.parse import quote, unquote

PATH_SEPARATOR: Final[str] = "/"
ROOT: Final[str] = PATH_SEPARATOR


def split(path: str | None) -> list[str]:
    """Split a path into its non-empty segments."""
    if not path:
        return []
    return [part for part in path.split(PATH_SEPARATOR) if part]


def normalize(path: str | None, include_trailing_separator: bool = False) -> str:
    """Normalize a path to "/seg1/seg2" form."""
    parts = split(path)
    if not parts:
        return ROOT
    normalized = PATH_SEPARATOR + PATH_SEPARATOR.join(parts)
    if include_trailing_separator:
        normalized += PATH_SEPARATOR
    return normalized


def combine(*parts: str | None) -> str:
    """Join path fragments into one normalized path."""
    segments: list[str] = []
    for part in parts:
        segments.extend(split(part))
    return normalize(PATH_SEPARATOR.join(segments))


def is_root(path: str | None) -> bool:
    return normalize(path) == ROOT


def get_name(path: str) -> str:
    parts = split(path)
    return parts[-1] if parts else ""


def get_parent(path: str) -> str | None:
    """Return the parent folder path, or None for the root."""
    parts = split(path)
    if not parts:
        return None
    return normalize(PATH_SEPARATOR.join(parts[:-1]))


def encode_segment(segment: str) -> str:
    """Percent-encode a single segment so it is a valid filesystem name.

    Everything outside the unreserved URI set is encoded, including "%" itself,
    which keeps decode_segment an exact inverse.
    """
    return quote(segment, safe="")


def decode_segment(segment: str) -> str:
    return unquote(segment)
