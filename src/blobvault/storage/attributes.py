"""Serialization of user-defined blob attributes.

Attributes are a flat mapping of string keys to string values, stored as a
JSON object. Backends treat the encoded bytes as opaque.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

import orjson

if TYPE_CHECKING:
    from blobvault.storage.base import Blob


def attributes_to_bytes(attributes: Mapping[str, str]) -> bytes:
    """Encode attributes deterministically (sorted keys)."""
    return orjson.dumps(
        {str(key): str(value) for key, value in attributes.items()},
        option=orjson.OPT_SORT_KEYS,
    )


def attributes_from_bytes(content: bytes) -> dict[str, str]:
    """Decode attributes previously produced by attributes_to_bytes.

    Raises:
        ValueError: If content is not a JSON object of string values
    """
    if not content:
        return {}
    data = orjson.loads(content)
    if not isinstance(data, dict):
        raise ValueError("attribute content must be a JSON object")
    for key, value in data.items():
        if not isinstance(value, str):
            raise ValueError(f"attribute '{key}' must be a string, got {type(value).__name__}")
    return data


def append_attributes(blob: Blob, content: bytes) -> None:
    """Merge encoded attributes into the blob's metadata mapping."""
    blob.metadata.update(attributes_from_bytes(content))
