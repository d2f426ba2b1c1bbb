"""Blob storage factory for blobvault."""

from __future__ import annotations

from pathlib import Path

from blobvault.config import settings
from blobvault.storage.base import BlobStorage
from blobvault.storage.local import DiskBlobStorage
from blobvault.storage.memory import InMemoryBlobStorage

_storage: BlobStorage | None = None


def create_blob_storage(
    storage_type: str,
    storage_path: str | Path | None = None,
    chunk_size: int | None = None,
) -> BlobStorage:
    """Build a storage backend of the given type.

    Args:
        storage_type: "disk" (alias "local") or "memory"
        storage_path: Root directory, required for disk storage
        chunk_size: Copy/hash chunk size for disk storage (optional)
    """
    storage_type = storage_type.lower()
    if storage_type in {"disk", "local"}:
        if not storage_path:
            raise ValueError("BLOB_STORAGE_PATH is required for blob_storage_type='disk'")
        return DiskBlobStorage(root_path=storage_path, chunk_size=chunk_size)
    if storage_type == "memory":
        return InMemoryBlobStorage()
    raise ValueError("Unsupported blob_storage_type. Supported values: disk, local, memory.")


def get_blob_storage() -> BlobStorage:
    """Return a singleton BlobStorage based on settings."""
    global _storage
    if _storage is None:
        _storage = create_blob_storage(
            settings.blob_storage_type,
            settings.blob_storage_path,
            chunk_size=settings.blob_chunk_size,
        )
    return _storage
