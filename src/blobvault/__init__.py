"""blobvault: hierarchical blob storage over a local directory tree."""

from blobvault.storage import (
    Blob,
    BlobKind,
    BlobStorage,
    DiskBlobStorage,
    InMemoryBlobStorage,
    InvalidPathError,
    ListOptions,
    create_blob_storage,
)

__version__ = "0.1.0"

__all__ = [
    "Blob",
    "BlobKind",
    "BlobStorage",
    "DiskBlobStorage",
    "InMemoryBlobStorage",
    "InvalidPathError",
    "ListOptions",
    "create_blob_storage",
]
