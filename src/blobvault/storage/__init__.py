"""Hierarchical blob storage for blobvault.

Provides a uniform, path-addressed interface over binary objects:
- Disk storage mapped onto a local directory tree (default)
- In-memory storage for tests and ephemeral use

User attributes travel beside the content and never rewrite it.
"""

from blobvault.storage.base import (
    Blob,
    BlobKind,
    BlobStorage,
    EmptyTransaction,
    ListOptions,
    Transaction,
)
from blobvault.storage.factory import create_blob_storage, get_blob_storage
from blobvault.storage.local import DiskBlobStorage
from blobvault.storage.memory import InMemoryBlobStorage
from blobvault.storage.validation import InvalidPathError

__all__ = [
    "Blob",
    "BlobKind",
    "BlobStorage",
    "ListOptions",
    "Transaction",
    "EmptyTransaction",
    "DiskBlobStorage",
    "InMemoryBlobStorage",
    "InvalidPathError",
    "create_blob_storage",
    "get_blob_storage",
]
