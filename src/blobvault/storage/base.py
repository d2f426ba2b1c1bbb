"""Base blob storage interface.

Defines the value objects and the abstract interface every storage backend
implements.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import TracebackType
from typing import BinaryIO, ClassVar, Protocol

from blobvault.storage import paths


class BlobKind(str, Enum):
    """Whether a blob is a data object or a folder."""

    FILE = "file"
    FOLDER = "folder"


@dataclass
class Blob:
    """A single addressable object or folder.

    size, md5 and last_modification_time stay None until the blob is
    enriched by a backend (get_blobs, or list with include_attributes).
    """

    full_path: str
    kind: BlobKind = BlobKind.FILE
    size: int | None = None
    md5: str | None = None
    last_modification_time: datetime | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.full_path = paths.normalize(self.full_path)

    @property
    def name(self) -> str:
        return paths.get_name(self.full_path)

    @property
    def folder_path(self) -> str:
        return paths.get_parent(self.full_path) or paths.ROOT

    @property
    def is_file(self) -> bool:
        return self.kind is BlobKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.kind is BlobKind.FOLDER

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.full_path}"


@dataclass
class ListOptions:
    """Query parameters for BlobStorage.list."""

    folder_path: str | None = None
    # Matched against the leaf name only, never the full path
    file_prefix: str | None = None
    recurse: bool = False
    max_results: int | None = None
    include_attributes: bool = False
    browse_filter: Callable[[Blob], bool] | None = None


class AsyncReadStream(Protocol):
    """Readable byte stream returned by BlobStorage.open_read."""

    async def read(self, size: int = -1) -> bytes: ...

    async def close(self) -> None: ...


class AsyncWriteStream(Protocol):
    """Writable byte stream returned by BlobStorage.open_write."""

    async def write(self, data: bytes) -> int: ...

    async def close(self) -> None: ...


class Transaction(ABC):
    """A batch of operations that commits or rolls back as a unit.

    Usage:
        async with await storage.open_transaction() as tx:
            ...  # committed on clean exit, rolled back on error
    """

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()


class EmptyTransaction(Transaction):
    """Transaction for backends without atomicity. Both operations are no-ops."""

    INSTANCE: ClassVar[EmptyTransaction]

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        return None


EmptyTransaction.INSTANCE = EmptyTransaction()


class BlobStorage(ABC):
    """Abstract base class for blob storage backends.

    Absence is never an error: missing folders list as empty, missing blobs
    read as None and delete is idempotent. Malformed paths raise ValueError
    before any I/O; storage failures propagate unchanged.
    """

    @abstractmethod
    async def list(self, options: ListOptions | None = None) -> list[Blob]:
        """List blobs and folders.

        Args:
            options: Folder, prefix, recursion and filtering options

        Returns:
            Matching blobs, folders first; unordered within each kind
        """
        ...

    @abstractmethod
    async def write(
        self,
        full_path: str,
        source: bytes | BinaryIO,
        append: bool = False,
    ) -> None:
        """Copy the whole source into a blob.

        Args:
            full_path: Blob path
            source: Bytes or a binary file-like object read to exhaustion
            append: Append to existing content instead of replacing it
        """
        ...

    @abstractmethod
    async def open_write(self, full_path: str, append: bool = False) -> AsyncWriteStream:
        """Open a blob for writing. The caller must close the stream."""
        ...

    @abstractmethod
    async def open_read(self, full_path: str) -> AsyncReadStream | None:
        """Open a blob for reading.

        Returns:
            An open stream the caller must close, or None if the blob does not exist
        """
        ...

    @abstractmethod
    async def delete(self, full_paths: Iterable[str] | None) -> None:
        """Delete blobs, or whole folders, skipping paths that do not exist."""
        ...

    @abstractmethod
    async def exists(self, full_paths: Iterable[str] | None) -> list[bool]:
        """Check which paths name an existing blob (folders do not count)."""
        ...

    @abstractmethod
    async def get_blobs(self, full_paths: Iterable[str]) -> list[Blob | None]:
        """Fetch enriched blobs, positionally aligned with the input.

        Returns:
            One entry per path; None where the blob does not exist
        """
        ...

    @abstractmethod
    async def set_blobs(self, blobs: Iterable[Blob | None]) -> None:
        """Persist user attributes for existing blobs. Content is never touched."""
        ...

    async def open_transaction(self) -> Transaction:
        """Open a transaction. Backends without atomicity return a no-op one."""
        return EmptyTransaction.INSTANCE

    async def write_bytes(self, full_path: str, content: bytes, append: bool = False) -> None:
        await self.write(full_path, content, append=append)

    async def read_bytes(self, full_path: str) -> bytes | None:
        """Read a whole blob into memory, or None if it does not exist."""
        stream = await self.open_read(full_path)
        if stream is None:
            return None
        try:
            return await stream.read()
        finally:
            await stream.close()

    async def get_blob(self, full_path: str) -> Blob | None:
        (blob,) = await self.get_blobs([full_path])
        return blob

    async def list_files(self, options: ListOptions | None = None) -> list[Blob]:
        """Like list, but drops folder entries."""
        return [blob for blob in await self.list(options) if blob.is_file]

    @staticmethod
    def compute_hash(content: bytes) -> str:
        """Compute MD5 hex digest of content."""
        return hashlib.md5(content, usedforsecurity=False).hexdigest()
