"""In-memory blob storage.

Keeps content and attributes in dictionaries keyed by normalized blob path.
Folders are implicit: a folder exists while at least one blob lives below it.
Useful for tests and ephemeral deployments.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from io import BytesIO
from typing import BinaryIO

from blobvault.storage import paths
from blobvault.storage.base import (
    AsyncReadStream,
    AsyncWriteStream,
    Blob,
    BlobKind,
    BlobStorage,
    ListOptions,
)
from blobvault.storage.validation import (
    check_blob_collection,
    check_blob_full_path,
    check_blob_full_paths,
    check_list_options,
    check_source_stream,
)

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    content: bytes = b""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attributes: dict[str, str] = field(default_factory=dict)


class _MemoryReadStream:
    def __init__(self, content: bytes) -> None:
        self._buffer = BytesIO(content)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    async def close(self) -> None:
        self._buffer.close()


class _MemoryWriteStream:
    """Buffers writes and replaces the blob content on close."""

    def __init__(self, storage: InMemoryBlobStorage, full_path: str, initial: bytes) -> None:
        self._storage = storage
        self._full_path = full_path
        self._buffer = BytesIO()
        self._buffer.write(initial)
        self._closed = False

    async def write(self, data: bytes) -> int:
        return self._buffer.write(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._storage._commit(self._full_path, self._buffer.getvalue())
        self._buffer.close()


class InMemoryBlobStorage(BlobStorage):
    """Blob storage held entirely in process memory."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}

    def _commit(self, full_path: str, content: bytes) -> None:
        entry = self._entries.get(full_path)
        if entry is None:
            self._entries[full_path] = _Entry(content=content)
        else:
            entry.content = content

    def _folder_exists(self, folder_path: str) -> bool:
        if paths.is_root(folder_path):
            return True
        prefix = folder_path + paths.PATH_SEPARATOR
        return any(key.startswith(prefix) for key in self._entries)

    def _check_writable(self, full_path: str) -> None:
        """Reject paths below an existing blob or naming an existing folder."""
        parent = paths.get_parent(full_path)
        while parent is not None and not paths.is_root(parent):
            if parent in self._entries:
                raise FileExistsError(f"blob {parent} exists where a folder is needed")
            parent = paths.get_parent(parent)
        if self._folder_exists(full_path):
            raise IsADirectoryError(f"{full_path} is a folder")

    def _enrich(self, blob: Blob) -> None:
        entry = self._entries.get(blob.full_path)
        if entry is None:
            return
        blob.md5 = self.compute_hash(entry.content)
        blob.size = len(entry.content)
        blob.last_modification_time = entry.created_at
        blob.metadata.update(entry.attributes)

    async def list(self, options: ListOptions | None = None) -> list[Blob]:
        if options is None:
            options = ListOptions()
        check_list_options(options)

        folder = paths.normalize(options.folder_path)
        if not self._folder_exists(folder):
            return []

        base = paths.split(folder)
        prefix = options.file_prefix or ""
        folders: dict[str, None] = {}
        files: list[str] = []

        for key in self._entries:
            parts = paths.split(key)
            if len(parts) <= len(base) or parts[: len(base)] != base:
                continue
            relative = parts[len(base) :]

            if options.recurse:
                visible_folders = relative[:-1]
            else:
                visible_folders = relative[:1] if len(relative) > 1 else []
            for depth, name in enumerate(visible_folders, start=1):
                if name.startswith(prefix):
                    folders.setdefault(paths.combine(folder, *relative[:depth]), None)

            if (len(relative) == 1 or options.recurse) and relative[-1].startswith(prefix):
                files.append(key)

        result = [Blob(path, BlobKind.FOLDER) for path in folders]
        result.extend(Blob(path, BlobKind.FILE) for path in files)
        if options.include_attributes:
            for blob in result:
                self._enrich(blob)

        if options.browse_filter is not None:
            result = [blob for blob in result if options.browse_filter(blob)]
        if options.max_results is not None:
            result = result[: options.max_results]
        return result

    async def write(
        self,
        full_path: str,
        source: bytes | BinaryIO,
        append: bool = False,
    ) -> None:
        check_blob_full_path(full_path)
        check_source_stream(source)

        if isinstance(source, (bytes, bytearray, memoryview)):
            content = bytes(source)
        else:
            content = source.read()
        stream = await self.open_write(full_path, append=append)
        try:
            await stream.write(content)
        finally:
            await stream.close()
        logger.debug(f"Wrote {len(content)} bytes to in-memory blob {paths.normalize(full_path)}")

    async def open_write(self, full_path: str, append: bool = False) -> AsyncWriteStream:
        """Open a blob for writing.

        The blob exists as soon as the stream opens; an overwrite truncates it
        immediately, like a file opened with "wb".
        """
        check_blob_full_path(full_path)
        full_path = paths.normalize(full_path)
        self._check_writable(full_path)

        entry = self._entries.get(full_path)
        if append and entry is not None:
            initial = entry.content
        else:
            initial = b""
            self._commit(full_path, initial)
        return _MemoryWriteStream(self, full_path, initial)

    async def open_read(self, full_path: str) -> AsyncReadStream | None:
        check_blob_full_path(full_path)
        entry = self._entries.get(paths.normalize(full_path))
        if entry is None:
            return None
        return _MemoryReadStream(entry.content)

    async def delete(self, full_paths: Iterable[str] | None) -> None:
        if full_paths is None:
            return
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)

        for full_path in full_paths:
            full_path = paths.normalize(full_path)
            if self._entries.pop(full_path, None) is not None:
                continue
            prefix = full_path + paths.PATH_SEPARATOR
            for key in [key for key in self._entries if key.startswith(prefix)]:
                del self._entries[key]

    async def exists(self, full_paths: Iterable[str] | None) -> list[bool]:
        if full_paths is None:
            return []
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)
        return [paths.normalize(full_path) in self._entries for full_path in full_paths]

    async def get_blobs(self, full_paths: Iterable[str]) -> list[Blob | None]:
        check_blob_collection(full_paths, "full_paths")
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)

        result: list[Blob | None] = []
        for full_path in full_paths:
            if paths.normalize(full_path) not in self._entries:
                result.append(None)
                continue
            blob = Blob(full_path)
            self._enrich(blob)
            result.append(blob)
        return result

    async def set_blobs(self, blobs: Iterable[Blob | None]) -> None:
        check_blob_collection(blobs, "blobs")
        blobs = [blob for blob in blobs if blob is not None]
        check_blob_full_paths(blobs)

        for blob in blobs:
            entry = self._entries.get(blob.full_path)
            if entry is None or not blob.metadata:
                continue
            entry.attributes = dict(blob.metadata)
