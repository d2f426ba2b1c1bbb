"""Local filesystem blob storage.

Mirrors the abstract path tree 1:1 under a root directory:
    /reports/2024/q1.csv  ->  {root_path}/reports/2024/q1.csv

Each path segment is percent-encoded, so any character survives as a valid
file name. User attributes live in a sidecar file next to the data file:
    {root_path}/reports/2024/q1.csv.attr

Sidecars are never listed as blobs, and attribute updates never touch the
data file.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import shutil
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

from blobvault.storage import paths
from blobvault.storage.attributes import append_attributes, attributes_to_bytes
from blobvault.storage.base import (
    AsyncReadStream,
    AsyncWriteStream,
    Blob,
    BlobKind,
    BlobStorage,
    ListOptions,
)
from blobvault.storage.validation import (
    ATTRIBUTES_FILE_EXTENSION,
    check_blob_collection,
    check_blob_full_path,
    check_blob_full_paths,
    check_list_options,
    check_source_stream,
)

logger = logging.getLogger(__name__)


def _raise(error: OSError) -> None:
    raise error


class DiskBlobStorage(BlobStorage):
    """Blob storage backed by a local directory."""

    CHUNK_SIZE = 64 * 1024  # 64KB chunks for copying and hashing

    def __init__(self, root_path: str | Path, chunk_size: int | None = None):
        """Initialize disk blob storage.

        Args:
            root_path: Root directory; created lazily on first write
            chunk_size: Chunk size for copying and hashing (optional)
        """
        self._root_path = Path(root_path).absolute()
        self._chunk_size = chunk_size or self.CHUNK_SIZE

    @property
    def root_path(self) -> Path:
        """Root directory this storage is mapped to."""
        return self._root_path

    def __repr__(self) -> str:
        return f"DiskBlobStorage(root_path={str(self._root_path)!r})"

    # ------------------------------------------------------------------
    # Path mapping
    # ------------------------------------------------------------------

    async def _get_folder(self, folder_path: str | None, create: bool) -> Path | None:
        """Map a folder path to its directory.

        Returns None when the directory is missing and create is False.
        """
        directory = self._root_path
        for part in paths.split(folder_path):
            directory = directory / paths.encode_segment(part)

        if not await aiofiles.os.path.isdir(directory):
            if not create:
                return None
            await aiofiles.os.makedirs(directory, exist_ok=True)

        return directory

    async def _get_file_path(self, full_path: str, create: bool = False) -> Path:
        """Map a blob path to its data file. The leaf itself is not checked."""
        parts = [paths.encode_segment(part) for part in paths.split(full_path)]
        directory = self._root_path.joinpath(*parts[:-1])
        if create and len(parts) > 1:
            await aiofiles.os.makedirs(directory, exist_ok=True)
        return directory / parts[-1]

    def _to_full_path(self, disk_path: Path) -> str:
        relative = disk_path.relative_to(self._root_path)
        return paths.normalize(
            paths.PATH_SEPARATOR.join(paths.decode_segment(part) for part in relative.parts)
        )

    async def _to_blob(self, disk_path: Path, kind: BlobKind, include_attributes: bool) -> Blob:
        blob = Blob(self._to_full_path(disk_path), kind)
        if include_attributes:
            await self._enrich(blob)
        return blob

    @staticmethod
    def _attributes_path(file_path: Path) -> Path:
        return file_path.with_name(file_path.name + ATTRIBUTES_FILE_EXTENSION)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list(self, options: ListOptions | None = None) -> list[Blob]:
        """List folders and blobs under a folder."""
        if options is None:
            options = ListOptions()
        check_list_options(options)

        if not await aiofiles.os.path.isdir(self._root_path):
            return []

        folder = await self._get_folder(options.folder_path, create=False)
        if folder is None:
            return []

        prefix = paths.encode_segment(options.file_prefix) if options.file_prefix else ""
        directories, files = await asyncio.to_thread(
            self._scan, folder, prefix, options.recurse
        )

        result: list[Blob] = []
        for directory in directories:
            result.append(
                await self._to_blob(directory, BlobKind.FOLDER, options.include_attributes)
            )
        for file_path in files:
            result.append(await self._to_blob(file_path, BlobKind.FILE, options.include_attributes))

        if options.browse_filter is not None:
            result = [blob for blob in result if options.browse_filter(blob)]
        if options.max_results is not None:
            result = result[: options.max_results]
        return result

    @staticmethod
    def _scan(folder: Path, prefix: str, recurse: bool) -> tuple[list[Path], list[Path]]:
        """Collect matching directories and files. Runs in a worker thread."""
        directories: list[Path] = []
        files: list[Path] = []

        for current, dir_names, file_names in os.walk(folder, onerror=_raise):
            base = Path(current)
            directories.extend(base / name for name in dir_names if name.startswith(prefix))
            files.extend(
                base / name
                for name in file_names
                if name.startswith(prefix) and not name.endswith(ATTRIBUTES_FILE_EXTENSION)
            )
            if not recurse:
                break

        return directories, files

    # ------------------------------------------------------------------
    # Stream I/O
    # ------------------------------------------------------------------

    async def _create_stream(self, full_path: str, append: bool) -> AsyncWriteStream:
        if not await aiofiles.os.path.isdir(self._root_path):
            await aiofiles.os.makedirs(self._root_path, exist_ok=True)
        file_path = await self._get_file_path(full_path, create=True)
        # "ab" keeps the cursor at end of file; "wb" truncates
        return await aiofiles.open(file_path, "ab" if append else "wb")

    async def write(
        self,
        full_path: str,
        source: bytes | BinaryIO,
        append: bool = False,
    ) -> None:
        """Copy bytes or a binary stream into a blob."""
        check_blob_full_path(full_path)
        check_source_stream(source)

        full_path = paths.normalize(full_path)
        size_bytes = 0
        dest = await self._create_stream(full_path, append)
        try:
            if isinstance(source, (bytes, bytearray, memoryview)):
                await dest.write(bytes(source))
                size_bytes = len(source)
            else:
                while True:
                    chunk = source.read(self._chunk_size)
                    if not chunk:
                        break
                    await dest.write(chunk)
                    size_bytes += len(chunk)
        finally:
            await dest.close()

        logger.debug(
            f"Wrote {size_bytes} bytes to blob {full_path} ({'append' if append else 'overwrite'})"
        )

    async def open_write(self, full_path: str, append: bool = False) -> AsyncWriteStream:
        """Open a blob for writing; parent folders are created as needed."""
        check_blob_full_path(full_path)
        return await self._create_stream(paths.normalize(full_path), append)

    async def open_read(self, full_path: str) -> AsyncReadStream | None:
        """Open a blob for reading, or return None if it does not exist."""
        check_blob_full_path(full_path)
        file_path = await self._get_file_path(paths.normalize(full_path))
        if not await aiofiles.os.path.isfile(file_path):
            return None
        return await aiofiles.open(file_path, "rb")

    # ------------------------------------------------------------------
    # Existence / delete
    # ------------------------------------------------------------------

    async def delete(self, full_paths: Iterable[str] | None) -> None:
        """Delete blobs or folders. Folders are removed recursively."""
        if full_paths is None:
            return
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)

        for full_path in full_paths:
            file_path = await self._get_file_path(paths.normalize(full_path))
            if await aiofiles.os.path.isfile(file_path):
                await aiofiles.os.remove(file_path)
                attributes_path = self._attributes_path(file_path)
                if await aiofiles.os.path.isfile(attributes_path):
                    await aiofiles.os.remove(attributes_path)
                logger.debug(f"Deleted blob {full_path} at {file_path}")
            elif await aiofiles.os.path.isdir(file_path):
                await asyncio.to_thread(shutil.rmtree, file_path)
                logger.debug(f"Deleted folder {full_path} at {file_path}")

    async def exists(self, full_paths: Iterable[str] | None) -> list[bool]:
        """Check whether each path names an existing blob file."""
        if full_paths is None:
            return []
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)

        result: list[bool] = []
        for full_path in full_paths:
            file_path = await self._get_file_path(paths.normalize(full_path))
            result.append(bool(await aiofiles.os.path.isfile(file_path)))
        return result

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_blobs(self, full_paths: Iterable[str]) -> list[Blob | None]:
        """Fetch enriched blobs; None for paths with no data file."""
        check_blob_collection(full_paths, "full_paths")
        full_paths = list(full_paths)
        check_blob_full_paths(full_paths)

        result: list[Blob | None] = []
        for full_path in full_paths:
            file_path = await self._get_file_path(paths.normalize(full_path))
            if not await aiofiles.os.path.isfile(file_path):
                result.append(None)
                continue

            blob = Blob(full_path)
            await self._enrich(blob)
            result.append(blob)
        return result

    async def set_blobs(self, blobs: Iterable[Blob | None]) -> None:
        """Write attribute sidecars for existing blobs that carry metadata."""
        check_blob_collection(blobs, "blobs")
        blobs = [blob for blob in blobs if blob is not None]
        check_blob_full_paths(blobs)

        for blob in blobs:
            file_path = await self._get_file_path(blob.full_path)
            if not await aiofiles.os.path.isfile(file_path):
                continue
            if not blob.metadata:
                continue

            attributes_path = self._attributes_path(file_path)
            async with aiofiles.open(attributes_path, "wb") as f:
                await f.write(attributes_to_bytes(blob.metadata))
            logger.debug(f"Wrote {len(blob.metadata)} attribute(s) for blob {blob.full_path}")

    async def _enrich(self, blob: Blob) -> None:
        """Fill hash, size, timestamp and attributes. No-op if the file is gone."""
        file_path = await self._get_file_path(blob.full_path)
        if not await aiofiles.os.path.isfile(file_path):
            return

        try:
            md5 = await self._hash_file(file_path)
            stat = await aiofiles.os.stat(file_path)
        except FileNotFoundError:
            # Deleted between the existence check and the read
            return

        blob.md5 = md5
        blob.size = stat.st_size
        created = getattr(stat, "st_birthtime", stat.st_mtime)
        blob.last_modification_time = datetime.fromtimestamp(created, tz=UTC)

        attributes_path = self._attributes_path(file_path)
        if not await aiofiles.os.path.isfile(attributes_path):
            return
        try:
            async with aiofiles.open(attributes_path, "rb") as f:
                content = await f.read()
            append_attributes(blob, content)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable attributes for blob {blob.full_path}: {e}")

    async def _hash_file(self, file_path: Path) -> str:
        digest = hashlib.md5(usedforsecurity=False)
        async with aiofiles.open(file_path, "rb") as f:
            while True:
                chunk = await f.read(self._chunk_size)
                if not chunk:
                    break
                digest.update(chunk)
        return digest.hexdigest()
