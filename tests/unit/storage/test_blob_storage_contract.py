"""Behaviour every BlobStorage backend must share."""

from __future__ import annotations

import hashlib
import io

import pytest

from blobvault.storage.base import Blob, BlobKind, BlobStorage, EmptyTransaction, ListOptions
from blobvault.storage.validation import InvalidPathError


def _paths(blobs: list[Blob]) -> set[str]:
    return {blob.full_path for blob in blobs}


class TestReadWrite:
    """Writing and reading blob content."""

    @pytest.mark.asyncio
    async def test_roundtrip(self, storage: BlobStorage) -> None:
        """Bytes written to a path read back unchanged."""
        content = b"blobvault-roundtrip\x00\xff"
        await storage.write("/a/b/file.bin", content)
        assert await storage.read_bytes("/a/b/file.bin") == content

    @pytest.mark.asyncio
    async def test_write_from_stream(self, storage: BlobStorage) -> None:
        """A binary file-like source is copied to exhaustion."""
        content = b"x" * 200_000
        await storage.write("/big.bin", io.BytesIO(content))
        assert await storage.read_bytes("/big.bin") == content

    @pytest.mark.asyncio
    async def test_open_write_stream(self, storage: BlobStorage) -> None:
        """Streams handed out by open_write persist once closed."""
        stream = await storage.open_write("/streamed.txt")
        try:
            await stream.write(b"part1-")
            await stream.write(b"part2")
        finally:
            await stream.close()
        assert await storage.read_bytes("/streamed.txt") == b"part1-part2"

    @pytest.mark.asyncio
    async def test_open_read_missing_returns_none(self, storage: BlobStorage) -> None:
        """Reading a missing blob yields None, not an exception."""
        assert await storage.open_read("/missing/file.txt") is None
        assert await storage.read_bytes("/missing.txt") is None

    @pytest.mark.asyncio
    async def test_append_places_bytes_after_existing_content(self, storage: BlobStorage) -> None:
        """Appending keeps prior content."""
        await storage.write("/log.txt", b"first;")
        await storage.write("/log.txt", b"second", append=True)
        assert await storage.read_bytes("/log.txt") == b"first;second"

    @pytest.mark.asyncio
    async def test_append_to_new_blob(self, storage: BlobStorage) -> None:
        """Appending to a blob that does not exist creates it."""
        await storage.write("/fresh.txt", b"only", append=True)
        assert await storage.read_bytes("/fresh.txt") == b"only"

    @pytest.mark.asyncio
    async def test_overwrite_discards_prior_content(self, storage: BlobStorage) -> None:
        """Writing without append replaces the whole blob."""
        await storage.write("/doc.txt", b"a much longer original body")
        await storage.write("/doc.txt", b"short")
        assert await storage.read_bytes("/doc.txt") == b"short"

    @pytest.mark.asyncio
    async def test_paths_are_normalized(self, storage: BlobStorage) -> None:
        """Redundant separators address the same blob."""
        await storage.write("a//b/c.txt/", b"data")
        assert await storage.read_bytes("/a/b/c.txt") == b"data"

    @pytest.mark.asyncio
    async def test_unsafe_characters_survive(self, storage: BlobStorage) -> None:
        """Names with filesystem-unsafe characters round trip."""
        path = "/dir with space/a:b?*<>|%20.txt"
        await storage.write(path, b"odd")
        assert await storage.read_bytes(path) == b"odd"

        listed = await storage.list(ListOptions(folder_path="/dir with space"))
        assert _paths(listed) == {path}

    @pytest.mark.asyncio
    async def test_open_write_truncates_on_open(self, storage: BlobStorage) -> None:
        """An overwrite stream empties the blob before the first byte is written."""
        await storage.write("/a.txt", b"old")
        stream = await storage.open_write("/a.txt")
        try:
            assert await storage.exists(["/a.txt"]) == [True]
            assert await storage.read_bytes("/a.txt") == b""
            await stream.write(b"new")
        finally:
            await stream.close()
        assert await storage.read_bytes("/a.txt") == b"new"

    @pytest.mark.asyncio
    async def test_open_write_creates_blob_on_open(self, storage: BlobStorage) -> None:
        stream = await storage.open_write("/fresh.txt")
        try:
            assert await storage.exists(["/fresh.txt"]) == [True]
        finally:
            await stream.close()

    @pytest.mark.asyncio
    async def test_blob_in_place_of_folder(self, storage: BlobStorage) -> None:
        """A blob path cannot pass through an existing blob."""
        await storage.write("/a", b"file, not folder")
        with pytest.raises(OSError):
            await storage.write("/a/b.txt", b"x")
        assert await storage.exists(["/a", "/a/b.txt"]) == [True, False]
        assert await storage.read_bytes("/a") == b"file, not folder"

    @pytest.mark.asyncio
    async def test_open_write_on_folder(self, storage: BlobStorage) -> None:
        await storage.write("/dir/x.txt", b"1")
        with pytest.raises(OSError):
            await storage.open_write("/dir")
        assert await storage.read_bytes("/dir/x.txt") == b"1"


class TestListing:
    """Listing folders and blobs."""

    @pytest.mark.asyncio
    async def test_list_includes_written_file(self, storage: BlobStorage) -> None:
        """A written blob appears in its folder listing."""
        await storage.write("/a/b/file.txt", b"1")
        blobs = await storage.list(ListOptions(folder_path="/a/b"))
        assert [blob.name for blob in blobs] == ["file.txt"]
        assert blobs[0].kind is BlobKind.FILE
        assert blobs[0].full_path == "/a/b/file.txt"

    @pytest.mark.asyncio
    async def test_list_missing_folder_is_empty(self, storage: BlobStorage) -> None:
        """Listing a folder that does not exist is not an error."""
        assert await storage.list(ListOptions(folder_path="/nope")) == []
        await storage.write("/a/x.txt", b"1")
        assert await storage.list(ListOptions(folder_path="/a/nope")) == []

    @pytest.mark.asyncio
    async def test_list_empty_storage(self, storage: BlobStorage) -> None:
        """Listing the root of an empty store yields nothing."""
        assert await storage.list() == []

    @pytest.mark.asyncio
    async def test_prefix_matches_leaf_name(self, storage: BlobStorage) -> None:
        """The prefix filters on the leaf name only."""
        await storage.write("/p/foo.txt", b"1")
        await storage.write("/p/g.txt", b"2")
        blobs = await storage.list(ListOptions(folder_path="/p", file_prefix="f"))
        assert _paths(blobs) == {"/p/foo.txt"}

    @pytest.mark.asyncio
    async def test_recurse_flag(self, storage: BlobStorage) -> None:
        """Nested entries appear only when recursing."""
        await storage.write("/a/top.txt", b"1")
        await storage.write("/a/b/nested.txt", b"2")

        flat = await storage.list(ListOptions(folder_path="/a"))
        assert _paths(flat) == {"/a/top.txt", "/a/b"}

        deep = await storage.list(ListOptions(folder_path="/a", recurse=True))
        assert _paths(deep) == {"/a/top.txt", "/a/b", "/a/b/nested.txt"}

    @pytest.mark.asyncio
    async def test_folders_are_reported_as_folders(self, storage: BlobStorage) -> None:
        """Subdirectories come back with the folder kind, before files."""
        await storage.write("/root.txt", b"1")
        await storage.write("/sub/child.txt", b"2")
        blobs = await storage.list()
        assert [(blob.full_path, blob.kind) for blob in blobs] == [
            ("/sub", BlobKind.FOLDER),
            ("/root.txt", BlobKind.FILE),
        ]

    @pytest.mark.asyncio
    async def test_browse_filter_then_max_results(self, storage: BlobStorage) -> None:
        """The predicate runs before the result cap."""
        for name in ("a1", "a2", "b1", "a3"):
            await storage.write(f"/f/{name}", b"x")

        blobs = await storage.list(
            ListOptions(
                folder_path="/f",
                browse_filter=lambda blob: blob.name.startswith("a"),
                max_results=2,
            )
        )
        assert len(blobs) == 2
        assert all(blob.name.startswith("a") for blob in blobs)

    @pytest.mark.asyncio
    async def test_max_results_zero(self, storage: BlobStorage) -> None:
        await storage.write("/x.txt", b"x")
        assert await storage.list(ListOptions(max_results=0)) == []

    @pytest.mark.asyncio
    async def test_list_without_attributes_leaves_fields_empty(self, storage: BlobStorage) -> None:
        """Plain listings do not hash or stat blobs."""
        await storage.write("/x.txt", b"x")
        (blob,) = await storage.list()
        assert blob.size is None
        assert blob.md5 is None
        assert blob.last_modification_time is None

    @pytest.mark.asyncio
    async def test_list_with_attributes_enriches(self, storage: BlobStorage) -> None:
        """include_attributes fills size, hash and user attributes."""
        await storage.write("/x.txt", b"hello")
        await storage.set_blobs([Blob("/x.txt", metadata={"k": "v"})])

        (blob,) = await storage.list(ListOptions(include_attributes=True))
        assert blob.size == 5
        assert blob.md5 == hashlib.md5(b"hello").hexdigest()
        assert blob.metadata == {"k": "v"}

    @pytest.mark.asyncio
    async def test_list_files_drops_folders(self, storage: BlobStorage) -> None:
        await storage.write("/a/b.txt", b"1")
        await storage.write("/c.txt", b"1")
        blobs = await storage.list_files(ListOptions(recurse=True))
        assert _paths(blobs) == {"/a/b.txt", "/c.txt"}


class TestDeleteAndExists:
    """Deleting blobs and checking existence."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, storage: BlobStorage) -> None:
        """A deleted blob no longer exists and deleting it again succeeds."""
        await storage.write("/a/file", b"1")
        assert await storage.exists(["/a/file"]) == [True]

        await storage.delete(["/a/file"])
        assert await storage.exists(["/a/file"]) == [False]

        await storage.delete(["/a/file"])
        assert await storage.exists(["/a/file"]) == [False]

    @pytest.mark.asyncio
    async def test_exists_is_positional(self, storage: BlobStorage) -> None:
        await storage.write("/one", b"1")
        assert await storage.exists(["/two", "/one", "/three"]) == [False, True, False]

    @pytest.mark.asyncio
    async def test_exists_ignores_folders(self, storage: BlobStorage) -> None:
        """Folders are not blobs."""
        await storage.write("/folder/file.txt", b"1")
        assert await storage.exists(["/folder"]) == [False]

    @pytest.mark.asyncio
    async def test_exists_and_delete_accept_none(self, storage: BlobStorage) -> None:
        assert await storage.exists(None) == []
        await storage.delete(None)

    @pytest.mark.asyncio
    async def test_delete_folder_removes_whole_subtree(self, storage: BlobStorage) -> None:
        """Deleting a path that names a folder silently removes everything below it.

        Callers must not pass folder paths by accident: nothing guards this.
        """
        await storage.write("/tree/a.txt", b"1")
        await storage.write("/tree/deep/b.txt", b"2")
        await storage.write("/other.txt", b"3")

        await storage.delete(["/tree"])

        assert await storage.exists(["/tree/a.txt", "/tree/deep/b.txt", "/other.txt"]) == [
            False,
            False,
            True,
        ]
        assert await storage.list(ListOptions(folder_path="/tree")) == []

    @pytest.mark.asyncio
    async def test_delete_drops_attributes(self, storage: BlobStorage) -> None:
        """A blob recreated after delete starts without attributes."""
        await storage.write("/a.txt", b"1")
        await storage.set_blobs([Blob("/a.txt", metadata={"k": "v"})])
        await storage.delete(["/a.txt"])
        await storage.write("/a.txt", b"2")

        blob = await storage.get_blob("/a.txt")
        assert blob is not None
        assert blob.metadata == {}


class TestMetadata:
    """Hashes, stat fields and user attributes."""

    @pytest.mark.asyncio
    async def test_hash_is_deterministic(self, storage: BlobStorage) -> None:
        """Identical content written twice hashes identically."""
        await storage.write("/h.bin", b"same bytes")
        first = await storage.get_blob("/h.bin")
        await storage.write("/h.bin", b"same bytes")
        second = await storage.get_blob("/h.bin")

        assert first is not None and second is not None
        assert first.md5 == second.md5 == hashlib.md5(b"same bytes").hexdigest()

    @pytest.mark.asyncio
    async def test_get_blobs_aligned_with_input(self, storage: BlobStorage) -> None:
        """Missing blobs come back as None in their input position."""
        await storage.write("/present.txt", b"abc")
        result = await storage.get_blobs(["/missing.txt", "/present.txt"])

        assert result[0] is None
        assert result[1] is not None
        assert result[1].full_path == "/present.txt"
        assert result[1].size == 3
        assert result[1].last_modification_time is not None

    @pytest.mark.asyncio
    async def test_set_then_get_attributes(self, storage: BlobStorage) -> None:
        """Attributes set on an existing blob are returned by get_blobs."""
        await storage.write("/doc.txt", b"content")
        await storage.set_blobs([Blob("/doc.txt", metadata={"owner": "ops", "tier": "cold"})])

        blob = await storage.get_blob("/doc.txt")
        assert blob is not None
        assert blob.metadata == {"owner": "ops", "tier": "cold"}

    @pytest.mark.asyncio
    async def test_set_attributes_keeps_content(self, storage: BlobStorage) -> None:
        """Attribute updates never touch blob content."""
        await storage.write("/doc.txt", b"content")
        await storage.set_blobs([Blob("/doc.txt", metadata={"a": "1"})])
        assert await storage.read_bytes("/doc.txt") == b"content"

    @pytest.mark.asyncio
    async def test_set_blobs_skips_missing_and_none(self, storage: BlobStorage) -> None:
        """Blobs without content are skipped and never created."""
        await storage.set_blobs([None, Blob("/ghost.txt", metadata={"a": "1"})])
        assert await storage.exists(["/ghost.txt"]) == [False]
        assert await storage.get_blob("/ghost.txt") is None

    @pytest.mark.asyncio
    async def test_set_blobs_with_empty_metadata_keeps_previous(self, storage: BlobStorage) -> None:
        """A blob with no attributes is skipped rather than clearing them."""
        await storage.write("/doc.txt", b"content")
        await storage.set_blobs([Blob("/doc.txt", metadata={"a": "1"})])
        await storage.set_blobs([Blob("/doc.txt")])

        blob = await storage.get_blob("/doc.txt")
        assert blob is not None
        assert blob.metadata == {"a": "1"}


class TestValidation:
    """Malformed input is rejected before any I/O."""

    @pytest.mark.asyncio
    async def test_root_is_not_a_blob(self, storage: BlobStorage) -> None:
        with pytest.raises(InvalidPathError):
            await storage.write("/", b"x")

    @pytest.mark.asyncio
    async def test_dot_segments_rejected(self, storage: BlobStorage) -> None:
        with pytest.raises(InvalidPathError):
            await storage.write("/a/../escape.txt", b"x")
        with pytest.raises(InvalidPathError):
            await storage.list(ListOptions(folder_path="/.."))

    @pytest.mark.asyncio
    async def test_prefix_with_separator_rejected(self, storage: BlobStorage) -> None:
        with pytest.raises(InvalidPathError):
            await storage.list(ListOptions(file_prefix="a/b"))

    @pytest.mark.asyncio
    async def test_missing_source_rejected(self, storage: BlobStorage) -> None:
        with pytest.raises(ValueError):
            await storage.write("/a.txt", None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_negative_max_results_rejected(self, storage: BlobStorage) -> None:
        with pytest.raises(ValueError):
            await storage.list(ListOptions(max_results=-1))

    @pytest.mark.asyncio
    async def test_attribute_suffix_is_reserved(self, storage: BlobStorage) -> None:
        """Names ending in the sidecar extension cannot be used as blobs."""
        with pytest.raises(InvalidPathError):
            await storage.write("/notes.attr", b"x")
        with pytest.raises(InvalidPathError):
            await storage.open_read("/docs/report.pdf.attr")
        with pytest.raises(InvalidPathError):
            await storage.set_blobs([Blob("/a.txt.attr", metadata={"k": "v"})])
        assert await storage.list(ListOptions(recurse=True)) == []

    @pytest.mark.asyncio
    async def test_missing_batch_rejected(self, storage: BlobStorage) -> None:
        with pytest.raises(ValueError):
            await storage.get_blobs(None)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            await storage.set_blobs(None)  # type: ignore[arg-type]


class TestTransaction:
    """Backends without atomicity hand out the shared no-op transaction."""

    @pytest.mark.asyncio
    async def test_open_transaction(self, storage: BlobStorage) -> None:
        tx = await storage.open_transaction()
        assert tx is EmptyTransaction.INSTANCE
        await tx.commit()
        await tx.rollback()

    @pytest.mark.asyncio
    async def test_transaction_context_manager(self, storage: BlobStorage) -> None:
        async with await storage.open_transaction() as tx:
            await storage.write("/in-tx.txt", b"1")
        assert tx is EmptyTransaction.INSTANCE
        assert await storage.exists(["/in-tx.txt"]) == [True]
