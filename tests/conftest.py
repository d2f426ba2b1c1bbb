"""Global pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from blobvault.storage.base import BlobStorage
from blobvault.storage.local import DiskBlobStorage
from blobvault.storage.memory import InMemoryBlobStorage


@pytest.fixture
def disk_storage(tmp_path: Path) -> DiskBlobStorage:
    """Disk storage rooted in a directory that does not exist yet."""
    return DiskBlobStorage(root_path=tmp_path / "blobs")


@pytest.fixture(params=["disk", "memory"])
def storage(request: pytest.FixtureRequest, tmp_path: Path) -> BlobStorage:
    """Every storage backend, for behaviour all backends must share."""
    if request.param == "disk":
        return DiskBlobStorage(root_path=tmp_path / "blobs")
    return InMemoryBlobStorage()
