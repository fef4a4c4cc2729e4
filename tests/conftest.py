"""Test fixtures for cinode."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from cinode import cipherfactory
from cinode.cipherfactory import CipherFactory
from cinode.config import StoreConfig
from cinode.store import BlobStore
from cinode.storage import FileBlobStorage, MemoryBlobStorage


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def config(temp_dir: Path) -> StoreConfig:
    """Create test configuration."""
    return StoreConfig(
        data_dir=temp_dir,
        blob_dir=temp_dir / "blobs",
        structured_logging=False,
    )


@pytest.fixture
def factory() -> CipherFactory:
    return cipherfactory.create()


@pytest.fixture
def memory_storage() -> MemoryBlobStorage:
    return MemoryBlobStorage()


@pytest.fixture
def file_storage(config: StoreConfig) -> FileBlobStorage:
    return FileBlobStorage(config.blob_dir)


@pytest.fixture(params=["memory", "file"])
def storage(request, temp_dir: Path):
    """Every backend, so behavior is checked against both."""
    if request.param == "memory":
        return MemoryBlobStorage()
    return FileBlobStorage(temp_dir / "blobs")


@pytest.fixture
def store(memory_storage: MemoryBlobStorage, factory: CipherFactory) -> BlobStore:
    """Store with small thresholds so splitting is cheap to exercise."""
    return BlobStore(
        memory_storage,
        factory,
        block_size=64,
        max_simple_dir_entries=4,
    )


# --- Sample Content Fixtures ---

@pytest.fixture
def sample_contents() -> list[bytes]:
    """Representative file contents."""
    return [
        b"",
        b"a",
        b"Hello World!",
        b"abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ",
    ]
