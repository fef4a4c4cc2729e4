"""High-level blob store.

Ties a storage backend and a cipher factory together and exposes the
file and directory operations in capability terms.
"""

from __future__ import annotations

import io
from collections.abc import Iterator
from typing import BinaryIO

from cinode import cipherfactory
from cinode.blobstore import reader
from cinode.blobstore.dirwriter import MAX_SIMPLE_DIR_ENTRIES, DirBlobWriter
from cinode.blobstore.filewriter import BLOCK_SIZE, FileBlobWriter
from cinode.blobstore.serialization import (
    BLOB_TYPE_SIMPLE_STATIC_DIR,
    BLOB_TYPE_SPLIT_STATIC_DIR,
)
from cinode.cipherfactory import CipherFactory
from cinode.config import StoreConfig, ensure_directories
from cinode.logging_config import StructuredLogger, configure_logging
from cinode.models import Capability, DirEntry
from cinode.storage import BlobStorage, FileBlobStorage

logger = StructuredLogger(__name__)


class BlobStore:
    """Store and retrieve files and directories by capability."""

    def __init__(
        self,
        storage: BlobStorage,
        factory: CipherFactory | None = None,
        block_size: int = BLOCK_SIZE,
        max_simple_dir_entries: int = MAX_SIMPLE_DIR_ENTRIES,
    ):
        self.storage = storage
        self.factory = factory or cipherfactory.create()
        self.block_size = block_size
        self.max_simple_dir_entries = max_simple_dir_entries

    # --- Writing ---

    def new_file_writer(self) -> FileBlobWriter:
        return FileBlobWriter(self.storage, self.factory, block_size=self.block_size)

    def new_dir_writer(self) -> DirBlobWriter:
        return DirBlobWriter(
            self.storage,
            self.factory,
            max_simple_entries=self.max_simple_dir_entries,
        )

    def store_stream(self, stream: BinaryIO) -> Capability:
        """Store everything readable from ``stream`` as one file."""
        writer = self.new_file_writer()
        writer.write_from(stream)
        return writer.finalize()

    def store_bytes(self, data: bytes) -> Capability:
        return self.store_stream(io.BytesIO(data))

    def store_dir(self, entries: list[DirEntry]) -> Capability:
        writer = self.new_dir_writer()
        for entry in entries:
            writer.add_entry(entry)
        return writer.finalize()

    # --- Reading ---

    def iter_file(self, cap: Capability) -> Iterator[bytes]:
        return reader.iter_file(self.storage, cap, self.factory)

    def read_file(self, cap: Capability) -> bytes:
        return reader.read_file(self.storage, cap, self.factory)

    def file_size(self, cap: Capability) -> int:
        return reader.file_size(self.storage, cap, self.factory)

    def list_dir(self, cap: Capability) -> list[DirEntry]:
        return reader.list_dir(self.storage, cap, self.factory)

    def lookup(self, cap: Capability, name: str) -> DirEntry | None:
        return reader.lookup(self.storage, cap, name, self.factory)

    def is_dir(self, cap: Capability) -> bool:
        kind = reader.payload_type(self.storage, cap, self.factory)
        return kind in (BLOB_TYPE_SIMPLE_STATIC_DIR, BLOB_TYPE_SPLIT_STATIC_DIR)


def create_store(config: StoreConfig | None = None) -> BlobStore:
    """Create a file-backed blob store from configuration.

    Args:
        config: Store configuration. Defaults are used if omitted.
    """
    if config is None:
        config = StoreConfig()

    configure_logging(
        log_level=config.log_level,
        structured=config.structured_logging,
        log_file=config.log_file,
    )
    ensure_directories(config)

    logger.info(
        "Opening blob store",
        operation="store.open",
        blob_dir=str(config.blob_dir),
        block_size=config.block_size,
    )
    return BlobStore(
        FileBlobStorage(config.blob_dir),
        block_size=config.block_size,
        max_simple_dir_entries=config.max_simple_dir_entries,
    )
