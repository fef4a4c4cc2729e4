"""Chunked file blob writer.

Content up to BLOCK_SIZE bytes becomes a single SIMPLE_FILE blob. Larger
content is cut into BLOCK_SIZE blocks, each stored as its own SIMPLE_FILE
blob (identical blocks share one blob), and a SPLIT_FILE index listing
the block capabilities in stream order becomes the file's capability.

Index payload: [SPLIT_FILE][varint total_size][varint n][n x (bid, key)]

When the index itself would not fit in one block, the capabilities are
grouped into several SPLIT_FILE indexes and those are indexed again,
giving a shallow tree.
"""

from __future__ import annotations

import io
import time
import uuid
from typing import BinaryIO

from cinode import cipherfactory
from cinode.cipherfactory import CipherFactory
from cinode.errors import WriterFinalizedError
from cinode.logging_config import StructuredLogger, operation_context
from cinode.models import Capability
from cinode.blobstore.hashvalidation import (
    create_hash_validated_blob,
    create_hash_validated_blob_from_bytes,
)
from cinode.blobstore.serialization import (
    BLOB_TYPE_SIMPLE_FILE,
    BLOB_TYPE_SPLIT_FILE,
    int_size,
    serialize_capability,
    serialize_int,
    string_size,
)
from cinode.storage.base import BlobStorage

logger = StructuredLogger(__name__)

BLOCK_SIZE = 16 * 1024 * 1024

_READ_CHUNK = 1024 * 1024


class _TaggedReader:
    """Reader yielding a one byte type tag followed by the payload."""

    def __init__(self, tag: int, data: bytes):
        self._head = bytes((tag,))
        self._rest = io.BytesIO(data)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            head, self._head = self._head, b""
            return head + self._rest.read()
        head, self._head = self._head[:size], self._head[size:]
        return head + self._rest.read(size - len(head))


def _index_payload(children: list[Capability], total_size: int) -> bytes:
    out = io.BytesIO()
    out.write(bytes((BLOB_TYPE_SPLIT_FILE,)))
    serialize_int(total_size, out)
    serialize_int(len(children), out)
    for cap in children:
        serialize_capability(cap, out)
    return out.getvalue()


def _index_size(entry_sizes: list[int], total_size: int) -> int:
    return 1 + int_size(total_size) + int_size(len(entry_sizes)) + sum(entry_sizes)


class FileBlobWriter:
    """Accepts a stream of bytes and stores it as one file capability.

    At most one block of plaintext is held in memory. A full block is
    flushed only once another byte arrives, so content of exactly
    ``block_size`` bytes still ends up as a single blob.
    """

    def __init__(
        self,
        storage: BlobStorage,
        factory: CipherFactory | None = None,
        block_size: int = BLOCK_SIZE,
    ):
        if block_size < 1:
            raise ValueError("block_size must be positive")
        self.storage = storage
        self.factory = factory or cipherfactory.create()
        self.block_size = block_size

        self._buffer = bytearray()
        # (capability, plaintext size) per flushed block or sub-index
        self._children: list[tuple[Capability, int]] = []
        self._total_size = 0
        self._finalized = False
        self._operation_id = uuid.uuid4().hex

    @property
    def size(self) -> int:
        """Number of bytes written so far."""
        return self._total_size

    def write(self, data: bytes) -> int:
        if self._finalized:
            raise WriterFinalizedError("File blob writer")

        view = memoryview(data)
        while view:
            if len(self._buffer) == self.block_size:
                with operation_context(self._operation_id):
                    self._flush_block()
            room = self.block_size - len(self._buffer)
            self._buffer += view[:room]
            view = view[room:]

        self._total_size += len(data)
        return len(data)

    def write_from(self, stream: BinaryIO) -> int:
        """Copy a readable stream into the writer in bounded chunks."""
        total = 0
        while True:
            chunk = stream.read(_READ_CHUNK)
            if not chunk:
                return total
            total += self.write(chunk)

    def finalize(self) -> Capability:
        """Store remaining content and return the file's capability."""
        if self._finalized:
            raise WriterFinalizedError("File blob writer")
        self._finalized = True

        start = time.perf_counter()
        with operation_context(self._operation_id):
            try:
                if not self._children:
                    cap = self._store_block()
                else:
                    if self._buffer:
                        self._flush_block()
                    cap = self._store_index()
            except Exception as e:
                logger.error(
                    f"Failed to store file: {e}",
                    operation="file.finalize",
                    error_type=type(e).__name__,
                )
                raise
            finally:
                self._buffer = bytearray()

            logger.info(
                "Stored file",
                blob_id=cap.bid,
                operation="file.finalize",
                duration_ms=int((time.perf_counter() - start) * 1000),
                size=self._total_size,
                blocks=len(self._children) or 1,
            )
        return cap

    def _store_block(self) -> Capability:
        data = bytes(self._buffer)
        return create_hash_validated_blob(
            lambda: _TaggedReader(BLOB_TYPE_SIMPLE_FILE, data),
            self.storage,
            self.factory,
        )

    def _flush_block(self) -> None:
        size = len(self._buffer)
        cap = self._store_block()
        self._children.append((cap, size))
        self._buffer = bytearray()

    def _store_index(self) -> Capability:
        level = self._children
        while True:
            groups = self._group(level)
            if len(groups) == 1:
                children = [cap for cap, _ in groups[0]]
                return create_hash_validated_blob_from_bytes(
                    _index_payload(children, sum(size for _, size in groups[0])),
                    self.storage,
                    self.factory,
                )

            next_level = []
            for group in groups:
                if len(group) == 1:
                    next_level.append(group[0])
                    continue
                group_size = sum(size for _, size in group)
                cap = create_hash_validated_blob_from_bytes(
                    _index_payload([cap for cap, _ in group], group_size),
                    self.storage,
                    self.factory,
                )
                next_level.append((cap, group_size))
            logger.debug(
                "Index exceeds block size, adding tree level",
                operation="file.index",
                children=len(level),
                groups=len(groups),
            )
            level = next_level

    def _group(
        self, children: list[tuple[Capability, int]]
    ) -> list[list[tuple[Capability, int]]]:
        """Greedily pack children into groups whose index fits a block.

        Every group but the last holds at least two children so each tree
        level shrinks. A trailing single child forms its own group and is
        carried up to the next level as is. Unless ``block_size`` is too
        small to index two children, no group's index exceeds a block.
        """
        groups: list[list[tuple[Capability, int]]] = []
        current: list[tuple[Capability, int]] = []
        entry_sizes: list[int] = []
        current_size = 0

        for child in children:
            cap, size = child
            entry = string_size(cap.bid) + string_size(cap.key)
            fits = _index_size(entry_sizes + [entry], current_size + size) <= self.block_size
            if current and len(current) >= 2 and not fits:
                groups.append(current)
                current, entry_sizes, current_size = [], [], 0
            current.append(child)
            entry_sizes.append(entry)
            current_size += size

        if current:
            groups.append(current)
        return groups
