"""Directory blob writer.

Entries are sorted by name (UTF-8 byte order) before serialization, so an
entry set always produces the same blobs no matter the insertion order.

Small directory payload:
    [SIMPLE_STATIC_DIR][varint n][n x (name, mime_type, bid, key)]

Directories with more than ``max_simple_entries`` entries are cut into
consecutive runs of sorted entries, each stored as a small directory.
The runs are referenced by their first name from SPLIT_STATIC_DIR blobs:
    [SPLIT_STATIC_DIR][varint n][n x (first_name, bid, key)]
which are grouped the same way until a single root blob remains.
"""

from __future__ import annotations

import io
import time

from cinode import cipherfactory
from cinode.cipherfactory import CipherFactory
from cinode.errors import WriterFinalizedError
from cinode.logging_config import StructuredLogger, operation_context
from cinode.models import Capability, DirEntry
from cinode.blobstore.hashvalidation import create_hash_validated_blob_from_bytes
from cinode.blobstore.serialization import (
    BLOB_TYPE_SIMPLE_STATIC_DIR,
    BLOB_TYPE_SPLIT_STATIC_DIR,
    serialize_capability,
    serialize_entry,
    serialize_int,
    serialize_string,
)
from cinode.storage.base import BlobStorage

logger = StructuredLogger(__name__)

MAX_SIMPLE_DIR_ENTRIES = 1024


def sort_key(name: str) -> bytes:
    return name.encode("utf-8")


def _chunks(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class DirBlobWriter:
    """Collects directory entries and stores them as directory blobs."""

    def __init__(
        self,
        storage: BlobStorage,
        factory: CipherFactory | None = None,
        max_simple_entries: int = MAX_SIMPLE_DIR_ENTRIES,
    ):
        if max_simple_entries < 2:
            raise ValueError("max_simple_entries must be at least 2")
        self.storage = storage
        self.factory = factory or cipherfactory.create()
        self.max_simple_entries = max_simple_entries

        self._entries: list[DirEntry] = []
        self._finalized = False

    def __len__(self) -> int:
        return len(self._entries)

    def add_entry(self, entry: DirEntry) -> None:
        """Add an entry; duplicate names are kept as given."""
        if self._finalized:
            raise WriterFinalizedError("Directory blob writer")
        self._entries.append(entry)

    def finalize(self) -> Capability:
        """Serialize all entries and return the root directory capability."""
        if self._finalized:
            raise WriterFinalizedError("Directory blob writer")
        self._finalized = True

        start = time.perf_counter()
        entries = sorted(self._entries, key=lambda e: sort_key(e.name))

        with operation_context():
            try:
                if len(entries) <= self.max_simple_entries:
                    cap = self._store_simple(entries)
                else:
                    cap = self._store_split(entries)
            except Exception as e:
                logger.error(
                    f"Failed to store directory: {e}",
                    operation="dir.finalize",
                    error_type=type(e).__name__,
                )
                raise

            logger.info(
                "Stored directory",
                blob_id=cap.bid,
                operation="dir.finalize",
                duration_ms=int((time.perf_counter() - start) * 1000),
                entries=len(entries),
            )
        return cap

    def _store_simple(self, entries: list[DirEntry]) -> Capability:
        out = io.BytesIO()
        out.write(bytes((BLOB_TYPE_SIMPLE_STATIC_DIR,)))
        serialize_int(len(entries), out)
        for entry in entries:
            serialize_entry(entry, out)
        return create_hash_validated_blob_from_bytes(
            out.getvalue(), self.storage, self.factory
        )

    def _store_split_node(self, refs: list[tuple[str, Capability]]) -> Capability:
        out = io.BytesIO()
        out.write(bytes((BLOB_TYPE_SPLIT_STATIC_DIR,)))
        serialize_int(len(refs), out)
        for first_name, cap in refs:
            serialize_string(first_name, out)
            serialize_capability(cap, out)
        return create_hash_validated_blob_from_bytes(
            out.getvalue(), self.storage, self.factory
        )

    def _store_split(self, entries: list[DirEntry]) -> Capability:
        refs = [
            (group[0].name, self._store_simple(group))
            for group in _chunks(entries, self.max_simple_entries)
        ]
        depth = 1
        while len(refs) > self.max_simple_entries:
            refs = [
                (group[0][0], self._store_split_node(group))
                for group in _chunks(refs, self.max_simple_entries)
            ]
            depth += 1

        logger.debug(
            "Split directory",
            operation="dir.split",
            entries=len(entries),
            root_children=len(refs),
            depth=depth,
        )
        return self._store_split_node(refs)
