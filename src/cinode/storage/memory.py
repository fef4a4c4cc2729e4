"""In-memory blob storage, mostly for tests and short-lived stores."""

from __future__ import annotations

import io
import threading
from typing import BinaryIO

from cinode.errors import BIDCollisionError, BIDNotFoundError
from cinode.logging_config import StructuredLogger
from cinode.storage.base import BlobStorage, StagedBlobWriter

logger = StructuredLogger(__name__)


class _MemoryBlobWriter(StagedBlobWriter):

    def __init__(self, storage: MemoryBlobStorage, bid: str):
        super().__init__(bid)
        self._storage = storage
        self._buffer = io.BytesIO()

    def _write(self, data: bytes) -> None:
        self._buffer.write(data)

    def _finalize(self) -> None:
        self._storage._commit(self.bid, self._buffer.getvalue())
        self._buffer = io.BytesIO()

    def _discard(self) -> None:
        self._buffer = io.BytesIO()


class MemoryBlobStorage(BlobStorage):
    """Dictionary-backed blob storage, safe for concurrent writers."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def new_blob_writer(self, bid: str) -> StagedBlobWriter:
        return _MemoryBlobWriter(self, bid)

    def new_blob_reader(self, bid: str) -> BinaryIO:
        with self._lock:
            data = self._blobs.get(bid)
        if data is None:
            raise BIDNotFoundError(bid)
        return io.BytesIO(data)

    def exists(self, bid: str) -> bool:
        with self._lock:
            return bid in self._blobs

    def delete(self, bid: str) -> bool:
        with self._lock:
            return self._blobs.pop(bid, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)

    def bids(self) -> list[str]:
        """Ids of all committed blobs, sorted."""
        with self._lock:
            return sorted(self._blobs)

    def _commit(self, bid: str, data: bytes) -> None:
        with self._lock:
            existing = self._blobs.get(bid)
            if existing is None:
                self._blobs[bid] = data
                return
        if existing != data:
            raise BIDCollisionError(bid)
        logger.debug("Blob already stored, skipping", blob_id=bid, operation="storage.dedup")
