"""Blob storage port.

Backends expose staged writers keyed by blob id: bytes are accumulated
with ``write()`` and only become visible to readers on ``finalize()``.
Finalizing content identical to what is already stored under the id is a
successful no-op; different content raises ``BIDCollisionError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

from cinode.errors import WriterFinalizedError


class StagedBlobWriter(ABC):
    """Write / finalize / cancel handle for a single blob.

    Usable as a context manager: leaving the block through an exception
    cancels the blob, leaving it normally without finalizing cancels too.
    """

    def __init__(self, bid: str):
        self.bid = bid
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def write(self, data: bytes) -> int:
        if self._done:
            raise WriterFinalizedError("Blob writer", bid=self.bid)
        self._write(bytes(data))
        return len(data)

    def finalize(self) -> None:
        """Commit the staged bytes atomically."""
        if self._done:
            raise WriterFinalizedError("Blob writer", bid=self.bid)
        try:
            self._finalize()
        except BaseException:
            self._discard()
            raise
        finally:
            self._done = True

    def cancel(self) -> None:
        """Discard the staged bytes, nothing is persisted."""
        if self._done:
            raise WriterFinalizedError("Blob writer", bid=self.bid)
        self._done = True
        self._discard()

    def __enter__(self) -> StagedBlobWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._done:
            self.cancel()

    @abstractmethod
    def _write(self, data: bytes) -> None: ...

    @abstractmethod
    def _finalize(self) -> None: ...

    @abstractmethod
    def _discard(self) -> None: ...


class BlobStorage(ABC):
    """Staged-write / read key-value store for blobs."""

    @abstractmethod
    def new_blob_writer(self, bid: str) -> StagedBlobWriter:
        """Create a staged writer for the blob ``bid``."""

    @abstractmethod
    def new_blob_reader(self, bid: str) -> BinaryIO:
        """Open a committed blob for reading.

        Raises:
            BIDNotFoundError: If no blob is stored under ``bid``
        """

    @abstractmethod
    def exists(self, bid: str) -> bool:
        """Check whether a blob is committed under ``bid``."""

    @abstractmethod
    def delete(self, bid: str) -> bool:
        """Delete a blob.

        Nothing in cinode calls this: blobs may be referenced from many
        files and directories. It exists for backend maintenance.

        Returns:
            True if deleted, False if it didn't exist
        """
