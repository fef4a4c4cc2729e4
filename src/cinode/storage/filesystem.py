"""File-system blob storage.

Layout: {blob_dir}/{bid[:2]}/{bid}

Staged bytes go to a temp file next to the final location and are
committed with os.replace(), so readers never see a partial blob.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import BinaryIO

from cinode.errors import BIDCollisionError, BIDNotFoundError
from cinode.logging_config import StructuredLogger
from cinode.storage.base import BlobStorage, StagedBlobWriter

logger = StructuredLogger(__name__)

_COMPARE_CHUNK = 1024 * 1024
_HEX_DIGITS = frozenset("0123456789abcdef")


def _is_valid_bid(bid: str) -> bool:
    return len(bid) >= 2 and all(c in _HEX_DIGITS for c in bid)


def _same_content(path_a: Path, path_b: Path) -> bool:
    if path_a.stat().st_size != path_b.stat().st_size:
        return False
    with open(path_a, "rb") as fa, open(path_b, "rb") as fb:
        while True:
            a = fa.read(_COMPARE_CHUNK)
            b = fb.read(_COMPARE_CHUNK)
            if a != b:
                return False
            if not a:
                return True


class _FileBlobWriter(StagedBlobWriter):

    def __init__(self, storage: FileBlobStorage, bid: str):
        super().__init__(bid)
        self._storage = storage
        self._path = storage._blob_path(bid)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{bid[:16]}.", suffix=".tmp"
        )
        self._tmp_path = Path(tmp_name)
        self._file = os.fdopen(fd, "wb")

    def _write(self, data: bytes) -> None:
        self._file.write(data)

    def _finalize(self) -> None:
        self._file.close()
        with self._storage._lock:
            if self._path.exists():
                same = _same_content(self._tmp_path, self._path)
                self._tmp_path.unlink(missing_ok=True)
                if not same:
                    raise BIDCollisionError(self.bid, path=str(self._path))
                logger.debug(
                    "Blob already stored, skipping",
                    blob_id=self.bid,
                    operation="storage.dedup",
                )
                return
            # Atomic rename (os.replace is atomic on all platforms)
            os.replace(self._tmp_path, self._path)

    def _discard(self) -> None:
        if not self._file.closed:
            self._file.close()
        self._tmp_path.unlink(missing_ok=True)


class FileBlobStorage(BlobStorage):
    """Blob storage in a local directory tree."""

    def __init__(self, blob_dir: Path):
        self.blob_dir = Path(blob_dir)
        self.blob_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _blob_path(self, bid: str) -> Path:
        if not _is_valid_bid(bid):
            raise ValueError(f"Invalid blob id: {bid!r}")
        return self.blob_dir / bid[:2] / bid

    def new_blob_writer(self, bid: str) -> StagedBlobWriter:
        return _FileBlobWriter(self, bid)

    def new_blob_reader(self, bid: str) -> BinaryIO:
        # No blob can be stored under an invalid id
        if not _is_valid_bid(bid):
            raise BIDNotFoundError(bid)
        try:
            return open(self._blob_path(bid), "rb")
        except FileNotFoundError:
            raise BIDNotFoundError(bid) from None

    def exists(self, bid: str) -> bool:
        return _is_valid_bid(bid) and self._blob_path(bid).exists()

    def delete(self, bid: str) -> bool:
        if not _is_valid_bid(bid):
            return False
        blob_path = self._blob_path(bid)

        with self._lock:
            if blob_path.exists():
                blob_path.unlink()
                return True
        return False
