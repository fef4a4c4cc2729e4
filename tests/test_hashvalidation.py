"""Tests for hash-validated blob creation and reading."""

from __future__ import annotations

import hashlib
import io

import pytest

from cinode.blobstore.hashvalidation import (
    create_hash_validated_blob,
    create_hash_validated_blob_from_bytes,
    read_hash_validated_blob,
)
from cinode.blobstore.serialization import VALIDATION_METHOD_HASH
from cinode.cipherfactory import CipherFactory
from cinode.errors import (
    BIDNotFoundError,
    BlobValidationError,
    InsufficientKeySourceError,
    InvalidBlobError,
    InvalidKeyError,
)
from cinode.models import Capability
from cinode.storage import BlobStorage, MemoryBlobStorage
from cinode.storage.base import StagedBlobWriter


def _raw(storage: BlobStorage, bid: str) -> bytes:
    reader = storage.new_blob_reader(bid)
    try:
        return reader.read()
    finally:
        reader.close()


def test_round_trip(storage: BlobStorage, factory: CipherFactory, sample_contents):
    for content in sample_contents:
        cap = create_hash_validated_blob_from_bytes(content, storage, factory)
        assert read_hash_validated_blob(storage, cap, factory) == content


def test_blob_format(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    """Stored bytes are the validation tag followed by the ciphertext."""
    cap = create_hash_validated_blob_from_bytes(b"Hello World!", memory_storage, factory)
    raw = _raw(memory_storage, cap.bid)

    assert raw[0] == VALIDATION_METHOD_HASH
    assert len(raw) == 1 + len(b"Hello World!")
    assert b"Hello World!" not in raw
    assert cap.bid == hashlib.sha512(raw[1:]).hexdigest()
    assert len(cap.bid) == 128
    assert cap.bid == cap.bid.lower()


def test_convergent(factory: CipherFactory):
    """Independent stores of the same plaintext yield the same capability."""
    caps = [
        create_hash_validated_blob_from_bytes(b"same content", MemoryBlobStorage(), factory)
        for _ in range(2)
    ]
    assert caps[0] == caps[1]


def test_idempotent_store(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    cap1 = create_hash_validated_blob_from_bytes(b"twice", memory_storage, factory)
    cap2 = create_hash_validated_blob_from_bytes(b"twice", memory_storage, factory)

    assert cap1 == cap2
    assert len(memory_storage) == 1


def test_different_content_different_capability(
    memory_storage: MemoryBlobStorage, factory: CipherFactory
):
    cap1 = create_hash_validated_blob_from_bytes(b"Content A", memory_storage, factory)
    cap2 = create_hash_validated_blob_from_bytes(b"Content B", memory_storage, factory)

    assert cap1.bid != cap2.bid
    assert cap1.key != cap2.key


def test_reader_factory_called_twice(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    calls = []

    def open_plaintext():
        calls.append(1)
        return io.BytesIO(b"restartable")

    cap = create_hash_validated_blob(open_plaintext, memory_storage, factory)

    assert len(calls) == 2
    assert read_hash_validated_blob(memory_storage, cap, factory) == b"restartable"


class _FailingWriter(StagedBlobWriter):

    def __init__(self, bid: str, log: list[str]):
        super().__init__(bid)
        self.log = log

    def _write(self, data: bytes) -> None:
        raise OSError("disk full")

    def _finalize(self) -> None:
        self.log.append("finalize")

    def _discard(self) -> None:
        self.log.append("cancel")


class _FailingStorage(MemoryBlobStorage):

    def __init__(self):
        super().__init__()
        self.log: list[str] = []

    def new_blob_writer(self, bid: str) -> StagedBlobWriter:
        return _FailingWriter(bid, self.log)


def test_failure_cancels_writer(factory: CipherFactory):
    """Backend errors pass through unchanged and the staged blob is cancelled."""
    storage = _FailingStorage()

    with pytest.raises(OSError, match="disk full"):
        create_hash_validated_blob_from_bytes(b"data", storage, factory)

    assert storage.log == ["cancel"]
    assert len(storage) == 0


class _ShortHashFactory(CipherFactory):
    """Delegating factory whose hasher is too short to be a key source."""

    def __init__(self, inner: CipherFactory):
        self.inner = inner

    def create_encryptor(self, key_source, iv, sink):
        return self.inner.create_encryptor(key_source, iv, sink)

    def create_decryptor(self, key, iv, source):
        return self.inner.create_decryptor(key, iv, source)

    def create_hasher(self):
        return hashlib.md5()

    def get_min_key_source_bytes(self) -> int:
        return self.inner.get_min_key_source_bytes()


def test_insufficient_key_source_stores_nothing(
    memory_storage: MemoryBlobStorage, factory: CipherFactory
):
    with pytest.raises(InsufficientKeySourceError):
        create_hash_validated_blob_from_bytes(
            b"data", memory_storage, _ShortHashFactory(factory)
        )
    assert len(memory_storage) == 0


def test_read_missing_blob(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    cap = Capability(bid="00" * 64, key="01" + "00" * 32)
    with pytest.raises(BIDNotFoundError):
        read_hash_validated_blob(memory_storage, cap, factory)


def _store_raw(storage: BlobStorage, bid: str, data: bytes) -> None:
    writer = storage.new_blob_writer(bid)
    writer.write(data)
    writer.finalize()


def test_read_detects_tampering(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    cap = create_hash_validated_blob_from_bytes(b"original", memory_storage, factory)
    raw = bytearray(_raw(memory_storage, cap.bid))
    raw[-1] ^= 0xFF

    tampered = MemoryBlobStorage()
    _store_raw(tampered, cap.bid, bytes(raw))

    with pytest.raises(BlobValidationError, match="failed hash validation"):
        read_hash_validated_blob(tampered, cap, factory)


def test_read_unknown_validation_method(factory: CipherFactory):
    storage = MemoryBlobStorage()
    _store_raw(storage, "ab" * 64, b"\x07ciphertext")

    with pytest.raises(InvalidBlobError, match="unknown validation method"):
        read_hash_validated_blob(storage, Capability(bid="ab" * 64, key="01" + "00" * 32), factory)


def test_read_empty_blob(factory: CipherFactory):
    storage = MemoryBlobStorage()
    _store_raw(storage, "ab" * 64, b"")

    with pytest.raises(InvalidBlobError, match="empty blob"):
        read_hash_validated_blob(storage, Capability(bid="ab" * 64, key="01" + "00" * 32), factory)


def test_read_with_bad_key(memory_storage: MemoryBlobStorage, factory: CipherFactory):
    cap = create_hash_validated_blob_from_bytes(b"data", memory_storage, factory)

    with pytest.raises(InvalidKeyError):
        read_hash_validated_blob(memory_storage, Capability(bid=cap.bid, key="zz"), factory)
