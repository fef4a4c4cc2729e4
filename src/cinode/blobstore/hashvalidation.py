"""Hash-validated blobs.

Creation turns one unit of plaintext into a stored, encrypted blob:

1. hash the plaintext, the digest is the key source (convergent encryption)
2. encrypt the plaintext into a temp buffer
3. hash the ciphertext, its hex digest is the blob id
4. stage [VALIDATION_METHOD_HASH][ciphertext] under that id and finalize

The plaintext is read twice, so callers hand in a factory that opens a
fresh reader each time. Reading reverses the process and refuses blobs
whose ciphertext does not hash to their id.
"""

from __future__ import annotations

import io
import tempfile
import time
from collections.abc import Callable
from typing import BinaryIO

from cinode.cipherfactory import CipherFactory, Hasher
from cinode.errors import BlobValidationError, InvalidBlobError
from cinode.logging_config import StructuredLogger
from cinode.models import Capability
from cinode.blobstore.serialization import VALIDATION_METHOD_HASH
from cinode.storage.base import BlobStorage

logger = StructuredLogger(__name__)

ReaderFactory = Callable[[], BinaryIO]

_COPY_CHUNK = 64 * 1024

# Ciphertext above this size spills from memory to a temp file
_SPOOL_MAX_SIZE = 4 * 1024 * 1024

_EMPTY_IV = b""


def _copy(src: BinaryIO, dst) -> int:
    total = 0
    while True:
        chunk = src.read(_COPY_CHUNK)
        if not chunk:
            return total
        dst.write(chunk)
        total += len(chunk)


def _hash_stream(hasher: Hasher, src: BinaryIO) -> None:
    while True:
        chunk = src.read(_COPY_CHUNK)
        if not chunk:
            return
        hasher.update(chunk)


def create_hash_validated_blob(
    reader_factory: ReaderFactory,
    storage: BlobStorage,
    factory: CipherFactory,
) -> Capability:
    """Encrypt and store the plaintext produced by ``reader_factory``.

    Args:
        reader_factory: Returns a new reader positioned at the start of the
            plaintext on every call
        storage: Backend receiving the blob
        factory: Cipher factory providing hasher and encryptor

    Returns:
        Capability (blob id and key) of the stored blob

    Raises:
        InsufficientKeySourceError: If the factory's hash is too short to
            serve as key source
        BIDCollisionError: If different content already sits under the id
    """
    start = time.perf_counter()

    hasher = factory.create_hasher()
    _hash_stream(hasher, reader_factory())
    key_source = hasher.digest()

    with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_SIZE) as encrypted:
        encryptor, key = factory.create_encryptor(key_source, _EMPTY_IV, encrypted)
        with encryptor:
            size = _copy(reader_factory(), encryptor)

        encrypted.seek(0)
        hasher = factory.create_hasher()
        _hash_stream(hasher, encrypted)
        bid = hasher.hexdigest()

        encrypted.seek(0)
        with storage.new_blob_writer(bid) as blob_writer:
            try:
                blob_writer.write(bytes((VALIDATION_METHOD_HASH,)))
                _copy(encrypted, blob_writer)
                blob_writer.finalize()
            except Exception as e:
                logger.error(
                    f"Failed to store blob: {e}",
                    blob_id=bid,
                    operation="blob.create",
                    error_type=type(e).__name__,
                )
                raise

    logger.debug(
        "Stored hash-validated blob",
        blob_id=bid,
        operation="blob.create",
        duration_ms=int((time.perf_counter() - start) * 1000),
        size=size,
    )
    return Capability(bid=bid, key=key)


def create_hash_validated_blob_from_bytes(
    data: bytes, storage: BlobStorage, factory: CipherFactory
) -> Capability:
    """Store an in-memory payload; see create_hash_validated_blob()."""
    return create_hash_validated_blob(lambda: io.BytesIO(data), storage, factory)


def read_hash_validated_blob(
    storage: BlobStorage,
    cap: Capability,
    factory: CipherFactory,
) -> bytes:
    """Fetch, validate and decrypt one blob.

    Raises:
        BIDNotFoundError: If the blob is not stored
        InvalidBlobError: If the blob is empty or uses an unknown validation method
        BlobValidationError: If the ciphertext does not hash to the blob id
        InvalidKeyError: If the key string cannot be parsed
    """
    reader = storage.new_blob_reader(cap.bid)
    try:
        data = reader.read()
    finally:
        reader.close()

    if not data:
        raise InvalidBlobError(cap.bid, "empty blob")
    if data[0] != VALIDATION_METHOD_HASH:
        raise InvalidBlobError(cap.bid, f"unknown validation method 0x{data[0]:02x}")

    ciphertext = memoryview(data)[1:]
    hasher = factory.create_hasher()
    hasher.update(ciphertext)
    actual = hasher.hexdigest()
    if actual != cap.bid:
        raise BlobValidationError(cap.bid, actual)

    decryptor = factory.create_decryptor(cap.key, _EMPTY_IV, io.BytesIO(ciphertext))
    return decryptor.read()
