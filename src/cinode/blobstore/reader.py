"""Read path for file and directory capabilities."""

from __future__ import annotations

import io
from collections.abc import Iterator

from cinode.cipherfactory import CipherFactory
from cinode.errors import SerializationError, UnexpectedBlobTypeError
from cinode.models import Capability, DirEntry
from cinode.blobstore.dirwriter import sort_key
from cinode.blobstore.hashvalidation import read_hash_validated_blob
from cinode.blobstore.serialization import (
    BLOB_TYPE_SIMPLE_FILE,
    BLOB_TYPE_SIMPLE_STATIC_DIR,
    BLOB_TYPE_SPLIT_FILE,
    BLOB_TYPE_SPLIT_STATIC_DIR,
    deserialize_capability,
    deserialize_entry,
    deserialize_int,
    deserialize_string,
)
from cinode.storage.base import BlobStorage


def _open_payload(
    storage: BlobStorage,
    cap: Capability,
    factory: CipherFactory,
    expected: tuple[int, ...],
    kind: str,
) -> tuple[int, io.BytesIO]:
    payload = read_hash_validated_blob(storage, cap, factory)
    blob_type = payload[0] if payload else None
    if blob_type not in expected:
        raise UnexpectedBlobTypeError(cap.bid, blob_type, kind)
    src = io.BytesIO(payload)
    src.seek(1)
    return blob_type, src


def _check_consumed(src: io.BytesIO, cap: Capability) -> None:
    if src.read(1):
        raise SerializationError("Trailing data after blob payload", bid=cap.bid)


def payload_type(storage: BlobStorage, cap: Capability, factory: CipherFactory) -> int:
    """Return the type tag of the payload behind ``cap``."""
    payload = read_hash_validated_blob(storage, cap, factory)
    if not payload:
        raise UnexpectedBlobTypeError(cap.bid, None, "a typed payload")
    return payload[0]


def _read_index(src: io.BytesIO, cap: Capability) -> tuple[int, list[Capability]]:
    total_size = deserialize_int(src)
    count = deserialize_int(src)
    children = [deserialize_capability(src) for _ in range(count)]
    _check_consumed(src, cap)
    return total_size, children


def iter_file(
    storage: BlobStorage, cap: Capability, factory: CipherFactory
) -> Iterator[bytes]:
    """Yield the content of a file, one stored block at a time."""
    kind, src = _open_payload(
        storage, cap, factory, (BLOB_TYPE_SIMPLE_FILE, BLOB_TYPE_SPLIT_FILE), "a file"
    )
    if kind == BLOB_TYPE_SIMPLE_FILE:
        data = src.read()
        if data:
            yield data
        return

    total_size, children = _read_index(src, cap)
    produced = 0
    for child in children:
        for chunk in iter_file(storage, child, factory):
            produced += len(chunk)
            yield chunk
    if produced != total_size:
        raise SerializationError(
            "File size does not match its index",
            bid=cap.bid,
            expected=total_size,
            got=produced,
        )


def read_file(storage: BlobStorage, cap: Capability, factory: CipherFactory) -> bytes:
    return b"".join(iter_file(storage, cap, factory))


def file_size(storage: BlobStorage, cap: Capability, factory: CipherFactory) -> int:
    """Content size, reading only the top-level blob."""
    kind, src = _open_payload(
        storage, cap, factory, (BLOB_TYPE_SIMPLE_FILE, BLOB_TYPE_SPLIT_FILE), "a file"
    )
    if kind == BLOB_TYPE_SIMPLE_FILE:
        return len(src.getbuffer()) - 1
    total_size, _ = _read_index(src, cap)
    return total_size


def _read_dir_node(
    storage: BlobStorage, cap: Capability, factory: CipherFactory
) -> tuple[int, list]:
    kind, src = _open_payload(
        storage,
        cap,
        factory,
        (BLOB_TYPE_SIMPLE_STATIC_DIR, BLOB_TYPE_SPLIT_STATIC_DIR),
        "a directory",
    )
    count = deserialize_int(src)
    if kind == BLOB_TYPE_SIMPLE_STATIC_DIR:
        items = [deserialize_entry(src) for _ in range(count)]
    else:
        items = [
            (deserialize_string(src), deserialize_capability(src))
            for _ in range(count)
        ]
    _check_consumed(src, cap)
    return kind, items


def iter_dir(
    storage: BlobStorage, cap: Capability, factory: CipherFactory
) -> Iterator[DirEntry]:
    """Yield all entries of a directory in name order."""
    kind, items = _read_dir_node(storage, cap, factory)
    if kind == BLOB_TYPE_SIMPLE_STATIC_DIR:
        yield from items
        return
    for _, child in items:
        yield from iter_dir(storage, child, factory)


def list_dir(
    storage: BlobStorage, cap: Capability, factory: CipherFactory
) -> list[DirEntry]:
    return list(iter_dir(storage, cap, factory))


def lookup(
    storage: BlobStorage, cap: Capability, name: str, factory: CipherFactory
) -> DirEntry | None:
    """Find the first entry called ``name``, or None.

    In split directories only the children whose name range can hold
    ``name`` are fetched. A child covers names from its own first name up
    to the next child's first name inclusive, since equal names may
    straddle a boundary.
    """
    kind, items = _read_dir_node(storage, cap, factory)
    target = sort_key(name)

    if kind == BLOB_TYPE_SIMPLE_STATIC_DIR:
        for entry in items:
            key = sort_key(entry.name)
            if key == target:
                return entry
            if key > target:
                return None
        return None

    for i, (first_name, child) in enumerate(items):
        if sort_key(first_name) > target:
            break
        if i + 1 < len(items) and sort_key(items[i + 1][0]) < target:
            continue
        found = lookup(storage, child, name, factory)
        if found is not None:
            return found
    return None
