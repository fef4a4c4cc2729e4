"""Binary encoding used inside blob payloads.

Integers are unsigned LEB128 varints, strings are a varint byte length
followed by UTF-8 bytes.
"""

from __future__ import annotations

from typing import BinaryIO

from cinode.errors import SerializationError
from cinode.models import Capability, DirEntry


# Validation method tag stored in front of every blob's ciphertext
VALIDATION_METHOD_HASH = 0x01

# Blob type tag leading every plaintext payload
BLOB_TYPE_SIMPLE_FILE = 0x01
BLOB_TYPE_SPLIT_FILE = 0x02
BLOB_TYPE_SIMPLE_STATIC_DIR = 0x11
BLOB_TYPE_SPLIT_STATIC_DIR = 0x12


def serialize_int(value: int, out: BinaryIO) -> None:
    if value < 0:
        raise ValueError("Only non-negative integers can be serialized")
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.write(bytes((byte | 0x80,)))
        else:
            out.write(bytes((byte,)))
            return


def deserialize_int(src: BinaryIO) -> int:
    result = 0
    shift = 0
    while True:
        b = src.read(1)
        if not b:
            raise SerializationError("Unexpected end of data while reading integer")
        result |= (b[0] & 0x7F) << shift
        if not b[0] & 0x80:
            return result
        shift += 7
        if shift > 63:
            raise SerializationError("Integer overflow")


def serialize_string(value: str, out: BinaryIO) -> None:
    data = value.encode("utf-8")
    serialize_int(len(data), out)
    out.write(data)


def deserialize_string(src: BinaryIO) -> str:
    length = deserialize_int(src)
    data = src.read(length)
    if len(data) != length:
        raise SerializationError(
            "Unexpected end of data while reading string",
            expected=length,
            got=len(data),
        )
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SerializationError("String is not valid UTF-8") from e


def serialize_capability(cap: Capability, out: BinaryIO) -> None:
    serialize_string(cap.bid, out)
    serialize_string(cap.key, out)


def deserialize_capability(src: BinaryIO) -> Capability:
    bid = deserialize_string(src)
    key = deserialize_string(src)
    return Capability(bid=bid, key=key)


def serialize_entry(entry: DirEntry, out: BinaryIO) -> None:
    serialize_string(entry.name, out)
    serialize_string(entry.mime_type, out)
    serialize_string(entry.bid, out)
    serialize_string(entry.key, out)


def deserialize_entry(src: BinaryIO) -> DirEntry:
    name = deserialize_string(src)
    mime_type = deserialize_string(src)
    bid = deserialize_string(src)
    key = deserialize_string(src)
    try:
        return DirEntry(name=name, mime_type=mime_type, bid=bid, key=key)
    except ValueError as e:
        raise SerializationError("Invalid directory entry") from e


def int_size(value: int) -> int:
    """Number of bytes serialize_int() emits for ``value``."""
    size = 1
    while value >= 0x80:
        value >>= 7
        size += 1
    return size


def string_size(value: str) -> int:
    length = len(value.encode("utf-8"))
    return int_size(length) + length
