"""Cipher and hash factory.

A factory hands out three primitives: a streaming encryptor that derives
its key from caller-supplied key source material, the matching streaming
decryptor, and an incremental hasher. Everything above this module
(pipeline, writers, readers) goes through the ``CipherFactory`` contract
and never touches a concrete algorithm.

Key strings are printable and self-describing: a two hex digit algorithm
tag followed by the hex-encoded key material, e.g. ``"01" + 64 hex``.
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from typing import BinaryIO, Protocol

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from cinode.errors import InsufficientKeySourceError, InvalidKeyError


# 256 bits of derivation material (policy floor is 128 bits)
MIN_KEY_SOURCE_BYTES = 32

KEY_TYPE_AES256_CTR = 0x01

_AES_KEY_BYTES = 32
_AES_BLOCK_BYTES = 16
_HEX_KEY_RE = re.compile(r"[0-9a-f]+")


class Hasher(Protocol):
    """Incremental digest accumulator (``hashlib`` compatible)."""

    def update(self, data: bytes, /) -> None: ...

    def digest(self) -> bytes: ...

    def hexdigest(self) -> str: ...


class Encryptor:
    """Writable stream that encrypts and forwards every write to a sink."""

    def __init__(self, encryptor, sink: BinaryIO):
        self._encryptor = encryptor
        self._sink = sink
        self._closed = False

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed encryptor")
        self._sink.write(self._encryptor.update(bytes(data)))
        return len(data)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            tail = self._encryptor.finalize()
            if tail:
                self._sink.write(tail)

    def __enter__(self) -> Encryptor:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Decryptor:
    """Readable stream decrypting lazily from an underlying source."""

    def __init__(self, decryptor, source: BinaryIO):
        self._decryptor = decryptor
        self._source = source
        self._eof = False

    def read(self, size: int = -1) -> bytes:
        if self._eof:
            return b""
        if size is None or size < 0:
            data = self._source.read()
        else:
            data = self._source.read(size)
        if not data:
            self._eof = True
            return self._decryptor.finalize()
        return self._decryptor.update(data)

    def __iter__(self):
        while True:
            chunk = self.read(64 * 1024)
            if not chunk:
                return
            yield chunk


class CipherFactory(ABC):
    """Source of the cryptographic primitives used by the blob store."""

    @abstractmethod
    def create_encryptor(
        self, key_source: bytes, iv: bytes, sink: BinaryIO
    ) -> tuple[Encryptor, str]:
        """Derive a key from ``key_source`` and return (encryptor, key string).

        Raises:
            InsufficientKeySourceError: If key_source is below the policy minimum
        """

    @abstractmethod
    def create_decryptor(self, key: str, iv: bytes, source: BinaryIO) -> Decryptor:
        """Return a lazy decrypting reader over ``source``.

        Raises:
            InvalidKeyError: If the key string cannot be parsed
        """

    @abstractmethod
    def create_hasher(self) -> Hasher:
        """Return a fresh incremental hasher."""

    @abstractmethod
    def get_min_key_source_bytes(self) -> int:
        """Minimal accepted key source length in bytes."""


class AESCipherFactory(CipherFactory):
    """AES-256-CTR encryption, SHA-512 hashing.

    The AES key is SHA-256 over the key source. CTR needs a 16 byte nonce;
    shorter ivs (including an empty one) are stretched deterministically
    with the key, longer ones are truncated.
    """

    def create_encryptor(
        self, key_source: bytes, iv: bytes, sink: BinaryIO
    ) -> tuple[Encryptor, str]:
        if len(key_source) < MIN_KEY_SOURCE_BYTES:
            raise InsufficientKeySourceError(len(key_source), MIN_KEY_SOURCE_BYTES)

        key_bytes = hashlib.sha256(key_source).digest()
        cipher = self._cipher(key_bytes, iv)
        key = f"{KEY_TYPE_AES256_CTR:02x}{key_bytes.hex()}"
        return Encryptor(cipher.encryptor(), sink), key

    def create_decryptor(self, key: str, iv: bytes, source: BinaryIO) -> Decryptor:
        key_bytes = _parse_key(key)
        return Decryptor(self._cipher(key_bytes, iv).decryptor(), source)

    def create_hasher(self) -> Hasher:
        return hashlib.sha512()

    def get_min_key_source_bytes(self) -> int:
        return MIN_KEY_SOURCE_BYTES

    @staticmethod
    def _cipher(key_bytes: bytes, iv: bytes) -> Cipher:
        iv = bytes(iv or b"")
        if len(iv) >= _AES_BLOCK_BYTES:
            nonce = iv[:_AES_BLOCK_BYTES]
        else:
            nonce = hashlib.sha256(key_bytes + iv).digest()[:_AES_BLOCK_BYTES]
        return Cipher(algorithms.AES(key_bytes), modes.CTR(nonce))


def _parse_key(key: str) -> bytes:
    if not key:
        raise InvalidKeyError("empty key")
    if len(key) < 2:
        raise InvalidKeyError("key too short", length=len(key))
    # Keys are produced as lowercase hex only
    if not _HEX_KEY_RE.fullmatch(key):
        raise InvalidKeyError("key is not lowercase hex encoded")

    key_type = int(key[:2], 16)
    if key_type != KEY_TYPE_AES256_CTR:
        raise InvalidKeyError(f"unknown key type 0x{key_type:02x}")

    material = key[2:]
    if len(material) != _AES_KEY_BYTES * 2:
        raise InvalidKeyError(
            "invalid key length", expected=_AES_KEY_BYTES * 2, got=len(material)
        )
    return bytes.fromhex(material)


def create() -> CipherFactory:
    """Create the default cipher factory."""
    return AESCipherFactory()
