"""Core data models for cinode.

Identifier semantics:
- bid: Hex SHA-512 of a blob's ciphertext, the storage-level name
- key: Printable, tagged symmetric key unlocking that ciphertext
- capability: (bid, key) pair, sufficient to fetch and decrypt content
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


MIME_TYPE_DIR = "application/x-cinode-dir"
MIME_TYPE_FILE = "application/octet-stream"


class Capability(BaseModel):
    """Blob id plus the key that decrypts it."""
    model_config = ConfigDict(frozen=True)

    bid: str
    key: str

    def __str__(self) -> str:
        return f"{self.bid}:{self.key}"

    @classmethod
    def parse(cls, value: str) -> Capability:
        """Parse the ``bid:key`` form produced by ``str()``."""
        bid, sep, key = value.partition(":")
        if not sep or not bid or not key:
            raise ValueError(f"Not a capability string: {value!r}")
        return cls(bid=bid, key=key)


class DirEntry(BaseModel):
    """Named directory entry pointing at a child blob."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    mime_type: str = MIME_TYPE_FILE
    bid: str
    key: str

    @classmethod
    def for_capability(
        cls, name: str, capability: Capability, mime_type: str = MIME_TYPE_FILE
    ) -> DirEntry:
        return cls(name=name, mime_type=mime_type, bid=capability.bid, key=capability.key)

    @property
    def capability(self) -> Capability:
        return Capability(bid=self.bid, key=self.key)

    @property
    def is_dir(self) -> bool:
        return self.mime_type == MIME_TYPE_DIR
