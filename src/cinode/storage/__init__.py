"""Storage backends for cinode."""

from cinode.storage.base import BlobStorage, StagedBlobWriter
from cinode.storage.filesystem import FileBlobStorage
from cinode.storage.memory import MemoryBlobStorage

__all__ = ["BlobStorage", "StagedBlobWriter", "FileBlobStorage", "MemoryBlobStorage"]
