"""Encrypted, content-addressed blob structures."""

from cinode.blobstore.dirwriter import MAX_SIMPLE_DIR_ENTRIES, DirBlobWriter
from cinode.blobstore.filewriter import BLOCK_SIZE, FileBlobWriter
from cinode.blobstore.hashvalidation import (
    create_hash_validated_blob,
    create_hash_validated_blob_from_bytes,
    read_hash_validated_blob,
)

__all__ = [
    "BLOCK_SIZE",
    "MAX_SIMPLE_DIR_ENTRIES",
    "DirBlobWriter",
    "FileBlobWriter",
    "create_hash_validated_blob",
    "create_hash_validated_blob_from_bytes",
    "read_hash_validated_blob",
]
