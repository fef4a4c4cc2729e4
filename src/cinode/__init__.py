"""cinode: content-addressed, encrypted blob storage.

Content goes in as a byte stream (a file) or a set of named entries (a
directory) and comes back as a capability: the blob id naming the
ciphertext plus the key decrypting it.

Key features:
- Convergent encryption: identical plaintext yields identical capabilities
- Storage backends never see plaintext or keys
- Large files split into fixed-size blocks with block-level dedup
- Large directories split into a tree of directory blobs
"""

__version__ = "0.1.0"

from cinode.models import Capability, DirEntry
from cinode.store import BlobStore, create_store

__all__ = ["BlobStore", "Capability", "DirEntry", "create_store", "__version__"]
