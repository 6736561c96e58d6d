"""Persistence subsystem for Dream Decor.

This package provides:
- The SaveSnapshot model (session state + timestamp, one per identity)
- Encoding/decoding to a stable JSON schema with versioning
- In-memory and file-backed stores with atomic writes
"""

from .models import SCHEMA_VERSION, SaveSnapshot
from .codec import decode_snapshot, encode_snapshot
from .store import FileStore, MemoryStore, PersistenceStore
from .paths import default_save_root, storage_key

__all__ = [
    "SCHEMA_VERSION",
    "SaveSnapshot",
    "encode_snapshot",
    "decode_snapshot",
    "PersistenceStore",
    "MemoryStore",
    "FileStore",
    "default_save_root",
    "storage_key",
]
