"""
Storage module for IndexBridge.

Provides index persistence to files and in-memory buffers.
"""

from .serialization import (
    LoadedIndex,
    IndexBuffer,
    write_index,
    read_index,
    serialize_index,
    deserialize_index,
    free_buffer,
    clone_index,
)

__all__ = [
    "LoadedIndex",
    "IndexBuffer",
    "write_index",
    "read_index",
    "serialize_index",
    "deserialize_index",
    "free_buffer",
    "clone_index",
]
