"""
Index persistence: named files and in-memory byte buffers.

The byte format belongs to the engine and is treated as opaque. What this
module guarantees is its own round-trip metadata: a handle read back
reports the same dimension, metric, size, trained flag and variant tag
as the handle that was written.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import faiss
import numpy as np

from ..core.exceptions import IndexFreedError, InvalidArgumentError, ValidationError
from ..core.handle import IndexHandle, probe_variant, require_index
from ..core.result import fault_boundary
from ..core.types import Metric
from ..utils.logging import get_logger


logger = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class LoadedIndex:
    """
    Handle reconstructed by a read, with its recovered metadata.
    
    Attributes:
        handle: New index handle, owned by the caller
        d: Vector dimension (bits for binary indexes)
        metric: Metric, None for binary indexes
        ntotal: Number of stored vectors
        is_trained: Trained flag
        variant_tag: Engine class tag recovered by probing
    """
    
    handle: IndexHandle
    d: int
    metric: Optional[Metric]
    ntotal: int
    is_trained: bool
    variant_tag: str
    
    def __iter__(self):
        yield self.handle
        yield self.d
        yield self.metric
        yield self.ntotal
        yield self.is_trained
        yield self.variant_tag


@dataclass
class IndexBuffer:
    """Caller-owned serialized index. Release with ``free_buffer``."""
    
    data: Optional[bytes]
    released: bool = field(default=False, repr=False)
    
    @property
    def size(self) -> int:
        if self.released:
            raise IndexFreedError("index buffer has been freed")
        return len(self.data)
    
    def __len__(self) -> int:
        return self.size
    
    def __bytes__(self) -> bytes:
        if self.released:
            raise IndexFreedError("index buffer has been freed")
        return self.data


def _wrap(raw: Any, binary: bool) -> LoadedIndex:
    variant, tag = probe_variant(raw, binary=binary)
    handle = IndexHandle(raw, variant)
    
    return LoadedIndex(
        handle=handle,
        d=int(raw.d),
        metric=None if binary else Metric.from_faiss(raw.metric_type),
        ntotal=int(raw.ntotal),
        is_trained=bool(raw.is_trained),
        variant_tag=tag,
    )


def _as_bytes(data: Any) -> np.ndarray:
    if isinstance(data, IndexBuffer):
        data = bytes(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        array = np.frombuffer(data, dtype=np.uint8)
    elif isinstance(data, np.ndarray):
        array = np.ascontiguousarray(data, dtype=np.uint8).ravel()
    else:
        raise InvalidArgumentError(
            f"Expected bytes or an IndexBuffer, got {type(data).__name__}"
        )
    if array.size == 0:
        raise ValidationError("Cannot deserialize an empty buffer")
    return array


# =========================================================================
# FILES
# =========================================================================

@fault_boundary
def write_index(handle: IndexHandle, path: PathLike) -> None:
    """
    Write an index to ``path``, overwriting any existing file.
    
    Args:
        handle: Index handle (float or binary)
        path: Destination file
    """
    index = require_index(handle)
    target = os.fspath(path)
    
    if index.is_binary:
        faiss.write_index_binary(index.raw, target)
    else:
        faiss.write_index(index.raw, target)
    
    logger.info(f"Wrote {index!r} to {target}")


@fault_boundary
def read_index(path: PathLike, binary: bool = False) -> LoadedIndex:
    """
    Read an index written by ``write_index``.
    
    Args:
        path: Source file
        binary: Read with the binary-index reader
        
    Returns:
        LoadedIndex with the new handle and its recovered metadata
    """
    source = os.fspath(path)
    if not os.path.isfile(source):
        raise ValidationError(f"Index file not found: {source}")
    
    raw = faiss.read_index_binary(source) if binary else faiss.read_index(source)
    loaded = _wrap(raw, binary)
    
    logger.info(f"Read {loaded.variant_tag} index from {source} ({loaded.ntotal} vectors)")
    return loaded


# =========================================================================
# BUFFERS
# =========================================================================

@fault_boundary
def serialize_index(handle: IndexHandle) -> IndexBuffer:
    """Serialize an index into a new caller-owned buffer."""
    index = require_index(handle)
    
    if index.is_binary:
        array = faiss.serialize_index_binary(index.raw)
    else:
        array = faiss.serialize_index(index.raw)
    
    buf = IndexBuffer(data=array.tobytes())
    logger.debug(f"Serialized {index!r} into {buf.size} bytes")
    return buf


@fault_boundary
def deserialize_index(data: Union[IndexBuffer, bytes], binary: bool = False) -> LoadedIndex:
    """
    Rebuild an index from bytes produced by ``serialize_index``.
    
    The source buffer is left untouched and stays owned by the caller.
    """
    array = _as_bytes(data)
    
    if binary:
        raw = faiss.deserialize_index_binary(array)
    else:
        raw = faiss.deserialize_index(array)
    
    loaded = _wrap(raw, binary)
    logger.debug(f"Deserialized {loaded.variant_tag} index ({loaded.ntotal} vectors)")
    return loaded


@fault_boundary
def free_buffer(buf: IndexBuffer) -> None:
    """Release a buffer returned by ``serialize_index``."""
    if not isinstance(buf, IndexBuffer):
        raise InvalidArgumentError(
            f"expected an IndexBuffer, got {type(buf).__name__}"
        )
    if buf.released:
        raise IndexFreedError("index buffer has already been freed")
    buf.data = None
    buf.released = True


@fault_boundary
def clone_index(handle: IndexHandle) -> IndexHandle:
    """Independent deep copy of an index, through a serialize round trip."""
    index = require_index(handle)
    buf = serialize_index(index).unwrap()
    try:
        clone = deserialize_index(buf, binary=index.is_binary).unwrap().handle
    finally:
        free_buffer(buf)
    clone.params.update(index.params)
    return clone
