"""
Common operation facade shared by every index variant.

These operations perform no variant check of their own: whatever the
engine refuses for a given variant (adding before training, adding
without ids to an id map, ...) comes back as an internal fault. Queries
against an untrained index are rejected before reaching the engine.

Example:
    >>> from indexbridge.index import flat_index, add, search
    >>> 
    >>> index = flat_index(4).unwrap()
    >>> add(index, vectors)
    >>> result = search(index, queries, k=3).unwrap()
    >>> result.labels[0]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import faiss
import numpy as np
from numpy.typing import NDArray

from ..core.exceptions import (
    CapabilityMismatchError,
    IndexFreedError,
    InvalidArgumentError,
    ValidationError,
)
from ..core.handle import IndexHandle, require_capability, require_index, variant_tag
from ..core.result import fault_boundary
from ..core.types import Capability, Metric, ScalarQuantizerKind, Variant
from ..utils.logging import get_logger
from ..utils.metrics import timed
from ..utils.validation import validate_ids, validate_k, validate_vectors


logger = get_logger(__name__)


@dataclass
class SearchResult:
    """
    k-nearest-neighbor results, row-major.
    
    Attributes:
        distances: (n, k) distances (int32 Hamming for binary indexes)
        labels: (n, k) labels, -1 where fewer than k results exist
    """
    
    distances: NDArray
    labels: NDArray
    
    @property
    def n(self) -> int:
        return self.labels.shape[0]
    
    @property
    def k(self) -> int:
        return self.labels.shape[1]
    
    def __iter__(self):
        yield self.distances
        yield self.labels
    
    def __repr__(self) -> str:
        return f"SearchResult(n={self.n}, k={self.k})"


@dataclass
class RangeSearchResult:
    """
    Variable-length range search results.
    
    Neighbors of query ``i`` are ``labels[lims[i]:lims[i + 1]]``. The
    result is not owned by any index; release it with
    ``free_range_result``.
    """
    
    lims: NDArray
    labels: NDArray
    distances: NDArray
    released: bool = field(default=False, repr=False)
    
    @property
    def nq(self) -> int:
        return len(self.lims) - 1
    
    def query_results(self, i: int):
        """(labels, distances) for query ``i``."""
        if self.released:
            raise IndexFreedError("range search result has been freed")
        start, end = self.lims[i], self.lims[i + 1]
        return self.labels[start:end], self.distances[start:end]


@dataclass
class IndexInfo:
    """Snapshot describing an index handle."""
    
    variant: str
    tag: str
    dimension: int
    ntotal: int
    is_trained: bool
    metric: Optional[str]
    device: Optional[int] = None
    params: Dict[str, Any] = field(default_factory=dict)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant": self.variant,
            "tag": self.tag,
            "dimension": self.dimension,
            "ntotal": self.ntotal,
            "is_trained": self.is_trained,
            "metric": self.metric,
            "device": self.device,
            **self.params,
        }


def _vectors(index: IndexHandle, vectors: Any) -> NDArray:
    return validate_vectors(vectors, index.raw.d, binary=index.is_binary)


def _sync(index: IndexHandle) -> None:
    # Shards can receive vectors directly after they were added to the set.
    if index.variant is Variant.SHARDS:
        index.raw.syncWithSubIndexes()


# Variants whose keys are dense storage positions. The engine does not
# bound-check them.
_POSITIONAL_VARIANTS = frozenset(
    {
        Variant.FLAT,
        Variant.HNSW,
        Variant.PQ,
        Variant.PQ_FASTSCAN,
        Variant.SQ,
        Variant.BINARY_FLAT,
    }
)


def _check_key(index: IndexHandle, key: int) -> None:
    if key < 0:
        raise ValidationError(f"key must be non-negative, got {key}")
    if index.variant in _POSITIONAL_VARIANTS and key >= index.raw.ntotal:
        raise ValidationError(f"key {key} out of range for ntotal {index.raw.ntotal}")


def _require_trained(index: IndexHandle, operation: str) -> None:
    if not index.raw.is_trained:
        raise InvalidArgumentError(f"index must be trained before {operation}")


def _empty_search(index: IndexHandle, k: int) -> SearchResult:
    dtype = np.int32 if index.is_binary else np.float32
    return SearchResult(
        distances=np.empty((0, k), dtype=dtype),
        labels=np.empty((0, k), dtype=np.int64),
    )


# =========================================================================
# MUTATING OPERATIONS
# =========================================================================

@fault_boundary
def add(handle: IndexHandle, vectors: Any) -> None:
    """
    Append vectors; ``ntotal`` grows by the number of rows.
    
    Fails when the variant requires training and the index is untrained.
    """
    index = require_index(handle)
    x = _vectors(index, vectors)
    if len(x) == 0:
        return None
    
    with timed("add", len(x)):
        index.raw.add(x)


@fault_boundary
def add_with_ids(handle: IndexHandle, vectors: Any, ids: Any) -> None:
    """
    Append vectors under caller-supplied int64 ids.
    
    Ids must be unique within the batch and, for id maps, must not be
    present in the index already.
    """
    index = require_index(handle)
    x = _vectors(index, vectors)
    xids = validate_ids(ids, count=len(x))
    if len(x) == 0:
        return None
    
    if index.variant is Variant.IDMAP:
        present = faiss.vector_to_array(index.raw.id_map)
        clash = np.intersect1d(present, xids)
        if clash.size:
            raise ValidationError(
                f"{clash.size} ids already present in the index (first: {clash[0]})"
            )
    
    with timed("add", len(x)):
        index.raw.add_with_ids(x, xids)


@fault_boundary
def train(handle: IndexHandle, vectors: Any) -> None:
    """
    Train the index. A no-op for variants that are always trained.
    """
    index = require_index(handle)
    x = _vectors(index, vectors)
    if len(x) == 0:
        return None
    
    with timed("train", len(x)):
        index.raw.train(x)
    logger.debug(f"Trained {index!r} on {len(x)} vectors")


@fault_boundary
def reset(handle: IndexHandle) -> None:
    """Remove all vectors. The trained state is kept."""
    index = require_index(handle)
    with timed("reset", 0):
        index.raw.reset()


# =========================================================================
# QUERIES
# =========================================================================

@fault_boundary
def search(handle: IndexHandle, queries: Any, k: int) -> SearchResult:
    """
    k-nearest-neighbor search.
    
    Results are ordered by ascending distance for L2 and descending
    score for inner product; ties are broken by the engine.
    
    Args:
        handle: Index handle
        queries: (n, d) query batch
        k: Number of results per query
        
    Returns:
        SearchResult with (n, k) distances and labels
    """
    index = require_index(handle)
    k = validate_k(k)
    x = _vectors(index, queries)
    _require_trained(index, "search")
    if len(x) == 0:
        return _empty_search(index, k)
    
    _sync(index)
    with timed("search", len(x), len(x) * k):
        distances, labels = index.raw.search(x, k)
    
    return SearchResult(distances=distances, labels=labels)


@fault_boundary
def range_search(handle: IndexHandle, queries: Any, radius: float) -> RangeSearchResult:
    """
    Return every stored vector within ``radius`` of each query.
    
    For inner product the radius is a minimum score. Binary indexes take
    an integer Hamming radius.
    """
    index = require_index(handle)
    x = _vectors(index, queries)
    _require_trained(index, "range search")
    radius = int(radius) if index.is_binary else float(radius)
    if len(x) == 0:
        return RangeSearchResult(
            lims=np.zeros(1, dtype=np.uint64),
            labels=np.empty(0, dtype=np.int64),
            distances=np.empty(0, dtype=np.int32 if index.is_binary else np.float32),
        )
    
    with timed("search", len(x)):
        lims, distances, labels = index.raw.range_search(x, radius)
    
    return RangeSearchResult(lims=lims, labels=labels, distances=distances)


@fault_boundary
def free_range_result(result: RangeSearchResult) -> None:
    """Release a range search result."""
    if not isinstance(result, RangeSearchResult):
        raise InvalidArgumentError(
            f"expected a RangeSearchResult, got {type(result).__name__}"
        )
    if result.released:
        raise IndexFreedError("range search result has already been freed")
    result.lims = result.labels = result.distances = None
    result.released = True


@fault_boundary
def assign(handle: IndexHandle, vectors: Any) -> NDArray:
    """
    Nearest-partition label for each vector (inverted-file family only).
    """
    index = require_capability(handle, Capability.ASSIGN)
    x = _vectors(index, vectors)
    _require_trained(index, "assign")
    if len(x) == 0:
        return np.empty(0, dtype=np.int64)
    
    _, labels = index.raw.quantizer.search(x, 1)
    return labels[:, 0]


@fault_boundary
def reconstruct(handle: IndexHandle, key: int) -> NDArray:
    """
    Stored (or decoded, for quantized variants) vector for ``key``.
    
    Undefined after removals that reorganise dense storage.
    """
    index = require_index(handle)
    if isinstance(key, bool) or not isinstance(key, (int, np.integer)):
        raise ValidationError(f"key must be an integer, got {type(key).__name__}")
    _check_key(index, int(key))
    return index.raw.reconstruct(int(key))


@fault_boundary
def reconstruct_n(handle: IndexHandle, start: int, count: int) -> NDArray:
    """Vectors stored at positions ``start .. start + count - 1``."""
    index = require_index(handle)
    start, count = int(start), int(count)
    if start < 0 or count < 0:
        raise ValidationError(f"Invalid range start={start}, count={count}")
    _sync(index)
    if start + count > index.raw.ntotal:
        raise ValidationError(
            f"Range [{start}, {start + count}) exceeds ntotal {index.raw.ntotal}"
        )
    return index.raw.reconstruct_n(start, count)


@fault_boundary
def reconstruct_batch(handle: IndexHandle, keys: Any) -> NDArray:
    """Vectors for an arbitrary list of keys, one row per key."""
    index = require_index(handle)
    xkeys = validate_ids(keys, unique=False)
    width = index.raw.d // 8 if index.is_binary else index.raw.d
    dtype = np.uint8 if index.is_binary else np.float32
    out = np.empty((len(xkeys), width), dtype=dtype)
    for row, key in enumerate(xkeys):
        _check_key(index, int(key))
        out[row] = index.raw.reconstruct(int(key))
    return out


# =========================================================================
# ACCESSORS
# =========================================================================

@fault_boundary
def ntotal(handle: IndexHandle) -> int:
    """Number of stored vectors."""
    index = require_index(handle)
    _sync(index)
    return int(index.raw.ntotal)


@fault_boundary
def dimension(handle: IndexHandle) -> int:
    """Vector dimension (bits for binary indexes)."""
    return int(require_index(handle).raw.d)


@fault_boundary
def is_trained(handle: IndexHandle) -> bool:
    return bool(require_index(handle).raw.is_trained)


@fault_boundary
def metric(handle: IndexHandle) -> Metric:
    """Distance metric of a float index."""
    index = require_index(handle)
    if index.is_binary:
        raise CapabilityMismatchError("binary indexes have no float metric")
    return Metric.from_faiss(index.raw.metric_type)


def _sq_kind(qtype: int) -> Any:
    try:
        return ScalarQuantizerKind.from_faiss(qtype).value
    except ValueError:
        return int(qtype)


def _variant_params(index: IndexHandle) -> Dict[str, Any]:
    # Values read back from the engine object win over constructor
    # arguments, so factory-built and deserialized handles report them too.
    raw = index.raw
    params = dict(index.params)
    variant = index.variant
    
    if variant in (Variant.IVF, Variant.BINARY_IVF):
        params["nlist"] = int(raw.nlist)
        params["nprobe"] = int(raw.nprobe)
    if variant is Variant.IVF:
        if hasattr(raw, "pq"):
            params["M"] = int(raw.pq.M)
            params["nbits"] = int(raw.pq.nbits)
        if hasattr(raw, "sq"):
            params["qtype"] = _sq_kind(raw.sq.qtype)
        if hasattr(raw, "bbs"):
            params["bbs"] = int(raw.bbs)
    elif variant is Variant.HNSW:
        params["M"] = int(raw.hnsw.nb_neighbors(1))
        params["ef_construction"] = int(raw.hnsw.efConstruction)
        params["ef_search"] = int(raw.hnsw.efSearch)
    elif variant in (Variant.PQ, Variant.PQ_FASTSCAN):
        params["M"] = int(raw.pq.M)
        params["nbits"] = int(raw.pq.nbits)
        if variant is Variant.PQ_FASTSCAN:
            params["bbs"] = int(raw.bbs)
    elif variant is Variant.SQ:
        params["qtype"] = _sq_kind(raw.sq.qtype)
    elif variant is Variant.LSH:
        params["nbits"] = int(raw.nbits)
    elif variant is Variant.REFINE:
        params["k_factor"] = float(raw.k_factor)
    elif variant is Variant.SHARDS:
        params["shards"] = int(raw.count())
    
    return params


@fault_boundary
def describe(handle: IndexHandle) -> IndexInfo:
    """
    Describe an index handle.
    
    Returns:
        IndexInfo with the variant, tag, dimension, size, trained flag,
        metric, device and variant parameters
    """
    index = require_index(handle)
    _sync(index)
    raw = index.raw
    
    return IndexInfo(
        variant=index.variant.value,
        tag=variant_tag(index),
        dimension=int(raw.d),
        ntotal=int(raw.ntotal),
        is_trained=bool(raw.is_trained),
        metric=None if index.is_binary else Metric.from_faiss(raw.metric_type).value,
        device=index.device,
        params=_variant_params(index),
    )
