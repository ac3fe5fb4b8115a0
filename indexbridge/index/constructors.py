"""
Constructors for the float index family.

Every constructor returns ``Result[IndexHandle]``. The variant tag of the
handle is set here and never changes afterwards.

Example:
    >>> from indexbridge.index import flat_index, hnsw_flat_index
    >>> 
    >>> index = flat_index(128, metric="l2").unwrap()
    >>> graph = hnsw_flat_index(128, M=32).unwrap()
"""

from __future__ import annotations

import inspect
from typing import Any, Dict, Optional, Union

import faiss

from ..config import get_settings
from ..core.exceptions import ValidationError
from ..core.handle import (
    Borrowed,
    IndexHandle,
    probe_variant,
    take_borrowed,
)
from ..core.result import fault_boundary
from ..core.types import Metric, ScalarQuantizerKind, Variant
from ..utils.logging import get_logger
from ..utils.validation import (
    FASTSCAN_BLOCK,
    validate_block_size,
    validate_dimension,
    validate_metric,
    validate_positive,
    validate_sq_kind,
)


logger = get_logger(__name__)

FASTSCAN_NBITS = 4

MetricArg = Union[str, Metric, None]


def _default_metric(metric: MetricArg) -> Metric:
    return validate_metric(metric, get_settings().index.metric)


def _new_handle(raw: Any, variant: Variant, **params) -> IndexHandle:
    handle = IndexHandle(raw, variant, params=params)
    logger.debug(f"Created {handle!r}")
    return handle


# =========================================================================
# FLAT
# =========================================================================

@fault_boundary
def flat_index(d: int, metric: MetricArg = None) -> IndexHandle:
    """
    Exact (brute-force) index. Always trained.
    
    Args:
        d: Vector dimension
        metric: "l2" or "inner_product" (default from settings)
    """
    d = validate_dimension(d)
    metric = _default_metric(metric)
    
    if metric is Metric.L2:
        raw = faiss.IndexFlatL2(d)
    else:
        raw = faiss.IndexFlatIP(d)
    
    return _new_handle(raw, Variant.FLAT, metric=metric.value)


# =========================================================================
# INVERTED FILE
# =========================================================================

def _coarse_quantizer(quantizer: Any, d: int) -> Optional[IndexHandle]:
    """Unwrap a borrowed quantizer, or return None to build an internal one."""
    if quantizer is None:
        return None
    handle = take_borrowed(quantizer, "quantizer", IndexHandle)
    if handle.is_binary:
        raise ValidationError("Float IVF index needs a float quantizer")
    if handle.raw.d != d:
        raise ValidationError(
            f"Quantizer dimension {handle.raw.d} != index dimension {d}"
        )
    return handle


def _internal_quantizer(d: int, metric: Metric):
    if metric is Metric.L2:
        return faiss.IndexFlatL2(d)
    return faiss.IndexFlatIP(d)


def _finish_ivf(
    raw: Any, quantizer: Optional[IndexHandle], internal: Any, **params
) -> IndexHandle:
    raw.nprobe = get_settings().index.nprobe
    handle = _new_handle(raw, Variant.IVF, **params)
    if quantizer is not None:
        handle.reference(quantizer)
    else:
        handle.keep_alive(internal)
    return handle


def _fastscan_nbits(nbits: int) -> int:
    nbits = validate_positive(nbits, "nbits")
    if nbits != FASTSCAN_NBITS:
        raise ValidationError(f"Fast-scan codes use {FASTSCAN_NBITS} bits, got nbits={nbits}")
    return nbits


@fault_boundary
def ivf_flat_index(
    quantizer: Union[IndexHandle, Borrowed, None],
    d: int,
    nlist: int,
    metric: MetricArg = None,
) -> IndexHandle:
    """
    Inverted-file index storing full vectors. Requires training.
    
    Args:
        quantizer: Coarse quantizer (borrowed), or None for an internal
            flat quantizer of the same metric
        d: Vector dimension
        nlist: Number of partitions
        metric: Distance metric
    """
    d = validate_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    metric = _default_metric(metric)
    coarse = _coarse_quantizer(quantizer, d)
    
    q_raw = coarse.raw if coarse is not None else _internal_quantizer(d, metric)
    raw = faiss.IndexIVFFlat(q_raw, d, nlist, metric.to_faiss())
    
    return _finish_ivf(
        raw, coarse, q_raw, nlist=nlist, metric=metric.value, storage="flat"
    )


@fault_boundary
def ivf_pq_index(
    quantizer: Union[IndexHandle, Borrowed, None],
    d: int,
    nlist: int,
    M: int,
    nbits: int = 8,
    metric: MetricArg = None,
) -> IndexHandle:
    """
    Inverted-file index with product-quantized residuals.
    
    Args:
        quantizer: Coarse quantizer (borrowed) or None
        d: Vector dimension (must be divisible by M)
        nlist: Number of partitions
        M: Number of subquantizers
        nbits: Bits per subquantizer code
        metric: Distance metric
    """
    d = validate_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    M = validate_positive(M, "M")
    nbits = validate_positive(nbits, "nbits")
    if d % M != 0:
        raise ValidationError(f"Dimension {d} is not divisible by M={M}")
    metric = _default_metric(metric)
    coarse = _coarse_quantizer(quantizer, d)
    
    q_raw = coarse.raw if coarse is not None else _internal_quantizer(d, metric)
    raw = faiss.IndexIVFPQ(q_raw, d, nlist, M, nbits, metric.to_faiss())
    
    return _finish_ivf(
        raw, coarse, q_raw, nlist=nlist, M=M, nbits=nbits, metric=metric.value, storage="pq"
    )


@fault_boundary
def ivf_pq_fastscan_index(
    quantizer: Union[IndexHandle, Borrowed, None],
    d: int,
    nlist: int,
    M: int,
    nbits: int = FASTSCAN_NBITS,
    metric: MetricArg = None,
    bbs: int = FASTSCAN_BLOCK,
) -> IndexHandle:
    """
    Inverted-file PQ index with 4-bit codes packed for fast-scan search.
    
    The block size is fixed at construction for this layout.
    
    Args:
        quantizer: Coarse quantizer (borrowed) or None
        d: Vector dimension (must be divisible by M)
        nlist: Number of partitions
        M: Number of subquantizers
        nbits: Bits per code, must be 4
        metric: Distance metric
        bbs: Codes per packed block (multiple of 32)
    """
    d = validate_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    M = validate_positive(M, "M")
    nbits = _fastscan_nbits(nbits)
    bbs = validate_block_size(bbs)
    if d % M != 0:
        raise ValidationError(f"Dimension {d} is not divisible by M={M}")
    metric = _default_metric(metric)
    coarse = _coarse_quantizer(quantizer, d)
    
    q_raw = coarse.raw if coarse is not None else _internal_quantizer(d, metric)
    raw = faiss.IndexIVFPQFastScan(q_raw, d, nlist, M, nbits, metric.to_faiss(), bbs)
    
    return _finish_ivf(
        raw, coarse, q_raw, nlist=nlist, M=M, nbits=nbits, bbs=bbs,
        metric=metric.value, storage="pq_fastscan",
    )


@fault_boundary
def ivf_sq_index(
    quantizer: Union[IndexHandle, Borrowed, None],
    d: int,
    nlist: int,
    qtype: Union[str, ScalarQuantizerKind] = ScalarQuantizerKind.QT_8BIT,
    metric: MetricArg = None,
) -> IndexHandle:
    """Inverted-file index with scalar-quantized vectors."""
    d = validate_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    qtype = validate_sq_kind(qtype)
    metric = _default_metric(metric)
    coarse = _coarse_quantizer(quantizer, d)
    
    q_raw = coarse.raw if coarse is not None else _internal_quantizer(d, metric)
    raw = faiss.IndexIVFScalarQuantizer(
        q_raw, d, nlist, qtype.to_faiss(), metric.to_faiss()
    )
    
    return _finish_ivf(
        raw, coarse, q_raw, nlist=nlist, qtype=qtype.value, metric=metric.value, storage="sq"
    )


# =========================================================================
# GRAPH
# =========================================================================

@fault_boundary
def hnsw_flat_index(
    d: int,
    M: Optional[int] = None,
    metric: MetricArg = None,
    ef_construction: Optional[int] = None,
    ef_search: Optional[int] = None,
) -> IndexHandle:
    """
    HNSW graph index over full vectors. Always trained.
    
    Args:
        d: Vector dimension
        M: Graph fan-out (default from settings)
        metric: Distance metric
        ef_construction: Construction breadth (default from settings)
        ef_search: Search breadth (default from settings)
    """
    defaults = get_settings().index
    d = validate_dimension(d)
    M = validate_positive(defaults.hnsw_m if M is None else M, "M")
    ef_construction = validate_positive(
        defaults.ef_construction if ef_construction is None else ef_construction,
        "ef_construction",
    )
    ef_search = validate_positive(
        defaults.ef_search if ef_search is None else ef_search, "ef_search"
    )
    metric = _default_metric(metric)
    
    raw = faiss.IndexHNSWFlat(d, M, metric.to_faiss())
    raw.hnsw.efConstruction = ef_construction
    raw.hnsw.efSearch = ef_search
    
    return _new_handle(raw, Variant.HNSW, M=M, metric=metric.value)


# =========================================================================
# QUANTIZED
# =========================================================================

@fault_boundary
def pq_index(d: int, M: int, nbits: int = 8, metric: MetricArg = None) -> IndexHandle:
    """
    Product-quantized index. Requires training.
    
    Args:
        d: Vector dimension (must be divisible by M)
        M: Number of subquantizers
        nbits: Bits per subquantizer code
        metric: Distance metric
    """
    d = validate_dimension(d)
    M = validate_positive(M, "M")
    nbits = validate_positive(nbits, "nbits")
    if d % M != 0:
        raise ValidationError(f"Dimension {d} is not divisible by M={M}")
    metric = _default_metric(metric)
    
    raw = faiss.IndexPQ(d, M, nbits, metric.to_faiss())
    
    return _new_handle(raw, Variant.PQ, M=M, nbits=nbits, metric=metric.value)


@fault_boundary
def pq_fastscan_index(
    d: int,
    M: int,
    nbits: int = FASTSCAN_NBITS,
    metric: MetricArg = None,
    bbs: int = FASTSCAN_BLOCK,
) -> IndexHandle:
    """
    Product-quantized index with 4-bit codes packed in blocks of ``bbs``
    for SIMD distance tables. Requires training.
    
    Args:
        d: Vector dimension (must be divisible by M)
        M: Number of subquantizers
        nbits: Bits per code, must be 4
        metric: Distance metric
        bbs: Codes per packed block (multiple of 32)
    """
    d = validate_dimension(d)
    M = validate_positive(M, "M")
    nbits = _fastscan_nbits(nbits)
    bbs = validate_block_size(bbs)
    if d % M != 0:
        raise ValidationError(f"Dimension {d} is not divisible by M={M}")
    metric = _default_metric(metric)
    
    raw = faiss.IndexPQFastScan(d, M, nbits, metric.to_faiss(), bbs)
    
    return _new_handle(raw, Variant.PQ_FASTSCAN, M=M, nbits=nbits, metric=metric.value)


@fault_boundary
def sq_index(
    d: int,
    qtype: Union[str, ScalarQuantizerKind] = ScalarQuantizerKind.QT_8BIT,
    metric: MetricArg = None,
) -> IndexHandle:
    """Scalar-quantized index. Trained kinds need ``train`` before use."""
    d = validate_dimension(d)
    qtype = validate_sq_kind(qtype)
    metric = _default_metric(metric)
    
    raw = faiss.IndexScalarQuantizer(d, qtype.to_faiss(), metric.to_faiss())
    
    return _new_handle(raw, Variant.SQ, qtype=qtype.value, metric=metric.value)


@fault_boundary
def lsh_index(
    d: int,
    nbits: int,
    rotate_data: bool = True,
    train_thresholds: bool = False,
) -> IndexHandle:
    """
    Locality-sensitive hashing index.
    
    Args:
        d: Vector dimension
        nbits: Number of hash bits
        rotate_data: Apply a random rotation before hashing
        train_thresholds: Learn per-bit thresholds (requires training)
    """
    d = validate_dimension(d)
    nbits = validate_positive(nbits, "nbits")
    
    raw = faiss.IndexLSH(d, nbits, bool(rotate_data), bool(train_thresholds))
    
    return _new_handle(
        raw,
        Variant.LSH,
        nbits=nbits,
        rotate_data=bool(rotate_data),
        train_thresholds=bool(train_thresholds),
    )


# =========================================================================
# FACTORY
# =========================================================================

@fault_boundary
def index_factory(d: int, description: str, metric: MetricArg = None) -> IndexHandle:
    """
    Build any layout accepted by the engine's description grammar.
    
    Examples of descriptions: "Flat", "HNSW32", "IVF100,PQ8",
    "PCA64,IVF100,Flat", "IVF256,Flat,Refine(Flat)". The variant tag is
    recovered by probing the built object.
    """
    d = validate_dimension(d)
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("Index description must be a non-empty string")
    metric = _default_metric(metric)
    
    raw = faiss.index_factory(d, description.strip(), metric.to_faiss())
    variant, tag = probe_variant(raw)
    
    return _new_handle(raw, variant, description=description.strip(), tag=tag)


_KINDS = {
    "flat": "flat",
    "ivf": "ivf_flat",
    "ivf_flat": "ivf_flat",
    "ivf_pq": "ivf_pq",
    "ivf_pq_fastscan": "ivf_pq_fastscan",
    "ivf_sq": "ivf_sq",
    "hnsw": "hnsw",
    "pq": "pq",
    "pq_fastscan": "pq_fastscan",
    "sq": "sq",
    "lsh": "lsh",
    "binary_flat": "binary_flat",
    "binary_ivf": "binary_ivf",
    "binary_hash": "binary_hash",
}


def _builder(key: str):
    from . import binary
    
    return {
        "flat": flat_index,
        "ivf_flat": ivf_flat_index,
        "ivf_pq": ivf_pq_index,
        "ivf_pq_fastscan": ivf_pq_fastscan_index,
        "ivf_sq": ivf_sq_index,
        "hnsw": hnsw_flat_index,
        "pq": pq_index,
        "pq_fastscan": pq_fastscan_index,
        "sq": sq_index,
        "lsh": lsh_index,
        "binary_flat": binary.binary_flat_index,
        "binary_ivf": binary.binary_ivf_index,
        "binary_hash": binary.binary_hash_index,
    }[key]


@fault_boundary
def create_index(kind: str, d: int, metric: MetricArg = None, **params) -> IndexHandle:
    """
    Keyword factory over the named constructors.
    
    Args:
        kind: One of "flat", "ivf" ("ivf_flat"), "ivf_pq", "ivf_pq_fastscan",
            "ivf_sq", "hnsw", "pq", "pq_fastscan", "sq", "lsh",
            "binary_flat", "binary_ivf", "binary_hash"
        d: Vector dimension (bits for the binary family)
        metric: Distance metric (ignored by LSH and the binary family)
        **params: Constructor-specific parameters. Unknown or missing
            parameters are rejected before anything is built.
        
    Example:
        >>> index = create_index("hnsw", 128, M=32).unwrap()
        >>> ivf = create_index("ivf", 128, nlist=1024).unwrap()
    """
    key = _KINDS.get(str(kind).lower())
    if key is None:
        raise ValidationError(
            f"Unknown index type: {kind}. Available: {', '.join(sorted(_KINDS))}"
        )
    
    builder = _builder(key)
    signature = inspect.signature(builder.__wrapped__)
    
    args = dict(params, d=d)
    if "metric" in signature.parameters:
        args["metric"] = metric
    if "quantizer" in signature.parameters:
        args.setdefault("quantizer", None)
    
    try:
        signature.bind(**args)
    except TypeError as e:
        raise ValidationError(f"Invalid parameters for {key} index: {e}") from None
    
    return builder(**args).unwrap()


def recommend_index(
    n_vectors: int,
    dimension: int,
    priority: str = "balanced",
    memory: str = "medium",
) -> Dict[str, Any]:
    """
    Recommend a factory description based on dataset characteristics.
    
    Args:
        n_vectors: Expected number of vectors
        dimension: Vector dimension
        priority: "speed", "recall", or "balanced"
        memory: "low", "medium", or "high"
        
    Returns:
        Dictionary with the description, its parameters and the reason
        
    Example:
        >>> rec = recommend_index(500000, 128, priority="speed")
        >>> rec["description"]
        'HNSW16'
    """
    nlist = int(min(65536, max(100, n_vectors // 1000)))
    
    if n_vectors < 10000:
        return {
            "description": "Flat",
            "params": {},
            "reason": "Dataset small enough for exact search",
        }
    
    if n_vectors < 100000:
        if priority in ("speed", "recall"):
            return {
                "description": "HNSW32",
                "params": {"M": 32},
                "reason": "HNSW for fast, accurate search on small datasets",
            }
        return {
            "description": "IVF100,Flat",
            "params": {"nlist": 100},
            "reason": "IVF with exact storage for small datasets",
        }
    
    if n_vectors < 1000000:
        if priority == "speed":
            return {
                "description": "HNSW16",
                "params": {"M": 16},
                "reason": "HNSW optimized for speed",
            }
        if priority == "recall":
            return {
                "description": "HNSW64",
                "params": {"M": 64},
                "reason": "HNSW optimized for recall",
            }
        storage = "PQ8" if memory == "low" else "Flat"
        return {
            "description": f"IVF{nlist},{storage}",
            "params": {"nlist": nlist},
            "reason": "IVF with balanced parameters",
        }
    
    if memory == "high":
        return {
            "description": f"IVF{nlist},Flat",
            "params": {"nlist": nlist},
            "reason": "IVF with exact storage when memory is plentiful",
        }
    
    if dimension >= 256 and n_vectors >= 10000000:
        return {
            "description": f"OPQ16,IVF{nlist},PQ16",
            "params": {"nlist": nlist, "M": 16},
            "reason": "Rotation plus compressed codes for very large datasets",
        }
    
    if dimension >= 128 and memory != "low":
        reduced = max(64, dimension // 2)
        return {
            "description": f"PCA{reduced},IVF{nlist},PQ8",
            "params": {"d_out": reduced, "nlist": nlist, "M": 8},
            "reason": "Dimension reduction plus compressed codes for large datasets",
        }
    
    return {
        "description": f"IVF{nlist},PQ8",
        "params": {"nlist": nlist, "M": 8},
        "reason": "Compressed codes for large datasets",
    }
