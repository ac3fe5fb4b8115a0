"""
Capability dispatch for variant-specific parameters.

Each accessor first checks the handle's variant against the capability
table. A mismatch is reported as CAPABILITY_MISMATCH before any engine
state is read or written.
"""

from __future__ import annotations

from ..core.exceptions import ValidationError
from ..core.handle import IndexHandle, require_capability
from ..core.result import fault_boundary
from ..core.types import Capability
from ..utils.validation import validate_block_size, validate_positive


# =========================================================================
# INVERTED FILE
# =========================================================================

@fault_boundary
def ivf_set_nprobe(handle: IndexHandle, nprobe: int) -> None:
    """Set the number of partitions probed per query."""
    index = require_capability(handle, Capability.NPROBE)
    index.raw.nprobe = validate_positive(nprobe, "nprobe")


@fault_boundary
def ivf_get_nprobe(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.NPROBE)
    return int(index.raw.nprobe)


@fault_boundary
def ivf_get_nlist(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.NPROBE)
    return int(index.raw.nlist)


@fault_boundary
def ivf_make_direct_map(handle: IndexHandle) -> None:
    """Maintain an id-to-slot map so that ``reconstruct`` works on IVF layouts."""
    index = require_capability(handle, Capability.NPROBE)
    index.raw.make_direct_map()


@fault_boundary
def binary_ivf_set_nprobe(handle: IndexHandle, nprobe: int) -> None:
    index = require_capability(handle, Capability.BINARY_NPROBE)
    index.raw.nprobe = validate_positive(nprobe, "nprobe")


@fault_boundary
def binary_ivf_get_nprobe(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.BINARY_NPROBE)
    return int(index.raw.nprobe)


# =========================================================================
# GRAPH
# =========================================================================

@fault_boundary
def hnsw_set_ef_construction(handle: IndexHandle, ef: int) -> None:
    """Set the candidate list size used while inserting."""
    index = require_capability(handle, Capability.GRAPH_BREADTH)
    index.raw.hnsw.efConstruction = validate_positive(ef, "efConstruction")


@fault_boundary
def hnsw_get_ef_construction(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.GRAPH_BREADTH)
    return int(index.raw.hnsw.efConstruction)


@fault_boundary
def hnsw_set_ef_search(handle: IndexHandle, ef: int) -> None:
    """Set the candidate list size used while searching."""
    index = require_capability(handle, Capability.GRAPH_BREADTH)
    index.raw.hnsw.efSearch = validate_positive(ef, "efSearch")


@fault_boundary
def hnsw_get_ef_search(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.GRAPH_BREADTH)
    return int(index.raw.hnsw.efSearch)


# =========================================================================
# REFINE
# =========================================================================

@fault_boundary
def refine_set_k_factor(handle: IndexHandle, k_factor: float) -> None:
    """Set the over-fetch factor of the coarse stage (>= 1)."""
    index = require_capability(handle, Capability.K_FACTOR)
    try:
        k_factor = float(k_factor)
    except (TypeError, ValueError):
        raise ValidationError(f"k_factor must be a number, got {k_factor!r}") from None
    if not k_factor >= 1.0:
        raise ValidationError(f"k_factor must be >= 1, got {k_factor}")
    index.raw.k_factor = k_factor


@fault_boundary
def refine_get_k_factor(handle: IndexHandle) -> float:
    index = require_capability(handle, Capability.K_FACTOR)
    return float(index.raw.k_factor)


# =========================================================================
# FAST SCAN
# =========================================================================

@fault_boundary
def pq_fastscan_set_bbs(handle: IndexHandle, bbs: int) -> None:
    """
    Set the number of codes packed per block.
    
    Codes are packed with the block size in force when they are added, so
    it can only change while the index is empty.
    """
    index = require_capability(handle, Capability.BLOCK_SIZE)
    bbs = validate_block_size(bbs)
    if index.raw.ntotal > 0:
        raise ValidationError(
            f"block size cannot change on an index holding {index.raw.ntotal} vectors"
        )
    index.raw.bbs = bbs


@fault_boundary
def pq_fastscan_get_bbs(handle: IndexHandle) -> int:
    index = require_capability(handle, Capability.BLOCK_SIZE)
    return int(index.raw.bbs)
