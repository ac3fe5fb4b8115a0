"""
Composite index constructors.

Ownership is part of each signature:

    refine_index(base: Borrowed, refine: Borrowed)
    pre_transform_index(transform: Owned, base: Borrowed)
    id_map_index(base: Borrowed)
    add_shard(shards, shard: Owned)

Owned children are released together with the composite; freeing them
directly is rejected while the composite is alive. Borrowed children stay
valid after the composite is freed and are never released by it.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import faiss

from ..core.exceptions import OwnershipError, ValidationError
from ..core.handle import (
    Borrowed,
    IndexHandle,
    Owned,
    TransformHandle,
    require_capability,
    take_borrowed,
    take_owned,
)
from ..core.result import fault_boundary
from ..core.types import Capability, Metric, Variant
from ..utils.logging import get_logger
from ..utils.validation import validate_dimension, validate_ids, validate_metric
from ..config import get_settings


logger = get_logger(__name__)


def _float_index(arg: Any, name: str, owned: bool = False) -> IndexHandle:
    if owned:
        handle = take_owned(arg, name, IndexHandle)
    else:
        handle = take_borrowed(arg, name, IndexHandle)
    if handle.is_binary:
        raise ValidationError(f"{name} must be a float index")
    return handle


@fault_boundary
def refine_index(
    base: Union[IndexHandle, Borrowed],
    refine: Union[IndexHandle, Borrowed, None] = None,
) -> IndexHandle:
    """
    Two-stage index: coarse retrieval over-fetched by ``k_factor``, then
    exact re-ranking by the refine index.
    
    Both children are borrowed and must be empty. With ``refine=None`` an
    internal flat refine index is built.
    
    Args:
        base: Coarse index (borrowed)
        refine: Exact index (borrowed) or None
    """
    coarse = _float_index(base, "base")
    exact = _float_index(refine, "refine") if refine is not None else None
    
    if exact is not None:
        if exact.raw.d != coarse.raw.d:
            raise ValidationError(
                f"Refine dimension {exact.raw.d} != base dimension {coarse.raw.d}"
            )
        raw = faiss.IndexRefine(coarse.raw, exact.raw)
    else:
        raw = faiss.IndexRefineFlat(coarse.raw)
    raw.k_factor = float(get_settings().index.k_factor)
    
    handle = IndexHandle(raw, Variant.REFINE, params={"base": coarse.variant.value})
    handle.reference(coarse)
    if exact is not None:
        handle.reference(exact)
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def pre_transform_index(
    transform: Union[TransformHandle, Owned],
    base: Union[IndexHandle, Borrowed],
) -> IndexHandle:
    """
    Apply ``transform`` to every input before delegating to ``base``.
    
    Takes ownership of the transform; the base is only referenced. The
    transform's output dimension must equal the base dimension.
    """
    vt = take_owned(transform, "transform", TransformHandle)
    inner = _float_index(base, "base")
    
    if vt.owner is not None:
        raise OwnershipError("transform is already owned by another index")
    if vt.raw.d_out != inner.raw.d:
        raise ValidationError(
            f"Transform output dimension {vt.raw.d_out} != base dimension {inner.raw.d}"
        )
    
    raw = faiss.IndexPreTransform(vt.raw, inner.raw)
    
    handle = IndexHandle(
        raw,
        Variant.PRE_TRANSFORM,
        params={"transform": vt.kind.value, "base": inner.variant.value},
    )
    handle.adopt(vt)
    handle.reference(inner)
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def id_map_index(base: Union[IndexHandle, Borrowed]) -> IndexHandle:
    """
    Translate caller int64 ids to dense positions of ``base`` (borrowed).
    
    Vectors are inserted with ``add_with_ids`` and can be removed with
    ``remove_ids``; ``reconstruct`` takes the external id.
    """
    inner = _float_index(base, "base")
    raw = faiss.IndexIDMap2(inner.raw)
    
    handle = IndexHandle(raw, Variant.IDMAP, params={"base": inner.variant.value})
    handle.reference(inner)
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def remove_ids(handle: IndexHandle, ids: Any) -> int:
    """
    Remove every vector whose id is in ``ids``.
    
    Returns:
        Exact number of vectors removed (ids not present are ignored)
    """
    index = require_capability(handle, Capability.REMOVE_IDS)
    xids = validate_ids(ids, unique=False)
    if xids.size == 0:
        return 0
    
    selector = faiss.IDSelectorBatch(xids.size, faiss.swig_ptr(xids))
    removed = int(index.raw.remove_ids(selector))
    logger.debug(f"Removed {removed} of {xids.size} requested ids from {index!r}")
    return removed


@fault_boundary
def shard_set(
    d: int,
    metric: Union[str, Metric, None] = None,
    threaded: bool = False,
    successive_ids: bool = False,
) -> IndexHandle:
    """
    Fan-out container that owns the shards added to it.
    
    Args:
        d: Vector dimension shared by every shard
        metric: Metric used to merge shard results
        threaded: Query shards from worker threads
        successive_ids: Offset shard labels by the preceding shard sizes
    """
    d = validate_dimension(d)
    metric = validate_metric(metric, get_settings().index.metric)
    
    raw = faiss.IndexShards(d, bool(threaded), bool(successive_ids))
    raw.metric_type = metric.to_faiss()
    
    handle = IndexHandle(
        raw,
        Variant.SHARDS,
        params={"metric": metric.value, "threaded": bool(threaded)},
    )
    logger.debug(f"Created {handle!r}")
    return handle


@fault_boundary
def add_shard(shards: IndexHandle, shard: Union[IndexHandle, Owned]) -> None:
    """Hand ``shard`` over to the shard set, which takes ownership of it."""
    container = require_capability(shards, Capability.ADD_SHARD)
    child = _float_index(shard, "shard", owned=True)
    
    if child is container:
        raise OwnershipError("a shard set cannot contain itself")
    if child.owner is not None:
        raise OwnershipError("shard is already owned by another index")
    if child.raw.d != container.raw.d:
        raise ValidationError(
            f"Shard dimension {child.raw.d} != shard set dimension {container.raw.d}"
        )
    if child.raw.metric_type != container.raw.metric_type:
        raise ValidationError("Shard metric differs from the shard set metric")
    
    container.raw.add_shard(child.raw)
    container.adopt(child)


def shard_count(shards: IndexHandle) -> Optional[int]:
    """Number of shards in a live shard set, or None for other handles."""
    if not isinstance(shards, IndexHandle) or shards.is_freed:
        return None
    if shards.variant is not Variant.SHARDS:
        return None
    return int(shards.raw.count())
