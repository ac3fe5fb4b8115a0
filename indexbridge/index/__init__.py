"""
Index constructors, the common operation facade and variant dispatch.

Example:
    >>> from indexbridge.index import create_index, train, add, search
    >>> 
    >>> index = create_index("ivf_flat", 64, nlist=16).unwrap()
    >>> train(index, vectors)
    >>> add(index, vectors)
    >>> result = search(index, queries, k=10).unwrap()
"""

from .constructors import (
    flat_index,
    ivf_flat_index,
    ivf_pq_index,
    ivf_pq_fastscan_index,
    ivf_sq_index,
    hnsw_flat_index,
    pq_index,
    pq_fastscan_index,
    sq_index,
    lsh_index,
    index_factory,
    create_index,
    recommend_index,
)
from .binary import (
    binary_flat_index,
    binary_ivf_index,
    binary_hash_index,
    binary_index_factory,
)
from .composite import (
    refine_index,
    pre_transform_index,
    id_map_index,
    shard_set,
    add_shard,
    remove_ids,
    shard_count,
)
from .ops import (
    SearchResult,
    RangeSearchResult,
    IndexInfo,
    add,
    add_with_ids,
    train,
    reset,
    search,
    range_search,
    free_range_result,
    assign,
    reconstruct,
    reconstruct_n,
    reconstruct_batch,
    ntotal,
    dimension,
    is_trained,
    metric,
    describe,
)
from .dispatch import (
    ivf_set_nprobe,
    ivf_get_nprobe,
    ivf_get_nlist,
    ivf_make_direct_map,
    binary_ivf_set_nprobe,
    binary_ivf_get_nprobe,
    hnsw_set_ef_construction,
    hnsw_get_ef_construction,
    hnsw_set_ef_search,
    hnsw_get_ef_search,
    refine_set_k_factor,
    refine_get_k_factor,
    pq_fastscan_set_bbs,
    pq_fastscan_get_bbs,
)

__all__ = [
    # Constructors
    "flat_index",
    "ivf_flat_index",
    "ivf_pq_index",
    "ivf_pq_fastscan_index",
    "ivf_sq_index",
    "hnsw_flat_index",
    "pq_index",
    "pq_fastscan_index",
    "sq_index",
    "lsh_index",
    "index_factory",
    "create_index",
    "recommend_index",
    # Binary
    "binary_flat_index",
    "binary_ivf_index",
    "binary_hash_index",
    "binary_index_factory",
    # Composites
    "refine_index",
    "pre_transform_index",
    "id_map_index",
    "shard_set",
    "add_shard",
    "remove_ids",
    "shard_count",
    # Operations
    "SearchResult",
    "RangeSearchResult",
    "IndexInfo",
    "add",
    "add_with_ids",
    "train",
    "reset",
    "search",
    "range_search",
    "free_range_result",
    "assign",
    "reconstruct",
    "reconstruct_n",
    "reconstruct_batch",
    "ntotal",
    "dimension",
    "is_trained",
    "metric",
    "describe",
    # Variant dispatch
    "ivf_set_nprobe",
    "ivf_get_nprobe",
    "ivf_get_nlist",
    "ivf_make_direct_map",
    "binary_ivf_set_nprobe",
    "binary_ivf_get_nprobe",
    "hnsw_set_ef_construction",
    "hnsw_get_ef_construction",
    "hnsw_set_ef_search",
    "hnsw_get_ef_search",
    "refine_set_k_factor",
    "refine_get_k_factor",
    "pq_fastscan_set_bbs",
    "pq_fastscan_get_bbs",
]
