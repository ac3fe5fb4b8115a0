"""
IndexBridge - a fault-isolating facade over faiss vector indexes.

Example:
    >>> import numpy as np
    >>> from indexbridge import flat_index, add, search, free
    >>> 
    >>> index = flat_index(4).unwrap()
    >>> add(index, np.random.rand(10, 4).astype("float32"))
    >>> result = search(index, np.random.rand(2, 4).astype("float32"), k=3)
    >>> result.status
    0
    >>> free(index)
"""

from .core import (
    # Results
    Result,
    fault_boundary,
    STATUS_OK,
    STATUS_FAILED,
    # Errors
    ErrorKind,
    BridgeError,
    InvalidArgumentError,
    ValidationError,
    IndexFreedError,
    OwnershipError,
    CapabilityMismatchError,
    InternalFaultError,
    UnsupportedError,
    # Types
    Metric,
    Variant,
    Capability,
    TransformKind,
    ScalarQuantizerKind,
    VARIANT_CAPABILITIES,
    # Handles
    Handle,
    IndexHandle,
    TransformHandle,
    Owned,
    Borrowed,
    free,
    probe_variant,
    variant_tag,
)

from .index import *  # noqa: F401,F403
from .index import __all__ as _index_all

from .transform import (
    pca_matrix,
    opq_matrix,
    random_rotation_matrix,
    transform_train,
    transform_apply,
    transform_reverse,
    transform_d_in,
    transform_d_out,
    transform_is_trained,
)

from .clustering import (
    KMeansJob,
    kmeans_new,
    kmeans_set_niter,
    kmeans_set_seed,
    kmeans_set_verbose,
    kmeans_get_niter,
    kmeans_get_seed,
    kmeans_d,
    kmeans_k,
    kmeans_is_trained,
    kmeans_train,
    kmeans_centroids,
    kmeans_assign,
)

from .storage import (
    LoadedIndex,
    IndexBuffer,
    write_index,
    read_index,
    serialize_index,
    deserialize_index,
    free_buffer,
    clone_index,
)

from .config import Settings, load_config, get_settings, set_settings

__version__ = "0.1.0"
__author__ = "IndexBridge Team"

__all__ = [
    # Results
    "Result",
    "fault_boundary",
    "STATUS_OK",
    "STATUS_FAILED",
    # Errors
    "ErrorKind",
    "BridgeError",
    "InvalidArgumentError",
    "ValidationError",
    "IndexFreedError",
    "OwnershipError",
    "CapabilityMismatchError",
    "InternalFaultError",
    "UnsupportedError",
    # Types
    "Metric",
    "Variant",
    "Capability",
    "TransformKind",
    "ScalarQuantizerKind",
    "VARIANT_CAPABILITIES",
    # Handles
    "Handle",
    "IndexHandle",
    "TransformHandle",
    "Owned",
    "Borrowed",
    "free",
    "probe_variant",
    "variant_tag",
    # Transforms
    "pca_matrix",
    "opq_matrix",
    "random_rotation_matrix",
    "transform_train",
    "transform_apply",
    "transform_reverse",
    "transform_d_in",
    "transform_d_out",
    "transform_is_trained",
    # Clustering
    "KMeansJob",
    "kmeans_new",
    "kmeans_set_niter",
    "kmeans_set_seed",
    "kmeans_set_verbose",
    "kmeans_get_niter",
    "kmeans_get_seed",
    "kmeans_d",
    "kmeans_k",
    "kmeans_is_trained",
    "kmeans_train",
    "kmeans_centroids",
    "kmeans_assign",
    # Storage
    "LoadedIndex",
    "IndexBuffer",
    "write_index",
    "read_index",
    "serialize_index",
    "deserialize_index",
    "free_buffer",
    "clone_index",
    # Config
    "Settings",
    "load_config",
    "get_settings",
    "set_settings",
] + list(_index_all)
