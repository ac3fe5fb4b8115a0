"""
Input validation utilities.

Buffers are normalized to the dtypes and shapes the engine expects
before any engine call is made.
"""

from typing import Any, Optional, Union

import numpy as np
from numpy.typing import NDArray

from ..core.exceptions import ValidationError
from ..core.types import Metric, ScalarQuantizerKind


# Maximum limits
MAX_DIMENSION = 1 << 16
MAX_K = 1 << 20


def validate_dimension(dimension: Any, min_dim: int = 1, max_dim: int = MAX_DIMENSION) -> int:
    """
    Validate vector dimension.
    
    Args:
        dimension: The dimension to validate
        min_dim: Minimum allowed dimension
        max_dim: Maximum allowed dimension
        
    Returns:
        The validated dimension
        
    Raises:
        ValidationError: If dimension is invalid
    """
    if isinstance(dimension, bool) or not isinstance(dimension, (int, np.integer)):
        raise ValidationError(
            f"Dimension must be an integer, got {type(dimension).__name__}"
        )
    
    if dimension < min_dim:
        raise ValidationError(
            f"Dimension too small: {dimension} (min {min_dim})"
        )
    
    if dimension > max_dim:
        raise ValidationError(
            f"Dimension too large: {dimension} (max {max_dim})"
        )
    
    return int(dimension)


def validate_binary_dimension(dimension: Any) -> int:
    """Validate a bit dimension for the binary family (multiple of 8)."""
    dimension = validate_dimension(dimension, min_dim=8)
    if dimension % 8 != 0:
        raise ValidationError(
            f"Binary dimension must be a multiple of 8, got {dimension}"
        )
    return dimension


def validate_positive(value: Any, name: str) -> int:
    """Validate a strictly positive integer parameter."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 1:
        raise ValidationError(f"{name} must be at least 1, got {value}")
    return int(value)


FASTSCAN_BLOCK = 32


def validate_block_size(bbs: Any) -> int:
    """Validate a fast-scan block size (a positive multiple of 32)."""
    bbs = validate_positive(bbs, "block size")
    if bbs % FASTSCAN_BLOCK != 0:
        raise ValidationError(f"block size must be a multiple of {FASTSCAN_BLOCK}, got {bbs}")
    return bbs


def validate_k(k: Any, max_k: int = MAX_K) -> int:
    """
    Validate k (number of results).
    
    Raises:
        ValidationError: If k is invalid
    """
    k = validate_positive(k, "k")
    
    if k > max_k:
        raise ValidationError(f"k too large: {k} (max {max_k})")
    
    return k


def validate_metric(metric: Union[str, Metric, None], default: str = "l2") -> Metric:
    """Parse a metric argument, falling back to ``default`` when None."""
    try:
        return Metric.parse(default if metric is None else metric)
    except ValueError as e:
        raise ValidationError(str(e)) from None


def validate_sq_kind(kind: Union[str, ScalarQuantizerKind]) -> ScalarQuantizerKind:
    """Parse a scalar quantizer kind argument."""
    try:
        return ScalarQuantizerKind.parse(kind)
    except ValueError as e:
        raise ValidationError(str(e)) from None


def validate_vectors(vectors: Any, dimension: int, binary: bool = False) -> NDArray:
    """
    Validate and normalize a batch of vectors.
    
    Float batches become contiguous ``float32`` arrays of shape
    ``(n, dimension)``. Binary batches become ``uint8`` arrays of shape
    ``(n, dimension // 8)``. Flat buffers are reshaped when their length
    is a multiple of the row width.
    
    Args:
        vectors: Array-like batch
        dimension: Index dimension (in bits for binary indexes)
        binary: Whether the index belongs to the binary family
        
    Returns:
        Normalized array
        
    Raises:
        ValidationError: If the batch cannot be shaped to the index
    """
    if vectors is None:
        raise ValidationError("Vector buffer is unset")
    
    width = dimension // 8 if binary else dimension
    dtype = np.uint8 if binary else np.float32
    
    try:
        array = np.asarray(vectors)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Vectors are not array-like: {e}") from None
    
    if binary and array.dtype != np.uint8:
        if not np.issubdtype(array.dtype, np.integer) or array.size and (
            array.min() < 0 or array.max() > 255
        ):
            raise ValidationError(
                f"Binary vectors must be uint8 codes, got dtype {array.dtype}"
            )
    elif not binary and not np.issubdtype(array.dtype, np.number):
        raise ValidationError(f"Vectors must be numeric, got dtype {array.dtype}")
    
    if array.ndim == 1:
        if array.size % width != 0:
            raise ValidationError(
                f"Buffer length {array.size} is not a multiple of dimension {width}"
            )
        array = array.reshape(-1, width)
    elif array.ndim != 2:
        raise ValidationError(f"Vectors must be 1D or 2D, got {array.ndim}D")
    
    if array.shape[1] != width:
        raise ValidationError(
            f"Vector dimension {array.shape[1]} != index dimension {width}"
        )
    
    return np.ascontiguousarray(array, dtype=dtype)


def validate_ids(ids: Any, count: Optional[int] = None, unique: bool = True) -> NDArray:
    """
    Validate an id buffer and normalize it to contiguous ``int64``.
    
    Args:
        ids: Array-like of integer ids
        count: Expected number of ids (None to skip the check)
        unique: Reject duplicated ids
        
    Raises:
        ValidationError: On wrong dtype, length or duplicates
    """
    if ids is None:
        raise ValidationError("Id buffer is unset")
    
    array = np.asarray(ids)
    if array.size and not np.issubdtype(array.dtype, np.integer):
        raise ValidationError(f"Ids must be integers, got dtype {array.dtype}")
    
    array = np.ascontiguousarray(array.reshape(-1), dtype=np.int64)
    
    if count is not None and array.size != count:
        raise ValidationError(f"Got {array.size} ids for {count} vectors")
    
    if unique and np.unique(array).size != array.size:
        raise ValidationError("Ids must be unique within a batch")
    
    return array
