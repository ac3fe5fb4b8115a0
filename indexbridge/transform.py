"""
Vector transform facade.

Transforms map ``d_in``-dimensional vectors to ``d_out`` dimensions ahead
of an index. They are usually handed to ``pre_transform_index``, which
takes ownership of them.

Example:
    >>> from indexbridge.transform import pca_matrix, transform_train, transform_apply
    >>> 
    >>> pca = pca_matrix(128, 32).unwrap()
    >>> transform_train(pca, training_vectors)
    >>> reduced = transform_apply(pca, vectors).unwrap()
"""

from __future__ import annotations

from typing import Any

import faiss
from numpy.typing import NDArray

from .core.exceptions import ValidationError
from .core.handle import TransformHandle, take_borrowed
from .core.result import fault_boundary
from .core.types import TransformKind
from .utils.logging import get_logger
from .utils.validation import validate_dimension, validate_positive, validate_vectors


logger = get_logger(__name__)

DEFAULT_ROTATION_SEED = 42


def _transform(handle: Any) -> TransformHandle:
    return take_borrowed(handle, "transform", TransformHandle)


@fault_boundary
def pca_matrix(
    d_in: int,
    d_out: int,
    eigen_power: float = 0.0,
    random_rotation: bool = False,
) -> TransformHandle:
    """
    PCA projection, optionally whitened and rotated. Requires training.
    
    Args:
        d_in: Input dimension
        d_out: Output dimension (<= d_in)
        eigen_power: Whitening power applied to eigenvalues (0 = none)
        random_rotation: Apply a random rotation after the projection
    """
    d_in = validate_dimension(d_in)
    d_out = validate_dimension(d_out)
    if d_out > d_in:
        raise ValidationError(f"PCA output dimension {d_out} exceeds input {d_in}")
    
    raw = faiss.PCAMatrix(d_in, d_out, float(eigen_power), bool(random_rotation))
    return TransformHandle(raw, TransformKind.PCA)


@fault_boundary
def opq_matrix(d: int, M: int) -> TransformHandle:
    """
    Rotation optimized for a product quantizer with ``M`` subquantizers.
    Requires training.
    """
    d = validate_dimension(d)
    M = validate_positive(M, "M")
    if d % M != 0:
        raise ValidationError(f"Dimension {d} is not divisible by M={M}")
    
    return TransformHandle(faiss.OPQMatrix(d, M), TransformKind.OPQ)


@fault_boundary
def random_rotation_matrix(
    d_in: int,
    d_out: int,
    seed: int = DEFAULT_ROTATION_SEED,
) -> TransformHandle:
    """Random orthogonal rotation, initialized from ``seed``. Always trained."""
    d_in = validate_dimension(d_in)
    d_out = validate_dimension(d_out)
    
    raw = faiss.RandomRotationMatrix(d_in, d_out)
    raw.init(int(seed))
    return TransformHandle(raw, TransformKind.RANDOM_ROTATION)


@fault_boundary
def transform_train(handle: TransformHandle, vectors: Any) -> None:
    transform = _transform(handle)
    x = validate_vectors(vectors, transform.raw.d_in)
    transform.raw.train(x)
    logger.debug(f"Trained {transform!r} on {len(x)} vectors")


@fault_boundary
def transform_apply(handle: TransformHandle, vectors: Any) -> NDArray:
    """Map (n, d_in) vectors to (n, d_out)."""
    transform = _transform(handle)
    x = validate_vectors(vectors, transform.raw.d_in)
    if not transform.raw.is_trained:
        raise ValidationError("transform must be trained before apply")
    return transform.raw.apply(x)


@fault_boundary
def transform_reverse(handle: TransformHandle, vectors: Any) -> NDArray:
    """Map (n, d_out) vectors back to (n, d_in), where the engine supports it."""
    transform = _transform(handle)
    x = validate_vectors(vectors, transform.raw.d_out)
    return transform.raw.reverse_transform(x)


@fault_boundary
def transform_d_in(handle: TransformHandle) -> int:
    return int(_transform(handle).raw.d_in)


@fault_boundary
def transform_d_out(handle: TransformHandle) -> int:
    return int(_transform(handle).raw.d_out)


@fault_boundary
def transform_is_trained(handle: TransformHandle) -> bool:
    return bool(_transform(handle).raw.is_trained)
