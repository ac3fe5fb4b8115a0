"""
K-means clustering facade.

Example:
    >>> from indexbridge.clustering import kmeans_new, kmeans_train, kmeans_assign
    >>> 
    >>> job = kmeans_new(64, 16, seed=7).unwrap()
    >>> kmeans_train(job, training_vectors)
    >>> labels = kmeans_assign(job, vectors).unwrap()
"""

from __future__ import annotations

from typing import Any, Optional

import faiss
import numpy as np
from numpy.typing import NDArray

from .config import get_settings
from .core.exceptions import InvalidArgumentError, ValidationError
from .core.handle import Handle, take_borrowed
from .core.result import fault_boundary
from .utils.logging import get_logger
from .utils.metrics import timed
from .utils.validation import validate_dimension, validate_positive, validate_vectors


logger = get_logger(__name__)


class KMeansJob(Handle):
    """
    Handle over an engine k-means optimizer.
    
    Attributes:
        d: Vector dimension
        k: Number of centroids
    """
    
    kind_name = "clustering"
    
    def __init__(self, raw: Any, d: int, k: int):
        super().__init__(raw)
        self.d = d
        self.k = k
        self._centroids: Optional[NDArray] = None
    
    @property
    def is_trained(self) -> bool:
        return self._centroids is not None
    
    def release(self) -> None:
        self._centroids = None
        super().release()
    
    def __repr__(self) -> str:
        state = "freed" if self.is_freed else ("trained" if self.is_trained else "untrained")
        return f"KMeansJob(d={self.d}, k={self.k}, {state})"


def _job(handle: Any) -> KMeansJob:
    return take_borrowed(handle, "clustering", KMeansJob)


@fault_boundary
def kmeans_new(
    d: int,
    k: int,
    niter: Optional[int] = None,
    seed: Optional[int] = None,
    verbose: Optional[bool] = None,
) -> KMeansJob:
    """
    Create a k-means job.
    
    Args:
        d: Vector dimension
        k: Number of centroids
        niter: Iterations (defaults to ``clustering.niter``)
        seed: Initialisation seed (defaults to ``clustering.seed``)
        verbose: Engine progress output (defaults to ``clustering.verbose``)
    """
    defaults = get_settings().clustering
    d = validate_dimension(d)
    k = validate_positive(k, "k")
    
    raw = faiss.Clustering(d, k)
    raw.niter = validate_positive(defaults.niter if niter is None else niter, "niter")
    raw.seed = int(defaults.seed if seed is None else seed)
    raw.verbose = bool(defaults.verbose if verbose is None else verbose)
    
    return KMeansJob(raw, d, k)


@fault_boundary
def kmeans_set_niter(handle: KMeansJob, niter: int) -> None:
    _job(handle).raw.niter = validate_positive(niter, "niter")


@fault_boundary
def kmeans_set_seed(handle: KMeansJob, seed: int) -> None:
    _job(handle).raw.seed = int(seed)


@fault_boundary
def kmeans_set_verbose(handle: KMeansJob, verbose: bool) -> None:
    _job(handle).raw.verbose = bool(verbose)


@fault_boundary
def kmeans_get_niter(handle: KMeansJob) -> int:
    return int(_job(handle).raw.niter)


@fault_boundary
def kmeans_get_seed(handle: KMeansJob) -> int:
    return int(_job(handle).raw.seed)


@fault_boundary
def kmeans_d(handle: KMeansJob) -> int:
    return _job(handle).d


@fault_boundary
def kmeans_k(handle: KMeansJob) -> int:
    return _job(handle).k


@fault_boundary
def kmeans_is_trained(handle: KMeansJob) -> bool:
    return _job(handle).is_trained


@fault_boundary
def kmeans_train(handle: KMeansJob, vectors: Any) -> NDArray:
    """
    Run ``niter`` iterations of k-means over ``vectors``.
    
    Deterministic for a fixed seed and input. Retraining replaces the
    centroids.
    
    Returns:
        (k, d) centroid matrix
    """
    job = _job(handle)
    x = validate_vectors(vectors, job.d)
    if len(x) == 0:
        raise ValidationError("Cannot train k-means on an empty batch")
    
    with timed("train", len(x)):
        job.raw.train(x, faiss.IndexFlatL2(job.d))
    
    centroids = faiss.vector_to_array(job.raw.centroids).reshape(job.k, job.d)
    job._centroids = centroids.copy()
    logger.debug(f"Trained {job!r} on {len(x)} vectors")
    return job._centroids.copy()


@fault_boundary
def kmeans_centroids(handle: KMeansJob) -> NDArray:
    """(k, d) centroids of a trained job."""
    job = _job(handle)
    if not job.is_trained:
        raise InvalidArgumentError("k-means job has not been trained")
    return job._centroids.copy()


@fault_boundary
def kmeans_assign(handle: KMeansJob, vectors: Any) -> NDArray:
    """
    Nearest-centroid label for each vector.
    
    Searches a disposable flat L2 index built over the centroids.
    """
    job = _job(handle)
    if not job.is_trained:
        raise InvalidArgumentError("k-means job has not been trained")
    x = validate_vectors(vectors, job.d)
    if len(x) == 0:
        return np.empty(0, dtype=np.int64)
    
    assigner = faiss.IndexFlatL2(job.d)
    assigner.add(job._centroids)
    _, labels = assigner.search(x, 1)
    return labels[:, 0]
