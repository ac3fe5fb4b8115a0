"""
Opt-in operation metrics.

Counts and timings for train/add/search/reset across every handle in
the process. Collection is disabled until ``enable_metrics()`` is called.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator


TRACKED_OPERATIONS = ("train", "add", "search", "reset")


@dataclass
class OperationStats:
    """Statistics for a single operation type."""
    
    count: int = 0
    total_seconds: float = 0.0
    vector_count: int = 0
    
    @property
    def avg_seconds(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_seconds / self.count
    
    @property
    def vectors_per_second(self) -> float:
        if self.total_seconds <= 0:
            return 0.0
        return self.vector_count / self.total_seconds
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "total_seconds": self.total_seconds,
            "avg_seconds": self.avg_seconds,
            "vector_count": self.vector_count,
            "vectors_per_second": self.vectors_per_second,
        }


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of the collected metrics."""
    
    operations: Dict[str, OperationStats] = field(default_factory=dict)
    results_returned: int = 0
    
    @property
    def total_operations(self) -> int:
        return sum(s.count for s in self.operations.values())
    
    @property
    def total_seconds(self) -> float:
        return sum(s.total_seconds for s in self.operations.values())
    
    def __getitem__(self, operation: str) -> OperationStats:
        return self.operations[operation]
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "operations": {k: v.to_dict() for k, v in self.operations.items()},
            "results_returned": self.results_returned,
            "total_operations": self.total_operations,
            "total_seconds": self.total_seconds,
        }


class OperationMetrics:
    """Thread-safe collector behind the module-level helpers."""
    
    def __init__(self):
        self._lock = threading.Lock()
        self._enabled = False
        self._stats = {op: OperationStats() for op in TRACKED_OPERATIONS}
        self._results_returned = 0
    
    @property
    def enabled(self) -> bool:
        return self._enabled
    
    def enable(self) -> None:
        self._enabled = True
    
    def disable(self) -> None:
        self._enabled = False
    
    def record(self, operation: str, seconds: float, n_vectors: int, n_results: int = 0) -> None:
        if not self._enabled:
            return
        with self._lock:
            stats = self._stats[operation]
            stats.count += 1
            stats.total_seconds += seconds
            stats.vector_count += n_vectors
            self._results_returned += n_results
    
    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                operations={
                    op: OperationStats(s.count, s.total_seconds, s.vector_count)
                    for op, s in self._stats.items()
                },
                results_returned=self._results_returned,
            )
    
    def reset(self) -> None:
        with self._lock:
            self._stats = {op: OperationStats() for op in TRACKED_OPERATIONS}
            self._results_returned = 0


_metrics = OperationMetrics()


def enable_metrics() -> None:
    """Start collecting operation metrics."""
    _metrics.enable()


def disable_metrics() -> None:
    """Stop collecting operation metrics (collected values are kept)."""
    _metrics.disable()


def metrics_enabled() -> bool:
    return _metrics.enabled


def get_metrics() -> MetricsSnapshot:
    """Snapshot of the collected metrics."""
    return _metrics.snapshot()


def reset_metrics() -> None:
    """Clear all collected metrics."""
    _metrics.reset()


@contextmanager
def timed(operation: str, n_vectors: int, n_results: int = 0) -> Iterator[None]:
    """
    Time the enclosed engine call and record it on success.
    
    Faulted calls are not recorded.
    """
    start = time.perf_counter()
    yield
    _metrics.record(operation, time.perf_counter() - start, n_vectors, n_results)
