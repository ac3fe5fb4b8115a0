"""
Utility functions for IndexBridge.
"""

from .validation import (
    validate_dimension,
    validate_binary_dimension,
    validate_positive,
    validate_k,
    validate_metric,
    validate_vectors,
    validate_ids,
)
from .logging import setup_logger, get_logger, LogContext
from .metrics import (
    enable_metrics,
    disable_metrics,
    metrics_enabled,
    get_metrics,
    reset_metrics,
    MetricsSnapshot,
    OperationStats,
)

__all__ = [
    "validate_dimension",
    "validate_binary_dimension",
    "validate_positive",
    "validate_k",
    "validate_metric",
    "validate_vectors",
    "validate_ids",
    "setup_logger",
    "get_logger",
    "LogContext",
    "enable_metrics",
    "disable_metrics",
    "metrics_enabled",
    "get_metrics",
    "reset_metrics",
    "MetricsSnapshot",
    "OperationStats",
]
