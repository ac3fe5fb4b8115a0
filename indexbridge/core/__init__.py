"""
Core boundary types: handles, results, errors and variant tags.
"""

from .exceptions import (
    ErrorKind,
    BridgeError,
    InvalidArgumentError,
    ValidationError,
    IndexFreedError,
    OwnershipError,
    CapabilityMismatchError,
    InternalFaultError,
    UnsupportedError,
)
from .types import (
    Metric,
    Variant,
    Capability,
    TransformKind,
    ScalarQuantizerKind,
    VARIANT_CAPABILITIES,
)
from .result import Result, fault_boundary, STATUS_OK, STATUS_FAILED
from .handle import (
    Handle,
    IndexHandle,
    TransformHandle,
    Owned,
    Borrowed,
    free,
    probe_variant,
    variant_tag,
    require_index,
    require_capability,
)

__all__ = [
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
    # Results
    "Result",
    "fault_boundary",
    "STATUS_OK",
    "STATUS_FAILED",
    # Handles
    "Handle",
    "IndexHandle",
    "TransformHandle",
    "Owned",
    "Borrowed",
    "free",
    "probe_variant",
    "variant_tag",
    "require_index",
    "require_capability",
]
