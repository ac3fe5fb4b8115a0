"""
Custom exceptions for IndexBridge.

Every exception raised inside the boundary layer carries an ``ErrorKind``
so the fault boundary can report it without inspecting the message.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds reported across the boundary."""
    INVALID_ARGUMENT = "invalid_argument"
    CAPABILITY_MISMATCH = "capability_mismatch"
    INTERNAL_FAULT = "internal_fault"
    UNSUPPORTED = "unsupported"


class BridgeError(Exception):
    """Base exception for IndexBridge."""
    kind = ErrorKind.INTERNAL_FAULT


class InvalidArgumentError(BridgeError):
    """Unset handle, dimension mismatch or unsupported parameter value."""
    kind = ErrorKind.INVALID_ARGUMENT


class ValidationError(InvalidArgumentError):
    """Input buffer or scalar validation error."""
    pass


class IndexFreedError(InvalidArgumentError):
    """Handle was used or freed after it had already been freed."""
    pass


class OwnershipError(InvalidArgumentError):
    """Handle ownership rules were violated."""
    pass


class CapabilityMismatchError(BridgeError):
    """Variant-specific operation invoked on a handle of another variant."""
    kind = ErrorKind.CAPABILITY_MISMATCH


class InternalFaultError(BridgeError):
    """Fault raised inside the search engine."""
    kind = ErrorKind.INTERNAL_FAULT


class UnsupportedError(BridgeError):
    """Operation not available in this build or backend."""
    kind = ErrorKind.UNSUPPORTED


ERROR_CLASSES = {
    ErrorKind.INVALID_ARGUMENT: InvalidArgumentError,
    ErrorKind.CAPABILITY_MISMATCH: CapabilityMismatchError,
    ErrorKind.INTERNAL_FAULT: InternalFaultError,
    ErrorKind.UNSUPPORTED: UnsupportedError,
}
