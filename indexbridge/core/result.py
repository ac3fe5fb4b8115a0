"""
Result type and fault boundary.

Boundary operations never raise. Each one is wrapped by ``fault_boundary``,
which turns whatever the engine (or the layer itself) raised into a failed
``Result`` carrying an ``ErrorKind`` and the original diagnostic message.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from .exceptions import BridgeError, ErrorKind, ERROR_CLASSES
from ..utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

STATUS_OK = 0
STATUS_FAILED = -1


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a boundary operation.
    
    Attributes:
        value: Output of the operation (None on failure)
        error: Failure kind (None on success)
        message: Diagnostic text for failures
    """
    
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    
    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)
    
    @classmethod
    def failure(cls, error: ErrorKind, message: str = "") -> "Result[T]":
        return cls(error=error, message=message)
    
    @property
    def ok(self) -> bool:
        return self.error is None
    
    @property
    def status(self) -> int:
        """Integer status: 0 on success, negative on failure."""
        return STATUS_OK if self.error is None else STATUS_FAILED
    
    def unwrap(self) -> T:
        """Return the value or raise the exception matching ``error``."""
        if self.error is not None:
            raise ERROR_CLASSES[self.error](self.message)
        return self.value
    
    def __bool__(self) -> bool:
        return self.ok
    
    def __repr__(self) -> str:
        if self.ok:
            return f"Result(ok, value={self.value!r})"
        return f"Result({self.error.value}, message='{self.message}')"


def fault_boundary(func: Callable[..., Any]) -> Callable[..., Result]:
    """
    Wrap a boundary operation so that no exception escapes it.
    
    Layer exceptions keep their own kind; anything else raised during the
    call is an internal fault. Engine state left behind by a faulted
    call is not rolled back.
    """
    
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            value = func(*args, **kwargs)
        except BridgeError as e:
            logger.debug(f"{func.__name__} rejected ({e.kind.value}): {e}")
            return Result.failure(e.kind, str(e))
        except Exception as e:
            message = f"{type(e).__name__}: {e}"
            logger.warning(f"{func.__name__} faulted: {message}")
            return Result.failure(ErrorKind.INTERNAL_FAULT, message)
        return Result.success(value)
    
    return wrapper
