"""
Opaque handles over engine objects.

A handle owns exactly one engine object until it is freed. Composite
handles record which children they own (released together with the
parent) and which they merely reference (left alone on release).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

import faiss

from .exceptions import (
    CapabilityMismatchError,
    IndexFreedError,
    InvalidArgumentError,
    OwnershipError,
)
from .result import fault_boundary
from .types import Capability, TransformKind, Variant, VARIANT_CAPABILITIES
from ..utils.logging import get_logger


logger = get_logger(__name__)


class Handle:
    """
    Base class for every handle crossing the boundary.
    
    Thread Safety:
        Handles perform no locking. Mutating calls on one handle must be
        serialized by the caller.
    """
    
    kind_name = "handle"
    
    def __init__(self, raw: Any):
        self._raw = raw
        self._owner: Optional[Handle] = None
        self._owned: List[Handle] = []
        self._borrowed: List[Handle] = []
        self._engine_refs: List[Any] = []
    
    @property
    def raw(self) -> Any:
        """The engine object. Raises if the handle was freed."""
        if self._raw is None:
            raise IndexFreedError(f"{self.kind_name} handle has been freed")
        return self._raw
    
    @property
    def is_freed(self) -> bool:
        return self._raw is None
    
    @property
    def owner(self) -> Optional["Handle"]:
        """Handle that owns this one, if ownership was transferred."""
        return self._owner
    
    @property
    def owned_children(self) -> List["Handle"]:
        return list(self._owned)
    
    @property
    def borrowed_children(self) -> List["Handle"]:
        return list(self._borrowed)
    
    def adopt(self, child: "Handle") -> None:
        """Take ownership of ``child``."""
        child.raw
        if child._owner is not None:
            raise OwnershipError(
                f"{child.kind_name} handle is already owned by a {child._owner.kind_name}"
            )
        if child is self:
            raise OwnershipError("a handle cannot own itself")
        child._owner = self
        self._owned.append(child)
    
    def reference(self, child: "Handle") -> None:
        """Keep a non-owning reference to ``child``."""
        child.raw
        self._borrowed.append(child)
    
    def keep_alive(self, engine_object: Any) -> None:
        """Hold an engine object that is used by ``raw`` but has no handle."""
        self._engine_refs.append(engine_object)
    
    def release(self) -> None:
        """Release the engine object and every owned child."""
        for child in self._owned:
            if not child.is_freed:
                child.release()
        self._owned.clear()
        self._borrowed.clear()
        self._engine_refs.clear()
        self._raw = None
    
    def __enter__(self):
        return self
    
    def __exit__(self, *args):
        if not self.is_freed and self._owner is None:
            self.release()
    
    def __repr__(self) -> str:
        state = "freed" if self.is_freed else "live"
        return f"{self.__class__.__name__}({state})"


class IndexHandle(Handle):
    """
    Handle over an engine index.
    
    Attributes:
        variant: Variant tag, fixed at construction
        params: Construction parameters recorded by the constructor
        device: Device id for accelerator-resident indexes (None on host)
        resources: Device resources the index was built against
    """
    
    kind_name = "index"
    
    def __init__(
        self,
        raw: Any,
        variant: Variant,
        params: Optional[Dict[str, Any]] = None,
        device: Optional[int] = None,
        resources: Optional[Handle] = None,
    ):
        super().__init__(raw)
        self._variant = variant
        self.params: Dict[str, Any] = dict(params or {})
        self.device = device
        self.resources = resources
    
    @property
    def variant(self) -> Variant:
        return self._variant
    
    @property
    def is_binary(self) -> bool:
        return self._variant.is_binary
    
    @property
    def capabilities(self):
        return VARIANT_CAPABILITIES[self._variant]
    
    def supports(self, capability: Capability) -> bool:
        return capability in VARIANT_CAPABILITIES[self._variant]
    
    def __repr__(self) -> str:
        if self.is_freed:
            return f"IndexHandle(variant='{self._variant.value}', freed)"
        return (
            f"IndexHandle(variant='{self._variant.value}', "
            f"d={self._raw.d}, ntotal={self._raw.ntotal})"
        )


class TransformHandle(Handle):
    """Handle over an engine vector transform."""
    
    kind_name = "transform"
    
    def __init__(self, raw: Any, kind: TransformKind):
        super().__init__(raw)
        self.kind = kind
    
    def __repr__(self) -> str:
        if self.is_freed:
            return f"TransformHandle(kind='{self.kind.value}', freed)"
        return (
            f"TransformHandle(kind='{self.kind.value}', "
            f"d_in={self._raw.d_in}, d_out={self._raw.d_out})"
        )


# =========================================================================
# OWNERSHIP WRAPPERS
# =========================================================================

H = TypeVar("H", bound=Handle)


@dataclass(frozen=True)
class Owned(Generic[H]):
    """Argument whose ownership moves into the constructed handle."""
    handle: H


@dataclass(frozen=True)
class Borrowed(Generic[H]):
    """Argument the constructed handle references without owning."""
    handle: H


def take_owned(arg: Any, name: str, expected: type = Handle) -> Handle:
    """Unwrap an argument declared as owned."""
    if isinstance(arg, Borrowed):
        raise OwnershipError(f"{name} is taken by ownership; pass it as Owned")
    handle = arg.handle if isinstance(arg, Owned) else arg
    return _check_handle(handle, name, expected)


def take_borrowed(arg: Any, name: str, expected: type = Handle) -> Handle:
    """Unwrap an argument declared as borrowed."""
    if isinstance(arg, Owned):
        raise OwnershipError(f"{name} is only referenced; pass it as Borrowed")
    handle = arg.handle if isinstance(arg, Borrowed) else arg
    return _check_handle(handle, name, expected)


def _check_handle(handle: Any, name: str, expected: type) -> Handle:
    if handle is None:
        raise InvalidArgumentError(f"{name} handle is unset")
    if not isinstance(handle, expected):
        raise InvalidArgumentError(
            f"{name} must be a {expected.__name__}, got {type(handle).__name__}"
        )
    handle.raw
    return handle


def require_index(handle: Any, name: str = "index") -> IndexHandle:
    """Validate that ``handle`` is a live index handle."""
    return _check_handle(handle, name, IndexHandle)


def require_capability(handle: Any, capability: Capability) -> IndexHandle:
    """Validate that ``handle`` is a live index supporting ``capability``."""
    index = require_index(handle)
    if not index.supports(capability):
        raise CapabilityMismatchError(
            f"{index.variant.value} index does not support {capability.value}"
        )
    return index


# =========================================================================
# VARIANT PROBING
# =========================================================================

# Most-derived classes first: the first match wins.
_FLOAT_PROBES: Tuple[Tuple[str, Variant], ...] = (
    ("IndexFlat", Variant.FLAT),
    ("IndexIVFFlat", Variant.IVF),
    ("IndexIVFPQ", Variant.IVF),
    ("IndexIVFScalarQuantizer", Variant.IVF),
    ("IndexIVFPQFastScan", Variant.IVF),
    ("IndexIVF", Variant.IVF),
    ("IndexHNSWFlat", Variant.HNSW),
    ("IndexHNSW", Variant.HNSW),
    ("IndexPQ", Variant.PQ),
    ("IndexPQFastScan", Variant.PQ_FASTSCAN),
    ("IndexScalarQuantizer", Variant.SQ),
    ("IndexLSH", Variant.LSH),
    ("IndexRefine", Variant.REFINE),
    ("IndexPreTransform", Variant.PRE_TRANSFORM),
    ("IndexIDMap2", Variant.IDMAP),
    ("IndexIDMap", Variant.IDMAP),
    ("IndexShards", Variant.SHARDS),
    ("GpuIndexFlat", Variant.FLAT),
    ("GpuIndexIVFFlat", Variant.IVF),
)

_BINARY_PROBES: Tuple[Tuple[str, Variant], ...] = (
    ("IndexBinaryFlat", Variant.BINARY_FLAT),
    ("IndexBinaryIVF", Variant.BINARY_IVF),
    ("IndexBinaryHash", Variant.BINARY_HASH),
)

UNKNOWN_TAG = "Unknown"


def probe_variant(raw: Any, binary: bool = False) -> Tuple[Variant, str]:
    """
    Recover the variant of an engine object.
    
    Args:
        raw: Engine index object
        binary: Whether ``raw`` belongs to the binary family
        
    Returns:
        Tuple of (variant, engine class tag). Objects matching no probe
        come back as ``(Variant.GENERIC, "Unknown")``.
    """
    probes = _BINARY_PROBES if binary else _FLOAT_PROBES
    for class_name, variant in probes:
        cls = getattr(faiss, class_name, None)
        if cls is not None and isinstance(raw, cls):
            return variant, class_name
    return Variant.GENERIC, UNKNOWN_TAG


def variant_tag(handle: IndexHandle) -> str:
    """Engine class tag of a live index handle."""
    return probe_variant(handle.raw, binary=handle.is_binary)[1]


# =========================================================================
# RELEASE
# =========================================================================

@fault_boundary
def free(handle: Handle) -> None:
    """
    Release a handle and everything it owns.
    
    Handles whose ownership moved into a composite are released by their
    owner; freeing them directly is rejected while the owner is alive.
    """
    if not isinstance(handle, Handle):
        raise InvalidArgumentError(
            f"expected a handle, got {type(handle).__name__}"
        )
    if handle.is_freed:
        raise IndexFreedError(f"{handle.kind_name} handle has already been freed")
    if handle.owner is not None and not handle.owner.is_freed:
        raise OwnershipError(
            f"{handle.kind_name} handle is owned by a {handle.owner.kind_name}; "
            "free the owner instead"
        )
    logger.debug(f"Freeing {handle!r}")
    handle.release()
