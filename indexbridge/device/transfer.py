"""
Device residency: shared device resources and host/device index transfer.

A ``DeviceResources`` handle is referenced, never owned, by every index
built against it. It must outlive those indexes; freeing it while any of
them is alive logs a warning and leaves their behavior undefined.

Every operation here goes through the active backend. Under the null
backend each one fails with UNSUPPORTED before looking at its arguments,
and ``get_num_gpus`` reports 0.
"""

from __future__ import annotations

import weakref
from typing import Any, List, Optional, Union

from ..config import get_settings
from ..core.exceptions import InvalidArgumentError, UnsupportedError, ValidationError
from ..core.handle import Handle, IndexHandle, require_index, take_borrowed
from ..core.result import fault_boundary
from ..core.types import Metric, Variant
from ..utils.logging import get_logger
from ..utils.validation import validate_dimension, validate_metric, validate_positive
from .backend import DeviceBackend, get_backend


logger = get_logger(__name__)


class DeviceResources(Handle):
    """
    Handle over an engine device resource object.
    
    Dependent index handles are tracked weakly: they do not keep the
    resources alive and the resources do not keep them alive.
    """
    
    kind_name = "device resources"
    
    def __init__(self, raw: Any, backend: DeviceBackend):
        super().__init__(raw)
        self.backend = backend
        self._dependents: "weakref.WeakSet[IndexHandle]" = weakref.WeakSet()
    
    def register(self, index: IndexHandle) -> None:
        self._dependents.add(index)
    
    @property
    def live_dependents(self) -> List[IndexHandle]:
        return [h for h in self._dependents if not h.is_freed]
    
    def release(self) -> None:
        alive = self.live_dependents
        if alive:
            logger.warning(
                f"Freeing device resources still referenced by {len(alive)} index handle(s)"
            )
        self._dependents = weakref.WeakSet()
        super().release()


def _active_backend() -> DeviceBackend:
    backend = get_backend()
    if not backend.available:
        raise UnsupportedError("accelerator support is not available")
    return backend


def _resources(resources: Any) -> DeviceResources:
    return take_borrowed(resources, "resources", DeviceResources)


def _device(device: Optional[int]) -> int:
    if device is None:
        return int(get_settings().device.device)
    device = int(device)
    if device < 0:
        raise ValidationError(f"Device id must be non-negative, got {device}")
    return device


def _movable_index(handle: Any) -> IndexHandle:
    index = require_index(handle)
    if index.is_binary:
        raise InvalidArgumentError("binary indexes cannot be moved between devices")
    return index


# =========================================================================
# RESOURCES
# =========================================================================

@fault_boundary
def resources_new() -> DeviceResources:
    """
    Create a device resource object.
    
    ``device.temp_memory_bytes`` from the settings, when set, is applied
    to the new resources.
    """
    backend = _active_backend()
    raw = backend.new_resources()
    
    temp_memory = get_settings().device.temp_memory_bytes
    if temp_memory is not None:
        backend.set_temp_memory(raw, int(temp_memory))
    
    return DeviceResources(raw, backend)


@fault_boundary
def resources_set_temp_memory(resources: DeviceResources, nbytes: int) -> None:
    """Size of the scratch memory pool, in bytes."""
    backend = _active_backend()
    res = _resources(resources)
    nbytes = int(nbytes)
    if nbytes < 0:
        raise ValidationError(f"Temporary memory must be non-negative, got {nbytes}")
    backend.set_temp_memory(res.raw, nbytes)


@fault_boundary
def resources_set_default_null_stream_all_devices(resources: DeviceResources) -> None:
    backend = _active_backend()
    backend.set_default_null_stream_all_devices(_resources(resources).raw)


# =========================================================================
# DEVICE-RESIDENT CONSTRUCTORS
# =========================================================================

@fault_boundary
def gpu_flat_index(
    resources: DeviceResources,
    d: int,
    metric: Union[str, Metric, None] = None,
    device: Optional[int] = None,
) -> IndexHandle:
    """Exact index built directly in device memory."""
    backend = _active_backend()
    res = _resources(resources)
    d = validate_dimension(d)
    metric = validate_metric(metric, get_settings().index.metric)
    device = _device(device)
    
    raw = backend.flat_index(res.raw, d, metric, device)
    handle = IndexHandle(
        raw, Variant.FLAT, params={"metric": metric.value}, device=device, resources=res
    )
    res.register(handle)
    logger.debug(f"Created {handle!r} on device {device}")
    return handle


@fault_boundary
def gpu_ivf_flat_index(
    resources: DeviceResources,
    d: int,
    nlist: int,
    metric: Union[str, Metric, None] = None,
    device: Optional[int] = None,
) -> IndexHandle:
    """Inverted-file index built directly in device memory. Requires training."""
    backend = _active_backend()
    res = _resources(resources)
    d = validate_dimension(d)
    nlist = validate_positive(nlist, "nlist")
    metric = validate_metric(metric, get_settings().index.metric)
    device = _device(device)
    
    raw = backend.ivf_flat_index(res.raw, d, nlist, metric, device)
    raw.nprobe = int(get_settings().index.nprobe)
    handle = IndexHandle(
        raw,
        Variant.IVF,
        params={"metric": metric.value},
        device=device,
        resources=res,
    )
    res.register(handle)
    logger.debug(f"Created {handle!r} on device {device}")
    return handle


# =========================================================================
# TRANSFERS
# =========================================================================

@fault_boundary
def index_cpu_to_gpu(
    resources: DeviceResources,
    device: Optional[int],
    handle: IndexHandle,
) -> IndexHandle:
    """
    Copy a host index to one device. The source handle is untouched and
    remains owned by the caller.
    """
    backend = _active_backend()
    res = _resources(resources)
    device = _device(device)
    index = _movable_index(handle)
    if index.device is not None:
        raise InvalidArgumentError("index is already device-resident")
    
    raw = backend.cpu_to_gpu(res.raw, device, index.raw)
    clone = IndexHandle(
        raw, index.variant, params=index.params, device=device, resources=res
    )
    res.register(clone)
    logger.info(f"Copied {index!r} to device {device}")
    return clone


@fault_boundary
def index_cpu_to_all_gpus(handle: IndexHandle) -> IndexHandle:
    """
    Copy a host index to every visible device (replicated or sharded as
    the engine decides). The result manages its own device resources.
    """
    backend = _active_backend()
    index = _movable_index(handle)
    if index.device is not None:
        raise InvalidArgumentError("index is already device-resident")
    
    raw = backend.cpu_to_all_gpus(index.raw)
    clone = IndexHandle(raw, index.variant, params=index.params, device=-1)
    logger.info(f"Copied {index!r} to {backend.num_devices()} devices")
    return clone


@fault_boundary
def index_gpu_to_cpu(handle: IndexHandle) -> IndexHandle:
    """Copy a device-resident index back to host memory."""
    backend = _active_backend()
    index = _movable_index(handle)
    if index.device is None:
        raise InvalidArgumentError("index is not device-resident")
    
    raw = backend.gpu_to_cpu(index.raw)
    clone = IndexHandle(raw, index.variant, params=index.params)
    logger.info(f"Copied {index!r} back to host")
    return clone


@fault_boundary
def get_num_gpus() -> int:
    """Number of visible devices; 0 under the null backend."""
    return int(get_backend().num_devices())
