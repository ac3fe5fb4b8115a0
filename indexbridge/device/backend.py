"""
Pluggable accelerator backends.

The active backend is chosen at run time from ``device.backend`` in the
settings:

    auto   - faiss GPU backend when the engine exposes GPU classes and at
             least one device is visible, otherwise the null backend
    faiss  - faiss GPU backend (falls back to null with a warning when
             the engine has no GPU support)
    none   - null backend

The null backend fails every operation with UNSUPPORTED and reports zero
devices.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

import faiss

from ..config import get_settings
from ..core.exceptions import UnsupportedError
from ..core.types import Metric
from ..utils.logging import get_logger


logger = get_logger(__name__)


class DeviceBackend(ABC):
    """
    Abstract accelerator backend.
    
    Implementations create engine device resources and device-resident
    engine indexes, and move indexes between host and device memory.
    """
    
    name: str = "abstract"
    
    @property
    def available(self) -> bool:
        return True
    
    @abstractmethod
    def num_devices(self) -> int:
        """Number of visible devices."""
        pass
    
    @abstractmethod
    def new_resources(self) -> Any:
        """Create a device resource object."""
        pass
    
    @abstractmethod
    def set_temp_memory(self, resources: Any, nbytes: int) -> None:
        pass
    
    @abstractmethod
    def set_default_null_stream_all_devices(self, resources: Any) -> None:
        pass
    
    @abstractmethod
    def flat_index(self, resources: Any, d: int, metric: Metric, device: int) -> Any:
        """Device-resident exact index."""
        pass
    
    @abstractmethod
    def ivf_flat_index(
        self, resources: Any, d: int, nlist: int, metric: Metric, device: int
    ) -> Any:
        """Device-resident inverted-file index with its own quantizer."""
        pass
    
    @abstractmethod
    def cpu_to_gpu(self, resources: Any, device: int, index: Any) -> Any:
        pass
    
    @abstractmethod
    def cpu_to_all_gpus(self, index: Any) -> Any:
        pass
    
    @abstractmethod
    def gpu_to_cpu(self, index: Any) -> Any:
        pass
    
    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class NullDeviceBackend(DeviceBackend):
    """Backend for builds and hosts without accelerator support."""
    
    name = "none"
    
    @property
    def available(self) -> bool:
        return False
    
    def num_devices(self) -> int:
        return 0
    
    def _unsupported(self, *args, **kwargs):
        raise UnsupportedError("accelerator support is not available")
    
    new_resources = _unsupported
    set_temp_memory = _unsupported
    set_default_null_stream_all_devices = _unsupported
    flat_index = _unsupported
    ivf_flat_index = _unsupported
    cpu_to_gpu = _unsupported
    cpu_to_all_gpus = _unsupported
    gpu_to_cpu = _unsupported


class FaissGpuBackend(DeviceBackend):
    """Backend over the engine's GPU resources, index classes and cloners."""
    
    name = "faiss"
    
    @staticmethod
    def is_supported() -> bool:
        """Whether the engine build exposes GPU support and sees a device."""
        if not hasattr(faiss, "StandardGpuResources"):
            return False
        try:
            return faiss.get_num_gpus() > 0
        except (AttributeError, RuntimeError):
            return False
    
    def num_devices(self) -> int:
        return int(faiss.get_num_gpus())
    
    def new_resources(self) -> Any:
        return faiss.StandardGpuResources()
    
    def set_temp_memory(self, resources: Any, nbytes: int) -> None:
        resources.setTempMemory(int(nbytes))
    
    def set_default_null_stream_all_devices(self, resources: Any) -> None:
        resources.setDefaultNullStreamAllDevices()
    
    def flat_index(self, resources: Any, d: int, metric: Metric, device: int) -> Any:
        cfg = faiss.GpuIndexFlatConfig()
        cfg.device = int(device)
        return faiss.GpuIndexFlat(resources, d, metric.to_faiss(), cfg)
    
    def ivf_flat_index(
        self, resources: Any, d: int, nlist: int, metric: Metric, device: int
    ) -> Any:
        cfg = faiss.GpuIndexIVFFlatConfig()
        cfg.device = int(device)
        return faiss.GpuIndexIVFFlat(resources, d, nlist, metric.to_faiss(), cfg)
    
    def cpu_to_gpu(self, resources: Any, device: int, index: Any) -> Any:
        return faiss.index_cpu_to_gpu(resources, int(device), index)
    
    def cpu_to_all_gpus(self, index: Any) -> Any:
        return faiss.index_cpu_to_all_gpus(index)
    
    def gpu_to_cpu(self, index: Any) -> Any:
        return faiss.index_gpu_to_cpu(index)


# =========================================================================
# BACKEND SELECTION
# =========================================================================

_active: Optional[DeviceBackend] = None


def select_backend(name: str) -> DeviceBackend:
    """
    Build the backend named by a ``device.backend`` setting.
    
    Raises:
        ValueError: If ``name`` is not auto, faiss or none
    """
    name = name.lower()
    
    if name == "none":
        return NullDeviceBackend()
    
    if name == "auto":
        if FaissGpuBackend.is_supported():
            return FaissGpuBackend()
        return NullDeviceBackend()
    
    if name == "faiss":
        if FaissGpuBackend.is_supported():
            return FaissGpuBackend()
        logger.warning("faiss GPU backend requested but unavailable; using null backend")
        return NullDeviceBackend()
    
    raise ValueError(f"Unknown device backend: {name}. Use auto, faiss or none")


def get_backend() -> DeviceBackend:
    """Return the active backend, selecting it from settings on first use."""
    global _active
    if _active is None:
        _active = select_backend(get_settings().device.backend)
        logger.debug(f"Selected device backend {_active!r}")
    return _active


def set_backend(backend: Optional[DeviceBackend]) -> None:
    """Replace the active backend. ``None`` reselects from settings."""
    global _active
    _active = backend
