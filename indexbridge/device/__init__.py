"""
Device module for IndexBridge.

Provides the accelerator backend abstraction, shared device resources
and host/device index transfer.
"""

from .backend import (
    DeviceBackend,
    NullDeviceBackend,
    FaissGpuBackend,
    select_backend,
    get_backend,
    set_backend,
)
from .transfer import (
    DeviceResources,
    resources_new,
    resources_set_temp_memory,
    resources_set_default_null_stream_all_devices,
    gpu_flat_index,
    gpu_ivf_flat_index,
    index_cpu_to_gpu,
    index_cpu_to_all_gpus,
    index_gpu_to_cpu,
    get_num_gpus,
)

__all__ = [
    # Backends
    "DeviceBackend",
    "NullDeviceBackend",
    "FaissGpuBackend",
    "select_backend",
    "get_backend",
    "set_backend",
    # Resources and transfers
    "DeviceResources",
    "resources_new",
    "resources_set_temp_memory",
    "resources_set_default_null_stream_all_devices",
    "gpu_flat_index",
    "gpu_ivf_flat_index",
    "index_cpu_to_gpu",
    "index_cpu_to_all_gpus",
    "index_gpu_to_cpu",
    "get_num_gpus",
]
