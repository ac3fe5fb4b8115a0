"""
Unit tests for device backends and host/device transfer.
"""

import logging

import pytest
import faiss
import numpy as np

from indexbridge import ErrorKind, Variant, flat_index, add, search, ntotal, free
from indexbridge.config import Settings, DeviceConfig, set_settings
from indexbridge.device import (
    DeviceBackend,
    NullDeviceBackend,
    FaissGpuBackend,
    DeviceResources,
    select_backend,
    get_backend,
    set_backend,
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


class HostCloneBackend(DeviceBackend):
    """Backend that keeps "device" copies in host memory."""
    
    name = "host-clone"
    
    def __init__(self, devices: int = 2):
        self.devices = devices
        self.temp_memory = {}
        self.null_stream_calls = 0
    
    def num_devices(self):
        return self.devices
    
    def new_resources(self):
        return object()
    
    def set_temp_memory(self, resources, nbytes):
        self.temp_memory[id(resources)] = nbytes
    
    def set_default_null_stream_all_devices(self, resources):
        self.null_stream_calls += 1
    
    def flat_index(self, resources, d, metric, device):
        return faiss.IndexFlat(d, metric.to_faiss())
    
    def ivf_flat_index(self, resources, d, nlist, metric, device):
        return faiss.IndexIVFFlat(faiss.IndexFlat(d, metric.to_faiss()), d, nlist, metric.to_faiss())
    
    def cpu_to_gpu(self, resources, device, index):
        return faiss.clone_index(index)
    
    def cpu_to_all_gpus(self, index):
        return faiss.clone_index(index)
    
    def gpu_to_cpu(self, index):
        return faiss.clone_index(index)


class TestNullBackend:
    """Graceful degradation without accelerator support."""
    
    @pytest.fixture(autouse=True)
    def null_backend(self):
        set_backend(NullDeviceBackend())
    
    def test_num_gpus_is_zero(self):
        result = get_num_gpus()
        
        assert result.ok
        assert result.value == 0
    
    def test_every_operation_unsupported(self, flat):
        """Every transfer call fails with UNSUPPORTED, whatever the input."""
        results = [
            resources_new(),
            resources_set_temp_memory(None, 1024),
            resources_set_default_null_stream_all_devices("bogus"),
            gpu_flat_index(None, 64),
            gpu_ivf_flat_index(None, -1, 0),
            index_cpu_to_gpu(None, 0, flat),
            index_cpu_to_all_gpus(flat),
            index_cpu_to_all_gpus(None),
            index_gpu_to_cpu(flat),
        ]
        
        for result in results:
            assert result.error == ErrorKind.UNSUPPORTED
            assert result.status < 0
    
    def test_source_index_untouched(self, flat, random_vectors):
        add(flat, random_vectors)
        
        index_cpu_to_all_gpus(flat)
        
        assert ntotal(flat).value == len(random_vectors)


class TestBackendSelection:
    """Backend selection from settings."""
    
    def test_none(self):
        assert isinstance(select_backend("none"), NullDeviceBackend)
    
    def test_auto_without_gpu(self, monkeypatch):
        monkeypatch.setattr(FaissGpuBackend, "is_supported", staticmethod(lambda: False))
        
        assert isinstance(select_backend("auto"), NullDeviceBackend)
        assert isinstance(select_backend("faiss"), NullDeviceBackend)
    
    def test_auto_with_gpu(self, monkeypatch):
        monkeypatch.setattr(FaissGpuBackend, "is_supported", staticmethod(lambda: True))
        
        assert isinstance(select_backend("AUTO"), FaissGpuBackend)
    
    def test_unknown(self):
        with pytest.raises(ValueError):
            select_backend("cuda")
    
    def test_from_settings(self):
        set_settings(Settings(device=DeviceConfig(backend="none")))
        set_backend(None)
        
        assert isinstance(get_backend(), NullDeviceBackend)
    
    def test_set_backend(self):
        backend = HostCloneBackend()
        set_backend(backend)
        
        assert get_backend() is backend
        assert get_num_gpus().value == 2


class TestTransfers:
    """Transfers through a pluggable backend."""
    
    @pytest.fixture
    def backend(self):
        backend = HostCloneBackend()
        set_backend(backend)
        return backend
    
    @pytest.fixture
    def resources(self, backend):
        return resources_new().unwrap()
    
    def test_resources(self, backend, resources):
        assert isinstance(resources, DeviceResources)
        assert resources_set_temp_memory(resources, 1 << 20).ok
        assert backend.temp_memory[id(resources.raw)] == 1 << 20
        assert resources_set_default_null_stream_all_devices(resources).ok
        assert backend.null_stream_calls == 1
    
    def test_temp_memory_from_settings(self, backend):
        set_settings(Settings(device=DeviceConfig(temp_memory_bytes=4096)))
        
        res = resources_new().unwrap()
        
        assert backend.temp_memory[id(res.raw)] == 4096
    
    def test_negative_temp_memory(self, resources):
        assert resources_set_temp_memory(resources, -1).error == ErrorKind.INVALID_ARGUMENT
    
    def test_device_flat(self, resources, random_vectors, dimension):
        index = gpu_flat_index(resources, dimension, device=1).unwrap()
        add(index, random_vectors).unwrap()
        
        result = search(index, random_vectors[:2], k=1).unwrap()
        
        assert index.variant is Variant.FLAT
        assert index.device == 1
        assert index.resources is resources
        assert list(result.labels[:, 0]) == [0, 1]
    
    def test_device_ivf(self, resources, dimension):
        index = gpu_ivf_flat_index(resources, dimension, 8).unwrap()
        
        assert index.variant is Variant.IVF
        assert index.device == 0
    
    def test_round_trip(self, resources, flat, random_vectors):
        add(flat, random_vectors)
        
        on_device = index_cpu_to_gpu(resources, 0, flat).unwrap()
        back = index_gpu_to_cpu(on_device).unwrap()
        
        assert on_device.device == 0
        assert back.device is None
        assert back.variant is flat.variant
        assert ntotal(back).value == len(random_vectors)
        assert not flat.is_freed
    
    def test_all_gpus(self, flat, backend):
        replicated = index_cpu_to_all_gpus(flat).unwrap()
        
        assert replicated.device == -1
    
    def test_gpu_to_cpu_requires_device_index(self, backend, flat):
        assert index_gpu_to_cpu(flat).error == ErrorKind.INVALID_ARGUMENT
    
    def test_cpu_to_gpu_rejects_device_index(self, resources, dimension):
        index = gpu_flat_index(resources, dimension).unwrap()
        
        assert index_cpu_to_gpu(resources, 0, index).error == ErrorKind.INVALID_ARGUMENT
    
    def test_invalid_resources(self, backend, flat):
        assert index_cpu_to_gpu(flat, 0, flat).error == ErrorKind.INVALID_ARGUMENT
        assert index_cpu_to_gpu(None, 0, flat).error == ErrorKind.INVALID_ARGUMENT
    
    def test_negative_device(self, resources, flat):
        assert index_cpu_to_gpu(resources, -2, flat).error == ErrorKind.INVALID_ARGUMENT
    
    def test_freeing_resources_with_live_dependents_warns(self, resources, dimension, caplog):
        index = gpu_flat_index(resources, dimension).unwrap()
        
        with caplog.at_level(logging.WARNING):
            assert free(resources).ok
        
        assert "still referenced" in caplog.text
        assert not index.is_freed
    
    def test_freeing_resources_after_dependents(self, resources, dimension, caplog):
        index = gpu_flat_index(resources, dimension).unwrap()
        free(index)
        
        with caplog.at_level(logging.WARNING):
            free(resources).unwrap()
        
        assert "still referenced" not in caplog.text
