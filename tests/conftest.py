"""
Pytest fixtures for IndexBridge tests.
"""

import pytest
import numpy as np

from indexbridge import flat_index, free
from indexbridge.config import Settings, set_settings
from indexbridge.device import set_backend
from indexbridge.utils.metrics import disable_metrics, reset_metrics


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end lifecycle tests")


@pytest.fixture(autouse=True)
def isolated_state():
    """Fresh settings, backend selection and metrics for every test."""
    set_settings(Settings())
    set_backend(None)
    disable_metrics()
    reset_metrics()
    yield
    set_settings(None)
    set_backend(None)
    disable_metrics()
    reset_metrics()


@pytest.fixture
def dimension() -> int:
    """Default dimension for test vectors."""
    return 32


@pytest.fixture
def random_vectors(dimension: int) -> np.ndarray:
    """Generate random vectors (200 vectors)."""
    np.random.seed(42)
    return np.random.randn(200, dimension).astype(np.float32)


@pytest.fixture
def training_vectors(dimension: int) -> np.ndarray:
    """Generate a larger batch suitable for training (2000 vectors)."""
    np.random.seed(7)
    return np.random.randn(2000, dimension).astype(np.float32)


@pytest.fixture
def binary_vectors() -> np.ndarray:
    """Generate random 64-bit codes (200 vectors of 8 bytes)."""
    np.random.seed(42)
    return np.random.randint(0, 256, size=(200, 8), dtype=np.uint8)


@pytest.fixture
def flat(dimension: int):
    """An empty L2 flat index, freed after the test."""
    handle = flat_index(dimension).unwrap()
    yield handle
    if not handle.is_freed and handle.owner is None:
        free(handle)
