"""
Integration tests for IndexBridge.

These tests drive whole index lifecycles through the public facade:
construction, training, insertion, persistence and release.
"""

import pytest
import tempfile
import shutil


def get_temp_dir():
    """Create a temporary directory for test data."""
    return tempfile.mkdtemp(prefix="indexbridge_integration_")


def cleanup_temp_dir(path: str):
    """Clean up temporary directory."""
    shutil.rmtree(path, ignore_errors=True)


# Integration test markers
integration = pytest.mark.integration
