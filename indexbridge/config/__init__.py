"""
Configuration module for IndexBridge.

Example:
    >>> from indexbridge.config import load_config, get_settings
    >>> 
    >>> settings = load_config("./my_config.yaml")
    >>> print(settings.clustering.niter)
"""

from .settings import (
    Settings,
    IndexDefaults,
    ClusteringConfig,
    DeviceConfig,
    CONFIG_ENV_VAR,
    load_config,
    get_default_config_path,
    get_settings,
    set_settings,
)

__all__ = [
    "Settings",
    "IndexDefaults",
    "ClusteringConfig",
    "DeviceConfig",
    "CONFIG_ENV_VAR",
    "load_config",
    "get_default_config_path",
    "get_settings",
    "set_settings",
]
