"""
Settings for IndexBridge.

Defaults used by the constructors, the clustering facade and the device
backend, loaded from a YAML file. The active settings are process-wide.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Literal
import yaml


CONFIG_ENV_VAR = "INDEXBRIDGE_CONFIG"


@dataclass
class IndexDefaults:
    """Default parameters applied by the index constructors."""
    metric: Literal["l2", "inner_product"] = "l2"
    nprobe: int = 1
    hnsw_m: int = 32
    ef_construction: int = 40
    ef_search: int = 16
    k_factor: float = 1.0


@dataclass
class ClusteringConfig:
    """K-means defaults."""
    niter: int = 25
    seed: int = 1234
    verbose: bool = False


@dataclass
class DeviceConfig:
    """Accelerator backend configuration."""
    backend: Literal["auto", "none", "faiss"] = "auto"
    device: int = 0
    temp_memory_bytes: Optional[int] = None


@dataclass
class Settings:
    """
    Main settings container for IndexBridge.
    
    Attributes:
        index: Constructor defaults
        clustering: K-means defaults
        device: Device backend selection
        log_level: Logging level
    """
    index: IndexDefaults = field(default_factory=IndexDefaults)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    log_level: str = "WARNING"
    
    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Create Settings from dictionary."""
        data = dict(data)
        index_data = data.pop("index", None) or {}
        clustering_data = data.pop("clustering", None) or {}
        device_data = data.pop("device", None) or {}
        
        return cls(
            index=IndexDefaults(**index_data),
            clustering=ClusteringConfig(**clustering_data),
            device=DeviceConfig(**device_data),
            **data
        )
    
    def to_dict(self) -> dict:
        """Convert Settings to dictionary."""
        return asdict(self)


def get_default_config_path() -> Path:
    """Get path to default configuration file."""
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)
    
    return Path(__file__).parent / "default_config.yaml"


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.
    
    Args:
        config_path: Path to config file. If None, uses default.
        
    Returns:
        Settings object with loaded configuration
        
    Example:
        >>> settings = load_config()
        >>> settings = load_config("./my_config.yaml")
    """
    if config_path is None:
        path = get_default_config_path()
    else:
        path = Path(config_path)
    
    if not path.exists():
        return Settings()
    
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    
    if data is None:
        return Settings()
    
    return Settings.from_dict(data)


_active: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the active settings, loading them on first use."""
    global _active
    if _active is None:
        _active = load_config()
    return _active


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the active settings. ``None`` reloads on next access."""
    global _active
    _active = settings
