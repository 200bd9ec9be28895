from __future__ import annotations

from .redis import RedisConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config
from .storage import StorageConfig
from .sync import SyncConfig

__all__ = [
    "AppConfig",
    "RedisConfig",
    "RuntimeConfig",
    "Settings",
    "StorageConfig",
    "SyncConfig",
    "load_config",
]
