"""
Bucky - pluggable module framework.

Applications are assembled from modules declared in manifests. Modules
depend on each other, are resolved and ordered at startup, and their
bootstrap callbacks run once in dependency order.
"""

__version__ = "0.1.0"

from .config import Config, ConfigError
from .events import EventBus, Observer
from .app import BuckyApp
from .registry import (
    ModuleRegistry,
    ModuleDescriptor,
    RunLevel,
    RunStatus,
    RegistryError,
)

__all__ = [
    "__version__",
    "Config",
    "ConfigError",
    "EventBus",
    "Observer",
    "BuckyApp",
    "ModuleRegistry",
    "ModuleDescriptor",
    "RunLevel",
    "RunStatus",
    "RegistryError",
]
