"""
Module registry for Bucky

Manifest-driven module system that:
- Scans JSON/YAML/Python manifests into module descriptors
- Resolves dependencies (presence, enabled state, version windows)
- Cascades dependency failures and run requests through the graph
- Orders modules topologically and rejects cycles
- Bootstraps eligible modules inside a current-module context
"""

from .core import (
    RunLevel,
    RunStatus,
    DependencyErrorType,
    VersionConstraint,
    DependencySpec,
    BootstrapSpec,
    ModuleDescriptor,
)

from .errors import (
    RegistryError,
    ManifestError,
    ManifestParseError,
    DuplicateModuleError,
    MissingRequiredModuleError,
    DependencyError,
    CycleError,
    BootstrapError,
    ModuleContextError,
    ErrorSpan,
    ValidationReport,
)

from .context import ModuleContextStack
from .loader import ManifestScanner
from .params import Environment, ModuleParamResolver
from .store import ModuleStore
from .graph import DependencyResolver, TopologicalSorter, version_satisfies
from .registry import ModuleRegistry, BootstrapRunner, BEFORE_DISPATCH

__all__ = [
    # Core
    "RunLevel",
    "RunStatus",
    "DependencyErrorType",
    "VersionConstraint",
    "DependencySpec",
    "BootstrapSpec",
    "ModuleDescriptor",

    # Errors
    "RegistryError",
    "ManifestError",
    "ManifestParseError",
    "DuplicateModuleError",
    "MissingRequiredModuleError",
    "DependencyError",
    "CycleError",
    "BootstrapError",
    "ModuleContextError",
    "ErrorSpan",
    "ValidationReport",

    # Components
    "ModuleContextStack",
    "ManifestScanner",
    "Environment",
    "ModuleParamResolver",
    "ModuleStore",
    "DependencyResolver",
    "TopologicalSorter",
    "version_satisfies",
    "ModuleRegistry",
    "BootstrapRunner",
    "BEFORE_DISPATCH",
]
