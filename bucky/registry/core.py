"""
Core module registry types.
"""

from typing import Any, Callable, Dict, List, Optional, Union
from dataclasses import dataclass, field
from enum import Enum

from .errors import DependencyError


class RunLevel(str, Enum):
    """Declared intent for whether a module should run."""
    DISABLED = "DISABLED"
    ONDEMAND = "ONDEMAND"      # Runs only if something pending needs it
    REQUESTED = "REQUESTED"    # Runs if its dependencies are met
    REQUIRED = "REQUIRED"      # Must run, missing module is fatal

    @classmethod
    def parse(cls, value: Union[str, "RunLevel"]) -> "RunLevel":
        if isinstance(value, cls):
            return value
        return cls(str(value).upper())


class RunStatus(str, Enum):
    """Resolved scheduling state for the current bootstrap pass."""
    IDLE = "IDLE"
    PENDING = "PENDING"
    LOADED = "LOADED"
    ERROR = "ERROR"


class DependencyErrorType(str, Enum):
    MISSING = "missing"
    DISABLED = "disabled"
    VERSION = "version"
    PARENT = "parent"


@dataclass
class VersionConstraint:
    """Inclusive version window with explicit exclusions."""

    from_: Optional[str] = None
    to: Optional[str] = None
    exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionConstraint":
        exclude = data.get("exclude") or []
        if isinstance(exclude, str):
            exclude = [exclude]
        return cls(
            from_=data.get("from"),
            to=data.get("to"),
            exclude=[str(v) for v in exclude],
        )

    def is_empty(self) -> bool:
        return not (self.from_ or self.to or self.exclude)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.from_:
            data["from"] = self.from_
        if self.to:
            data["to"] = self.to
        if self.exclude:
            data["exclude"] = list(self.exclude)
        return data


@dataclass
class DependencySpec:
    """
    One entry of a module's ``depends`` list.

    ``error`` and the linking it controls are rebuilt on every
    dependency check.
    """

    name: str
    version: Optional[VersionConstraint] = None
    action: Optional[str] = None
    error: Optional[DependencyError] = None

    @classmethod
    def normalize(cls, value: Union[str, Dict[str, Any], "DependencySpec"]) -> "DependencySpec":
        """Accept ``"Name"`` or ``{name, version?, action?}``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, dict) and value.get("name"):
            version = value.get("version")
            return cls(
                name=value["name"],
                version=VersionConstraint.from_dict(version) if isinstance(version, dict) else None,
                action=value.get("action"),
            )
        raise ValueError(f"Invalid dependency declaration: {value!r}")

    @classmethod
    def normalize_list(cls, value: Any) -> List["DependencySpec"]:
        """Normalize a whole ``depends`` declaration, which must be a list."""
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"'depends' must be a list, got {type(value).__name__}: {value!r}")
        return [cls.normalize(d) for d in value]

    @property
    def satisfied(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.version and not self.version.is_empty():
            data["version"] = self.version.to_dict()
        if self.action:
            data["action"] = self.action
        if self.error is not None:
            data["error"] = {
                "type": self.error.type.value,
                "propagated": self.error.propagated,
            }
        return data


@dataclass
class BootstrapSpec:
    """Bootstrap entry point: callable or import path, plus optional source file."""

    callback: Union[Callable[[], Any], str, None] = None
    file: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "BootstrapSpec":
        if isinstance(value, cls):
            return value
        if callable(value):
            return cls(callback=value)
        if isinstance(value, dict):
            return cls(callback=value.get("callback") or None, file=value.get("file") or None)
        return cls()

    def describe(self) -> str:
        cb = self.callback
        if cb is None:
            return "-"
        if isinstance(cb, str):
            return cb
        return f"{getattr(cb, '__module__', '?')}.{getattr(cb, '__qualname__', repr(cb))}"


@dataclass
class ModuleDescriptor:
    """
    Fully resolved module declaration.

    Created by the param resolver, updatable until bootstrap starts.
    ``parents``/``children`` are derived data owned by the dependency
    resolver.
    """

    name: str
    bootstrap: BootstrapSpec
    run_level: RunLevel = RunLevel.ONDEMAND
    run_status: RunStatus = RunStatus.IDLE
    version: Optional[str] = None

    # Paths and URLs
    manifest_file: Optional[str] = None
    root_dir: str = ""
    view_root_dir: str = ""
    base_src: str = ""
    base_href: str = ""
    url_prefix: str = ""

    depends: List[DependencySpec] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)

    # Set when a failed dependency propagates into this module
    error: Optional[str] = None
    action: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("ModuleDescriptor must have a name")
        self.run_level = RunLevel.parse(self.run_level)
        self.run_status = RunStatus(self.run_status)
        self.depends = DependencySpec.normalize_list(self.depends)

    @property
    def is_pending(self) -> bool:
        return self.run_status == RunStatus.PENDING

    def set_run_level(self, level: Union[str, RunLevel], config: Any = None) -> "ModuleDescriptor":
        """
        Change run level, optionally persisting it in config.

        Args:
            level: New run level
            config: Config store to write ``modules/<name>/run_level`` into
        """
        self.run_level = RunLevel.parse(level)
        if config is not None:
            config.set(f"modules/{self.name}/run_level", self.run_level.value)
        return self

    def reset_links(self) -> None:
        self.parents = []
        self.children = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "run_level": self.run_level.value,
            "run_status": self.run_status.value,
            "bootstrap": {
                "callback": self.bootstrap.describe(),
                "file": self.bootstrap.file,
            },
            "manifest_file": self.manifest_file,
            "root_dir": self.root_dir,
            "base_src": self.base_src,
            "base_href": self.base_href,
            "url_prefix": self.url_prefix,
            "depends": [d.to_dict() for d in self.depends],
            "parents": list(self.parents),
            "children": list(self.children),
            "error": self.error,
            "action": self.action,
        }
