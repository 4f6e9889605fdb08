"""
Application container.

Holds the config, module registry and event bus for one application and
drives the load -> bootstrap -> dispatch sequence.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .config import Config, ConfigError
from .events import EventBus
from .registry import BEFORE_DISPATCH, ModuleDescriptor, ModuleRegistry
from .registry.params import Environment


logger = logging.getLogger("bucky.app")


class BuckyApp:
    """
    One application: config, modules and events wired together.

    Usage:
        app = BuckyApp()
        app.configure("config/local.yaml")
        app.load("modules/*")
        app.run(router=router)
    """

    def __init__(self, config: Optional[Config] = None, environment: Optional[Environment] = None):
        self.config = config if config is not None else Config()
        self.modules = ModuleRegistry(self.config, environment)
        self.events = EventBus(self.modules.context)
        self.modules.subscribe(self.events)
        self.bootstrapped: List[str] = []

    def configure(self, config: Union[Dict[str, Any], str]) -> "BuckyApp":
        """Add configuration from a dict or a file path."""
        if isinstance(config, dict):
            self.config.add(config)
        elif isinstance(config, str):
            self.config.add_file(config)
        else:
            raise ConfigError("Invalid configuration argument")
        return self

    def load(self, folders: Union[str, List[str]] = ".") -> "BuckyApp":
        """
        Scan folders for module manifests.

        Args:
            folders: Comma separated string or list of paths / glob patterns
        """
        if isinstance(folders, str):
            folders = [f.strip() for f in folders.split(",") if f.strip()]
        for folder in folders:
            self.modules.scan(folder)
        return self

    def run(self, router: Any = None) -> "BuckyApp":
        """Bootstrap modules, then announce dispatch."""
        self.bootstrapped = self.modules.bootstrap()
        self.events.fire(BEFORE_DISPATCH, {"router": router})
        return self

    def module(self, name: Optional[str] = None) -> Optional[ModuleDescriptor]:
        """Module by name, or the current module."""
        if name is None:
            return self.modules.current_module()
        return self.modules.module(name)

    def url(self, module_name: str, path: str = "", kind: str = "base_href") -> str:
        """
        Build a URL under a module's base.

        Args:
            module_name: Module name
            path: Path appended to the base
            kind: ``base_href`` (application URL) or ``base_src`` (asset URL)
        """
        module = self.modules.module(module_name)
        if module is None:
            raise KeyError(f"Invalid module: {module_name}")
        if kind not in ("base_href", "base_src"):
            raise ValueError(f"Unknown URL kind: {kind}")
        return getattr(module, kind) + path
