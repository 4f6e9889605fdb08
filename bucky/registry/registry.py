"""
Module registry facade and bootstrap runner.

Lifecycle:
    scan / module (repeatable)  ->  check_depends  ->  sort_depends  ->  bootstrap
"""

import importlib
import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

from .context import ModuleContextStack
from .core import ModuleDescriptor, RunStatus
from .errors import BootstrapError, ValidationReport
from .graph import DependencyResolver, TopologicalSorter, to_dot
from .loader import ManifestScanner, load_source_file
from .params import Environment, ModuleParamResolver
from .store import ModuleStore


logger = logging.getLogger("bucky.registry")

BEFORE_DISPATCH = "dispatch.before"


def _getattr_path(obj: Any, path: str) -> Any:
    for part in path.split("."):
        obj = getattr(obj, part)
    return obj


def import_callable(path: str) -> Callable:
    """
    Resolve ``pkg.mod:attr.path`` or ``pkg.mod.attr`` to an object.

    Raises:
        ImportError / AttributeError if nothing matches
    """
    if ":" in path:
        module_path, attr = path.split(":", 1)
        return _getattr_path(importlib.import_module(module_path), attr)

    parts = path.split(".")
    for i in range(len(parts) - 1, 0, -1):
        try:
            module = importlib.import_module(".".join(parts[:i]))
        except ImportError:
            continue
        return _getattr_path(module, ".".join(parts[i:]))
    raise ImportError(f"Cannot import '{path}'")


class BootstrapRunner:
    """
    Runs bootstrap callbacks of PENDING modules in dependency order.

    Each callback runs with its module on top of the context stack.
    Callback exceptions propagate to the caller.
    """

    def __init__(
        self,
        dependencies: DependencyResolver,
        sorter: TopologicalSorter,
        context: ModuleContextStack,
    ):
        self.dependencies = dependencies
        self.sorter = sorter
        self.context = context
        self.report: Optional[ValidationReport] = None

    def bootstrap(self) -> List[str]:
        """
        Check, sort and bootstrap.

        Returns:
            Names of modules bootstrapped by this call, in order
        """
        self.report = self.dependencies.check_depends()
        modules = self.sorter.sort_depends()

        loaded: List[str] = []
        for module in modules:
            if module.run_status != RunStatus.PENDING:
                continue

            with self.context.frame(module.name):
                callback = self.resolve_callback(module)
                logger.debug("Start bootstrap for %s", module.name)
                start = time.perf_counter()
                callback()
                elapsed = (time.perf_counter() - start) * 1000
                logger.debug("End bootstrap for %s (%.2fms)", module.name, elapsed)

            module.run_status = RunStatus.LOADED
            loaded.append(module.name)

        logger.info("Bootstrapped %d module(s): %s", len(loaded), ", ".join(loaded))
        return loaded

    def resolve_callback(self, module: ModuleDescriptor) -> Callable[[], Any]:
        """
        Locate the bootstrap callable, executing ``bootstrap.file`` first.

        String callbacks are looked up in the bootstrap file's namespace,
        then imported.

        Raises:
            BootstrapError: If the file is missing or the callback cannot be resolved
        """
        spec = module.bootstrap
        namespace = None

        if spec.file:
            path = os.path.normpath(os.path.join(module.root_dir, spec.file))
            if not os.path.isfile(path):
                raise BootstrapError(module.name, f"bootstrap file not found: {path}")
            logger.debug("MODULE.BOOTSTRAP %s", path)
            namespace = load_source_file(path, f"_bucky_bootstrap_{module.name}")

        callback = spec.callback
        if isinstance(callback, str):
            target = callback
            callback = None
            if namespace is not None:
                try:
                    callback = _getattr_path(namespace, target.replace(":", "."))
                except AttributeError:
                    callback = None
            if callback is None:
                try:
                    callback = import_callable(target)
                except (ImportError, AttributeError) as e:
                    raise BootstrapError(module.name, f"cannot resolve callback '{target}': {e}") from e

        if not callable(callback):
            raise BootstrapError(module.name, f"bootstrap callback is not callable: {callback!r}")
        return callback


class ModuleRegistry:
    """
    Registry of modules, their manifests and dependencies.

    Owns the store, the dependency machinery and the current-module
    context stack for one application.
    """

    def __init__(self, config: Any = None, environment: Optional[Environment] = None):
        self.config = config
        self.context = ModuleContextStack()
        self.resolver = ModuleParamResolver(config, environment)
        self.store = ModuleStore(self.resolver)
        self.scanner = ManifestScanner(self.store)
        self.dependencies = DependencyResolver(self.store, config)
        self.sorter = TopologicalSorter(self.store)
        self.runner = BootstrapRunner(self.dependencies, self.sorter, self.context)

    # ── registration ────────────────────────────────────────────────────

    def module(self, name: str, params: Any = None) -> Optional[ModuleDescriptor]:
        """
        Register a module, or return it when ``params`` is omitted.

        Args:
            name: Module name
            params: Manifest record, or a bare bootstrap callable
        """
        if params is None:
            return self.store.get(name)
        return self.store.register(name, params)

    def scan(self, source: str) -> List[str]:
        """Scan manifests matching ``source``; see ManifestScanner.scan."""
        return self.scanner.scan(source)

    def subscribe(self, events: Any) -> None:
        """Attach the before-dispatch observer to an event bus."""
        events.on(BEFORE_DISPATCH, self.on_before_dispatch)

    # ── resolution ──────────────────────────────────────────────────────

    def check_depends(self) -> ValidationReport:
        self.runner.report = self.dependencies.check_depends()
        return self.runner.report

    def sort_depends(self) -> List[ModuleDescriptor]:
        return self.sorter.sort_depends()

    def bootstrap(self) -> List[str]:
        return self.runner.bootstrap()

    # ── current module context ─────────────────────────────────────────

    def push_module(self, name: str) -> None:
        self.context.push(name)

    def pop_module(self) -> str:
        return self.context.pop()

    def current_module_name(self) -> Optional[str]:
        return self.context.current_name()

    def current_module(self) -> Optional[ModuleDescriptor]:
        name = self.context.current_name()
        return self.store.get(name) if name else None

    def set_current_module(self, name: Optional[str]) -> None:
        """Module reported as current while the stack is empty."""
        self.context.set_default(name)

    # ── hooks & diagnostics ────────────────────────────────────────────

    def on_before_dispatch(self, args: Dict[str, Any]) -> List[str]:
        """Redirect ``GET /<prefix>`` to ``<prefix>/`` for every prefixed module."""
        router = args.get("router")
        if router is None:
            return []
        prefixes = []
        for module in self.store:
            if module.url_prefix:
                router.redirect(f"GET /{module.url_prefix}", f"{module.url_prefix}/")
                prefixes.append(module.url_prefix)
        return prefixes

    def all(self) -> List[ModuleDescriptor]:
        return self.store.all()

    def inspect(self) -> Dict[str, Any]:
        """
        Get modules, statuses, dependency graph and errors.

        Returns:
            Diagnostics dictionary
        """
        report = self.runner.report
        return {
            "module_count": len(self.store),
            "current_module": self.current_module_name(),
            "modules": [m.to_dict() for m in self.store],
            "dependency_graph": {m.name: [d.name for d in m.depends] for m in self.store},
            "report": report.to_dict() if report is not None else None,
        }

    def to_dot(self) -> str:
        return to_dot(self.store.all())

    def __contains__(self, name: str) -> bool:
        return name in self.store

    def __repr__(self) -> str:
        return f"ModuleRegistry({len(self.store)} modules)"
