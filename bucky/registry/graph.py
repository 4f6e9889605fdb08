"""
Dependency resolution and topological ordering of modules.

check_depends decides which modules may run (PENDING) and which are cut
off by a broken dependency (ERROR); sort_depends orders them with
Kahn's algorithm so every dependency precedes its dependents.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from packaging.version import InvalidVersion, Version

from .core import (
    DependencyErrorType,
    DependencySpec,
    ModuleDescriptor,
    RunLevel,
    RunStatus,
    VersionConstraint,
)
from .errors import CycleError, DependencyError, MissingRequiredModuleError, ValidationReport
from .store import ModuleStore


logger = logging.getLogger("bucky.registry")


def _parse_version(value: Optional[str]) -> Optional[Version]:
    if value is None:
        return None
    try:
        return Version(str(value))
    except InvalidVersion:
        return None


def version_satisfies(version: Optional[str], constraint: Optional[VersionConstraint]) -> bool:
    """
    Check ``version`` against an inclusive from/to window and exclusions.

    An absent or unparsable version fails any from/to bound.
    """
    if constraint is None or constraint.is_empty():
        return True

    current = _parse_version(version)

    if constraint.from_ or constraint.to:
        if current is None:
            return False
        lower = _parse_version(constraint.from_)
        upper = _parse_version(constraint.to)
        if constraint.from_ and (lower is None or current < lower):
            return False
        if constraint.to and (upper is None or current > upper):
            return False

    if version is not None:
        for excluded in constraint.exclude:
            if str(version) == excluded:
                return False
            parsed = _parse_version(excluded)
            if current is not None and parsed is not None and current == parsed:
                return False

    return True


class DependencyResolver:
    """
    Builds the dependency graph over the store and resolves run status.

    Links (``parents``/``children``), edge errors and the run status of
    every module not yet LOADED are rebuilt on every call. Within one call
    ERROR is sticky: nothing turns an ERROR module back into PENDING.
    """

    def __init__(self, store: ModuleStore, config: Any = None):
        self.store = store
        self.config = config
        self._failed: Set[str] = set()

    def check_depends(self) -> ValidationReport:
        """
        Resolve run status for every registered module.

        Returns:
            ValidationReport listing every unsatisfied dependency edge

        Raises:
            MissingRequiredModuleError: If config requires an unregistered module
        """
        self._apply_config_run_levels()

        # Everything except LOADED is recomputed; ERROR is sticky within one check only
        for module in self.store:
            module.reset_links()
            if module.run_status != RunStatus.LOADED:
                module.run_status = RunStatus.IDLE
                module.error = None
                module.action = None
            for dep in module.depends:
                dep.error = None
        self._failed = set()

        # Pass 1: validate edges, link satisfied ones, seed PENDING
        for module in self.store:
            self._check_module(module)

        # Pass 2: cascade failures into dependents, then PENDING to fixpoint
        for module in self.store:
            for dep in module.depends:
                if dep.error is not None and not dep.error.propagated:
                    self.propagate_failure(module.name, dep)

        self._propagate_pending()

        report = ValidationReport()
        for module in self.store:
            for dep in module.depends:
                if dep.error is not None:
                    report.add_error(dep.error)
        return report

    def _apply_config_run_levels(self) -> None:
        if self.config is None:
            return
        section = self.config.get("modules")
        if not isinstance(section, dict):
            return
        for name, mod_config in section.items():
            if not isinstance(mod_config, dict) or not mod_config.get("run_level"):
                continue
            level = RunLevel.parse(mod_config["run_level"])
            module = self.store.get(name)
            if module is None:
                if level == RunLevel.REQUIRED:
                    raise MissingRequiredModuleError(name)
                logger.debug("Run level configured for unknown module: %s", name)
                continue
            module.run_level = level

    def _check_module(self, module: ModuleDescriptor) -> None:
        if module.run_level == RunLevel.REQUIRED:
            self._mark_pending(module)

        deps_met = True
        for dep in module.depends:
            target = self.store.get(dep.name)
            error_type = self._edge_error(dep, target)
            if error_type is not None:
                dep.error = DependencyError(module.name, dep.name, error_type)
                deps_met = False
                continue

            if dep.name not in module.parents:
                module.parents.append(dep.name)
            if module.name not in target.children:
                target.children.append(module.name)

            if module.is_pending:
                self._mark_pending(target)

        if deps_met and module.run_level == RunLevel.REQUESTED:
            self._mark_pending(module)

    @staticmethod
    def _edge_error(
        dep: DependencySpec,
        target: Optional[ModuleDescriptor],
    ) -> Optional[DependencyErrorType]:
        if target is None:
            return DependencyErrorType.MISSING
        if target.run_level == RunLevel.DISABLED:
            return DependencyErrorType.DISABLED
        if not version_satisfies(target.version, dep.version):
            return DependencyErrorType.VERSION
        return None

    @staticmethod
    def _mark_pending(module: ModuleDescriptor) -> bool:
        if module.run_status == RunStatus.IDLE:
            module.run_status = RunStatus.PENDING
            return True
        return False

    def propagate_failure(self, module_name: str, dep: DependencySpec) -> None:
        """
        Mark ``module_name`` ERROR because of ``dep`` and cascade to dependents.

        Dependents whose edge to a failed module was satisfied get a
        ``parent`` error on that edge and fail in turn. Each module
        cascades at most once per check, so cycles terminate.
        """
        work = [(module_name, dep)]
        while work:
            name, edge = work.pop()
            edge.error.propagated = True

            module = self.store.get(name)
            if module is None or name in self._failed:
                continue
            self._failed.add(name)

            # A module's own failed edge decides its action over an inherited one
            own = next(
                (d for d in module.depends
                 if d.error is not None and d.error.type != DependencyErrorType.PARENT),
                edge,
            )
            module.run_status = RunStatus.ERROR
            module.error = "depends"
            module.action = own.action or "error"
            logger.error(
                "Module %s cannot run: dependency %s is %s",
                name, edge.name, edge.error.type.value,
            )

            for child_name in module.children:
                child = self.store.get(child_name)
                if child is None:
                    continue
                for sub in child.depends:
                    if sub.name == name and sub.error is None:
                        sub.error = DependencyError(child_name, name, DependencyErrorType.PARENT)
                        work.append((child_name, sub))

    def _propagate_pending(self) -> None:
        """Dependencies of PENDING modules become PENDING, repeated until stable."""
        changed = True
        while changed:
            changed = False
            for module in self.store:
                if not module.is_pending:
                    continue
                for dep in module.depends:
                    if dep.error is not None:
                        continue
                    target = self.store.get(dep.name)
                    if target is not None and self._mark_pending(target):
                        changed = True


class TopologicalSorter:
    """
    Kahn's algorithm over the parent/child links.

    Works on copies of the link lists, so descriptors keep their graph.
    The worklist is LIFO: among independent modules the most recently
    released one is emitted first.
    """

    def __init__(self, store: ModuleStore):
        self.store = store

    def sort_depends(self) -> List[ModuleDescriptor]:
        """
        Order modules so that every module follows all of its dependencies.

        Returns:
            Modules in dependency order (the store is reordered to match)

        Raises:
            CycleError: If the remaining modules form a cycle
        """
        modules = self.store.all()
        parents: Dict[str, List[str]] = {m.name: list(m.parents) for m in modules}
        children: Dict[str, List[str]] = {m.name: list(m.children) for m in modules}

        roots = [m.name for m in modules if not parents[m.name]]
        remaining = set(parents)
        ordered: List[str] = []

        while remaining:
            if not roots:
                raise CycleError(cycle=self._find_cycle(parents, remaining))

            name = roots.pop()
            ordered.append(name)
            remaining.discard(name)

            for child_name in reversed(children[name]):
                parents[child_name].remove(name)
                if not parents[child_name]:
                    roots.append(child_name)
            children[name] = []

        self.store.reorder(ordered)
        return self.store.all()

    @staticmethod
    def _find_cycle(parents: Dict[str, List[str]], remaining: Set[str]) -> List[str]:
        # Every unsorted module still has an unsorted parent, so walking
        # parents from any of them must revisit a node.
        path: List[str] = []
        index: Dict[str, int] = {}
        current = min(remaining)
        while current not in index:
            index[current] = len(path)
            path.append(current)
            current = next(p for p in parents[current] if p in remaining)
        return path[index[current]:]


def to_dot(modules: List[ModuleDescriptor]) -> str:
    """
    Export the dependency graph as DOT.

    Edges point from a module to what it depends on; failed edges are dashed.
    """
    lines = ["digraph modules {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, style=rounded];")

    for module in modules:
        color = "red" if module.run_status == RunStatus.ERROR else "black"
        lines.append(f'  "{module.name}" [color={color}];')

    for module in modules:
        for dep in module.depends:
            style = " [style=dashed]" if dep.error is not None else ""
            lines.append(f'  "{module.name}" -> "{dep.name}"{style};')

    lines.append("}")
    return "\n".join(lines)
