"""
Module store: name -> ModuleDescriptor mapping.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from .core import BootstrapSpec, DependencySpec, ModuleDescriptor, RunLevel, RunStatus
from .errors import DuplicateModuleError
from .params import KNOWN_KEYS, ModuleParamResolver


logger = logging.getLogger("bucky.registry")


def merge_recursive(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge ``source`` into ``target``: dicts merge, lists append, scalars overwrite."""
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_recursive(current, value)
        elif isinstance(current, list):
            current.extend(value if isinstance(value, list) else [value])
        else:
            target[key] = value
    return target


class ModuleStore:
    """
    Ordered mapping of registered modules.

    Insertion order until ``reorder`` is called with the dependency order.
    """

    def __init__(self, resolver: ModuleParamResolver):
        self.resolver = resolver
        self._modules: Dict[str, ModuleDescriptor] = {}

    def register(self, name: str, params: Any) -> Optional[ModuleDescriptor]:
        """
        Register a module, or merge into an existing one.

        Args:
            name: Module name
            params: Raw manifest record (or bootstrap callable)

        Returns:
            The stored descriptor, or None if the record was skipped

        Raises:
            DuplicateModuleError: If ``name`` exists and ``params`` lacks ``update``
        """
        existing = self._modules.get(name)
        if existing is not None:
            if not (isinstance(params, dict) and params.get("update")):
                raise DuplicateModuleError(
                    module_name=name,
                    sources=[
                        existing.manifest_file or "<inline>",
                        (params.get("manifest_file") if isinstance(params, dict) else None) or "<inline>",
                    ],
                )
            return self.update(name, params)

        descriptor = self.resolver.resolve(name, params)
        if descriptor is not None:
            self._modules[name] = descriptor
            logger.debug("MODULE.REGISTER %s (%s)", name, descriptor.manifest_file or "<inline>")
        return descriptor

    def update(self, name: str, params: Dict[str, Any]) -> ModuleDescriptor:
        """Merge ``params`` into an existing module: list/dict fields merge, scalars overwrite."""
        module = self._modules[name]
        logger.debug("MODULE.UPDATE %s", name)

        for key, value in params.items():
            if key in ("name", "update"):
                continue
            if key == "depends":
                module.depends.extend(DependencySpec.normalize_list(value))
            elif key == "bootstrap":
                incoming = BootstrapSpec.from_value(value)
                if incoming.callback:
                    module.bootstrap.callback = incoming.callback
                if incoming.file:
                    module.bootstrap.file = incoming.file
            elif key == "run_level":
                module.run_level = RunLevel.parse(value)
            elif key == "run_status":
                module.run_status = RunStatus(value)
            elif key == "version":
                module.version = str(value) if value is not None else None
            elif key == "url_prefix":
                module.url_prefix = (value or "").strip("/")
                module.base_href = self.resolver.href_for(module.url_prefix)
            elif key in KNOWN_KEYS:
                setattr(module, key, value)
            else:
                merge_recursive(module.extra, {key: value})

        return module

    def get(self, name: str) -> Optional[ModuleDescriptor]:
        return self._modules.get(name)

    def all(self) -> List[ModuleDescriptor]:
        return list(self._modules.values())

    def names(self) -> List[str]:
        return list(self._modules.keys())

    def reorder(self, names: List[str]) -> None:
        """Replace the iteration order with ``names`` (must cover every module)."""
        if set(names) != set(self._modules):
            raise ValueError("reorder() requires exactly the registered module names")
        self._modules = {name: self._modules[name] for name in names}

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)
