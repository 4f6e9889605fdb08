"""
Manifest discovery and parsing.

A manifest declares one or more modules under a ``modules`` mapping:

    {"modules": {"Blog": {"bootstrap": {"callback": "blog:init"},
                          "depends": ["Auth"]}}}

Supported formats: JSON, YAML and Python (a module-level ``manifest``
dict, or a ``manifest()`` function returning one).
"""

import glob
import importlib.util
import json
import logging
import os
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List

import yaml

from .errors import ManifestParseError
from .store import ModuleStore


logger = logging.getLogger("bucky.registry.loader")

MANIFEST_SUFFIXES = (".json", ".yaml", ".yml", ".py")
DEFAULT_MANIFEST = "manifest.*"


def load_source_file(path: str, namespace: str) -> ModuleType:
    """
    Execute a Python source file in an isolated module object.

    The module is not added to ``sys.modules``.
    """
    spec = importlib.util.spec_from_file_location(namespace, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python source from {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class ManifestScanner:
    """
    Finds manifest files by glob pattern and registers their modules.

    Scans may run any number of times on different locations; the order
    of scans does not matter for dependency resolution.
    """

    def __init__(self, store: ModuleStore):
        self.store = store
        self.scanned_files: List[str] = []

    def scan(self, source: str) -> List[str]:
        """
        Register every module declared by manifests matching ``source``.

        Args:
            source: Glob pattern of manifest files, or of directories
                holding a ``manifest.*`` file

        Returns:
            Names of modules registered by this scan

        Raises:
            ManifestParseError: If a matched file cannot be parsed or
                declares no modules
        """
        if not source.endswith(MANIFEST_SUFFIXES):
            source = os.path.join(source, DEFAULT_MANIFEST)

        files = sorted(glob.glob(source))
        logger.debug("MODULE.SCAN %s: %s", source, files)

        registered: List[str] = []
        for file in files:
            modules = self.parse(file)
            for name, params in modules.items():
                if callable(params):
                    params = {"bootstrap": {"callback": params}}
                params = dict(params or {})
                params["manifest_file"] = file
                try:
                    descriptor = self.store.register(name, params)
                except ValueError as e:
                    raise ManifestParseError(file, f"module '{name}': {e}") from e
                if descriptor is not None:
                    registered.append(name)
            self.scanned_files.append(file)

        return registered

    def parse(self, file: str) -> Dict[str, Any]:
        """
        Parse one manifest file into its ``modules`` mapping.

        Raises:
            ManifestParseError: On unknown format, parse failure or no modules
        """
        suffix = Path(file).suffix.lower()
        try:
            if suffix == ".json":
                data = json.loads(Path(file).read_text())
            elif suffix in (".yaml", ".yml"):
                data = yaml.safe_load(Path(file).read_text())
            elif suffix == ".py":
                data = self._load_python_manifest(file)
            else:
                raise ManifestParseError(file, f"unknown manifest file format '{suffix}'")
        except ManifestParseError:
            raise
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ManifestParseError(file, str(e)) from e

        modules = data.get("modules") if isinstance(data, dict) else None
        if not modules or not isinstance(modules, dict):
            raise ManifestParseError(file, "no module entries")
        return modules

    def _load_python_manifest(self, file: str) -> Any:
        namespace = f"_bucky_manifest_{Path(file).parent.name}_{Path(file).stem}"
        try:
            module = load_source_file(file, namespace)
        except Exception as e:
            raise ManifestParseError(file, f"{type(e).__name__}: {e}") from e

        manifest = getattr(module, "manifest", None)
        if callable(manifest):
            manifest = manifest()
        if manifest is None:
            raise ManifestParseError(file, "no 'manifest' defined")
        return manifest
