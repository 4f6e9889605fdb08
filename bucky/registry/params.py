"""
Module parameter resolution.

Turns a raw manifest entry into a ModuleDescriptor: resolves root
directories against the manifest location, computes asset/application
URLs from the web environment and applies configured run levels.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional

from .core import BootstrapSpec, DependencySpec, ModuleDescriptor, RunLevel, RunStatus


logger = logging.getLogger("bucky.registry")

# Keys mapped onto ModuleDescriptor fields; anything else lands in ``extra``
KNOWN_KEYS = frozenset({
    "name", "bootstrap", "version", "depends", "url_prefix", "root_dir",
    "view_root_dir", "base_src", "base_href", "run_level", "run_status",
    "manifest_file", "update",
})


@dataclass(frozen=True)
class Environment:
    """Web environment snapshot shared by every module."""

    doc_root: str
    http_host: str
    web_root: str = ""
    base_path: Optional[str] = None

    @classmethod
    def from_config(cls, config: Any) -> "Environment":
        get = config.get if config is not None else (lambda path, default=None: default)
        return cls(
            doc_root=str(Path(get("web/doc_root") or os.getcwd()).resolve()),
            http_host=get("web/http_host") or "localhost",
            web_root=(get("web/web_root") or "").rstrip("/"),
            base_path=get("web/base_path"),
        )

    @property
    def base_href(self) -> str:
        path = self.base_path if self.base_path else self.web_root
        return f"//{self.http_host}{path}".rstrip("/")

    def src_url(self, directory: str) -> str:
        """Asset URL for a directory under the document root."""
        directory = Path(directory).resolve()
        try:
            rel = directory.relative_to(self.doc_root)
            url_path = "/" + PurePosixPath(*rel.parts).as_posix() if rel.parts else ""
        except ValueError:
            url_path = directory.as_posix()
        return f"//{self.http_host}{url_path}".rstrip("/")


class ModuleParamResolver:
    """
    Normalizes raw manifest records into module descriptors.

    Reads config and the environment snapshot only; the snapshot is
    computed lazily once and cached for the life of the resolver.
    """

    def __init__(self, config: Any = None, environment: Optional[Environment] = None):
        self.config = config
        self._env = environment
        self._manifest_dirs: Dict[str, str] = {}

    @property
    def environment(self) -> Environment:
        if self._env is None:
            self._env = Environment.from_config(self.config)
        return self._env

    def href_for(self, url_prefix: str) -> str:
        """Application URL for a module mounted at ``url_prefix``."""
        base = self.environment.base_href
        return f"{base}/{url_prefix}" if url_prefix else base

    def resolve(self, name: str, raw: Any) -> Optional[ModuleDescriptor]:
        """
        Build a descriptor for ``name``.

        Args:
            name: Module name
            raw: Manifest record, or a bare bootstrap callable

        Returns:
            ModuleDescriptor, or None when no bootstrap callback is declared
        """
        if callable(raw) and not isinstance(raw, dict):
            raw = {"bootstrap": {"callback": raw}}
        params = dict(raw or {})

        bootstrap = BootstrapSpec.from_value(params.get("bootstrap"))
        if not bootstrap.callback:
            logger.warning("Missing bootstrap information, skipping module: %s", name)
            return None

        manifest_dir = self._manifest_dir(params.get("manifest_file"))

        root_dir = params.get("root_dir") or manifest_dir
        if not os.path.isabs(root_dir):
            root_dir = os.path.normpath(os.path.join(manifest_dir, root_dir))

        view_root_dir = params.get("view_root_dir") or root_dir
        if not os.path.isabs(view_root_dir):
            view_root_dir = os.path.normpath(os.path.join(root_dir, view_root_dir))

        url_prefix = (params.get("url_prefix") or "").strip("/")

        run_level = params.get("run_level")
        if run_level is None and self.config is not None:
            run_level = self.config.get(f"modules/{name}/run_level")

        version = params.get("version")

        return ModuleDescriptor(
            name=name,
            bootstrap=bootstrap,
            run_level=RunLevel.parse(run_level) if run_level else RunLevel.ONDEMAND,
            run_status=params.get("run_status") or RunStatus.IDLE,
            version=str(version) if version is not None else None,
            manifest_file=params.get("manifest_file"),
            root_dir=root_dir,
            view_root_dir=view_root_dir,
            base_src=params.get("base_src") or self.environment.src_url(root_dir),
            base_href=params.get("base_href") or self.href_for(url_prefix),
            url_prefix=url_prefix,
            depends=DependencySpec.normalize_list(params.get("depends")),
            extra={k: v for k, v in params.items() if k not in KNOWN_KEYS},
        )

    def _manifest_dir(self, manifest_file: Optional[str]) -> str:
        if not manifest_file:
            return str(Path.cwd())
        if manifest_file not in self._manifest_dirs:
            self._manifest_dirs[manifest_file] = str(Path(manifest_file).resolve().parent)
        return self._manifest_dirs[manifest_file]
