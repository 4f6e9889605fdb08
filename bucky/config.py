"""
Config system - nested configuration tree addressed by slash paths.

    config.get("modules/Blog/run_level")

Merge precedence for Config.load: files < .env file < environment
variables < manual overrides.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
from glob import glob
import importlib.util
import logging
import os
import json

import yaml
from dotenv import dotenv_values


logger = logging.getLogger("bucky.config")


class ConfigError(Exception):
    """Raised when configuration cannot be loaded."""
    pass


def merge_dict(target: dict, source: dict) -> dict:
    """Deep merge source into target."""
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            merge_dict(target[key], value)
        else:
            target[key] = value
    return target


class Config:
    """
    Global configuration storage.

    Values live in one nested dict; paths are slash separated.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None, env_prefix: str = "BUCKY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}
        if data:
            self.add(data)

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "BUCKY_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "Config":
        """
        Load configuration from multiple sources.

        Args:
            paths: Config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Config instance
        """
        config = cls(env_prefix=env_prefix)

        for pattern in paths or []:
            matches = sorted(glob(pattern))
            if not matches:
                raise ConfigError(f"Invalid configuration file name: {pattern}")
            for path in matches:
                config.add_file(path)

        if env_file:
            config._load_env_file(env_file)

        config._load_from_env()

        if overrides:
            config.add(overrides)

        return config

    def add(self, fragment: Dict[str, Any]) -> "Config":
        """Deep merge a configuration fragment into the tree."""
        if not isinstance(fragment, dict):
            raise ConfigError("Invalid configuration argument")
        merge_dict(self.config_data, fragment)
        return self

    def add_file(self, filename: str) -> "Config":
        """
        Add configuration from a JSON, YAML or Python file.

        Relative names resolve against the ``config_dir`` setting when set.
        """
        path = Path(filename)
        config_dir = self.get("config_dir")
        if not path.is_absolute() and config_dir:
            path = Path(config_dir) / path

        if not path.is_file():
            raise ConfigError(f"Invalid configuration file name: {path}")

        suffix = path.suffix.lower()
        try:
            if suffix == ".json":
                data = json.loads(path.read_text())
            elif suffix in (".yaml", ".yml"):
                data = yaml.safe_load(path.read_text())
            elif suffix == ".py":
                data = self._load_python_file(path)
            else:
                raise ConfigError(f"Unknown configuration file format: {path}")
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Invalid configuration contents: {path}: {e}") from e

        if not data or not isinstance(data, dict):
            raise ConfigError(f"Invalid configuration contents: {path}")

        logger.debug("CONFIG.FILE %s", path)
        return self.add(data)

    def _load_python_file(self, path: Path) -> Any:
        """Load the module-level ``config`` dict of a Python file."""
        spec = importlib.util.spec_from_file_location("_bucky_config", path)
        if spec is None or spec.loader is None:
            raise ConfigError(f"Cannot load config from {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return getattr(module, "config", None)

    def _load_env_file(self, path: str):
        """Load prefixed values from a .env file."""
        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if key.startswith(self.env_prefix) and value is not None:
                self._set_from_env(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_from_env(key, value)

    def _set_from_env(self, key: str, value: str):
        """Convert BUCKY_MODULES__BLOG__RUN_LEVEL to modules/blog/run_level."""
        key = key[len(self.env_prefix):]
        path = "/".join(part for part in key.lower().split("__") if part)
        if path:
            self.set(path, self._parse_value(value))

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def set(self, path: str, value: Any, merge: bool = False) -> "Config":
        """
        Set configuration data at ``path``.

        Args:
            path: Slash separated path to the config node
            value: Scalar or dict value
            merge: Deep merge a dict value into the existing node
        """
        keys = path.split("/")
        node = self.config_data
        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                node[key] = {}
            node = node[key]

        last = keys[-1]
        if merge and isinstance(node.get(last), dict) and isinstance(value, dict):
            merge_dict(node[last], value)
        else:
            node[last] = value
        return self

    def get(self, path: Optional[str] = None, default: Any = None) -> Any:
        """Get config value by slash-separated path."""
        if path is None:
            return self.config_data

        current = self.config_data
        for part in path.split("/"):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return self.config_data.copy()

    def __contains__(self, path: str) -> bool:
        sentinel = object()
        return self.get(path, sentinel) is not sentinel
