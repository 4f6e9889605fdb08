"""
Shared test fixtures and helpers for the Bucky test suite.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest
import yaml

from bucky.config import Config
from bucky.registry import Environment, ModuleRegistry


# ============================================================================
# Manifest Helpers
# ============================================================================


def write_manifest(directory: Path, modules: Dict[str, Any], fmt: str = "json") -> Path:
    """Write a ``manifest.<fmt>`` declaring ``modules`` into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"manifest.{fmt}"
    if fmt == "json":
        path.write_text(json.dumps({"modules": modules}))
    elif fmt in ("yaml", "yml"):
        path.write_text(yaml.safe_dump({"modules": modules}))
    else:
        raise ValueError(fmt)
    return path


def recorder(calls: List[str], name: str) -> Callable[[], None]:
    """Bootstrap callback that appends ``name`` to ``calls``."""
    def _bootstrap():
        calls.append(name)
    return _bootstrap


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def environment(tmp_path) -> Environment:
    return Environment(doc_root=str(tmp_path.resolve()), http_host="example.com")


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def registry(config, environment) -> ModuleRegistry:
    return ModuleRegistry(config, environment)


@pytest.fixture
def calls() -> List[str]:
    return []


@pytest.fixture
def manifest_writer() -> Callable[..., Path]:
    return write_manifest


@pytest.fixture
def make_callback(calls) -> Callable[[str], Callable[[], None]]:
    return lambda name: recorder(calls, name)
