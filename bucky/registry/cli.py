"""
Module registry CLI commands for manifest validation and inspection.

    bucky validate "modules/*" --config config/local.yaml
    bucky inspect "modules/*"
    bucky graph "modules/*" > modules.dot
"""

import json
import logging
import sys
from typing import Optional, Tuple

import click

from .. import __version__
from ..config import Config, ConfigError
from .core import RunStatus
from .errors import RegistryError
from .registry import ModuleRegistry


_CHECK = "✓"
_CROSS = "✗"

_STATUS_COLORS = {
    RunStatus.PENDING: "green",
    RunStatus.LOADED: "green",
    RunStatus.IDLE: "white",
    RunStatus.ERROR: "red",
}


def build_registry(sources: Tuple[str, ...], config_path: Optional[str]) -> ModuleRegistry:
    """Scan ``sources``, then check and sort dependencies."""
    config = Config.load(paths=[config_path] if config_path else None)
    registry = ModuleRegistry(config)
    for source in sources:
        registry.scan(source)
    registry.check_depends()
    registry.sort_depends()
    return registry


@click.group()
@click.version_option(version=__version__, prog_name="bucky")
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, verbose: bool):
    """Inspect and validate module manifests."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.command('validate')
@click.argument('sources', nargs=-1, required=True)
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Config file')
def validate(sources: Tuple[str, ...], config_path: Optional[str]):
    """
    Resolve dependencies and show the bootstrap order.

    Examples:
      bucky validate "modules/*"
      bucky validate app/manifest.json --config config.yaml
    """
    try:
        registry = build_registry(sources, config_path)
    except (RegistryError, ConfigError) as e:
        click.secho(f"  {_CROSS} Validation failed", fg="red", bold=True)
        click.echo(str(e))
        sys.exit(1)

    click.secho(f"  {_CHECK} {len(registry.store)} module(s) resolved", fg="green", bold=True)
    click.echo()
    click.secho("Load order:", fg="cyan", bold=True)
    for i, module in enumerate(registry.all(), 1):
        status = click.style(module.run_status.value, fg=_STATUS_COLORS[module.run_status])
        version = f" v{module.version}" if module.version else ""
        deps = f" (→ {', '.join(d.name for d in module.depends)})" if module.depends else ""
        click.echo(f"   {i}. {module.name}{version} [{module.run_level.value}] {status}{deps}")

    report = registry.runner.report
    if report is not None and report.has_errors():
        click.echo()
        click.secho("Dependency errors:", fg="yellow", bold=True)
        for error in report.errors:
            click.echo(f"   - {error.message}")


@cli.command('inspect')
@click.argument('sources', nargs=-1, required=True)
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Config file')
def inspect(sources: Tuple[str, ...], config_path: Optional[str]):
    """Dump resolved modules as JSON."""
    try:
        registry = build_registry(sources, config_path)
    except (RegistryError, ConfigError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(json.dumps(registry.inspect(), indent=2, default=str))


@cli.command('graph')
@click.argument('sources', nargs=-1, required=True)
@click.option('--config', 'config_path', type=click.Path(exists=True), help='Config file')
def graph(sources: Tuple[str, ...], config_path: Optional[str]):
    """Print the dependency graph in DOT format."""
    try:
        config = Config.load(paths=[config_path] if config_path else None)
        registry = ModuleRegistry(config)
        for source in sources:
            registry.scan(source)
        registry.check_depends()
    except (RegistryError, ConfigError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(registry.to_dot())


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
