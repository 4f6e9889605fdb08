"""
Module registry error types with rich diagnostics.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class ErrorSpan:
    """File location for error context."""

    file: str
    line: Optional[int] = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.file}:{self.line}"
        return self.file


class RegistryError(Exception):
    """Base error for all module registry errors."""

    def __init__(
        self,
        message: str,
        *,
        span: Optional[ErrorSpan] = None,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.span = span
        self.suggestion = suggestion
        self.details = details or {}

    def format_error(self) -> str:
        """Format error with rich diagnostics."""
        lines = [f"{self.__class__.__name__}: {self.message}"]

        if self.span:
            lines.append(f"   at {self.span}")

        if self.details:
            lines.append("\n   Details:")
            for key, value in self.details.items():
                lines.append(f"   - {key}: {value}")

        if self.suggestion:
            lines.append(f"\n   Suggestion: {self.suggestion}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format_error()


class ManifestError(RegistryError):
    """Manifest file could not be used."""


class ManifestParseError(ManifestError):
    """
    Manifest file is unreadable, has an unknown format or declares no modules.

    Fatal for the whole load.
    """

    def __init__(self, file: str, reason: str):
        self.file = file
        self.reason = reason

        super().__init__(
            f"Could not read manifest file {file}: {reason}",
            span=ErrorSpan(file=file),
            suggestion=(
                "Manifests must be .json, .yaml/.yml or .py files with a "
                "non-empty 'modules' mapping."
            ),
            details={"file": file, "reason": reason},
        )


class DuplicateModuleError(RegistryError):
    """
    Module name registered twice without update intent.

    Example:
        Blog in blog/manifest.json
        Blog in legacy/manifest.json  <- DUPLICATE
    """

    def __init__(self, module_name: str, sources: List[str]):
        self.module_name = module_name
        self.sources = sources

        source_list = "\n".join(f"   - {s}" for s in sources)

        super().__init__(
            f"Module is already registered: {module_name}\n{source_list}",
            suggestion=(
                "Rename one of the modules, or pass 'update: true' in the "
                "second declaration to merge into the existing module."
            ),
            details={"module": module_name, "source_count": len(sources)},
        )


class MissingRequiredModuleError(RegistryError):
    """A module configured as REQUIRED was never registered."""

    def __init__(self, module_name: str):
        self.module_name = module_name

        super().__init__(
            f"Module is required but not found: {module_name}",
            suggestion=(
                f"Make sure a manifest declaring '{module_name}' is scanned, "
                f"or lower modules/{module_name}/run_level in config."
            ),
            details={"module": module_name},
        )


class DependencyError(RegistryError):
    """
    Unsatisfied dependency edge.

    Recorded on the DependencySpec, never raised by the resolver. The owning
    module and its dependents end up in ERROR run status.
    """

    def __init__(self, module_name: str, dependency: str, type: Any):
        self.module_name = module_name
        self.dependency = dependency
        self.type = type
        self.propagated = False

        kind = getattr(type, "value", type)
        super().__init__(
            f"Module '{module_name}' dependency '{dependency}' failed: {kind}",
            details={
                "module": module_name,
                "dependency": dependency,
                "type": kind,
            },
        )


class CycleError(RegistryError):
    """
    Circular dependency detected while sorting modules.

    Example:
        A depends on B
        B depends on C
        C depends on A  <- CYCLE
    """

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        cycle_repr = " → ".join(cycle) + f" → {cycle[0]}" if cycle else "?"

        super().__init__(
            f"Circular dependency detected: {cycle_repr}",
            suggestion=(
                "Break the cycle by removing one dependency, or move the "
                "shared code into a module both sides depend on."
            ),
            details={"cycle": cycle, "cycle_length": len(cycle)},
        )


class BootstrapError(RegistryError):
    """Bootstrap entry point of a module cannot be located."""

    def __init__(self, module_name: str, reason: str):
        self.module_name = module_name
        self.reason = reason

        super().__init__(
            f"Cannot bootstrap module '{module_name}': {reason}",
            details={"module": module_name},
        )


class ModuleContextError(RegistryError):
    """Current-module context stack used out of order."""


@dataclass
class ValidationReport:
    """
    Aggregated dependency report.

    Collects edge errors after check_depends without failing.
    """

    errors: List[RegistryError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, error: RegistryError) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize report."""
        return {
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": [
                {
                    "type": e.__class__.__name__,
                    "message": e.message,
                    "details": e.details,
                }
                for e in self.errors
            ],
            "warnings": self.warnings,
        }

    def format_report(self) -> str:
        """Format report for display."""
        lines = []

        if self.errors:
            lines.append(f"{len(self.errors)} error(s):")
            for i, error in enumerate(self.errors, 1):
                lines.append(f"   {i}. {error.message}")

        if self.warnings:
            lines.append(f"{len(self.warnings)} warning(s):")
            for i, warning in enumerate(self.warnings, 1):
                lines.append(f"   {i}. {warning}")

        if not self.errors and not self.warnings:
            lines.append("No errors or warnings")

        return "\n".join(lines)
