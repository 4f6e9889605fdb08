"""
Dependency resolution and ordering (registry/graph.py)

Tests version windows, run status resolution, failure cascades,
PENDING propagation and the topological sort.
"""

import pytest

from bucky.config import Config
from bucky.registry import (
    CycleError,
    DependencyErrorType,
    MissingRequiredModuleError,
    ModuleRegistry,
    RunLevel,
    RunStatus,
    VersionConstraint,
    version_satisfies,
)


def noop():
    pass


def mod(depends=None, **params):
    params.setdefault("bootstrap", {"callback": noop})
    params["depends"] = depends or []
    return params


def statuses(registry):
    return {m.name: m.run_status for m in registry.all()}


# ============================================================================
# version_satisfies
# ============================================================================

class TestVersionSatisfies:

    def test_no_constraint(self):
        assert version_satisfies("1.0", None)
        assert version_satisfies(None, VersionConstraint())

    def test_inclusive_window(self):
        window = VersionConstraint(from_="1.0.0", to="2.0.0")
        assert version_satisfies("1.0.0", window)
        assert version_satisfies("1.5", window)
        assert version_satisfies("2.0.0", window)
        assert not version_satisfies("0.9", window)
        assert not version_satisfies("2.0.1", window)

    def test_numeric_not_lexical(self):
        assert version_satisfies("1.10.0", VersionConstraint(from_="1.9.0"))

    def test_exclude(self):
        constraint = VersionConstraint(from_="1.0", exclude=["1.2.0"])
        assert not version_satisfies("1.2.0", constraint)
        assert not version_satisfies("1.2", constraint)
        assert version_satisfies("1.3", constraint)

    def test_missing_version_fails_bounds(self):
        assert not version_satisfies(None, VersionConstraint(from_="1.0"))
        assert not version_satisfies("not-a-version", VersionConstraint(to="2.0"))

    def test_missing_version_passes_exclude_only(self):
        assert version_satisfies(None, VersionConstraint(exclude=["1.0"]))


# ============================================================================
# check_depends
# ============================================================================

class TestCheckDepends:

    def test_ondemand_alone_stays_idle(self, registry):
        registry.module("Core", mod())
        registry.check_depends()
        assert registry.module("Core").run_status == RunStatus.IDLE

    def test_requested_with_met_deps_is_pending(self, registry):
        registry.module("Core", mod())
        registry.module("Blog", mod(["Core"], run_level="REQUESTED"))
        report = registry.check_depends()

        assert not report.has_errors()
        assert statuses(registry) == {"Core": RunStatus.PENDING, "Blog": RunStatus.PENDING}

    def test_links(self, registry):
        registry.module("Core", mod())
        registry.module("Blog", mod(["Core"]))
        registry.check_depends()
        registry.check_depends()

        assert registry.module("Blog").parents == ["Core"]
        assert registry.module("Core").children == ["Blog"]

    def test_missing_dependency(self, registry):
        registry.module("Blog", mod(["Auth"], run_level="REQUESTED"))
        report = registry.check_depends()

        blog = registry.module("Blog")
        assert blog.run_status == RunStatus.ERROR
        assert blog.error == "depends"
        assert blog.action == "error"
        assert blog.depends[0].error.type == DependencyErrorType.MISSING
        assert blog.depends[0].error.propagated
        assert blog.parents == []
        assert len(report.errors) == 1

    def test_disabled_dependency(self, registry):
        registry.module("Auth", mod(run_level="DISABLED"))
        registry.module("Blog", mod(["Auth"]))
        registry.check_depends()

        blog = registry.module("Blog")
        assert blog.run_status == RunStatus.ERROR
        assert blog.depends[0].error.type == DependencyErrorType.DISABLED
        assert registry.module("Auth").children == []

    def test_version_mismatch_keeps_action(self, registry):
        registry.module("Auth", mod(version="1.0.0"))
        registry.module("Blog", mod([
            {"name": "Auth", "version": {"from": "2.0.0"}, "action": "ignore"},
        ]))
        registry.check_depends()

        blog = registry.module("Blog")
        assert blog.run_status == RunStatus.ERROR
        assert blog.action == "ignore"
        assert blog.depends[0].error.type == DependencyErrorType.VERSION

    def test_failure_cascades_to_dependents(self, registry):
        registry.module("Shop", mod(["Blog"], run_level="REQUESTED"))
        registry.module("Blog", mod(["Auth"]))
        registry.module("Site", mod(["Shop"]))
        registry.module("Core", mod())
        report = registry.check_depends()

        assert statuses(registry) == {
            "Shop": RunStatus.ERROR,
            "Blog": RunStatus.ERROR,
            "Site": RunStatus.ERROR,
            "Core": RunStatus.IDLE,
        }
        shop_edge = registry.module("Shop").depends[0]
        assert shop_edge.error.type == DependencyErrorType.PARENT
        assert shop_edge.error.propagated
        assert {(e.module_name, e.type) for e in report.errors} == {
            ("Blog", DependencyErrorType.MISSING),
            ("Shop", DependencyErrorType.PARENT),
            ("Site", DependencyErrorType.PARENT),
        }

    def test_cascade_terminates_on_cycle(self, registry):
        registry.module("A", mod(["X", "C"]))
        registry.module("C", mod(["A"]))
        registry.check_depends()

        assert statuses(registry) == {"A": RunStatus.ERROR, "C": RunStatus.ERROR}
        assert registry.module("A").depends[1].error.type == DependencyErrorType.PARENT

    def test_required_with_broken_dependency_ends_in_error(self, registry):
        registry.module("Blog", mod(["Auth"], run_level="REQUIRED"))
        registry.check_depends()
        assert registry.module("Blog").run_status == RunStatus.ERROR

    def test_pending_propagates_to_fixpoint(self, registry):
        registry.module("A", mod())
        registry.module("B", mod(["A"]))
        registry.module("C", mod(["B"], run_level="REQUESTED"))
        registry.check_depends()

        assert statuses(registry) == {
            "A": RunStatus.PENDING,
            "B": RunStatus.PENDING,
            "C": RunStatus.PENDING,
        }

    def test_required_pulls_in_dependencies(self, registry):
        registry.module("Core", mod())
        registry.module("Auth", mod(["Core"]))
        registry.module("Admin", mod(["Auth"], run_level="REQUIRED"))
        registry.module("Unused", mod(["Core"]))
        registry.check_depends()

        assert statuses(registry) == {
            "Core": RunStatus.PENDING,
            "Auth": RunStatus.PENDING,
            "Admin": RunStatus.PENDING,
            "Unused": RunStatus.IDLE,
        }

    def test_config_run_level_applied(self, environment):
        config = Config({"modules": {"Blog": {"run_level": "requested"}}})
        registry = ModuleRegistry(config, environment)
        registry.module("Blog", mod(run_level="ONDEMAND"))
        registry.check_depends()

        blog = registry.module("Blog")
        assert blog.run_level == RunLevel.REQUESTED
        assert blog.run_status == RunStatus.PENDING

    def test_required_module_missing_is_fatal(self, environment):
        config = Config({"modules": {"Payments": {"run_level": "REQUIRED"}}})
        registry = ModuleRegistry(config, environment)
        registry.module("Blog", mod())

        with pytest.raises(MissingRequiredModuleError) as exc_info:
            registry.check_depends()
        assert exc_info.value.module_name == "Payments"

    def test_unknown_optional_module_ignored(self, environment):
        config = Config({"modules": {"Legacy": {"run_level": "DISABLED"}}})
        registry = ModuleRegistry(config, environment)
        registry.module("Blog", mod())
        assert not registry.check_depends().has_errors()

    def test_non_dict_modules_section_ignored(self, environment):
        registry = ModuleRegistry(Config({"modules": "x"}), environment)
        registry.module("Blog", mod(run_level="REQUESTED"))
        assert not registry.check_depends().has_errors()
        assert registry.module("Blog").run_status == RunStatus.PENDING

    def test_own_failed_edge_decides_action(self, registry):
        registry.module("Blog", mod(["Gone"]))
        registry.module("Shop", mod(["Blog", {"name": "Payments", "action": "ignore"}]))
        registry.check_depends()

        shop = registry.module("Shop")
        assert shop.run_status == RunStatus.ERROR
        assert shop.action == "ignore"
        assert shop.depends[0].error.type == DependencyErrorType.PARENT
        assert shop.depends[1].error.propagated


# ============================================================================
# Repeated checks
# ============================================================================

class TestRecheck:

    def test_error_cleared_once_dependency_registered(self, registry, calls, make_callback):
        registry.module("Blog", mod(["Auth"], bootstrap={"callback": make_callback("Blog")}))
        registry.check_depends()
        assert registry.module("Blog").run_status == RunStatus.ERROR

        registry.module("Auth", mod(bootstrap={"callback": make_callback("Auth")}))
        registry.module("Shop", mod(["Blog"], run_level="REQUESTED", bootstrap={"callback": make_callback("Shop")}))
        registry.bootstrap()

        assert calls == ["Auth", "Blog", "Shop"]
        assert not registry.runner.report.has_errors()
        blog = registry.module("Blog")
        assert blog.run_status == RunStatus.LOADED
        assert blog.error is None
        assert blog.action is None

    def test_dependent_of_still_failing_module_fails(self, registry, calls, make_callback):
        registry.module("Blog", mod(["Auth"]))
        registry.check_depends()

        registry.module("Shop", mod(["Blog"], run_level="REQUESTED", bootstrap={"callback": make_callback("Shop")}))
        report = registry.check_depends()
        registry.bootstrap()

        shop = registry.module("Shop")
        assert calls == []
        assert shop.run_status == RunStatus.ERROR
        assert shop.depends[0].error.type == DependencyErrorType.PARENT
        assert len(report.errors) == 2

    def test_loaded_modules_stay_loaded(self, registry, calls, make_callback):
        registry.module("Core", mod(run_level="REQUESTED", bootstrap={"callback": make_callback("Core")}))
        registry.bootstrap()
        registry.check_depends()
        assert registry.module("Core").run_status == RunStatus.LOADED


# ============================================================================
# TopologicalSorter
# ============================================================================

class TestSortDepends:

    def test_dependencies_first(self, registry):
        registry.module("Blog", mod(["Core", "Auth"]))
        registry.module("Auth", mod(["Core"]))
        registry.module("Core", mod())
        registry.check_depends()

        order = [m.name for m in registry.sort_depends()]
        assert order == ["Core", "Auth", "Blog"]
        assert [m.name for m in registry.all()] == order

    def test_independent_modules_lifo(self, registry):
        for name in ("X", "Y", "Z"):
            registry.module(name, mod())
        registry.check_depends()
        assert [m.name for m in registry.sort_depends()] == ["Z", "Y", "X"]

    def test_links_preserved(self, registry):
        registry.module("Core", mod())
        registry.module("Blog", mod(["Core"]))
        registry.check_depends()
        registry.sort_depends()

        assert registry.module("Blog").parents == ["Core"]
        assert registry.module("Core").children == ["Blog"]

    def test_failed_edges_do_not_order(self, registry):
        registry.module("Blog", mod(["Missing"]))
        registry.module("Core", mod())
        registry.check_depends()
        assert {m.name for m in registry.sort_depends()} == {"Blog", "Core"}

    def test_cycle(self, registry):
        registry.module("A", mod(["B"]))
        registry.module("B", mod(["C"]))
        registry.module("C", mod(["A"]))
        registry.module("D", mod())
        registry.check_depends()

        with pytest.raises(CycleError) as exc_info:
            registry.sort_depends()
        assert set(exc_info.value.cycle) == {"A", "B", "C"}
        assert "Circular dependency detected" in exc_info.value.message

    def test_cycle_after_failed_cascade(self, registry):
        registry.module("A", mod(["X", "C"]))
        registry.module("C", mod(["A"]))
        registry.check_depends()

        with pytest.raises(CycleError) as exc_info:
            registry.sort_depends()
        assert exc_info.value.cycle == ["A", "C"]


# ============================================================================
# DOT export
# ============================================================================

class TestToDot:

    def test_export(self, registry):
        registry.module("Core", mod())
        registry.module("Blog", mod(["Core", "Missing"]))
        registry.check_depends()
        dot = registry.to_dot()

        assert dot.startswith("digraph modules {")
        assert '"Blog" [color=red];' in dot
        assert '"Core" [color=black];' in dot
        assert '"Blog" -> "Core";' in dot
        assert '"Blog" -> "Missing" [style=dashed];' in dot
