"""Tests for builds/hooks.py module."""

import sys
from pathlib import Path

import pytest

from appbuild.builds.hooks import (
    CallableHook,
    HookContext,
    HookRegistry,
    ShellHook,
    run_hooks,
)
from appbuild.errors import HookFailureError
from appbuild.types import HookPhase, HookStage
from appbuild.units.models import UnitDescriptor


@pytest.fixture
def unit(tmp_path: Path) -> UnitDescriptor:
    source = tmp_path / "api"
    source.mkdir()
    return UnitDescriptor(name="api", source_dir=source, out_dir=tmp_path / "out" / "api")


def run(registry, target, directory, phase=HookPhase.PRE, stage=HookStage.COMPILE):
    return run_hooks(registry, directory, phase, stage, target, directory)


class TestHookRegistry:
    """Tests for HookRegistry."""

    def test_register_wraps_callables(self):
        """Plain callables should be wrapped in CallableHook."""
        registry = HookRegistry()
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda target, ctx: None)
        (hook,) = registry.hooks_for(HookStage.COMPILE, HookPhase.PRE)
        assert isinstance(hook, CallableHook)

    def test_register_accepts_strings(self):
        """Stage and phase may be given by value."""
        registry = HookRegistry()
        registry.register("app_compile", "post", lambda target, ctx: None)
        assert len(registry.hooks_for(HookStage.APP_COMPILE, HookPhase.POST)) == 1
        assert len(registry) == 1

    def test_hooks_for_other_stage_empty(self):
        """Unregistered stage and phase pairs should have no hooks."""
        assert HookRegistry().hooks_for(HookStage.COMPILE, HookPhase.POST) == []


class TestRunHooks:
    """Tests for run_hooks function."""

    def test_runs_in_registration_order(self, unit):
        """Hooks should run in order with the right context."""
        seen = []
        registry = HookRegistry()
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda t, c: seen.append(("a", c)))
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda t, c: seen.append(("b", c)))

        run(registry, unit, unit.source_dir)

        assert [name for name, _ in seen] == ["a", "b"]
        context = seen[0][1]
        assert isinstance(context, HookContext)
        assert context.directory == unit.source_dir
        assert context.phase is HookPhase.PRE
        assert context.stage is HookStage.COMPILE

    def test_returned_unit_is_threaded(self, unit):
        """A returned unit should replace the target for later hooks."""
        registry = HookRegistry()
        registry.register(
            HookStage.COMPILE, HookPhase.PRE, lambda t, c: t.with_updates(version="1.0")
        )
        seen = []
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda t, c: seen.append(t.version))

        result = run(registry, unit, unit.source_dir)

        assert result.version == "1.0"
        assert seen == ["1.0"]

    def test_no_hooks_returns_target(self, unit):
        """Without hooks the target comes back unchanged."""
        assert run(HookRegistry(), unit, unit.source_dir) is unit

    def test_unit_hook_must_return_unit(self, unit):
        """A unit hook returning something else should raise TypeError."""
        registry = HookRegistry()
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda t, c: "nonsense")
        with pytest.raises(TypeError, match="expected a unit"):
            run(registry, unit, unit.source_dir)

    def test_list_hook_must_return_units(self, unit):
        """A top-level hook returning a non-list should raise TypeError."""
        registry = HookRegistry()
        registry.register(HookStage.COMPILE, HookPhase.PRE, lambda t, c: "nonsense")
        with pytest.raises(TypeError, match="expected a list of units"):
            run(registry, [unit], unit.source_dir)

    def test_list_target(self, unit):
        """Top-level hooks receive and may return the unit list."""
        registry = HookRegistry()
        registry.register(HookStage.COMPILE, HookPhase.POST, lambda t, c: list(reversed(t)))
        other = unit.with_updates(name="other")
        result = run(registry, [unit, other], unit.source_dir, phase=HookPhase.POST)
        assert [u.name for u in result] == ["other", "api"]


class TestShellHook:
    """Tests for ShellHook."""

    def test_applies_to_bound_unit_only(self, unit):
        """A unit-bound hook should only run for its unit."""
        hook = ShellHook("true", unit="api")
        assert hook.applies_to(unit)
        assert not hook.applies_to(unit.with_updates(name="other"))
        assert not hook.applies_to([unit])

    def test_unbound_hook_runs_for_project(self, unit):
        """An unbound hook should only run for top-level targets."""
        hook = ShellHook("true")
        assert hook.applies_to([unit])
        assert not hook.applies_to(unit)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
    def test_runs_in_hook_directory(self, unit):
        """The command should run in the hook directory with unit variables."""
        registry = HookRegistry()
        registry.register(
            HookStage.COMPILE,
            HookPhase.PRE,
            ShellHook('echo "$APPBUILD_UNIT $APPBUILD_STAGE" > marker.txt', unit="api"),
        )

        run(registry, unit, unit.source_dir)

        assert (unit.source_dir / "marker.txt").read_text().strip() == "api compile"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
    def test_failure_raises(self, unit):
        """A non-zero exit should raise HookFailureError."""
        registry = HookRegistry()
        registry.register(
            HookStage.COMPILE, HookPhase.PRE, ShellHook("echo oops >&2; exit 3", unit="api")
        )
        with pytest.raises(HookFailureError) as exc_info:
            run(registry, unit, unit.source_dir)
        assert exc_info.value.exit_code == 3
        assert "oops" in exc_info.value.message
