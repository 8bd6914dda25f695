"""Hook registry and runner.

Hooks run before (pre) and after (post) each build stage. A hook receives
the current target, either a single unit or the project's unit list for
top-level hooks, and may return an updated target. Hooks of a stage run
in registration order and the returned target is threaded through them.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from appbuild.errors import HookFailureError
from appbuild.types import HookPhase, HookStage
from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)

DEFAULT_HOOK_TIMEOUT = 600

HookTarget = UnitDescriptor | Sequence[UnitDescriptor]


@dataclass(frozen=True)
class HookContext:
    """Information passed to every hook invocation."""

    directory: Path
    phase: HookPhase
    stage: HookStage
    project_root: Path
    state: dict[str, Any] | None = None


class Hook:
    """Base class for hooks."""

    def applies_to(self, target: HookTarget) -> bool:
        """Whether the hook runs for ``target``."""
        return True

    def __call__(self, target: HookTarget, context: HookContext) -> HookTarget | None:
        raise NotImplementedError


class CallableHook(Hook):
    """Wrap a plain callable ``(target, context) -> target | None``."""

    def __init__(self, func: Callable[[Any, HookContext], Any]) -> None:
        self.func = func

    def __call__(self, target: HookTarget, context: HookContext) -> HookTarget | None:
        return self.func(target, context)

    def __repr__(self) -> str:
        return f"CallableHook({getattr(self.func, '__name__', self.func)!r})"


class ShellHook(Hook):
    """Run a shell command in the hook directory.

    A hook bound to a unit only runs for that unit; an unbound hook only
    runs for top-level (project) targets.
    """

    def __init__(
        self,
        command: str,
        unit: str | None = None,
        timeout: int = DEFAULT_HOOK_TIMEOUT,
    ) -> None:
        self.command = command
        self.unit = unit
        self.timeout = timeout

    def applies_to(self, target: HookTarget) -> bool:
        if isinstance(target, UnitDescriptor):
            return target.name == self.unit
        return self.unit is None

    def environment(self, target: HookTarget, context: HookContext) -> dict[str, str]:
        """Environment for the command."""
        env = dict(os.environ)
        env["APPBUILD_PROJECT_ROOT"] = str(context.project_root)
        env["APPBUILD_STAGE"] = context.stage.value
        env["APPBUILD_PHASE"] = context.phase.value
        if isinstance(target, UnitDescriptor):
            env["APPBUILD_UNIT"] = target.name
            env["APPBUILD_OUT_DIR"] = str(target.out_dir)
        return env

    def __call__(self, target: HookTarget, context: HookContext) -> HookTarget | None:
        logger.info("Running %s %s hook: %s", context.phase.value, context.stage.value, self.command)
        try:
            result = subprocess.run(
                self.command,
                shell=True,
                cwd=context.directory,
                env=self.environment(target, context),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise HookFailureError(
                self.command, f"timed out after {self.timeout} seconds", exit_code=-1
            ) from e
        except OSError as e:
            raise HookFailureError(self.command, f"failed to execute: {e}") from e

        if result.stdout:
            logger.debug("%s", result.stdout.rstrip())
        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            logger.error("Hook `%s` exited with %d", self.command, result.returncode)
            raise HookFailureError(
                self.command,
                f"exit code {result.returncode}: {output}",
                exit_code=result.returncode,
            )
        return None

    def __repr__(self) -> str:
        return f"ShellHook({self.command!r}, unit={self.unit!r})"


class HookRegistry:
    """Ordered hooks keyed by (stage, phase)."""

    def __init__(self) -> None:
        self._hooks: dict[tuple[HookStage, HookPhase], list[Hook]] = {}

    def register(
        self,
        stage: HookStage | str,
        phase: HookPhase | str,
        hook: Hook | Callable[[Any, HookContext], Any],
    ) -> None:
        """Append a hook for a stage and phase."""
        if not isinstance(hook, Hook):
            hook = CallableHook(hook)
        key = (HookStage(stage), HookPhase(phase))
        self._hooks.setdefault(key, []).append(hook)

    def hooks_for(self, stage: HookStage, phase: HookPhase) -> list[Hook]:
        """Hooks of a stage and phase, in registration order."""
        return list(self._hooks.get((stage, phase), []))

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())


def run_hooks(
    registry: HookRegistry,
    directory: Path,
    phase: HookPhase,
    stage: HookStage,
    target: HookTarget,
    project_root: Path,
    state: dict[str, Any] | None = None,
) -> HookTarget:
    """Run the hooks of a stage and phase against a target.

    Args:
        registry: Hook registry.
        directory: Working directory for the hooks.
        phase: pre or post.
        stage: Stage being wrapped.
        target: A unit, or the project's unit list for top-level hooks.
        project_root: Project root directory.
        state: Optional run state shared with hooks.

    Returns:
        The target, as updated by the hooks.

    Raises:
        HookFailureError: If a shell hook fails.
        TypeError: If a hook returns something other than its target type.
    """
    context = HookContext(
        directory=directory,
        phase=phase,
        stage=stage,
        project_root=project_root,
        state=state,
    )
    for hook in registry.hooks_for(stage, phase):
        if not hook.applies_to(target):
            continue
        result = hook(target, context)
        if result is None:
            continue
        if isinstance(target, UnitDescriptor) and not isinstance(result, UnitDescriptor):
            raise TypeError(f"{hook!r} returned {type(result).__name__}, expected a unit")
        if not isinstance(target, UnitDescriptor) and not (
            isinstance(result, (list, tuple))
            and all(isinstance(u, UnitDescriptor) for u in result)
        ):
            raise TypeError(
                f"{hook!r} returned {type(result).__name__}, expected a list of units"
            )
        target = result
    return target


__all__ = [
    "CallableHook",
    "Hook",
    "HookContext",
    "HookRegistry",
    "HookTarget",
    "ShellHook",
    "run_hooks",
]
