"""Compile orchestration.

This module provides the high-level compile API:
- compile_project(): Main entry point - load a project file and compile it
- Orchestrator.run(): Build dependencies, then project applications in
  dependency order, each wrapped by its hooks, then extra directories
- Code path recomputation and artifact verification

The first fatal error aborts the run. Output directories written before
the failure are left on disk.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from appbuild.builds.artifacts import verify_all, verify_artifacts
from appbuild.builds.builders import BuilderDispatcher, BuilderRegistry, ProjectBuilder
from appbuild.builds.compilers import Compiler, compile_all, default_compilers
from appbuild.builds.finalize import FinalizeResult, finalize_app
from appbuild.builds.hooks import HookRegistry, ShellHook, run_hooks
from appbuild.builds.paths import (
    EXTRAS_DIR,
    CodePaths,
    has_root_unit,
    paths_for_units,
    update_code_paths,
)
from appbuild.builds.staging import Linker, copy_dir, select_linker, stage_unit
from appbuild.config import Settings, get_settings
from appbuild.errors import AppBuildError, FinalizeFailureError
from appbuild.types import HookPhase, HookStage, UnitState
from appbuild.units.io import load_project
from appbuild.units.models import UnitDescriptor, resolve_src_dirs
from appbuild.units.order import compute_order
from appbuild.units.schema import ProjectSchema

logger = logging.getLogger(__name__)

Finalizer = Callable[[UnitDescriptor, dict[str, Any]], FinalizeResult]


@dataclass
class BuildContext:
    """Everything a compile run needs besides the units themselves.

    Attributes:
        project_root: Project root directory.
        settings: Effective settings.
        project_options: Project-level src_dirs and extra_src_dirs.
        compilers: Compilers of the default pipeline, in order.
        builders: Custom project builders by project type.
        hooks: Hook registry.
        plugin_dirs: Directories holding custom project builders.
        finalizer: Step writing application metadata.
    """

    project_root: Path
    settings: Settings
    project_options: dict[str, Any] = field(default_factory=dict)
    compilers: list[Compiler] = field(default_factory=list)
    builders: BuilderRegistry = field(default_factory=BuilderRegistry)
    hooks: HookRegistry = field(default_factory=HookRegistry)
    plugin_dirs: list[Path] = field(default_factory=list)
    finalizer: Finalizer = finalize_app

    @property
    def profile_dir(self) -> Path:
        """Build directory of the active profile."""
        return self.settings.profile_dir(self.project_root)

    @property
    def extras_dir(self) -> Path:
        """Build area for top-level extra source directories."""
        return self.profile_dir / EXTRAS_DIR

    @classmethod
    def from_project(
        cls,
        project: ProjectSchema,
        project_root: Path,
        settings: Settings,
    ) -> BuildContext:
        """Create a context from a validated project file.

        Shell hooks of the project and of each application are registered
        in file order, project hooks first.
        """
        root = project_root.absolute()
        timeout = settings.command_timeout

        hooks = HookRegistry()
        for spec in project.hooks:
            hooks.register(spec.stage, spec.phase, ShellHook(spec.command, timeout=timeout))
        for app in [*project.deps, *project.apps]:
            for spec in app.hooks:
                hooks.register(
                    spec.stage,
                    spec.phase,
                    ShellHook(spec.command, unit=app.name, timeout=timeout),
                )

        return cls(
            project_root=root,
            settings=settings,
            project_options=project.project_options(),
            compilers=default_compilers(project.compilers, timeout=timeout),
            builders=BuilderRegistry(dict(project.builders)),
            hooks=hooks,
            plugin_dirs=[(root / d).absolute() for d in project.plugin_dirs],
        )


@dataclass
class CompileResult:
    """Outcome of a successful compile run.

    Attributes:
        order: Project application names in build order.
        units: Project units after the run.
        dep_units: Dependency units after the run.
        code_paths: Final code path value.
        extra_dirs: Output directories of built extra source directories.
        states: Terminal state per application.
    """

    order: list[str]
    units: list[UnitDescriptor]
    dep_units: list[UnitDescriptor]
    code_paths: CodePaths
    extra_dirs: list[Path] = field(default_factory=list)
    states: dict[str, UnitState] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "order": self.order,
            "deps": [u.name for u in self.dep_units],
            "code_path": [str(p) for p in self.code_paths.all_paths()],
            "code_path_version": self.code_paths.version,
            "extra_dirs": [str(p) for p in self.extra_dirs],
            "states": {name: state.value for name, state in self.states.items()},
        }


class Orchestrator:
    """Drive a compile run across dependency and project units."""

    def __init__(self, context: BuildContext, linker: Linker | None = None) -> None:
        self.context = context
        self.linker = linker
        self.code_paths = CodePaths(plugins=tuple(context.plugin_dirs))
        self.states: dict[str, UnitState] = {}
        self.extra_dirs: list[Path] = []
        self._states_lock = threading.Lock()

    def _set_state(self, name: str, state: UnitState) -> None:
        with self._states_lock:
            self.states[name] = state

    def _dispatcher(self) -> BuilderDispatcher:
        return BuilderDispatcher(self.context.compilers, self.context.builders, self.code_paths)

    def _hook_state(self) -> dict[str, Any]:
        return {
            "settings": self.context.settings,
            "profile_dir": self.context.profile_dir,
            "code_paths": self.code_paths,
        }

    def _run_hooks(
        self,
        directory: Path,
        phase: HookPhase,
        stage: HookStage,
        target: Any,
    ) -> Any:
        return run_hooks(
            self.context.hooks,
            directory,
            phase,
            stage,
            target,
            self.context.project_root,
            self._hook_state(),
        )

    def _stage(self, unit: UnitDescriptor, linker: Linker) -> None:
        try:
            stage_unit(unit, linker)
        except OSError as e:
            raise AppBuildError(
                f"Cannot stage {unit.source_dir} into {unit.out_dir}: {e}",
                code="staging_failed",
                unit_name=unit.name,
                stage="staging",
            ) from e

    def _ensure_linker(self) -> Linker:
        if self.linker is None:
            self.linker = select_linker(
                self.context.settings.link_mode, self.context.profile_dir
            )
        return self.linker

    def run(
        self,
        dep_units: Sequence[UnitDescriptor],
        project_units: Sequence[UnitDescriptor],
        deps_only: bool = False,
    ) -> CompileResult:
        """Compile dependencies and, unless ``deps_only``, project units.

        Args:
            dep_units: Dependency units.
            project_units: Project units.
            deps_only: Stop after the dependencies are built.

        Returns:
            CompileResult describing the run.

        Raises:
            AppBuildError: On the first fatal condition.
        """
        self._ensure_linker()
        deps = self.build_deps(dep_units)
        self.code_paths = self.code_paths.updated(deps=paths_for_units(deps))

        if deps_only:
            logger.info("Dependencies built, skipping project applications")
            return CompileResult(
                order=[],
                units=[],
                dep_units=deps,
                code_paths=self.code_paths,
                states=dict(self.states),
            )

        units = self.handle_project_units(project_units)
        return CompileResult(
            order=[u.name for u in units],
            units=units,
            dep_units=deps,
            code_paths=self.code_paths,
            extra_dirs=list(self.extra_dirs),
            states=dict(self.states),
        )

    def build_deps(self, dep_units: Sequence[UnitDescriptor]) -> list[UnitDescriptor]:
        """Stage and build dependency units, without hooks."""
        linker = self._ensure_linker()
        dispatcher = self._dispatcher()
        built: list[UnitDescriptor] = []
        for unit in compute_order(dep_units):
            logger.info("Compiling %s", unit.name)
            stage = "staging"
            try:
                self._set_state(unit.name, UnitState.STAGING)
                self._stage(unit, linker)
                stage = "build"
                self._set_state(unit.name, UnitState.BUILDING)
                unit = dispatcher.build(unit)
            except AppBuildError as e:
                self._set_state(unit.name, UnitState.FAILED)
                raise e.with_context(unit.name, stage)
            self._set_state(unit.name, UnitState.DONE)
            built.append(unit)
        return built

    def handle_project_units(
        self,
        project_units: Sequence[UnitDescriptor],
    ) -> list[UnitDescriptor]:
        """Order, stage, build and verify the project units."""
        root = self.context.project_root
        ordered = compute_order(project_units)
        dispatcher = self._dispatcher()
        dispatcher.check_project_types(ordered)

        updated = list(self._run_hooks(root, HookPhase.PRE, HookStage.COMPILE, ordered))
        if updated != ordered:
            ordered = compute_order(updated)
            dispatcher.check_project_types(ordered)

        # Staged up front so applications can see each other's resources
        linker = self._ensure_linker()
        for unit in ordered:
            self._set_state(unit.name, UnitState.STAGING)
            try:
                self._stage(unit, linker)
            except AppBuildError:
                self._set_state(unit.name, UnitState.FAILED)
                raise

        built = self.build_project_units(ordered)
        self.extra_dirs = self.build_extra_dirs(built)

        self.code_paths = update_code_paths(
            self.code_paths,
            built,
            root,
            self.context.extras_dir,
            self.context.project_options,
        )

        self._run_hooks(root, HookPhase.POST, HookStage.COMPILE, built)
        verify_all(built)
        return built

    def build_project_units(self, ordered: Sequence[UnitDescriptor]) -> list[UnitDescriptor]:
        """Compile ordered project units, in parallel when jobs > 1."""
        jobs = self.context.settings.jobs
        if jobs <= 1 or len(ordered) <= 1:
            return [self.compile_unit(unit) for unit in ordered]
        return self._compile_parallel(ordered, jobs)

    def _compile_parallel(
        self,
        ordered: Sequence[UnitDescriptor],
        jobs: int,
    ) -> list[UnitDescriptor]:
        names = {unit.name for unit in ordered}
        pending = {unit.name: unit for unit in ordered}
        waiting_on = {unit.name: {d for d in unit.deps if d in names} for unit in ordered}
        results: dict[str, UnitDescriptor] = {}
        first_error: BaseException | None = None

        with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="appbuild") as pool:
            running: dict[Future[UnitDescriptor], str] = {}

            def submit_ready() -> None:
                for name in [n for n in pending if not waiting_on[n]]:
                    running[pool.submit(self.compile_unit, pending.pop(name))] = name

            submit_ready()
            while running:
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    try:
                        results[name] = future.result()
                    except Exception as e:
                        if first_error is None:
                            first_error = e
                        continue
                    for deps in waiting_on.values():
                        deps.discard(name)
                if first_error is None:
                    submit_ready()

        if first_error is not None:
            raise first_error
        return [results[unit.name] for unit in ordered]

    def compile_unit(self, unit: UnitDescriptor) -> UnitDescriptor:
        """Build one project unit through its hook-wrapped stages.

        Args:
            unit: Staged project unit.

        Returns:
            The unit as updated by hooks and the finalize step.

        Raises:
            AppBuildError: Tagged with the unit and the failing stage.
        """
        name = unit.name
        directory = unit.source_dir
        logger.info("Compiling %s", name)
        stage = "pre_compile"
        try:
            self._set_state(name, UnitState.PRE_HOOKS)
            unit = self._run_hooks(directory, HookPhase.PRE, HookStage.COMPILE, unit)
            stage = "pre_source_compile"
            unit = self._run_hooks(directory, HookPhase.PRE, HookStage.SOURCE_COMPILE, unit)

            stage = "build"
            self._set_state(name, UnitState.BUILDING)
            unit = self._dispatcher().build(unit)

            self._set_state(name, UnitState.POST_HOOKS)
            stage = "post_source_compile"
            unit = self._run_hooks(directory, HookPhase.POST, HookStage.SOURCE_COMPILE, unit)
            stage = "pre_app_compile"
            unit = self._run_hooks(directory, HookPhase.PRE, HookStage.APP_COMPILE, unit)

            stage = "finalize"
            result = self.context.finalizer(unit, self._hook_state())
            if not result.success or result.unit is None:
                raise FinalizeFailureError(name, result.message or "finalize failed")
            unit = result.unit

            stage = "post_app_compile"
            unit = self._run_hooks(directory, HookPhase.POST, HookStage.APP_COMPILE, unit)
            stage = "post_compile"
            unit = self._run_hooks(directory, HookPhase.POST, HookStage.COMPILE, unit)

            stage = "verify"
            self._set_state(name, UnitState.VERIFYING)
            verify_artifacts(unit)
        except AppBuildError as e:
            self._set_state(name, UnitState.FAILED)
            raise e.with_context(name, stage)
        except Exception:
            self._set_state(name, UnitState.FAILED)
            raise

        self._set_state(name, UnitState.DONE)
        return unit

    def build_extra_dirs(self, units: Sequence[UnitDescriptor]) -> list[Path]:
        """Compile top-level extra source directories.

        Skipped when an application lives at the project root. Missing
        directories are skipped. No hooks run for these builds.

        Returns:
            Output directories that were built.
        """
        root = self.context.project_root
        if has_root_unit(root, units):
            return []

        _, extra_dirs = resolve_src_dirs(self.context.project_options)
        base_dir = self.context.extras_dir
        built: list[Path] = []
        for directory in extra_dirs:
            if not (root / directory).is_dir():
                logger.debug("Extra directory %s not found, skipping", directory)
                continue
            out_dir = base_dir / directory
            out_dir.mkdir(parents=True, exist_ok=True)
            copy_dir(root, base_dir, directory)

            extras_unit = UnitDescriptor(
                name=f"{EXTRAS_DIR}/{directory}",
                source_dir=base_dir,
                out_dir=base_dir,
                options={"src_dirs": [str(out_dir)], "extra_src_dirs": []},
                ebin_dir_override=out_dir,
            )
            logger.info("Compiling extra directory %s", directory)
            try:
                compile_all(self.context.compilers, extras_unit)
            except AppBuildError as e:
                raise e.with_context(extras_unit.name, "extra_dirs")
            built.append(out_dir)
        return built


def compile_project(
    project_file: Path,
    settings: Settings | None = None,
    deps_only: bool = False,
    builders: dict[str, ProjectBuilder | str] | None = None,
    hooks: HookRegistry | None = None,
) -> CompileResult:
    """Load a project file and compile it.

    Args:
        project_file: Path to the project file; its directory is the root.
        settings: Application settings.
        deps_only: Only build dependency applications.
        builders: Extra project builders registered on top of the file's.
        hooks: Extra hooks, run after the file's shell hooks.

    Returns:
        CompileResult of the run.

    Raises:
        AppBuildError: On the first fatal condition.
    """
    if settings is None:
        settings = get_settings()

    project = load_project(project_file)
    root = project_file.absolute().parent
    context = BuildContext.from_project(project, root, settings)
    for tag, builder in (builders or {}).items():
        context.builders.register(tag, builder)
    if hooks is not None:
        for stage in HookStage:
            for phase in HookPhase:
                for hook in hooks.hooks_for(stage, phase):
                    context.hooks.register(stage, phase, hook)

    dep_units, project_units = project.to_units(root, settings)
    return Orchestrator(context).run(dep_units, project_units, deps_only=deps_only)


__all__ = [
    "BuildContext",
    "CompileResult",
    "Orchestrator",
    "compile_project",
]
