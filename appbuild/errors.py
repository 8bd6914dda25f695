"""Error definitions for appbuild.

Every fatal condition of a compile run is an ``AppBuildError`` subclass
carrying a stable ``code`` for programmatic handling. The orchestrator
attaches the failing unit and stage before the error leaves the run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class AppBuildError(Exception):
    """Base error for compile runs."""

    def __init__(
        self,
        message: str,
        code: str = "appbuild_error",
        unit_name: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.unit_name = unit_name
        self.stage = stage

    def with_context(self, unit_name: str | None, stage: str | None) -> AppBuildError:
        """Attach unit and stage unless already set, returning self."""
        if self.unit_name is None:
            self.unit_name = unit_name
        if self.stage is None:
            self.stage = stage
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.unit_name is not None:
            result["unit"] = self.unit_name
        if self.stage is not None:
            result["stage"] = self.stage
        return result


class CycleError(AppBuildError):
    """Raised when no build order satisfies the dependency relation."""

    def __init__(self, cycles: list[list[str]]) -> None:
        self.cycles = cycles
        lines = [
            f"  applications {', '.join(sorted(cycle))} depend on each other"
            for cycle in cycles
        ]
        super().__init__(
            "Dependency cycle(s) detected:\n" + "\n".join(lines),
            code="dependency_cycle",
        )


class UnknownProjectTypeError(AppBuildError):
    """Raised when no project builder is registered for a unit's type."""

    def __init__(self, unit_name: str, project_type: str) -> None:
        self.project_type = project_type
        super().__init__(
            f"Error building application {unit_name}:\n"
            f"     No project builder is configured for type {project_type}",
            code="unknown_project_type",
            unit_name=unit_name,
        )


class BadProjectBuilderError(AppBuildError):
    """Raised when a registered builder reference has no build callable."""

    def __init__(self, unit_name: str, project_type: str, reference: str) -> None:
        self.project_type = project_type
        self.reference = reference
        super().__init__(
            f"Error building application {unit_name}:\n"
            f"     Required project builder {project_type} function "
            f"{reference}.build not found",
            code="bad_project_builder",
            unit_name=unit_name,
        )


class BuilderFailureError(AppBuildError):
    """Raised when a custom project builder reports an error."""

    def __init__(self, unit_name: str, project_type: str, reason: str) -> None:
        self.project_type = project_type
        self.reason = reason
        super().__init__(
            f"Error building application {unit_name}:\n"
            f"     Project builder {project_type} failed: {reason}",
            code="builder_failed",
            unit_name=unit_name,
        )


class MissingArtifactError(AppBuildError):
    """Raised when a declared artifact is absent after the build."""

    def __init__(self, path: Path | str, unit_name: str | None = None) -> None:
        self.path = Path(path)
        super().__init__(
            f"Missing artifact {path}",
            code="missing_artifact",
            unit_name=unit_name,
        )


class FinalizeFailureError(AppBuildError):
    """Raised when the application metadata step fails.

    The message is the underlying reason, unchanged.
    """

    def __init__(self, unit_name: str, reason: str) -> None:
        self.reason = reason
        super().__init__(reason, code="finalize_failed", unit_name=unit_name)


class CompileError(AppBuildError):
    """Raised when a compiler fails on a source file."""

    def __init__(
        self,
        compiler: str,
        source: Path,
        reason: str,
        exit_code: int | None = None,
    ) -> None:
        self.compiler = compiler
        self.source = source
        self.exit_code = exit_code
        super().__init__(
            f"Compiler {compiler} failed on {source}: {reason}",
            code="compile_failed",
        )


class HookFailureError(AppBuildError):
    """Raised when a hook command exits with a non-zero status."""

    def __init__(self, command: str, reason: str, exit_code: int | None = None) -> None:
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"Hook `{command}` failed: {reason}", code="hook_failed")


class ProjectFileError(AppBuildError):
    """Raised when the project file cannot be loaded or is inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="project_file_error")


def format_error(error: AppBuildError) -> str:
    """Render a fatal error for users, naming the unit and stage if known."""
    location = []
    if error.unit_name is not None:
        location.append(f"application {error.unit_name}")
    if error.stage is not None:
        location.append(f"stage {error.stage}")
    if not location:
        return error.message
    return f"[{', '.join(location)}] {error.message}"


__all__ = [
    "AppBuildError",
    "BadProjectBuilderError",
    "BuilderFailureError",
    "CompileError",
    "CycleError",
    "FinalizeFailureError",
    "HookFailureError",
    "MissingArtifactError",
    "ProjectFileError",
    "UnknownProjectTypeError",
    "format_error",
]
