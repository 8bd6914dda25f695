"""Pydantic models for project file validation.

A project file declares the project applications, the already-fetched
dependency applications, custom project builders, extra compilers and
shell hooks. It is converted into unit descriptors before a run.
"""

import re
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from appbuild.types import DEFAULT_PROJECT_TYPE, HookPhase, HookStage
from appbuild.units.models import DEFAULT_SRC_DIRS, UnitDescriptor

if TYPE_CHECKING:
    from appbuild.config import Settings

APP_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
BUILDER_REF_PATTERN = re.compile(r"^[a-zA-Z_][\w.]*:[a-zA-Z_][\w.]*$")


class HookSchema(BaseModel):
    """Schema for a shell hook.

    Attributes:
        phase: pre or post.
        stage: Stage the hook wraps (compile, source_compile, app_compile).
        command: Shell command, run in the project or application directory.
    """

    model_config = ConfigDict(extra="forbid")

    phase: HookPhase
    stage: HookStage
    command: Annotated[str, Field(min_length=1)]


class CompilerSchema(BaseModel):
    """Schema for an external command compiler.

    Attributes:
        name: Compiler name used in logs and errors.
        extension: Source file extension handled (e.g. '.proto').
        target_suffix: Suffix of the produced file.
        command: Command template; supports {source}, {target}, {out_dir}, {name}.
    """

    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1)]
    extension: str
    target_suffix: str
    command: Annotated[list[str], Field(min_length=1)]

    @field_validator("extension", "target_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """Validate suffixes start with a dot."""
        if not v.startswith("."):
            raise ValueError(f"suffix must start with '.', got '{v}'")
        return v


class AppSchema(BaseModel):
    """Schema for one application.

    Attributes:
        name: Application name.
        dir: Source directory, relative to the project root.
        project_type: Build strategy tag.
        deps: Names of applications this one depends on.
        src_dirs: Source directories (defaults to the project's).
        extra_src_dirs: Extra source directories (defaults to none, or to the
            project's for an app living at the project root).
        artifacts: Files that must exist after the build.
        version: Application version.
        description: Application description.
        hooks: Shell hooks bound to this application.
    """

    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=255)]
    dir: str | None = None
    project_type: str = DEFAULT_PROJECT_TYPE
    deps: list[str] = Field(default_factory=list)
    src_dirs: list[str] | None = None
    extra_src_dirs: list[str] | None = None
    artifacts: list[str] = Field(default_factory=list)
    version: str | None = None
    description: str | None = None
    hooks: list[HookSchema] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the application name is an identifier."""
        if not APP_NAME_PATTERN.match(v):
            raise ValueError(
                f"name must match pattern {APP_NAME_PATTERN.pattern}, got '{v}'"
            )
        return v


class ProjectSchema(BaseModel):
    """Complete project file schema.

    Attributes:
        src_dirs: Default source directories for applications.
        extra_src_dirs: Project-level extra source directories.
        plugin_dirs: Directories holding custom project builders.
        apps: Project applications.
        deps: Dependency applications (already fetched).
        builders: Mapping of project type to "module:attr" builder references.
        compilers: External command compilers.
        hooks: Top-level shell hooks.
    """

    model_config = ConfigDict(extra="forbid")

    src_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_SRC_DIRS))
    extra_src_dirs: list[str] = Field(default_factory=list)
    plugin_dirs: list[str] = Field(default_factory=list)
    apps: list[AppSchema] = Field(default_factory=list)
    deps: list[AppSchema] = Field(default_factory=list)
    builders: dict[str, str] = Field(default_factory=dict)
    compilers: list[CompilerSchema] = Field(default_factory=list)
    hooks: list[HookSchema] = Field(default_factory=list)

    @field_validator("builders")
    @classmethod
    def validate_builders(cls, v: dict[str, str]) -> dict[str, str]:
        """Validate builder references look like module:attr."""
        for tag, ref in v.items():
            if tag == DEFAULT_PROJECT_TYPE:
                raise ValueError(f"project type '{tag}' is reserved")
            if not BUILDER_REF_PATTERN.match(ref):
                raise ValueError(
                    f"builder for '{tag}' must be a 'module:attr' reference, got '{ref}'"
                )
        return v

    @model_validator(mode="after")
    def validate_unique_names(self) -> "ProjectSchema":
        """Validate application names are unique across apps and deps."""
        seen: set[str] = set()
        for app in [*self.deps, *self.apps]:
            if app.name in seen:
                raise ValueError(f"duplicate application name '{app.name}'")
            seen.add(app.name)
        return self

    def project_options(self) -> dict[str, Any]:
        """Project-level options used for the extra directories build."""
        return {"src_dirs": self.src_dirs, "extra_src_dirs": self.extra_src_dirs}

    def _to_unit(
        self,
        app: AppSchema,
        root: Path,
        lib_dir: Path,
        is_dependency: bool,
    ) -> UnitDescriptor:
        rel_dir = app.dir if app.dir is not None else f"apps/{app.name}"
        source_dir = (root / rel_dir).absolute()
        extra_src_dirs = app.extra_src_dirs
        if extra_src_dirs is None:
            # an app at the project root builds the top-level extra dirs itself
            extra_src_dirs = self.extra_src_dirs if source_dir == root.absolute() else []
        options: dict[str, Any] = {
            "src_dirs": app.src_dirs if app.src_dirs is not None else self.src_dirs,
            "extra_src_dirs": list(extra_src_dirs),
        }
        if app.description:
            options["description"] = app.description
        return UnitDescriptor(
            name=app.name,
            source_dir=source_dir,
            out_dir=(lib_dir / app.name).absolute(),
            project_type=app.project_type,
            options=options,
            artifacts=tuple(app.artifacts),
            deps=tuple(app.deps),
            version=app.version,
            is_dependency=is_dependency,
        )

    def to_units(
        self,
        root: Path,
        settings: "Settings",
    ) -> tuple[list[UnitDescriptor], list[UnitDescriptor]]:
        """Convert the declared applications to unit descriptors.

        Output workspaces live under <base_dir>/<profile>/lib/<name>.

        Args:
            root: Project root directory.
            settings: Settings providing base_dir and profile.

        Returns:
            Tuple of (dependency units, project units).
        """
        lib_dir = settings.profile_dir(root) / "lib"
        dep_units = [self._to_unit(a, root, lib_dir, True) for a in self.deps]
        project_units = [self._to_unit(a, root, lib_dir, False) for a in self.apps]
        return dep_units, project_units


__all__ = [
    "APP_NAME_PATTERN",
    "AppSchema",
    "CompilerSchema",
    "HookSchema",
    "ProjectSchema",
]
