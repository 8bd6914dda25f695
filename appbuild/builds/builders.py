"""Project builder registry and build dispatch.

This module handles:
- Registering custom project builders by project type
- Resolving "module:attr" builder references from plugin directories
- Dispatching a unit to the default compiler pipeline or its builder

Custom builders run with the plugin and dependency directories on
sys.path; the path is restored afterwards, whatever the outcome.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable, Sequence
from typing import Any, Protocol, runtime_checkable

from appbuild.builds.compilers import Compiler, compile_all
from appbuild.builds.paths import CodePaths, visible_paths
from appbuild.errors import (
    AppBuildError,
    BadProjectBuilderError,
    BuilderFailureError,
    UnknownProjectTypeError,
)
from appbuild.types import OperationResult, PathKind
from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)

BUILDER_PATH_KINDS = (PathKind.PLUGINS, PathKind.DEPS)


@runtime_checkable
class ProjectBuilder(Protocol):
    """Strategy building units of one custom project type."""

    def build(self, unit: UnitDescriptor) -> OperationResult | None:
        """Build ``unit``; None or a successful result means success."""
        ...


class BuilderRegistry:
    """Mapping of project type to project builder.

    Builders may be registered as objects or as "module:attr" references,
    imported on first use. A referenced class is instantiated without
    arguments.
    """

    def __init__(self, builders: dict[str, ProjectBuilder | str] | None = None) -> None:
        self._builders: dict[str, ProjectBuilder | str] = dict(builders or {})

    def register(self, project_type: str, builder: ProjectBuilder | str) -> None:
        """Register (or replace) the builder of a project type."""
        self._builders[project_type] = builder

    def __contains__(self, project_type: object) -> bool:
        return project_type in self._builders

    def tags(self) -> list[str]:
        """Registered project types."""
        return sorted(self._builders)

    def lookup(self, project_type: str) -> ProjectBuilder | str | None:
        """Return the registered builder or reference, or None."""
        return self._builders.get(project_type)

    def resolve(self, project_type: str, unit_name: str) -> ProjectBuilder:
        """Return a usable builder, importing it if registered by reference.

        Raises:
            UnknownProjectTypeError: If nothing is registered for the type.
            BadProjectBuilderError: If the reference has no build callable
                or fails to import.
        """
        entry = self.lookup(project_type)
        if entry is None:
            raise UnknownProjectTypeError(unit_name, project_type)
        if not isinstance(entry, str):
            return entry

        try:
            builder = _import_reference(entry)
        except Exception as e:
            logger.error("Cannot import project builder %s: %s", entry, e)
            raise BadProjectBuilderError(unit_name, project_type, entry) from e
        if isinstance(builder, type):
            builder = builder()
        if not callable(getattr(builder, "build", None)):
            raise BadProjectBuilderError(unit_name, project_type, entry)
        self._builders[project_type] = builder
        return builder


def _import_reference(reference: str) -> Any:
    module_name, _, attr_path = reference.partition(":")
    obj: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr, None)
        if obj is None:
            break
    return obj


class BuilderDispatcher:
    """Select and invoke the build strategy of a unit."""

    def __init__(
        self,
        compilers: Sequence[Compiler],
        registry: BuilderRegistry,
        code_paths: CodePaths,
    ) -> None:
        self.compilers = list(compilers)
        self.registry = registry
        self.code_paths = code_paths

    def check_project_types(self, units: Iterable[UnitDescriptor]) -> None:
        """Fail early if any unit declares an unregistered project type.

        Raises:
            UnknownProjectTypeError: For the first such unit.
        """
        for unit in units:
            if not unit.is_default_type and unit.project_type not in self.registry:
                raise UnknownProjectTypeError(unit.name, unit.project_type)

    def build(self, unit: UnitDescriptor) -> UnitDescriptor:
        """Build a unit with its project type's strategy.

        Args:
            unit: Unit to build.

        Returns:
            The unit after building.

        Raises:
            UnknownProjectTypeError: If no builder is registered for the type.
            BadProjectBuilderError: If the registered reference is unusable.
            BuilderFailureError: If the custom builder reports an error or raises.
            CompileError: If the default pipeline fails.
        """
        if unit.is_default_type:
            return compile_all(self.compilers, unit)

        project_type = unit.project_type
        if project_type not in self.registry:
            raise UnknownProjectTypeError(unit.name, project_type)

        logger.debug("Building %s with project builder %s", unit.name, project_type)
        with visible_paths(self.code_paths, BUILDER_PATH_KINDS):
            builder = self.registry.resolve(project_type, unit.name)
            try:
                result = builder.build(unit)
            except AppBuildError:
                raise
            except Exception as e:
                logger.error("Project builder %s raised on %s: %s", project_type, unit.name, e)
                reason = str(e) or type(e).__name__
                raise BuilderFailureError(unit.name, project_type, reason) from e

        if result is not None and not result.success:
            reason = result.message or result.code or "unknown error"
            raise BuilderFailureError(unit.name, project_type, reason)
        return unit


__all__ = [
    "BUILDER_PATH_KINDS",
    "BuilderDispatcher",
    "BuilderRegistry",
    "ProjectBuilder",
]
