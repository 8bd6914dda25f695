"""Code path management.

The code path is the ordered list of directories other tooling searches
for build outputs: dependency paths, then project application paths, then
extra directory paths. ``CodePaths`` is an immutable, versioned value that
the orchestrator threads through a run; every update returns a new value.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from appbuild.types import PathKind
from appbuild.units.models import UnitDescriptor, resolve_src_dirs

logger = logging.getLogger(__name__)

EXTRAS_DIR = "extras"

_sys_path_lock = threading.RLock()


@dataclass(frozen=True)
class CodePaths:
    """Versioned set of code path groups.

    Attributes:
        deps: Output directories of dependency applications.
        plugins: Directories holding custom project builders.
        project_apps: Output directories of project applications.
        extras: Output directories of top-level extra source directories.
        version: Incremented on every update.
    """

    deps: tuple[Path, ...] = ()
    plugins: tuple[Path, ...] = ()
    project_apps: tuple[Path, ...] = ()
    extras: tuple[Path, ...] = ()
    version: int = 0

    def select(self, kinds: Sequence[PathKind]) -> list[Path]:
        """Return the paths of the given groups, in the order requested."""
        groups = {
            PathKind.DEPS: self.deps,
            PathKind.PLUGINS: self.plugins,
            PathKind.PROJECT_APPS: self.project_apps,
            PathKind.EXTRAS: self.extras,
        }
        paths: list[Path] = []
        for kind in kinds:
            paths.extend(groups[kind])
        return paths

    def all_paths(self) -> list[Path]:
        """Global search path: deps, then project apps, then extras."""
        return self.select([PathKind.DEPS, PathKind.PROJECT_APPS, PathKind.EXTRAS])

    def updated(self, **groups: Sequence[Path]) -> CodePaths:
        """Return a new version with the given groups replaced."""
        changes = {name: tuple(paths) for name, paths in groups.items()}
        return replace(self, version=self.version + 1, **changes)


def _existing(paths: Sequence[Path]) -> list[Path]:
    return [p for p in paths if p.is_dir()]


def paths_for_units(units: Sequence[UnitDescriptor]) -> list[Path]:
    """Collect existing output directories of units, in unit order.

    Each unit contributes its compiled-output directory and one directory
    per extra source directory.
    """
    paths: list[Path] = []
    for unit in units:
        candidates = [unit.ebin_dir]
        candidates.extend(unit.out_dir / d for d in unit.extra_src_dirs)
        paths.extend(_existing(candidates))
    return paths


def has_root_unit(project_root: Path, units: Sequence[UnitDescriptor]) -> bool:
    """Whether any unit's source directory is the project root itself."""
    root = project_root.absolute()
    return any(unit.source_dir.absolute() == root for unit in units)


def paths_for_extras(
    project_root: Path,
    extras_dir: Path,
    project_options: dict[str, object],
    units: Sequence[UnitDescriptor],
) -> list[Path]:
    """Collect existing output directories of top-level extra source dirs.

    Returns an empty list when a unit lives at the project root, since its
    extra directories are already registered through that unit.
    """
    if has_root_unit(project_root, units):
        return []
    _, extra_dirs = resolve_src_dirs(project_options)
    return _existing([extras_dir / d for d in extra_dirs])


def update_code_paths(
    code_paths: CodePaths,
    project_units: Sequence[UnitDescriptor],
    project_root: Path,
    extras_dir: Path,
    project_options: dict[str, object],
) -> CodePaths:
    """Recompute the project application and extra groups.

    Dependency paths are kept as already computed.

    Returns:
        New CodePaths version.
    """
    project_paths = paths_for_units(project_units)
    extra_paths = paths_for_extras(project_root, extras_dir, project_options, project_units)
    updated = code_paths.updated(project_apps=project_paths, extras=extra_paths)
    logger.debug(
        "Code path v%d: %d dep, %d app, %d extra directories",
        updated.version,
        len(updated.deps),
        len(project_paths),
        len(extra_paths),
    )
    return updated


@contextmanager
def visible_paths(
    code_paths: CodePaths,
    kinds: Sequence[PathKind],
) -> Iterator[list[Path]]:
    """Temporarily put the selected path groups at the front of sys.path.

    sys.path is restored on exit, whatever the outcome.

    Yields:
        The paths made visible.
    """
    selected = code_paths.select(kinds)
    with _sys_path_lock:
        saved = list(sys.path)
        added = [str(p) for p in selected if str(p) not in sys.path]
        sys.path[:0] = added
        try:
            yield selected
        finally:
            sys.path[:] = saved


__all__ = [
    "CodePaths",
    "EXTRAS_DIR",
    "has_root_unit",
    "paths_for_extras",
    "paths_for_units",
    "update_code_paths",
    "visible_paths",
]
