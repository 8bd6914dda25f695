"""Unit descriptor model.

A unit is one buildable application. Descriptors are frozen: hooks and
build stages return an updated copy instead of mutating shared state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from appbuild.types import DEFAULT_PROJECT_TYPE

logger = logging.getLogger(__name__)

DEFAULT_SRC_DIRS = ("src",)

# Directory names that shadow test runners when placed on the code path
RESERVED_DIR_NAMES = frozenset({"pytest", "unittest", "doctest"})


@dataclass(frozen=True)
class UnitDescriptor:
    """Description of one buildable application.

    Attributes:
        name: Unique identifier within the unit set.
        source_dir: Absolute source directory.
        out_dir: Absolute output workspace; equal to source_dir for in-place builds.
        project_type: Build strategy tag ("default" or a custom builder tag).
        options: Build options, including src_dirs and extra_src_dirs.
        artifacts: Declared artifacts, relative to out_dir unless absolute.
        deps: Names of units this unit depends on.
        version: Application version, filled in by the finalize step.
        ebin_dir_override: Explicit compiled-output directory.
        is_dependency: True for non-project (dependency) units.
    """

    name: str
    source_dir: Path
    out_dir: Path
    project_type: str = DEFAULT_PROJECT_TYPE
    options: dict[str, Any] = field(default_factory=dict)
    artifacts: tuple[str, ...] = ()
    deps: tuple[str, ...] = ()
    version: str | None = None
    ebin_dir_override: Path | None = None
    is_dependency: bool = False

    @property
    def ebin_dir(self) -> Path:
        """Directory receiving compiled output."""
        if self.ebin_dir_override is not None:
            return self.ebin_dir_override
        return self.out_dir / "ebin"

    @property
    def src_dirs(self) -> list[str]:
        """Normalized source directories."""
        return resolve_src_dirs(self.options)[0]

    @property
    def extra_src_dirs(self) -> list[str]:
        """Normalized extra source directories (never overlapping src_dirs)."""
        return resolve_src_dirs(self.options)[1]

    @property
    def is_in_place(self) -> bool:
        """Whether the unit builds directly in its source directory."""
        return self.source_dir.absolute() == self.out_dir.absolute()

    @property
    def is_default_type(self) -> bool:
        """Whether the unit uses the default compiler pipeline."""
        return self.project_type in (DEFAULT_PROJECT_TYPE, "")

    def with_updates(self, **changes: Any) -> UnitDescriptor:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def with_options(self, **updates: Any) -> UnitDescriptor:
        """Return a copy with the given options merged in."""
        options = dict(self.options)
        options.update(updates)
        return replace(self, options=options)


def _as_dir_list(value: Any, default: tuple[str, ...]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, (str, Path)):
        return [str(value)]
    return [str(v) for v in value]


def normalize_src_dirs(
    src_dirs: list[str],
    extra_src_dirs: list[str],
) -> tuple[list[str], list[str]]:
    """Remove duplicates and drop extra dirs that are already source dirs.

    Directories named after a test runner trigger a warning but are kept.

    Args:
        src_dirs: Source directories.
        extra_src_dirs: Extra source directories.

    Returns:
        Tuple of (sorted unique src_dirs, sorted unique extra_src_dirs
        with every src_dirs entry removed).
    """
    src = sorted(set(src_dirs))
    extra = [d for d in sorted(set(extra_src_dirs)) if d not in src]
    for directory in src + extra:
        if Path(directory).name in RESERVED_DIR_NAMES:
            logger.warning("Possible name clash with directory %r.", directory)
    return src, extra


def resolve_src_dirs(options: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Resolve src_dirs (default ["src"]) and extra_src_dirs from options.

    Args:
        options: Unit or project options mapping.

    Returns:
        Tuple of (src_dirs, extra_src_dirs), normalized.
    """
    src_dirs = _as_dir_list(options.get("src_dirs"), DEFAULT_SRC_DIRS)
    extra_src_dirs = _as_dir_list(options.get("extra_src_dirs"), ())
    return normalize_src_dirs(src_dirs, extra_src_dirs)


__all__ = [
    "DEFAULT_SRC_DIRS",
    "RESERVED_DIR_NAMES",
    "UnitDescriptor",
    "normalize_src_dirs",
    "resolve_src_dirs",
]
