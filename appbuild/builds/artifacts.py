"""Artifact verification.

Applications may declare files that must exist once they are built.
Relative artifact paths are resolved against the application's output
directory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from appbuild.errors import MissingArtifactError
from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)


def resolve_artifact_paths(unit: UnitDescriptor) -> list[Path]:
    """Absolute paths of a unit's declared artifacts, in declaration order."""
    paths: list[Path] = []
    for artifact in unit.artifacts:
        path = Path(artifact)
        paths.append(path if path.is_absolute() else unit.out_dir / path)
    return paths


def find_missing_artifact(unit: UnitDescriptor) -> Path | None:
    """Return the first declared artifact that does not exist, or None."""
    for path in resolve_artifact_paths(unit):
        if not path.exists():
            return path
    return None


def verify_artifacts(unit: UnitDescriptor) -> None:
    """Check that every declared artifact of a unit exists.

    Raises:
        MissingArtifactError: Naming the first missing file.
    """
    missing = find_missing_artifact(unit)
    if missing is not None:
        logger.error("Application %s is missing artifact %s", unit.name, missing)
        raise MissingArtifactError(missing, unit_name=unit.name)
    if unit.artifacts:
        logger.debug("All %d artifact(s) of %s present", len(unit.artifacts), unit.name)


def verify_all(units: Iterable[UnitDescriptor]) -> None:
    """Verify the artifacts of every unit, stopping at the first missing one."""
    for unit in units:
        verify_artifacts(unit)


__all__ = [
    "find_missing_artifact",
    "resolve_artifact_paths",
    "verify_all",
    "verify_artifacts",
]
