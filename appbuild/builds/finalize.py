"""Application metadata finalization.

After compilation each application gets an ``ebin/<name>.app`` file
describing it: name, version, description, dependent applications and
the modules found in its compiled output. Values declared in an optional
``<src_dir>/<name>.app.src`` YAML file take precedence over defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)

APP_FILE_SUFFIX = ".app"
APP_SRC_SUFFIX = ".app.src"
DEFAULT_VERSION = "0.0.0"
MODULE_SUFFIXES = (".pyc", ".py", ".so", ".pyd")


@dataclass
class FinalizeResult:
    """Result of finalizing an application.

    Attributes:
        success: Whether the metadata was written.
        unit: The updated unit (on success).
        app_file: Path of the written metadata file.
        message: Error message if finalization failed.
    """

    success: bool
    unit: UnitDescriptor | None = None
    app_file: Path | None = None
    message: str | None = None


def find_app_src(unit: UnitDescriptor) -> Path | None:
    """Locate ``<name>.app.src`` in the unit's staged source directories."""
    filename = f"{unit.name}{APP_SRC_SUFFIX}"
    for directory in unit.src_dirs:
        for root in (unit.out_dir, unit.source_dir):
            candidate = root / directory / filename
            if candidate.is_file():
                return candidate
    return None


def discover_modules(ebin_dir: Path) -> list[str]:
    """List dotted module names of the compiled files in ``ebin_dir``."""
    if not ebin_dir.is_dir():
        return []
    modules: set[str] = set()
    for path in ebin_dir.rglob("*"):
        if not path.is_file() or path.suffix not in MODULE_SUFFIXES:
            continue
        rel = path.relative_to(ebin_dir).with_suffix("")
        modules.add(".".join(rel.parts))
    return sorted(modules)


def load_app_src(path: Path) -> dict[str, Any]:
    """Load an ``.app.src`` file.

    Raises:
        ValueError: If the file is not a YAML mapping.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def build_app_metadata(unit: UnitDescriptor, declared: dict[str, Any]) -> dict[str, Any]:
    """Merge declared metadata with values derived from the unit."""
    metadata: dict[str, Any] = {
        "name": unit.name,
        "version": unit.version or DEFAULT_VERSION,
        "description": unit.options.get("description", ""),
        "applications": list(unit.deps),
        "modules": discover_modules(unit.ebin_dir),
    }
    metadata.update(declared)
    metadata["version"] = str(metadata["version"])
    return metadata


def finalize_app(unit: UnitDescriptor, state: dict[str, Any] | None = None) -> FinalizeResult:
    """Write the application metadata file for a unit.

    Args:
        unit: Compiled unit.
        state: Optional run state (unused by the default step).

    Returns:
        FinalizeResult; on failure ``message`` holds the reason.
    """
    declared: dict[str, Any] = {}
    app_src = find_app_src(unit)
    if app_src is not None:
        try:
            declared = load_app_src(app_src)
        except (yaml.YAMLError, ValueError) as e:
            return FinalizeResult(
                success=False, message=f"Invalid application resource {app_src}: {e}"
            )
        declared_name = declared.get("name", unit.name)
        if declared_name != unit.name:
            return FinalizeResult(
                success=False,
                message=(
                    f"Application resource {app_src} declares name "
                    f"'{declared_name}', expected '{unit.name}'"
                ),
            )

    metadata = build_app_metadata(unit, declared)
    try:
        content = json.dumps(metadata, indent=2, sort_keys=True)
    except (TypeError, ValueError) as e:
        return FinalizeResult(
            success=False,
            message=f"Cannot serialize application metadata of {unit.name}: {e}",
        )

    app_file = unit.ebin_dir / f"{unit.name}{APP_FILE_SUFFIX}"
    try:
        app_file.parent.mkdir(parents=True, exist_ok=True)
        app_file.write_text(content + "\n", encoding="utf-8")
    except OSError as e:
        return FinalizeResult(success=False, message=f"Cannot write {app_file}: {e}")
    logger.debug("Wrote application metadata %s", app_file)

    return FinalizeResult(
        success=True,
        unit=unit.with_updates(version=metadata["version"]),
        app_file=app_file,
    )


__all__ = [
    "APP_FILE_SUFFIX",
    "APP_SRC_SUFFIX",
    "DEFAULT_VERSION",
    "FinalizeResult",
    "build_app_metadata",
    "discover_modules",
    "find_app_src",
    "finalize_app",
    "load_app_src",
]
