"""Source tree staging for application builds.

This module handles:
- Linking (or copying) an application's source directories into its
  output workspace
- Copying extra source directories, which build into themselves
- Selecting the link strategy once per run with a symlink probe

Copies never write through a symbolic link: a target path that is a link
is removed first, since copying a file onto itself through a link
truncates it on some platforms.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol

from appbuild.units.models import UnitDescriptor

logger = logging.getLogger(__name__)

EBIN_DIR = "ebin"
PRIV_DIR = "priv"
INCLUDE_DIR = "include"
MIBS_DIR = "mibs"

# Linked even when absent so that hooks may create them later
ALWAYS_LINKED_DIRS = (PRIV_DIR, INCLUDE_DIR)


def delete_if_symlink(path: Path) -> None:
    """Remove ``path`` if it is a symbolic link (dangling or not)."""
    if path.is_symlink():
        logger.debug("Removing symlink before copy: %s", path)
        path.unlink()


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()


def copy_tree(source: Path, target: Path) -> None:
    """Copy the contents of ``source`` into ``target``.

    Copying a directory onto itself is a no-op. Every target path that is
    a symbolic link is unlinked before being written.

    Args:
        source: Directory whose contents are copied.
        target: Destination directory (created if missing).
    """
    delete_if_symlink(target)
    if _same_path(source, target):
        logger.debug("Skipping copy of %s onto itself", source)
        return

    target.mkdir(parents=True, exist_ok=True)

    for item in sorted(source.iterdir()):
        dest = target / item.name
        delete_if_symlink(dest)
        if item.is_dir():
            if dest.exists() and not dest.is_dir():
                dest.unlink()
            copy_tree(item, dest)
        else:
            if dest.is_dir():
                shutil.rmtree(dest)
            shutil.copy2(item, dest)


class Linker(Protocol):
    """Strategy making a source directory visible at a target path."""

    name: str

    def link(self, source: Path, target: Path) -> None:
        """Make ``source`` visible at ``target``."""
        ...


class SymlinkLinker:
    """Relative symbolic links from the output workspace to the sources."""

    name = "symlink"

    def link(self, source: Path, target: Path) -> None:
        link_value = os.path.relpath(source, target.parent)
        if target.is_symlink():
            if os.readlink(target) == link_value:
                return
            target.unlink()
        elif target.exists():
            # A real directory left by an earlier copy; keep it
            logger.debug("Not linking over existing directory %s", target)
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(link_value, target, target_is_directory=True)
        logger.debug("Linked %s -> %s", target, link_value)


class CopyLinker:
    """Copy fallback for platforms without symbolic links."""

    name = "copy"

    def link(self, source: Path, target: Path) -> None:
        if not source.is_dir():
            logger.debug("Nothing to copy for missing %s", source)
            return
        copy_tree(source, target)


def supports_symlinks(probe_dir: Path | None = None) -> bool:
    """Check whether directory symlinks can be created.

    Args:
        probe_dir: Directory for the throwaway link; a temp dir if None.

    Returns:
        True if a directory symlink could be created.
    """
    if probe_dir is not None:
        probe_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=probe_dir, prefix=".linkprobe_") as tmp:
        tmp_path = Path(tmp)
        (tmp_path / "source").mkdir()
        try:
            os.symlink("source", tmp_path / "link", target_is_directory=True)
        except (OSError, NotImplementedError):
            return False
    return True


def select_linker(mode: str = "auto", probe_dir: Path | None = None) -> Linker:
    """Select the link strategy for a run.

    Args:
        mode: "symlink", "copy" or "auto" (probe, falling back to copy).
        probe_dir: Directory used by the symlink probe.

    Returns:
        Linker instance.
    """
    if mode == "copy":
        return CopyLinker()
    if mode == "symlink":
        return SymlinkLinker()
    if mode != "auto":
        raise ValueError(f"Unknown link mode: {mode}")
    if supports_symlinks(probe_dir):
        return SymlinkLinker()
    logger.info("Symbolic links unavailable, copying source directories")
    return CopyLinker()


def link_dir(linker: Linker, source_root: Path, target_root: Path, name: str) -> None:
    """Link ``source_root/name`` to ``target_root/name``."""
    linker.link(source_root / name, target_root / name)


def link_existing_dir(
    linker: Linker,
    source_root: Path,
    target_root: Path,
    name: str,
) -> None:
    """Link ``source_root/name`` only if it exists."""
    if (source_root / name).is_dir():
        link_dir(linker, source_root, target_root, name)
    else:
        logger.debug("Source directory %s not found, skipping", source_root / name)


def copy_dir(source_root: Path, target_root: Path, name: str) -> None:
    """Copy ``source_root/name`` to ``target_root/name`` if it exists."""
    source = source_root / name
    if source.is_dir():
        copy_tree(source, target_root / name)
    else:
        logger.debug("Extra source directory %s not found, skipping", source)


def stage_unit(unit: UnitDescriptor, linker: Linker) -> UnitDescriptor:
    """Stage a unit's source tree into its output workspace.

    Does nothing for in-place units. Otherwise copies compiled output,
    links resource, header and source directories, and copies extra
    source directories.

    Args:
        unit: Unit to stage.
        linker: Link strategy selected for the run.

    Returns:
        The unit, unchanged.
    """
    if unit.is_in_place:
        logger.debug("Application %s builds in place, nothing to stage", unit.name)
        return unit

    source_dir = unit.source_dir
    out_dir = unit.out_dir
    logger.debug("Staging %s: %s -> %s", unit.name, source_dir, out_dir)

    source_ebin = source_dir / EBIN_DIR
    if source_ebin.is_dir():
        copy_tree(source_ebin, out_dir / EBIN_DIR)

    out_dir.mkdir(parents=True, exist_ok=True)

    if (source_dir / MIBS_DIR).is_dir():
        # compiled mibs land in priv/mibs, so priv must exist to be linked
        (source_dir / PRIV_DIR).mkdir(parents=True, exist_ok=True)
        link_dir(linker, source_dir, out_dir, MIBS_DIR)

    for name in ALWAYS_LINKED_DIRS:
        link_dir(linker, source_dir, out_dir, name)

    for name in unit.src_dirs:
        link_existing_dir(linker, source_dir, out_dir, name)

    for name in unit.extra_src_dirs:
        copy_dir(source_dir, out_dir, name)

    return unit


__all__ = [
    "ALWAYS_LINKED_DIRS",
    "CopyLinker",
    "EBIN_DIR",
    "INCLUDE_DIR",
    "Linker",
    "MIBS_DIR",
    "PRIV_DIR",
    "SymlinkLinker",
    "copy_dir",
    "copy_tree",
    "delete_if_symlink",
    "link_dir",
    "link_existing_dir",
    "select_linker",
    "stage_unit",
    "supports_symlinks",
]
