"""Tests for builds/staging.py module.

Tests source tree staging, symlink handling and copy safety.
"""

import os
from pathlib import Path

import pytest

from appbuild.builds.staging import (
    CopyLinker,
    SymlinkLinker,
    copy_tree,
    delete_if_symlink,
    select_linker,
    stage_unit,
)
from appbuild.units.models import UnitDescriptor


def snapshot(root: Path) -> dict[str, str]:
    """Map every path under root to its kind and content."""
    result = {}
    for path in sorted(root.rglob("*")):
        rel = str(path.relative_to(root))
        if path.is_symlink():
            result[rel] = "link:" + os.readlink(path)
        elif path.is_dir():
            result[rel] = "dir"
        else:
            result[rel] = "file:" + path.read_text()
    return result


@pytest.fixture
def app_tree(tmp_path: Path) -> UnitDescriptor:
    """Create an application source tree and its unit."""
    source = tmp_path / "apps" / "api"
    (source / "src").mkdir(parents=True)
    (source / "src" / "api.py").write_text("X = 1\n")
    (source / "priv").mkdir()
    (source / "priv" / "data.txt").write_text("data")
    (source / "tests").mkdir()
    (source / "tests" / "test_api.py").write_text("def test(): pass\n")
    (source / "ebin").mkdir()
    (source / "ebin" / "prebuilt.pyc").write_text("prebuilt")
    return UnitDescriptor(
        name="api",
        source_dir=source,
        out_dir=tmp_path / "_build" / "default" / "lib" / "api",
        options={"src_dirs": ["src"], "extra_src_dirs": ["tests"]},
    )


class TestDeleteIfSymlink:
    """Tests for delete_if_symlink function."""

    def test_removes_symlink(self, tmp_path):
        """Should remove a symlink but not its target."""
        target = tmp_path / "target"
        target.mkdir()
        link = tmp_path / "link"
        link.symlink_to(target)
        delete_if_symlink(link)
        assert not link.exists()
        assert target.is_dir()

    def test_removes_dangling_symlink(self, tmp_path):
        """Should remove a link whose target is gone."""
        link = tmp_path / "link"
        link.symlink_to(tmp_path / "missing")
        delete_if_symlink(link)
        assert not link.is_symlink()

    def test_keeps_regular_directory(self, tmp_path):
        """Should leave real directories alone."""
        directory = tmp_path / "dir"
        directory.mkdir()
        delete_if_symlink(directory)
        assert directory.is_dir()


class TestCopyTree:
    """Tests for copy_tree function."""

    def test_copies_nested_tree(self, tmp_path):
        """Should copy files and subdirectories."""
        source = tmp_path / "source"
        (source / "sub").mkdir(parents=True)
        (source / "a.txt").write_text("a")
        (source / "sub" / "b.txt").write_text("b")

        copy_tree(source, tmp_path / "target")

        assert (tmp_path / "target" / "a.txt").read_text() == "a"
        assert (tmp_path / "target" / "sub" / "b.txt").read_text() == "b"

    def test_copy_onto_itself_is_noop(self, tmp_path):
        """Copying a directory onto itself should not change it."""
        source = tmp_path / "source"
        source.mkdir()
        (source / "a.txt").write_text("content")

        copy_tree(source, source)

        assert (source / "a.txt").read_text() == "content"

    def test_symlinked_target_is_replaced_not_truncated(self, tmp_path):
        """A target linking back to the source should be replaced by a copy."""
        source = tmp_path / "source"
        source.mkdir()
        (source / "a.txt").write_text("content")
        target = tmp_path / "target"
        target.symlink_to(source, target_is_directory=True)

        copy_tree(source, target)

        assert not target.is_symlink()
        assert (target / "a.txt").read_text() == "content"
        assert (source / "a.txt").read_text() == "content"

    def test_symlinked_file_in_target_is_replaced(self, tmp_path):
        """A file link in the target should be unlinked before copying."""
        source = tmp_path / "source"
        source.mkdir()
        (source / "a.txt").write_text("content")
        target = tmp_path / "target"
        target.mkdir()
        (target / "a.txt").symlink_to(source / "a.txt")

        copy_tree(source, target)

        assert not (target / "a.txt").is_symlink()
        assert (target / "a.txt").read_text() == "content"
        assert (source / "a.txt").read_text() == "content"


class TestLinkers:
    """Tests for link strategies."""

    def test_symlink_linker_creates_relative_link(self, tmp_path):
        """Should create a relative directory link."""
        source = tmp_path / "src"
        source.mkdir()
        target = tmp_path / "out" / "src"

        SymlinkLinker().link(source, target)

        assert target.is_symlink()
        assert not os.path.isabs(os.readlink(target))
        assert target.resolve() == source.resolve()

    def test_symlink_linker_replaces_stale_link(self, tmp_path):
        """A link pointing elsewhere should be replaced."""
        (tmp_path / "old").mkdir()
        (tmp_path / "new").mkdir()
        target = tmp_path / "out" / "dir"
        target.parent.mkdir()
        target.symlink_to(tmp_path / "old")

        SymlinkLinker().link(tmp_path / "new", target)

        assert target.resolve() == (tmp_path / "new").resolve()

    def test_copy_linker_skips_missing_source(self, tmp_path):
        """Copy linking a missing directory should do nothing."""
        CopyLinker().link(tmp_path / "missing", tmp_path / "out")
        assert not (tmp_path / "out").exists()

    def test_select_linker_modes(self, tmp_path):
        """Explicit modes should select their strategy."""
        assert isinstance(select_linker("copy"), CopyLinker)
        assert isinstance(select_linker("symlink"), SymlinkLinker)
        assert select_linker("auto", tmp_path).name in ("symlink", "copy")

    def test_select_linker_unknown_mode(self):
        """Unknown modes should raise ValueError."""
        with pytest.raises(ValueError, match="Unknown link mode"):
            select_linker("hardlink")


class TestStageUnit:
    """Tests for stage_unit function."""

    def test_stages_tree(self, app_tree):
        """Should copy ebin, link priv/include/src and copy extra dirs."""
        out = app_tree.out_dir
        stage_unit(app_tree, SymlinkLinker())

        assert (out / "ebin" / "prebuilt.pyc").read_text() == "prebuilt"
        assert not (out / "ebin").is_symlink()
        assert (out / "src").is_symlink()
        assert (out / "priv").is_symlink()
        assert (out / "priv" / "data.txt").read_text() == "data"
        # include is linked even though the source has none yet
        assert (out / "include").is_symlink()
        assert not (out / "include").exists()
        assert (out / "tests").is_dir()
        assert not (out / "tests").is_symlink()
        assert (out / "tests" / "test_api.py").exists()

    def test_missing_src_dir_is_skipped(self, app_tree):
        """Source dirs that do not exist should not be linked."""
        unit = app_tree.with_options(src_dirs=["src", "gen"])
        stage_unit(unit, SymlinkLinker())
        assert not (unit.out_dir / "gen").is_symlink()

    def test_mibs_links_and_creates_priv(self, app_tree):
        """A mibs dir should be linked and priv created in the source."""
        (app_tree.source_dir / "priv" / "data.txt").unlink()
        (app_tree.source_dir / "priv").rmdir()
        (app_tree.source_dir / "mibs").mkdir()

        stage_unit(app_tree, SymlinkLinker())

        assert (app_tree.source_dir / "priv").is_dir()
        assert (app_tree.out_dir / "mibs").is_symlink()

    def test_staging_is_idempotent(self, app_tree):
        """Staging twice should give the same workspace."""
        stage_unit(app_tree, SymlinkLinker())
        first = snapshot(app_tree.out_dir)
        stage_unit(app_tree, SymlinkLinker())
        assert snapshot(app_tree.out_dir) == first

    def test_copy_linker_staging(self, app_tree):
        """Copy mode should copy existing directories instead of linking."""
        stage_unit(app_tree, CopyLinker())
        out = app_tree.out_dir
        assert (out / "src").is_dir()
        assert not (out / "src").is_symlink()
        assert (out / "src" / "api.py").read_text() == "X = 1\n"
        assert not (out / "include").exists()

    def test_in_place_unit_not_touched(self, app_tree):
        """An in-place unit should be left exactly as it is."""
        unit = app_tree.with_updates(out_dir=app_tree.source_dir)
        before = snapshot(unit.source_dir)
        stage_unit(unit, SymlinkLinker())
        assert snapshot(unit.source_dir) == before
