"""Default multi-compiler pipeline.

This module handles:
- The compiler interface used by the default build strategy
- Byte-compiling Python sources into an application's ebin directory
- Running external command compilers declared in the project file
- Driving every registered compiler over an application's source dirs

Sources under ``src_dirs`` compile into the application's ``ebin`` dir,
keeping their relative layout. Extra source directories compile into
themselves.
"""

from __future__ import annotations

import logging
import py_compile
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from appbuild.errors import CompileError
from appbuild.units.models import UnitDescriptor

if TYPE_CHECKING:
    from appbuild.units.schema import CompilerSchema

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 600


class Compiler(Protocol):
    """A per-file compiler."""

    name: str
    source_extensions: tuple[str, ...]

    def target_name(self, rel_path: Path) -> Path:
        """Return the output path for a source, relative to the target dir."""
        ...

    def compile(self, source: Path, target: Path, unit: UnitDescriptor) -> None:
        """Compile ``source`` into ``target``.

        Raises:
            CompileError: If compilation fails.
        """
        ...


class BytecodeCompiler:
    """Compile Python modules to sourceless ``.pyc`` files."""

    name = "bytecode"
    source_extensions = (".py",)

    def target_name(self, rel_path: Path) -> Path:
        return rel_path.with_suffix(".pyc")

    def compile(self, source: Path, target: Path, unit: UnitDescriptor) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            py_compile.compile(
                str(source),
                cfile=str(target),
                dfile=str(source),
                doraise=True,
            )
        except py_compile.PyCompileError as e:
            raise CompileError(self.name, source, e.msg.strip()) from e


class CommandCompiler:
    """Run an external command per source file.

    The command template supports the placeholders ``{source}``,
    ``{target}``, ``{out_dir}`` (the target's directory) and ``{name}``
    (the application name).
    """

    def __init__(
        self,
        name: str,
        extension: str,
        target_suffix: str,
        command: Sequence[str],
        timeout: int = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self.name = name
        self.source_extensions = (extension,)
        self.target_suffix = target_suffix
        self.command = list(command)
        self.timeout = timeout

    @classmethod
    def from_schema(cls, spec: CompilerSchema, timeout: int) -> CommandCompiler:
        """Create a compiler from its project file declaration."""
        return cls(
            name=spec.name,
            extension=spec.extension,
            target_suffix=spec.target_suffix,
            command=spec.command,
            timeout=timeout,
        )

    def target_name(self, rel_path: Path) -> Path:
        return rel_path.with_suffix(self.target_suffix)

    def compose_command(self, source: Path, target: Path, unit: UnitDescriptor) -> list[str]:
        """Fill in the command template for one source file."""
        values = {
            "source": str(source),
            "target": str(target),
            "out_dir": str(target.parent),
            "name": unit.name,
        }
        return [part.format(**values) for part in self.command]

    def compile(self, source: Path, target: Path, unit: UnitDescriptor) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.compose_command(source, target, unit)
        logger.debug("Executing compiler %s: %s", self.name, shlex.join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=unit.out_dir if unit.out_dir.is_dir() else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CompileError(
                self.name, source, f"timed out after {self.timeout} seconds", exit_code=-1
            ) from e
        except OSError as e:
            raise CompileError(self.name, source, f"failed to execute: {e}") from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            logger.error("%s exited with %d on %s", self.name, result.returncode, source)
            raise CompileError(
                self.name,
                source,
                f"exit code {result.returncode}: {output}",
                exit_code=result.returncode,
            )


def _source_root(unit: UnitDescriptor, directory: str) -> Path:
    staged = unit.out_dir / directory
    if staged.is_dir():
        return staged
    return unit.source_dir / directory


def _compile_tree(
    compiler: Compiler,
    unit: UnitDescriptor,
    source_root: Path,
    target_root: Path,
) -> int:
    count = 0
    for extension in compiler.source_extensions:
        for source in sorted(source_root.rglob(f"*{extension}")):
            if not source.is_file():
                continue
            rel_path = source.relative_to(source_root)
            target = target_root / compiler.target_name(rel_path)
            compiler.compile(source, target, unit)
            count += 1
    return count


def compile_all(compilers: Sequence[Compiler], unit: UnitDescriptor) -> UnitDescriptor:
    """Run every compiler over a unit's source and extra source directories.

    Args:
        compilers: Compilers registered for the run, in order.
        unit: Unit to compile.

    Returns:
        The unit, unchanged.

    Raises:
        CompileError: On the first failing source file.
    """
    unit.ebin_dir.mkdir(parents=True, exist_ok=True)
    for compiler in compilers:
        count = 0
        for directory in unit.src_dirs:
            source_root = _source_root(unit, directory)
            if source_root.is_dir():
                count += _compile_tree(compiler, unit, source_root, unit.ebin_dir)
        for directory in unit.extra_src_dirs:
            extra_root = unit.out_dir / directory
            if extra_root.is_dir():
                count += _compile_tree(compiler, unit, extra_root, extra_root)
        if count:
            logger.debug("%s compiled %d file(s) for %s", compiler.name, count, unit.name)
    return unit


def default_compilers(
    specs: Sequence[CompilerSchema] = (),
    timeout: int = DEFAULT_COMMAND_TIMEOUT,
) -> list[Compiler]:
    """Build the compiler list for a run.

    Command compilers run in declaration order, before the bytecode
    compiler.
    """
    compilers: list[Compiler] = [CommandCompiler.from_schema(s, timeout) for s in specs]
    compilers.append(BytecodeCompiler())
    return compilers


__all__ = [
    "BytecodeCompiler",
    "CommandCompiler",
    "Compiler",
    "compile_all",
    "default_compilers",
]
