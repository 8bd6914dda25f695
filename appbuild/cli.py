"""Thin CLI wrapper for appbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from appbuild import __version__
from appbuild.config import Settings, get_settings, print_settings_json
from appbuild.errors import AppBuildError, format_error

app = typer.Typer(
    name="appbuild",
    help="appbuild - compile multi-application projects in dependency order",
    no_args_is_help=True,
)
console = Console()

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"appbuild version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, force=True)


def print_json(data: Any) -> None:
    """Print data as JSON, without markup or wrapping."""
    console.print(
        json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True
    )


def _effective_settings(
    profile: str | None = None,
    jobs: int | None = None,
) -> Settings:
    settings = get_settings()
    updates: dict[str, Any] = {}
    if profile is not None:
        updates["profile"] = profile
    if jobs is not None:
        updates["jobs"] = jobs
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def _project_path(project: str | None, settings: Settings) -> Path:
    return Path(project) if project else Path.cwd() / settings.project_file


def _fail(error: AppBuildError, json_output: bool) -> NoReturn:
    if json_output:
        print_json({"success": False, "error": error.to_dict()})
    else:
        console.print(f"[red]{escape(format_error(error))}[/red]")
    raise typer.Exit(code=1) from None


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """appbuild - compile multi-application projects in dependency order."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), markup=False, soft_wrap=True)
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Build directory:     {settings.base_dir}")
        console.print(f"  Profile:             {settings.profile}")
        console.print(f"  Project file:        {settings.project_file}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Link mode:           {settings.link_mode}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Parallel jobs:       {settings.jobs}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Command timeout:     {settings.command_timeout}")


@app.command("compile")
def compile_cmd(
    deps_only: Annotated[
        bool,
        typer.Option("--deps-only", "-d", help="Only compile dependency applications"),
    ] = False,
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Path to the project file"),
    ] = None,
    profile: Annotated[
        str | None,
        typer.Option("--profile", help="Build profile"),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, max=64, help="Applications built in parallel"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Compile dependencies, then the project applications in order.

    Each application is staged into <base_dir>/<profile>/lib/<name>,
    compiled and finalized. The first error stops the run.
    """
    from appbuild.builds.orchestrator import compile_project

    settings = _effective_settings(profile=profile, jobs=jobs)
    configure_logging(settings.log_level)
    project_file = _project_path(project, settings)

    if not json_output:
        console.print(f"[blue]Compiling {project_file}...[/blue]")

    try:
        result = compile_project(project_file, settings=settings, deps_only=deps_only)
    except AppBuildError as e:
        _fail(e, json_output)
    except Exception as e:
        _fail(AppBuildError(f"Unexpected error: {e}", code="unexpected_error"), json_output)

    if json_output:
        print_json({"success": True, **result.to_dict()})
        return

    if result.dep_units:
        console.print(f"[bold]Dependencies ({len(result.dep_units)}):[/bold]")
        for unit in result.dep_units:
            console.print(f"  [green]✓ {unit.name}[/green]")
    if deps_only:
        console.print("[green]✓ Dependencies compiled[/green]")
        return

    console.print(f"[bold]Applications ({len(result.units)}):[/bold]")
    for unit in result.units:
        version = f" {unit.version}" if unit.version else ""
        console.print(f"  [green]✓ {unit.name}{version}[/green]")
    for extra_dir in result.extra_dirs:
        console.print(f"  [green]✓ {escape(str(extra_dir))}[/green]")
    console.print()
    console.print("[bold]Code path:[/bold]")
    for path in result.code_paths.all_paths():
        console.print(f"  {path}", markup=False)


@app.command()
def order(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Path to the project file"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the build order of the project applications."""
    from appbuild.units.io import load_project
    from appbuild.units.order import compute_order

    settings = get_settings()
    configure_logging(settings.log_level)
    project_file = _project_path(project, settings)

    try:
        schema = load_project(project_file)
        root = project_file.absolute().parent
        dep_units, project_units = schema.to_units(root, settings)
        deps = [u.name for u in compute_order(dep_units)]
        apps = [u.name for u in compute_order(project_units)]
    except AppBuildError as e:
        _fail(e, json_output)

    if json_output:
        print_json({"deps": deps, "order": apps})
        return

    if deps:
        console.print("[bold]Dependencies:[/bold]")
        for i, name in enumerate(deps, 1):
            console.print(f"  {i}. {name}")
    console.print("[bold]Applications:[/bold]")
    if not apps:
        console.print("  [yellow]No applications declared[/yellow]")
    for i, name in enumerate(apps, 1):
        console.print(f"  {i}. {name}")


__all__ = ["app", "configure_logging"]
