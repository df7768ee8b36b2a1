"""
packsource CLI

Thin wrapper around the Workspace facade.

Usage:
    packsource init
    packsource add-source <path> [--name NAME] [--group GROUP]
    packsource sources [--json]
    packsource list [--json]
    packsource install <package> [version] [--group GROUP] [--no-wait]
    packsource sync-assemblies
    packsource settings [--game-path PATH] [--game-executable EXE] [--json]
"""

from __future__ import annotations

import json as json_module
import logging
import os
from pathlib import Path
from typing import Optional

import typer

from . import Workspace
from .layout import PackSourceError

app = typer.Typer(
    name="packsource",
    help="packsource - package source and installer",
    no_args_is_help=True,
)

_state = {"root": None}


@app.callback()
def main_callback(
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", envvar="PACKSOURCE_ROOT", help="Workspace root"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Configure workspace root and logging."""
    _state["root"] = root
    level = "DEBUG" if verbose else os.environ.get("PACKSOURCE_LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S',
    )


def get_workspace() -> Workspace:
    """Create the Workspace for the selected root."""
    return Workspace(_state["root"])


def output_json(data: dict) -> None:
    """Output data as JSON."""
    typer.echo(json_module.dumps(data, indent=2, default=str))


def output_error(message: str) -> None:
    """Output error message."""
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def output_success(message: str) -> None:
    """Output success message."""
    typer.secho(message, fg=typer.colors.GREEN)


def output_warning(message: str) -> None:
    """Output warning message."""
    typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW)


def require_initialized(ws: Workspace) -> None:
    if not ws.is_initialized():
        output_error("Workspace not initialized. Run 'packsource init' first.")
        raise typer.Exit(1)


# =============================================================================
# Workspace Commands
# =============================================================================

@app.command("init")
def init_workspace():
    """Initialize the workspace."""
    ws = get_workspace()
    if ws.is_initialized():
        output_warning(f"Workspace already initialized at {ws.layout.root}")
        raise typer.Exit(0)
    ws.init()
    output_success(f"Workspace initialized at {ws.layout.root}")


@app.command("settings")
def settings(
    game_path: Optional[str] = typer.Option(None, "--game-path", help="Game install folder"),
    game_executable: Optional[str] = typer.Option(None, "--game-executable", help="Game executable name"),
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show or update workspace settings."""
    ws = get_workspace()
    require_initialized(ws)

    if game_path is not None or game_executable is not None:
        if game_path is not None:
            ws.config.game.game_path = game_path
        if game_executable is not None:
            ws.config.game.game_executable = game_executable
        ws.save_config()
        output_success("Settings saved")

    if json:
        output_json(ws.config.to_dict())
    else:
        typer.echo(f"Workspace root: {ws.layout.root}")
        typer.echo(f"Game path: {ws.config.game.game_path or '-'}")
        typer.echo(f"Game executable: {ws.config.game.game_executable or '-'}")
        typer.echo(f"Resolution mode: {ws.config.install.resolution_mode.value}")


# =============================================================================
# Source Commands
# =============================================================================

@app.command("add-source")
def add_source(
    path: Path = typer.Argument(..., help="Directory containing index.yaml"),
    name: Optional[str] = typer.Option(None, "--name", help="Source name (default: folder name)"),
    group: str = typer.Option("local", "--group", "-g", help="Source group"),
):
    """Register a directory source."""
    ws = get_workspace()
    require_initialized(ws)

    if not (path / "index.yaml").exists():
        output_error(f"No index.yaml in {path}")
        raise typer.Exit(1)

    source = ws.add_directory_source(path, name=name, source_group=group)
    output_success(f"Added source {source.key}")


@app.command("sources")
def list_sources(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List registered sources by source group."""
    ws = get_workspace()
    require_initialized(ws)

    groups = ws.registry.source_groups
    if json:
        output_json({g: [s.name for s in sources] for g, sources in groups.items()})
        return
    if not groups:
        typer.echo("No sources registered.")
        return
    for group_name, sources in groups.items():
        typer.echo(f"{group_name}:")
        for source in sources:
            typer.echo(f"  - {source.name}")


# =============================================================================
# Package Commands
# =============================================================================

@app.command("list")
def list_packages(
    json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Load all sources and list their packages."""
    ws = get_workspace()
    require_initialized(ws)

    try:
        ws.load_all_sources()
    except PackSourceError as e:
        output_error(str(e))
        raise typer.Exit(1)

    groups = ws.list_groups()
    if json:
        output_json({"packages": [
            {
                "name": g.package_name,
                "author": g.author,
                "id": g.dependency_id,
                "source": str(g.source.key),
                "installed": g.installed,
                "versions": [v.version for v in g.versions],
            }
            for g in groups
        ]})
        return

    if not groups:
        typer.echo("No packages found.")
        return
    typer.echo(f"Found {len(groups)} package(s):")
    for g in groups:
        marker = "*" if g.installed else " "
        latest = g.versions[0].version if g.versions else "-"
        typer.echo(f" {marker} {g.package_name} ({latest}) [{g.source.key}]")


@app.command("install")
def install_package(
    package: str = typer.Argument(..., help="Package name or group id"),
    version: str = typer.Argument("latest", help="Version label"),
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Only look in this source group"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for the post-install refresh"),
):
    """Install a package and its missing dependencies."""
    ws = get_workspace()
    require_initialized(ws)

    typer.echo(f"Installing {package}@{version}...")
    try:
        ws.load_all_sources()
        report = ws.install(package, version, source_group=group)
    except (PackSourceError, OSError) as e:
        output_error(str(e))
        raise typer.Exit(1)

    for name in report.installed:
        typer.echo(f"  + {name}")
    output_success(f"Installed {len(report.installed)} package(s)")
    if wait:
        ws.wait_for_refresh()


@app.command("sync-assemblies")
def sync_assemblies_cmd():
    """Copy package assemblies into Library/ScriptAssemblies."""
    ws = get_workspace()
    require_initialized(ws)

    written = ws.sync_assemblies()
    output_success(f"Synced {len(written)} assembly(ies)")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
