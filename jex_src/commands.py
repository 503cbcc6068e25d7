#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
CLI commands for jex.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from . import __version__
from .environment import (
    JexPaths,
    check_prerequisites,
    ensure_environment,
    load_config,
)
from .manager import JexManager
from .runner import console, logger, setup_logging

app = typer.Typer(
    name="jex",
    help="Run Jekyll inside Docker without a local Ruby install",
    add_completion=False,
    # -h/--help are handled by bootstrap so they show the same summary as `help`
    context_settings={"help_option_names": []},
)

# Subcommands that only print and do not need docker
_INFO_COMMANDS = {"help", "version"}

_PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _manager(ctx: typer.Context) -> JexManager:
    return ctx.obj


def show_version() -> None:
    console.print(f"[blue]jex (Jekyll Execution Script) v{__version__}[/blue]")
    console.print("A utility for managing Jekyll projects with Docker")


def show_help(manager: JexManager) -> None:
    show_version()
    console.print("\n[bold]USAGE:[/bold]")
    console.print("  jex [command] [args...]")

    commands = Table(show_header=False, box=None, padding=(0, 2))
    commands.add_column("Command", style="green", no_wrap=True)
    commands.add_column("Description")
    for name, description in [
        ("init", "Initialize a new Jekyll project in current directory"),
        ("serve", "Start Jekyll server with live reload"),
        ("serve-detached", "Run Jekyll server in background"),
        ("stop", "Stop detached Jekyll server"),
        ('new-post "Title"', "Create a new Jekyll post"),
        ('exec "command"', "Execute a command inside the Jekyll container"),
        ("add-gem gem_name", "Install a new gem"),
        ("open", "Open Jekyll site in browser"),
        ("fix-permissions [dir]", "Fix file permissions in the project"),
        ("build-image [--force]", "Build (or force rebuild) the Jekyll Docker image"),
        ("clean", "Clean up Jekyll Docker containers"),
        ("clean-all", "Clean up all Jekyll Docker resources"),
        ("version", "Show version information"),
        ("help", "Display this help information"),
    ]:
        commands.add_row(name, description)
    console.print("\n[bold]AVAILABLE COMMANDS:[/bold]")
    console.print(commands)

    console.print("\n[bold]EXAMPLES:[/bold]")
    console.print("  jex init                 # Create a new Jekyll site", markup=False)
    console.print('  jex new-post "My Post"   # Create a new blog post', markup=False)
    console.print("  jex serve                # Start the Jekyll server", markup=False)
    console.print('  jex exec "bundle update" # Run a command in the container', markup=False)

    console.print("\n[bold]CONFIG:[/bold]")
    console.print(
        f"  Configuration file location: {manager.paths.config_path}", highlight=False
    )
    console.print("  Current settings:")
    console.print(f"    Docker Image: {manager.config.docker_image}", highlight=False)
    console.print(f"    Jekyll Port:  {manager.config.jekyll_port}", highlight=False)


# ============================================================================
# Bootstrap
# ============================================================================


@app.callback(invoke_without_command=True)
def bootstrap(
    ctx: typer.Context,
    yes: Annotated[
        bool, typer.Option("-y", "--yes", help="Answer yes to confirmation prompts")
    ] = False,
    usage: Annotated[
        bool, typer.Option("-h", "--help", hidden=True, help="Show usage and exit")
    ] = False,
):
    """Run Jekyll inside Docker without a local Ruby install"""
    paths = JexPaths.default()
    created = ensure_environment(paths)
    setup_logging(paths.log_path)
    if created:
        logger.info(f"JEX directory structure created at {paths.state_dir}")

    config = load_config(paths)

    subcommand = ctx.invoked_subcommand
    if not usage and subcommand is not None and subcommand not in _INFO_COMMANDS:
        check_prerequisites()

    manager = JexManager(config, paths, project_root=Path.cwd(), assume_yes=yes)
    ctx.obj = manager

    if usage:
        show_help(manager)
        raise typer.Exit()
    if subcommand is None:
        show_help(manager)


# ============================================================================
# Image
# ============================================================================


@app.command("build-image")
def build_image(
    ctx: typer.Context,
    force: Annotated[
        bool, typer.Option("--force", help="Rebuild even if the image exists")
    ] = False,
):
    """Build the Jekyll Docker image"""
    _manager(ctx).build(force=force)


# ============================================================================
# Container
# ============================================================================


@app.command()
def serve(ctx: typer.Context):
    """Start Jekyll server with live reload"""
    _manager(ctx).serve()


@app.command("serve-detached")
def serve_detached(ctx: typer.Context):
    """Run Jekyll server in background"""
    _manager(ctx).serve_detached()


@app.command()
def stop(ctx: typer.Context):
    """Stop detached Jekyll server"""
    _manager(ctx).stop()


@app.command("exec", context_settings=_PASSTHROUGH)
def exec_command(
    ctx: typer.Context,
    command: Annotated[
        Optional[list[str]], typer.Argument(help="Shell command to run")
    ] = None,
):
    """Execute a command inside the Jekyll container"""
    _manager(ctx).exec(" ".join(command or []))


@app.command()
def clean(ctx: typer.Context):
    """Clean up Jekyll Docker containers"""
    _manager(ctx).clean()


@app.command("clean-all")
def clean_all(ctx: typer.Context):
    """Clean up all Jekyll Docker resources"""
    _manager(ctx).clean_all()


# ============================================================================
# Project
# ============================================================================


@app.command()
def init(ctx: typer.Context):
    """Initialize a new Jekyll project in current directory"""
    _manager(ctx).init()


@app.command("new-post", context_settings=_PASSTHROUGH)
def new_post(
    ctx: typer.Context,
    title: Annotated[Optional[list[str]], typer.Argument(help="Post title")] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite an existing post")
    ] = False,
):
    """Create a new Jekyll post"""
    _manager(ctx).new_post(" ".join(title or []), force=force)


@app.command("add-gem")
def add_gem(
    ctx: typer.Context,
    name: Annotated[Optional[str], typer.Argument(help="Gem name")] = None,
):
    """Install a new gem"""
    _manager(ctx).add_gem(name or "")


@app.command("open")
def open_site(ctx: typer.Context):
    """Open Jekyll site in browser"""
    _manager(ctx).open_site()


@app.command("fix-permissions")
def fix_permissions(
    ctx: typer.Context,
    directory: Annotated[
        Optional[Path], typer.Argument(help="Directory to fix (default: .)")
    ] = None,
):
    """Fix file permissions in the project"""
    _manager(ctx).fix_permissions(directory)


# ============================================================================
# Help & info
# ============================================================================


@app.command()
def version():
    """Show version information"""
    show_version()


@app.command("help")
def help_command(ctx: typer.Context):
    """Display this help information"""
    show_help(_manager(ctx))


def main():
    """Main entry point"""
    app()
