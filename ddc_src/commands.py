#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
CLI commands for ddc-shob.
"""

import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape

from .errors import BuildError
from .manager import ProjectManager
from .plan import Subcommand, split_service_token
from .schema_utils import default_config_yaml, generate_config_schema

console = Console()
app = typer.Typer(
    name="ddc-shob",
    help="Django + docker compose shortcuts: ddc-shob [SERVICE] COMMAND [ARGS]...",
    add_completion=False,
    no_args_is_help=True,
)
schema_app = typer.Typer(help="Schema utilities")
app.add_typer(schema_app, name="schema")

# Unknown options are kept in the tail and forwarded to the underlying tool
PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}
# --help belongs to the command run inside the container
VERBATIM = {**PASSTHROUGH, "help_option_names": []}
GLOBAL_VALUE_OPTIONS = ("--service", "-s", "--project-dir", "-C")
EXTRA_COMMANDS = ("init", "schema")

TailArg = Annotated[
    Optional[list[str]],
    typer.Argument(help="Arguments for the command", show_default=False),
]


@app.callback()
def cli(
    ctx: typer.Context,
    service: Annotated[
        Optional[str],
        typer.Option("-s", "--service", help="Compose service to operate on"),
    ] = None,
    project_dir: Annotated[
        Optional[Path],
        typer.Option(
            "-C",
            "--project-dir",
            help="Project directory (defaults to the current directory)",
            file_okay=False,
        ),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Print commands without running them")
    ] = False,
):
    """Django + docker compose shortcuts"""
    project_root = (project_dir or Path.cwd()).resolve()
    ctx.obj = ProjectManager(project_root, service=service, dry_run=dry_run)


def _run(ctx: typer.Context, subcommand: Subcommand, args: Optional[list[str]]):
    manager: ProjectManager = ctx.obj
    try:
        result = manager.run_subcommand(subcommand, list(args or []))
    except BuildError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    raise typer.Exit(result.exit_code)


# ============================================================================
# Compose Commands
# ============================================================================


@app.command("start", context_settings=PASSTHROUGH)
def start(ctx: typer.Context, args: TailArg = None):
    """Start all services detached ([--build|-b] to build images first)"""
    _run(ctx, Subcommand.START, args)


@app.command("build", context_settings=PASSTHROUGH)
def build(ctx: typer.Context, args: TailArg = None):
    """Build the service image without starting it"""
    _run(ctx, Subcommand.BUILD, args)


@app.command("restart", context_settings=PASSTHROUGH)
def restart(ctx: typer.Context, args: TailArg = None):
    """Restart the service (--all restarts every service)"""
    _run(ctx, Subcommand.RESTART, args)


@app.command("stop", context_settings=PASSTHROUGH)
def stop(ctx: typer.Context, args: TailArg = None):
    """Stop and remove all containers"""
    _run(ctx, Subcommand.STOP, args)


@app.command("rebuild", context_settings=PASSTHROUGH)
def rebuild(ctx: typer.Context, args: TailArg = None):
    """Remove the service container, rebuild its image and start everything"""
    _run(ctx, Subcommand.REBUILD, args)


@app.command("status", context_settings=PASSTHROUGH)
def status(ctx: typer.Context, args: TailArg = None):
    """Show services status"""
    _run(ctx, Subcommand.STATUS, args)


@app.command("logs", context_settings=PASSTHROUGH)
def logs(ctx: typer.Context, args: TailArg = None):
    """Follow service logs ([-n LINES] [--no-follow])"""
    _run(ctx, Subcommand.LOGS, args)


@app.command("exec", context_settings=VERBATIM)
def exec_(ctx: typer.Context, args: TailArg = None):
    """Run a command inside the service (use -- before options of the command)"""
    _run(ctx, Subcommand.EXEC, args)


@app.command("purge-db", context_settings=PASSTHROUGH)
def purge_db(ctx: typer.Context, args: TailArg = None):
    """Stop everything, delete the local db folder (default pg) and start again

    Use --volume NAME to remove a docker volume instead of a folder.
    """
    _run(ctx, Subcommand.PURGE_DB, args)


@app.command("purge-docker", context_settings=PASSTHROUGH)
def purge_docker(ctx: typer.Context, args: TailArg = None):
    """Purge docker cache and storage"""
    _run(ctx, Subcommand.PURGE_DOCKER, args)


# ============================================================================
# Django Commands
# ============================================================================


@app.command("migrate", context_settings=PASSTHROUGH)
def migrate(ctx: typer.Context, args: TailArg = None):
    """Apply migrations: [APP [MIGRATION]] [--make] [--empty] [--name NAME]"""
    _run(ctx, Subcommand.MIGRATE, args)


@app.command("show-urls", context_settings=PASSTHROUGH)
def show_urls(ctx: typer.Context, args: TailArg = None):
    """Print out all project urls"""
    _run(ctx, Subcommand.SHOW_URLS, args)


@app.command("add-app", context_settings=PASSTHROUGH)
def add_app(ctx: typer.Context, args: TailArg = None):
    """Add a new application to the django project"""
    _run(ctx, Subcommand.ADD_APP, args)


@app.command("lint", context_settings=PASSTHROUGH)
def lint(ctx: typer.Context, args: TailArg = None):
    """Run linters: [black|flake8|prospector|pydocstyle|mypy] [PATH] [ARGS]

    Without a job the default set runs and stops at the first failure.
    """
    _run(ctx, Subcommand.LINT, args)


@app.command("py-test", context_settings=VERBATIM)
def py_test(ctx: typer.Context, args: TailArg = None):
    """Run pytest inside the service"""
    _run(ctx, Subcommand.PY_TEST, args)


@app.command("shell-plus", context_settings=PASSTHROUGH)
def shell_plus(ctx: typer.Context, args: TailArg = None):
    """Launch django-extensions shell_plus"""
    _run(ctx, Subcommand.SHELL_PLUS, args)


@app.command("manage-py", context_settings=VERBATIM)
def manage_py(ctx: typer.Context, args: TailArg = None):
    """Run any manage.py command inside the service"""
    _run(ctx, Subcommand.MANAGE_PY, args)


# ============================================================================
# Deploy
# ============================================================================


@app.command("deploy")
def deploy(
    ctx: typer.Context,
    host: Annotated[
        Optional[str], typer.Argument(help="Remote server (defaults to deploy.host)")
    ] = None,
    user: Annotated[
        Optional[str], typer.Option("-u", "--user", help="Remote server user")
    ] = None,
    remote_dir: Annotated[
        Optional[str],
        typer.Option("--remote-dir", help="Remote project directory"),
    ] = None,
    ssh_key: Annotated[
        Optional[str],
        typer.Option("-i", "--ssh-key", help="SSH private key (ssh-agent if unset)"),
    ] = None,
    port: Annotated[
        Optional[int], typer.Option("-p", "--port", help="SSH port", min=1, max=65535)
    ] = None,
    exclude: Annotated[
        Optional[list[str]],
        typer.Option("-e", "--exclude", help="Extra pattern to leave out"),
    ] = None,
    deploy_dir: Annotated[
        Optional[Path],
        typer.Option("--dir", help="Directory to deploy", file_okay=False),
    ] = None,
):
    """Archive the project, upload it and build/start it on a remote server"""
    manager: ProjectManager = ctx.obj
    try:
        excludes = (
            manager.config.deploy.excludes + list(exclude) if exclude else None
        )
        result = manager.deploy(
            deploy_dir,
            host=host,
            user=user,
            remote_dir=remote_dir,
            ssh_key=ssh_key,
            port=port,
            excludes=excludes,
        )
    except BuildError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    raise typer.Exit(result.exit_code)


# ============================================================================
# Configuration Commands
# ============================================================================


@app.command()
def init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite ddc.yaml if it already exists",
        ),
    ] = False,
):
    """Create ddc.yaml with default settings and generate editor schema"""
    manager: ProjectManager = ctx.obj
    config_path = manager.config_path

    if not config_path.exists() or force:
        config_path.write_text(default_config_yaml(), encoding="utf-8")
        console.print(f"[green]✓[/green] Created {config_path}")
    else:
        console.print(
            "[yellow]ddc.yaml already exists. Use --force to overwrite.[/yellow]"
        )

    schema_path = generate_config_schema(manager.project_root)
    console.print(f"[green]✓[/green] Generated {schema_path}")


@schema_app.command("generate")
def schema_generate(ctx: typer.Context):
    """Generate editor schema from Pydantic models"""
    manager: ProjectManager = ctx.obj
    try:
        schema_path = generate_config_schema(manager.project_root)
        console.print(f"[green]✓[/green] Generated {schema_path}")
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def main():
    """Main entry point"""
    commands = [subcommand.value for subcommand in Subcommand]
    argv = split_service_token(
        sys.argv[1:], [*commands, *EXTRA_COMMANDS], GLOBAL_VALUE_OPTIONS
    )
    app(args=argv, prog_name="ddc-shob")
