"""Taskosaur CLI actor implemented with Typer."""

from __future__ import annotations

import signal
import sys
from typing import Any, NoReturn

import click
import typer
from typer.core import TyperGroup

from packages.taskosaur_shared.config import load_settings
from packages.taskosaur_shared.logging import (
    cli_command,
    configure_logging,
    get_logger,
)

from . import env_file, npm
from .config import BACKEND_DIR, FRONTEND_DIR, load_env_file, resolve_stack_config
from .errors import CommandFailedError
from .pm2 import Pm2Supervisor

_LOGGER = get_logger(__name__)

SUCCESS_EXIT_CODE = 0
FAILURE_EXIT_CODE = 1

HELP_TEXT = """
🦕 Taskosaur - Project Management Tool

USAGE:
  taskosaur <command> [options]

COMMANDS:
  setup           Install dependencies, create .env files, migrate and seed
  run             Start all Taskosaur services (backend, frontend, proxy)
  be:npm <args>   Run npm in backend/ with BE_ variables unprefixed
  fe:npm <args>   Run npm in frontend/ with FE_ variables unprefixed
  help            Show this help message

OPTIONS:
  --dev     Development mode (run: skip build, watch sources;
            setup: create migrations from schema changes)

EXAMPLES:
  taskosaur setup                  # Install deps, write .env, migrate, seed
  taskosaur run                    # Start all services in production mode
  taskosaur run --dev              # Start all services in development mode
  taskosaur be:npm run start:dev   # Run a backend script directly
  taskosaur help                   # Show this help

CONFIGURATION:
  Environment variables starting with GLOBAL_ are made available without
  the prefix. For example:
    GLOBAL_APP_HOST=127.0.0.1 becomes APP_HOST=127.0.0.1

SERVICES:
  • Backend: NestJS API server
  • Frontend: Next.js web application
  • Proxy: reverse proxy routing /api to the backend
"""


class TaskosaurGroup(TyperGroup):
    """Group that prints the Taskosaur usage text and exits 1 on unknown commands."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        name = args[0] if args else ""
        if name and self.get_command(ctx, name) is None:
            typer.echo(f"❌ Unknown command: {name}", err=True)
            typer.echo('Run "taskosaur help" for usage information.')
            ctx.exit(FAILURE_EXIT_CODE)
        return super().resolve_command(ctx, args)

    def get_help(self, ctx: click.Context) -> str:
        return HELP_TEXT.strip("\n")


def _fail(message: str, exc: Exception) -> NoReturn:
    """Log one command failure and exit non-zero."""
    _LOGGER.error(message, extra={"error": str(exc)})
    typer.echo(f"❌ {message}: {exc}", err=True)
    raise typer.Exit(code=FAILURE_EXIT_CODE) from exc


def _install_shutdown_handler(supervisor: Pm2Supervisor) -> None:
    """Stop all supervised processes and exit cleanly on Ctrl+C."""

    def _handle_shutdown(_signum: int, _frame: object) -> None:
        supervisor.stop_all()
        raise typer.Exit(code=SUCCESS_EXIT_CODE)

    signal.signal(signal.SIGINT, _handle_shutdown)


app = typer.Typer(
    cls=TaskosaurGroup,
    invoke_without_command=True,
    add_completion=False,
    help="Taskosaur setup and process orchestration",
    context_settings={"help_option_names": ["--help", "-h"]},
)

_NPM_CONTEXT: dict[str, Any] = {
    "allow_extra_args": True,
    "ignore_unknown_options": True,
}


@app.callback()
def root(ctx: typer.Context) -> None:
    """Load ``.env``, configure logging and default to ``help``."""
    load_env_file()
    settings = load_settings()
    configure_logging(settings.logging, service="taskosaur-cli", stream=sys.stderr)
    if ctx.invoked_subcommand is None:
        typer.echo(HELP_TEXT)
        raise typer.Exit(code=SUCCESS_EXIT_CODE)
    ctx.with_resource(cli_command(ctx.invoked_subcommand))


@app.command("help")
def help_command() -> None:
    """Show usage information."""
    typer.echo(HELP_TEXT)


@app.command("setup")
def setup_command(
    dev: bool = typer.Option(
        False, "--dev", help="Create migrations from schema changes"
    ),
) -> None:
    """Install dependencies, create .env files, migrate and seed."""
    typer.echo("🔧 Setting up Taskosaur environment...\n")
    try:
        npm.install_dependencies()
        env_file.create_env_files()
        load_env_file()
        npm.setup_database(dev)
    except CommandFailedError as exc:
        _fail("Setup failed", exc)

    typer.echo("\n✅ Setup completed successfully!")
    typer.echo("\nNext steps:")
    typer.echo('  • Run "taskosaur run" to start all services')
    typer.echo('  • Run "taskosaur run --dev" for development mode')


@app.command("run")
def run_command(
    dev: bool = typer.Option(
        False, "--dev", help="Skip the build and start watch-mode servers"
    ),
) -> None:
    """Start backend, frontend and proxy under pm2 and stream their logs."""
    typer.echo("🔧 Starting Taskosaur...\n")
    config = resolve_stack_config()
    supervisor = Pm2Supervisor()
    try:
        npm.install_dependencies()
        if not dev:
            npm.build_projects()
        supervisor.start_all(config, dev)
    except CommandFailedError as exc:
        _fail("Failed to start Taskosaur", exc)

    _install_shutdown_handler(supervisor)
    supervisor.stream_logs()


def _run_passthrough(
    project: str, command_name: str, label: str, args: list[str]
) -> None:
    if not args:
        typer.echo("❌ No npm command provided", err=True)
        typer.echo(f"Usage: taskosaur {command_name} <npm-command> [args...]")
        raise typer.Exit(code=FAILURE_EXIT_CODE)

    exit_code = npm.passthrough(project, args)
    if exit_code != 0:
        typer.echo(
            f"❌ {label} npm command failed with exit code {exit_code}", err=True
        )
        raise typer.Exit(code=exit_code)
    typer.echo(f"✅ {label} npm command completed successfully")


@app.command("be:npm", context_settings=_NPM_CONTEXT, add_help_option=False)
def backend_npm_command(ctx: typer.Context) -> None:
    """Run npm in backend/ with BE_ variables unprefixed."""
    _run_passthrough(BACKEND_DIR, "be:npm", "Backend", list(ctx.args))


@app.command("fe:npm", context_settings=_NPM_CONTEXT, add_help_option=False)
def frontend_npm_command(ctx: typer.Context) -> None:
    """Run npm in frontend/ with FE_ variables unprefixed."""
    _run_passthrough(FRONTEND_DIR, "fe:npm", "Frontend", list(ctx.args))


def main() -> None:
    """Console-script entry point."""
    app()


if __name__ == "__main__":
    main()
