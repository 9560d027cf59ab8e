"""npm child processes for the backend and frontend sub-projects."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

import typer

from packages.taskosaur_shared.logging import child_process, get_logger

from .config import (
    BACKEND_DIR,
    BACKEND_PREFIX,
    FRONTEND_DIR,
    FRONTEND_PREFIX,
    strip_prefix,
)
from .errors import CommandFailedError

_LOGGER = get_logger(__name__)

NPM_EXECUTABLE = "npm"
COMMAND_NOT_FOUND_EXIT_CODE = 127

PROJECT_PREFIXES = {
    BACKEND_DIR: BACKEND_PREFIX,
    FRONTEND_DIR: FRONTEND_PREFIX,
}


def project_dir(project: str, root: Path | None = None) -> Path:
    """Return the directory of one sub-project under ``root``."""
    return (root or Path.cwd()) / project


def run_npm(
    args: Sequence[str], cwd: Path, env: Mapping[str, str] | None = None
) -> int:
    """Run ``npm <args>`` with inherited stdio and return its exit code."""
    command = [NPM_EXECUTABLE, *args]
    with child_process(command=" ".join(command)):
        _LOGGER.debug("spawning npm", extra={"cwd": str(cwd)})
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                check=False,
            )
        except FileNotFoundError:
            _LOGGER.error("npm executable not found", extra={"cwd": str(cwd)})
            return COMMAND_NOT_FOUND_EXIT_CODE
        _LOGGER.debug("npm exited", extra={"exit_code": completed.returncode})
        return completed.returncode


def _run_checked(
    args: Sequence[str], cwd: Path, env: Mapping[str, str] | None = None
) -> None:
    exit_code = run_npm(args, cwd, env)
    if exit_code != 0:
        raise CommandFailedError(
            command=(NPM_EXECUTABLE, *args), cwd=cwd, exit_code=exit_code
        )


def _backend_env() -> dict[str, str]:
    return strip_prefix(os.environ, BACKEND_PREFIX)


def install_dependencies(root: Path | None = None) -> None:
    """Run ``npm install`` in the backend, then the frontend."""
    for project in (BACKEND_DIR, FRONTEND_DIR):
        typer.echo(f"📦 Installing dependencies in {project}...")
        _run_checked(["install"], project_dir(project, root))
        typer.echo(f"✅ Dependencies installed in {project}")
    typer.echo("✅ All dependencies installed successfully!")


def build_projects(root: Path | None = None) -> None:
    """Run ``npm run build`` in the backend, then the frontend."""
    for project in (BACKEND_DIR, FRONTEND_DIR):
        typer.echo(f"🔨 Building {project}...")
        _run_checked(["run", "build"], project_dir(project, root))
        typer.echo(f"✅ Build completed in {project}")
    typer.echo("✅ All projects built successfully!")


def run_migrations(dev: bool = False, root: Path | None = None) -> None:
    """Apply database migrations; ``dev`` creates new ones from schema drift."""
    script = "prisma:migrate:dev" if dev else "prisma:migrate:deploy"
    typer.echo("🗃️  Running database migrations...")
    _run_checked(["run", script], project_dir(BACKEND_DIR, root), _backend_env())
    typer.echo("✅ Database migrations completed")


def run_seed(root: Path | None = None) -> None:
    """Seed core data, including the system user."""
    typer.echo("🌱 Seeding database...")
    _run_checked(["run", "seed:core"], project_dir(BACKEND_DIR, root), _backend_env())
    typer.echo("✅ Database seeding completed")


def setup_database(dev: bool = False, root: Path | None = None) -> None:
    """Migrate then seed; a failed migration skips seeding."""
    run_migrations(dev, root)
    run_seed(root)
    typer.echo("✅ Database setup completed successfully!")


def passthrough_args(args: Sequence[str]) -> list[str]:
    """Insert ``--`` after the script name so extra flags reach the script.

    ``run start:dev --watch`` becomes ``run start:dev -- --watch``.
    """
    npm_args = list(args)
    if len(npm_args) > 2 and npm_args[2] != "--":
        npm_args.insert(2, "--")
    return npm_args


def passthrough(
    project: str,
    args: Sequence[str],
    environ: Mapping[str, str] | None = None,
    root: Path | None = None,
) -> int:
    """Run npm in one sub-project with its prefixed variables unprefixed."""
    prefix = PROJECT_PREFIXES[project]
    env = strip_prefix(os.environ if environ is None else environ, prefix)
    npm_args = passthrough_args(args)
    typer.echo(f"🔧 Running npm {' '.join(args)} in {project} directory...")
    return run_npm(npm_args, project_dir(project, root), env)
