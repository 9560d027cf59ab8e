"""Interactive ``.env`` generation for a fresh Taskosaur checkout.

``setup`` writes two files: the root ``.env`` holding proxy settings plus
``BE_``/``FE_`` prefixed upstream settings, and ``backend/.env`` holding the
backend's database, auth, mail, storage and queue settings. A file that
already exists is never rewritten.
"""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

import typer
from dotenv import dotenv_values

from packages.taskosaur_shared.logging import get_logger

from .config import BACKEND_DIR, BACKEND_PREFIX, FRONTEND_PREFIX

_LOGGER = get_logger(__name__)

JWT_SECRET_LENGTH = 64
_JWT_ALPHABET = string.digits + string.ascii_lowercase + string.ascii_uppercase
_NEEDS_QUOTES = re.compile(r"[\s#\"'$\\`]")

GLOBAL_HEADER = "# Global/Proxy Configuration"
BACKEND_MARKERS = (
    "#### Backend Configuration >>>>>",
    "#### Backend Configuration <<<<<",
)
FRONTEND_MARKERS = (
    "#### Frontend Configuration >>>>>",
    "#### Frontend Configuration <<<<<",
)

Ask = Callable[[str, str], str]


@dataclass
class EnvSections:
    """Variables of one root ``.env`` grouped by prefix."""

    global_vars: dict[str, str] = field(default_factory=dict)
    backend: dict[str, str] = field(default_factory=dict)
    frontend: dict[str, str] = field(default_factory=dict)

    def add(self, key: str, value: str) -> None:
        """File ``key`` under the section its prefix selects."""
        if key.startswith(BACKEND_PREFIX):
            self.backend[key] = value
        elif key.startswith(FRONTEND_PREFIX):
            self.frontend[key] = value
        else:
            self.global_vars[key] = value


def generate_jwt_secret(length: int = JWT_SECRET_LENGTH) -> str:
    """Return a random alphanumeric secret."""
    return "".join(secrets.choice(_JWT_ALPHABET) for _ in range(length))


def prompt_value(question: str, default: str = "") -> str:
    """Ask one question on the terminal; a blank answer selects ``default``."""
    answer = typer.prompt(question, default=default, show_default=bool(default))
    return answer.strip() or default


def _format_value(value: str) -> str:
    if not _NEEDS_QUOTES.search(value):
        return value
    if "$" in value:
        # dotenv expands ${...} only inside double quotes.
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _format_lines(values: Mapping[str, str]) -> list[str]:
    return [f"{key}={_format_value(value)}" for key, value in values.items()]


def render_env_file(sections: EnvSections) -> str:
    """Render sections with the marker comments used by ``parse_env_file``."""
    lines: list[str] = []
    if sections.global_vars:
        lines.append(GLOBAL_HEADER)
        lines.extend(_format_lines(sections.global_vars))
        lines.append("")
    for markers, values in (
        (BACKEND_MARKERS, sections.backend),
        (FRONTEND_MARKERS, sections.frontend),
    ):
        if not values:
            continue
        lines.append(markers[0])
        lines.extend(_format_lines(values))
        lines.append(markers[1])
        lines.append("")
    return "\n".join(lines)


def parse_env_file(path: Path) -> EnvSections:
    """Read ``path`` into sections; a missing file yields empty sections."""
    sections = EnvSections()
    if not path.exists():
        return sections
    for key, value in dotenv_values(path).items():
        if value is None:
            continue
        sections.add(key, value)
    return sections


def update_env_file(
    path: Path,
    global_vars: Mapping[str, str] | None = None,
    backend: Mapping[str, str] | None = None,
    frontend: Mapping[str, str] | None = None,
) -> EnvSections:
    """Merge new variables into ``path``, keeping every existing key."""
    sections = parse_env_file(path)
    sections.global_vars.update(global_vars or {})
    sections.backend.update(backend or {})
    sections.frontend.update(frontend or {})
    path.write_text(render_env_file(sections), encoding="utf-8")
    _LOGGER.info("env file updated", extra={"path": str(path)})
    return sections


def collect_root_settings(ask: Ask = prompt_value) -> EnvSections:
    """Prompt for proxy and upstream settings."""
    sections = EnvSections()

    typer.echo("🌍 Global Application Settings:")
    sections.add("APP_HOST", ask("Global App Host", "127.0.0.1"))
    sections.add("APP_PORT", ask("Global App Port", "9100"))

    typer.echo("\n🔧 Backend Configuration:")
    be_socket = ask("Use Backend Unix Socket? (1 for yes, 0 for no)", "1")
    sections.add("BE_UNIX_SOCKET", be_socket)
    if be_socket == "0":
        sections.add("BE_HOST", ask("Backend Host", "127.0.0.1"))
        sections.add("BE_PORT", ask("Backend Port", "9102"))

    typer.echo("\n🖥️  Frontend Configuration:")
    fe_socket = ask("Use Frontend Unix Socket? (1 for yes, 0 for no)", "1")
    sections.add("FE_UNIX_SOCKET", fe_socket)
    if fe_socket == "0":
        sections.add("FE_HOST", ask("Frontend Host", "127.0.0.1"))
        sections.add("FE_PORT", ask("Frontend Port", "9101"))
    sections.add(
        "FE_NEXT_PUBLIC_API_BASE_URL", ask("Frontend API Base URL", "/api")
    )
    sections.add(
        "FE_NEXT_PUBLIC_DEFAULT_ORGANIZATION_ID",
        ask("Default Organization ID", "your-default-organization-id-here"),
    )
    return sections


def collect_backend_settings(
    app_url: str, ask: Ask = prompt_value
) -> dict[str, str]:
    """Prompt for backend secrets and service endpoints."""
    values: dict[str, str] = {}

    typer.echo("\n📊 Database Configuration:")
    db_host = ask("Database Host", "localhost")
    db_port = ask("Database Port", "5432")
    db_user = ask("Database Username", "taskosaur")
    db_password = ask("Database Password", "taskosaur")
    db_name = ask("Database Name", "taskosaur")
    values["DATABASE_URL"] = (
        f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
    )

    typer.echo("\n🔐 Authentication:")
    values["JWT_SECRET"] = ask("JWT Secret Key", generate_jwt_secret())
    values["JWT_REFRESH_SECRET"] = ask(
        "JWT Refresh Secret Key", generate_jwt_secret()
    )
    values["JWT_EXPIRES_IN"] = ask("JWT Expiration Time", "15m")
    values["JWT_REFRESH_EXPIRES_IN"] = ask("JWT Refresh Expiration Time", "7d")

    typer.echo("\n🔴 Redis Configuration:")
    values["REDIS_HOST"] = ask("Redis Host", "localhost")
    values["REDIS_PORT"] = ask("Redis Port", "6379")
    values["REDIS_PASSWORD"] = ask("Redis Password (leave empty if none)", "")

    typer.echo("\n📧 Email Configuration:")
    values["SMTP_HOST"] = ask("SMTP Host", "smtp.gmail.com")
    values["SMTP_PORT"] = ask("SMTP Port", "587")
    values["SMTP_USER"] = ask("SMTP User (email address)", "your-email@gmail.com")
    values["SMTP_PASS"] = ask("SMTP Password (app password)", "your-app-password")
    values["SMTP_FROM"] = ask("From Email Address", "noreply@taskosaur.com")

    typer.echo("\n🪣 Bucket Configuration:")
    values["AWS_ACCESS_KEY_ID"] = ask("AWS Access Key", "your-access-key")
    values["AWS_SECRET_ACCESS_KEY"] = ask("AWS Secret Key", "your-secret-key")
    values["AWS_REGION"] = ask("AWS Region", "ap-south-1")
    values["AWS_BUCKET_NAME"] = ask("AWS Bucket Name", "your-bucket-name")

    values["FRONTEND_URL"] = app_url

    typer.echo("\n📁 File Upload Configuration:")
    values["UPLOAD_DEST"] = ask("Upload Destination Directory", "./uploads")
    values["MAX_FILE_SIZE"] = ask("Maximum File Size (bytes)", "10485760")

    typer.echo("\n⚙️  Queue Configuration:")
    values["MAX_CONCURRENT_JOBS"] = ask("Maximum Concurrent Jobs", "5")
    values["JOB_RETRY_ATTEMPTS"] = ask("Job Retry Attempts", "3")
    return values


def create_env_files(root: Path | None = None, ask: Ask = prompt_value) -> list[Path]:
    """Write the root and backend ``.env`` files that do not exist yet.

    Returns the paths actually written.
    """
    base = root or Path.cwd()
    root_env = base / ".env"
    backend_env = base / BACKEND_DIR / ".env"
    written: list[Path] = []

    if root_env.exists():
        typer.echo("ℹ️  .env file already exists, skipping root environment setup...")
        sections = parse_env_file(root_env)
    else:
        typer.echo("\n🌐 Setting up environment configuration...\n")
        sections = collect_root_settings(ask)
        root_env.write_text(render_env_file(sections), encoding="utf-8")
        written.append(root_env)
        typer.echo(f"✅ .env file created: {root_env}")

    if backend_env.exists():
        typer.echo("ℹ️  backend/.env file already exists, skipping backend setup...")
    else:
        app_host = sections.global_vars.get("APP_HOST", "127.0.0.1")
        app_port = sections.global_vars.get("APP_PORT", "9100")
        values = collect_backend_settings(f"http://{app_host}:{app_port}", ask)
        backend_env.parent.mkdir(parents=True, exist_ok=True)
        backend_env.write_text(
            "\n".join([*_format_lines(values), ""]), encoding="utf-8"
        )
        written.append(backend_env)
        typer.echo(f"✅ backend/.env file created: {backend_env}")

    _LOGGER.info(
        "env files resolved", extra={"written": [str(path) for path in written]}
    )
    return written
