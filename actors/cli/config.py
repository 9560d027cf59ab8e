"""Stack configuration resolved from the process environment and ``.env``.

Keys prefixed ``GLOBAL_`` are made available without the prefix. Defaults
match a local install where the backend and frontend listen on Unix sockets
under their project directories and the proxy serves ``127.0.0.1:9100``.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from packages.taskosaur_shared.logging import get_logger

_LOGGER = get_logger(__name__)

GLOBAL_PREFIX = "GLOBAL_"
BACKEND_PREFIX = "BE_"
FRONTEND_PREFIX = "FE_"

BACKEND_DIR = "backend"
FRONTEND_DIR = "frontend"


@dataclass(frozen=True)
class StackConfig:
    """Addresses of the proxy and its two upstreams, as raw strings."""

    app_host: str = "127.0.0.1"
    app_port: str = "9100"
    be_host: str = "127.0.0.1"
    be_port: str = "9102"
    be_unix_socket: str = "1"
    be_unix_socket_path: str = ""
    fe_host: str = "127.0.0.1"
    fe_port: str = "9101"
    fe_unix_socket: str = "1"
    fe_unix_socket_path: str = ""

    def as_environ(self) -> dict[str, str]:
        """Return the config keyed by environment variable name."""
        return {key.upper(): value for key, value in asdict(self).items()}


def load_env_file(path: Path | None = None) -> bool:
    """Load ``.env`` into ``os.environ`` without overriding existing keys."""
    env_path = path or Path.cwd() / ".env"
    loaded = load_dotenv(env_path, override=False)
    _LOGGER.debug("env file loaded", extra={"path": str(env_path), "found": loaded})
    return loaded


def strip_prefix(environ: Mapping[str, str], prefix: str) -> dict[str, str]:
    """Return ``environ`` plus unprefixed copies of every ``prefix`` key.

    The prefixed value wins over an unprefixed key already present.
    """
    merged = dict(environ)
    for key, value in environ.items():
        if key.startswith(prefix) and len(key) > len(prefix):
            merged[key[len(prefix) :]] = value
    return merged


def resolve_stack_config(
    environ: Mapping[str, str] | None = None, *, root: Path | None = None
) -> StackConfig:
    """Resolve stack addresses from the environment, defaulting anything unset."""
    env = strip_prefix(os.environ if environ is None else environ, GLOBAL_PREFIX)
    base = root or Path.cwd()
    values: dict[str, str] = {
        "be_unix_socket_path": str(
            base / BACKEND_DIR / "tmp" / "taskosaur-backend.sock"
        ),
        "fe_unix_socket_path": str(
            base / FRONTEND_DIR / "tmp" / "taskosaur-frontend.sock"
        ),
    }
    for item in fields(StackConfig):
        name = item.name.upper()
        if name in env:
            values[item.name] = env[name]
    return StackConfig(**values)


def proxy_environment(config: StackConfig) -> dict[str, str]:
    """Return the variables handed to the proxy process, skipping empty ones."""
    return {key: value for key, value in config.as_environ().items() if value}
