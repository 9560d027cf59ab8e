"""Reverse proxy process entry point, run under pm2 by ``taskosaur run``."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from actors.cli.config import load_env_file, resolve_stack_config
from packages.taskosaur_shared.config import load_settings
from packages.taskosaur_shared.logging import configure_logging, get_logger

from .app import create_proxy_app, resolve_upstreams

_LOGGER = get_logger(__name__)


def run_app(
    app: FastAPI,
    *,
    host: str = "127.0.0.1",
    port: int = 9100,
    log_level: str = "info",
) -> None:
    """Run one FastAPI app through uvicorn."""
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def main() -> None:
    """Resolve upstreams from the environment and serve until stopped."""
    load_env_file()
    settings = load_settings()
    configure_logging(settings.logging, service="taskosaur-proxy")

    config = resolve_stack_config()
    backend, frontend = resolve_upstreams(config)
    _LOGGER.info(
        "reverse proxy listening",
        extra={"host": config.app_host, "port": config.app_port},
    )
    run_app(
        create_proxy_app(backend, frontend),
        host=config.app_host,
        port=int(config.app_port),
        log_level=settings.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
