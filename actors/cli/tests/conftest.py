"""Shared fixtures for CLI actor tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest


@pytest.fixture(autouse=True)
def _isolated_cli(monkeypatch: Any, tmp_path: Path) -> Path:
    """Run each test from an empty checkout with logging setup disabled."""
    import actors.cli.main as cli_main

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        cli_main, "configure_logging", lambda *_args, **_kwargs: None
    )
    for key in ("GLOBAL_APP_PORT", "BE_DATABASE_URL", "FE_APP_NAME"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path
