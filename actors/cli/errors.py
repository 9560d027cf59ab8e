"""Typed errors for CLI orchestration failures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommandFailedError(Exception):
    """Child process exited with a non-zero status."""

    command: tuple[str, ...]
    cwd: Path
    exit_code: int

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return (
            f"{' '.join(self.command)} failed in {self.cwd} "
            f"with exit code {self.exit_code}"
        )
