"""Process supervision through the ``pm2`` command-line client.

Each service is started as ``python -m <module> ...`` with pm2's interpreter
detection disabled, so pm2 only handles restart-on-crash, the memory cap and
log collection.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

import typer

from packages.taskosaur_shared.logging import child_process, get_logger

from .config import StackConfig, proxy_environment
from .errors import CommandFailedError

_LOGGER = get_logger(__name__)

PM2_EXECUTABLE = "pm2"
MAX_MEMORY_RESTART = "1G"

BACKEND_PROCESS = "backend"
FRONTEND_PROCESS = "frontend"
PROXY_PROCESS = "proxy"

Runner = Callable[..., "subprocess.CompletedProcess[str]"]
Spawner = Callable[..., "subprocess.Popen[str]"]


@dataclass(frozen=True)
class ProcessSpec:
    """One supervised process: a pm2 name and a Python module invocation."""

    name: str
    module_args: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LogEvent:
    """One decoded entry of ``pm2 logs --json`` output."""

    app_name: str
    kind: str
    text: str = ""

    def render(self) -> str:
        """Return the console line for this event."""
        if self.kind == "err":
            return f"[{self.app_name}] ERROR: {self.text}"
        if self.kind == "exit":
            return f"[{self.app_name}] Process exited"
        return f"[{self.app_name}] {self.text}"


def service_specs(config: StackConfig, dev: bool = False) -> list[ProcessSpec]:
    """Return backend, frontend and proxy process specs."""
    if dev:
        backend = ("be:npm", "run", "start:dev", "--", "--preserveWatchOutput")
        frontend = ("fe:npm", "run", "dev", "--", "--preserveWatchOutput")
    else:
        backend = ("be:npm", "run", "start:prod")
        frontend = ("fe:npm", "run", "start")
    return [
        ProcessSpec(name=BACKEND_PROCESS, module_args=("-m", "actors.cli", *backend)),
        ProcessSpec(
            name=FRONTEND_PROCESS, module_args=("-m", "actors.cli", *frontend)
        ),
        ProcessSpec(
            name=PROXY_PROCESS,
            module_args=("-m", "actors.proxy"),
            env=proxy_environment(config),
        ),
    ]


def describe_upstream(unix_socket: str, socket_path: str, host: str, port: str) -> str:
    """Return a human-readable upstream address."""
    if unix_socket == "1":
        return f"Unix socket at {socket_path}"
    return f"http://{host}:{port}"


def parse_log_line(line: str) -> LogEvent | None:
    """Decode one ``pm2 logs --json`` line; unrelated lines yield ``None``."""
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    app_name = str(payload.get("app_name", "unknown"))
    kind = payload.get("type")
    if kind in ("out", "err"):
        text = str(payload.get("message", "")).rstrip("\n")
        return LogEvent(app_name=app_name, kind=kind, text=text)
    if kind == "process_event" and payload.get("status") == "exit":
        return LogEvent(app_name=app_name, kind="exit")
    return None


class Pm2Supervisor:
    """Start, follow and stop the Taskosaur processes under pm2."""

    def __init__(
        self,
        *,
        root: Path | None = None,
        python: str = sys.executable,
        executable: str = PM2_EXECUTABLE,
        runner: Runner = subprocess.run,
        spawner: Spawner = subprocess.Popen,
    ) -> None:
        self._root = root or Path.cwd()
        self._python = python
        self._executable = executable
        self._runner = runner
        self._spawner = spawner

    def start_command(self, spec: ProcessSpec) -> list[str]:
        """Return the ``pm2 start`` argv for one process."""
        return [
            self._executable,
            "start",
            self._python,
            "--name",
            spec.name,
            "--interpreter",
            "none",
            "--max-memory-restart",
            MAX_MEMORY_RESTART,
            "--cwd",
            str(self._root),
            "--",
            *spec.module_args,
        ]

    def _pm2(
        self, args: Sequence[str], env: Mapping[str, str] | None = None
    ) -> int:
        completed = self._runner(
            list(args),
            cwd=self._root,
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=True,
            text=True,
        )
        if completed.returncode != 0:
            _LOGGER.warning(
                "pm2 command failed",
                extra={
                    "exit_code": completed.returncode,
                    "stderr": (completed.stderr or "").strip(),
                },
            )
        return completed.returncode

    def start(self, spec: ProcessSpec) -> None:
        """Start one process with this environment plus ``spec.env``."""
        command = self.start_command(spec)
        with child_process(process_name=spec.name):
            typer.echo(f"🔄 Starting {spec.name}...")
            exit_code = self._pm2(command, {**os.environ, **spec.env})
        # Frozen errors cannot take a traceback from a context manager exit.
        if exit_code != 0:
            typer.echo(f"❌ Failed to start {spec.name}", err=True)
            raise CommandFailedError(
                command=tuple(command), cwd=self._root, exit_code=exit_code
            )
        typer.echo(f"🚀 Started {spec.name}")

    def delete_all(self) -> None:
        """Remove processes left over from an earlier run."""
        if self._pm2([self._executable, "delete", "all"]) != 0:
            typer.echo("No existing processes to delete")

    def start_all(self, config: StackConfig, dev: bool = False) -> None:
        """Start backend, frontend and proxy concurrently."""
        self.delete_all()
        specs = service_specs(config, dev)
        with ThreadPoolExecutor(max_workers=len(specs)) as pool:
            futures = [pool.submit(self.start, spec) for spec in specs]
            for future in futures:
                future.result()

        typer.echo("\n✅ All services started successfully!")
        typer.echo(f"🔗 Proxy: http://{config.app_host}:{config.app_port}")
        frontend = describe_upstream(
            config.fe_unix_socket,
            config.fe_unix_socket_path,
            config.fe_host,
            config.fe_port,
        )
        backend = describe_upstream(
            config.be_unix_socket,
            config.be_unix_socket_path,
            config.be_host,
            config.be_port,
        )
        typer.echo(f"🌐 Frontend: {frontend}")
        typer.echo(f"🔙 Backend: {backend}\n")

    def stream_logs(self) -> None:
        """Follow combined logs until pm2's log stream closes."""
        typer.echo("\n📋 Streaming logs (Ctrl+C to stop):\n")
        process = self._spawner(
            [self._executable, "logs", "--json", "--lines", "0"],
            cwd=self._root,
            stdout=subprocess.PIPE,
            text=True,
        )
        try:
            self.echo_events(process.stdout or ())
        finally:
            process.wait()

    @staticmethod
    def echo_events(lines: Iterable[str]) -> None:
        """Print each decoded log event; stderr output goes to stderr."""
        for line in lines:
            event = parse_log_line(line)
            if event is None:
                continue
            typer.echo(event.render(), err=event.kind == "err")

    def stop_all(self) -> None:
        """Stop every process, then terminate the pm2 daemon."""
        typer.echo("\n🛑 Shutting down...")
        if self._pm2([self._executable, "stop", "all"]) != 0:
            typer.echo("Error stopping processes", err=True)
        self._pm2([self._executable, "kill"])
        typer.echo("✅ All processes stopped")
