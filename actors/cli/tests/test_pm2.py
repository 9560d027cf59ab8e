"""Tests for pm2 process supervision."""

from __future__ import annotations

import json
import subprocess
import threading
from pathlib import Path
from typing import Any

import pytest

from actors.cli.config import StackConfig
from actors.cli.errors import CommandFailedError
from actors.cli.pm2 import (
    LogEvent,
    Pm2Supervisor,
    ProcessSpec,
    parse_log_line,
    service_specs,
)


class _FakePm2:
    """``subprocess.run`` double for the pm2 CLI."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.calls: list[tuple[list[str], dict[str, str] | None]] = []
        self._lock = threading.Lock()

    def __call__(self, command: list[str], **kwargs: Any) -> Any:
        with self._lock:
            self.calls.append((command, kwargs.get("env")))
        code = 1 if command[1] in self.failing else 0
        return subprocess.CompletedProcess(command, code, stdout="", stderr="boom")

    def subcommands(self) -> list[str]:
        return [command[1] for command, _ in self.calls]


def _supervisor(fake: _FakePm2, tmp_path: Path) -> Pm2Supervisor:
    return Pm2Supervisor(root=tmp_path, python="/usr/bin/python3", runner=fake)


def test_start_command_runs_python_module_without_interpreter(tmp_path: Path) -> None:
    supervisor = _supervisor(_FakePm2(), tmp_path)
    spec = ProcessSpec(name="proxy", module_args=("-m", "actors.proxy"))

    assert supervisor.start_command(spec) == [
        "pm2",
        "start",
        "/usr/bin/python3",
        "--name",
        "proxy",
        "--interpreter",
        "none",
        "--max-memory-restart",
        "1G",
        "--cwd",
        str(tmp_path),
        "--",
        "-m",
        "actors.proxy",
    ]


def test_service_specs_pick_scripts_by_mode() -> None:
    config = StackConfig(be_unix_socket_path="/b.sock", fe_unix_socket_path="/f.sock")

    prod = {spec.name: spec for spec in service_specs(config, dev=False)}
    dev = {spec.name: spec for spec in service_specs(config, dev=True)}

    assert prod["backend"].module_args == (
        "-m",
        "actors.cli",
        "be:npm",
        "run",
        "start:prod",
    )
    assert prod["frontend"].module_args[-3:] == ("fe:npm", "run", "start")
    assert dev["backend"].module_args[-2:] == ("--", "--preserveWatchOutput")
    assert dev["frontend"].module_args[2:5] == ("fe:npm", "run", "dev")
    assert prod["proxy"].env["BE_UNIX_SOCKET_PATH"] == "/b.sock"
    assert prod["proxy"].env["APP_PORT"] == "9100"


def test_start_all_deletes_then_starts_three_processes(tmp_path: Path) -> None:
    fake = _FakePm2(failing={"delete"})
    supervisor = _supervisor(fake, tmp_path)

    supervisor.start_all(StackConfig(), dev=False)

    assert fake.subcommands()[0] == "delete"
    started = sorted(command[4] for command, _ in fake.calls if command[1] == "start")
    assert started == ["backend", "frontend", "proxy"]
    proxy_env = next(
        env
        for command, env in fake.calls
        if command[1] == "start" and command[4] == "proxy"
    )
    assert proxy_env is not None
    assert proxy_env["APP_HOST"] == "127.0.0.1"


def test_start_failure_raises_command_failed(tmp_path: Path) -> None:
    supervisor = _supervisor(_FakePm2(failing={"start"}), tmp_path)

    with pytest.raises(CommandFailedError) as excinfo:
        supervisor.start(ProcessSpec(name="backend", module_args=("-m", "x")))

    assert excinfo.value.exit_code == 1
    assert excinfo.value.command[:2] == ("pm2", "start")


def test_stop_all_stops_then_kills_daemon(tmp_path: Path) -> None:
    fake = _FakePm2(failing={"stop"})

    _supervisor(fake, tmp_path).stop_all()

    assert [command[1:] for command, _ in fake.calls] == [["stop", "all"], ["kill"]]


def test_stream_logs_follows_json_output(tmp_path: Path, capsys: Any) -> None:
    spawned: list[list[str]] = []

    class _FakeProcess:
        stdout = [
            json.dumps({"type": "out", "app_name": "backend", "message": "ready\n"}),
            json.dumps({"type": "err", "app_name": "frontend", "message": "oops"}),
            json.dumps(
                {"type": "process_event", "app_name": "proxy", "status": "exit"}
            ),
        ]

        def wait(self) -> int:
            return 0

    def fake_spawn(command: list[str], **_kwargs: Any) -> _FakeProcess:
        spawned.append(command)
        return _FakeProcess()

    supervisor = Pm2Supervisor(root=tmp_path, runner=_FakePm2(), spawner=fake_spawn)
    supervisor.stream_logs()

    captured = capsys.readouterr()
    assert spawned == [["pm2", "logs", "--json", "--lines", "0"]]
    assert "[backend] ready\n" in captured.out
    assert "[proxy] Process exited" in captured.out
    assert "[frontend] ERROR: oops" in captured.err


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        (
            '{"type": "out", "app_name": "backend", "message": "listening"}',
            LogEvent(app_name="backend", kind="out", text="listening"),
        ),
        (
            '{"type": "process_event", "app_name": "proxy", "status": "online"}',
            None,
        ),
        ("not json", None),
        ("[1, 2]", None),
    ],
)
def test_parse_log_line(line: str, expected: LogEvent | None) -> None:
    assert parse_log_line(line) == expected
