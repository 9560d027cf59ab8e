"""Single-handler logging setup for Taskosaur processes.

Processes supervised by pm2 write to stdout so pm2 collects their output;
the CLI passes stderr to keep its status lines clean. Service and
environment are fixed per process and live on the formatter, since worker
threads do not inherit context fields.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Mapping, TextIO

from packages.taskosaur_shared.config.models import LoggingSettings

from . import fields
from .context import current_fields

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRIBUTES
    }


class FieldsFormatter(logging.Formatter):
    """Render records as JSON lines or as text with ``key=value`` pairs.

    Output fields, lowest precedence first: process fields, scoped context
    fields, then the call's ``extra`` mapping.
    """

    def __init__(
        self, *, json_output: bool, process_fields: Mapping[str, str]
    ) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        self._json_output = json_output
        self._process_fields = dict(process_fields)

    def format(self, record: logging.LogRecord) -> str:
        values = {
            **self._process_fields,
            **current_fields(),
            **_extra_fields(record),
        }
        if self._json_output:
            return self._format_json(record, values)

        line = super().format(record)
        if not values:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(values.items()))
        return f"{line} {pairs}"

    def _format_json(self, record: logging.LogRecord, values: dict[str, Any]) -> str:
        payload: dict[str, Any] = {
            fields.TIMESTAMP: datetime.now(UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **values,
        }
        if record.exc_info:
            payload[fields.EXCEPTION] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


def configure_logging(
    settings: LoggingSettings,
    *,
    service: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Replace root handlers with one stream handler built from ``settings``.

    ``service`` overrides ``settings.service`` so the CLI and proxy can be
    told apart in combined pm2 output.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(settings.level)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(
        FieldsFormatter(
            json_output=settings.json_output,
            process_fields={
                fields.SERVICE: service or settings.service,
                fields.ENVIRONMENT: settings.environment,
            },
        )
    )
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger from the standard logging hierarchy."""
    return logging.getLogger(name)
