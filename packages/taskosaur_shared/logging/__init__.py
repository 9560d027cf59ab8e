"""Logging for Taskosaur tooling: one configured handler plus scoped fields."""

from .config import FieldsFormatter, configure_logging, get_logger
from .context import acting_user, child_process, cli_command, current_fields

__all__ = [
    "FieldsFormatter",
    "acting_user",
    "child_process",
    "cli_command",
    "configure_logging",
    "current_fields",
    "get_logger",
]
